"""清单模块

获取并解析某个版本的 files.exported.txt（该版本所有文件的相对路径，每行一个），
并提供基于正则表达式的清单搜索。
"""

import asyncio
import logging
import re
from typing import List, Sequence

import aiohttp

from .core.network_client import HTTPClient, sanitize_url_for_logging
from .exceptions import DecodeError, FetchError, InvalidVersionError, ValidationError
from .listing import DirectoryLister
from .models import Config, ExportedFile

logger = logging.getLogger(__name__)

MANIFEST_PATH = "cdragon/files.exported.txt"


def parse_manifest(text: str, version: str, root_url: str) -> List[ExportedFile]:
    """把清单文本解析为条目列表，忽略空行"""
    return [
        ExportedFile(path=line, version=version, root_url=root_url)
        for line in (raw.rstrip("\r") for raw in text.split("\n"))
        if line.strip()
    ]


def search(query: str, exported_files: Sequence[ExportedFile]) -> List[str]:
    """按行匹配清单中的文件URL

    查询被包装为 ``^.*{query}.*$`` 并在多行模式下匹配，区分大小写，
    结果保持清单顺序。

    Args:
        query: 查询字符串，支持正则表达式
        exported_files: 要搜索的清单

    Returns:
        匹配的文件URL列表

    Raises:
        ValidationError: 查询不是合法的正则表达式时
    """
    try:
        pattern = re.compile(f"^.*{query}.*$", re.MULTILINE)
    except re.error as e:
        raise ValidationError(
            f"Invalid search pattern: {e}", context={"query": query}
        ) from e

    text = "\n".join(f.url for f in exported_files)
    return [match.group(0) for match in pattern.finditer(text)]


class ManifestFetcher:
    """清单获取器"""

    def __init__(self, config: Config, http_client: HTTPClient, lister: DirectoryLister):
        self.config = config
        self.http_client = http_client
        self.lister = lister

    def manifest_url(self, version: str) -> str:
        return f"{self.config.root_url}/{version}/{MANIFEST_PATH}"

    async def list_manifest(self, version: str) -> List[ExportedFile]:
        """获取指定版本的清单

        Args:
            version: 版本号，如 "latest"、"pbe"、"14.22"

        Returns:
            清单条目列表

        Raises:
            InvalidVersionError: 版本不在当前可用版本列表中时
            FetchError: 版本列表或清单请求失败时
            DecodeError: 清单不是合法的UTF-8文本时
        """
        versions = await self.lister.get_patch_versions()
        if version not in versions:
            raise InvalidVersionError("Invalid version provided", version=version)

        url = self.manifest_url(version)
        logger.debug("Getting exported files: %s", url)

        try:
            response = await self.http_client.get(url)
            async with response:
                if not 200 <= response.status < 300:
                    raise FetchError(
                        f"HTTP {response.status}: {response.reason}",
                        url=sanitize_url_for_logging(url),
                        status_code=response.status,
                    )
                body = await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise FetchError(
                f"Failed to fetch exported files: {e!r}",
                url=sanitize_url_for_logging(url),
            ) from e

        try:
            text = body.decode("utf-8")
        except UnicodeDecodeError as e:
            logger.error("Failed to decode exported files: %s", url)
            raise DecodeError("Exported files are not valid UTF-8", url=url) from e

        exported_files = parse_manifest(text, version, self.config.root_url)
        logger.info("Loaded %d exported files for version %s", len(exported_files), version)
        return exported_files
