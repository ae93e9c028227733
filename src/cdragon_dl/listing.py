"""目录列表模块

请求 CommunityDragon 的 JSON 目录列表API并解析为类型安全的条目。
"""

import asyncio
import logging
import urllib.parse
from typing import List, Optional

import aiohttp
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .core.network_client import HTTPClient, sanitize_url_for_logging
from .core.validator import UrlValidator
from .exceptions import DecodeError, FetchError
from .models import DEFAULT_LISTING_SEGMENT, Config, ListedFile, RawFile

logger = logging.getLogger(__name__)

# 版本列表中不是版本号的条目
NON_VERSION_NAMES = frozenset(
    {
        "runeterra",
        "favicon.ico",
        "status.live.txt",
        "status.pbe.txt",
    }
)

_RAW_FILES_ADAPTER = TypeAdapter(Optional[List[RawFile]])


def build_listing_url(url: str, listing_segment: str = DEFAULT_LISTING_SEGMENT) -> str:
    """把文件URL改写为目录列表API的URL

    例如 ``https://raw.communitydragon.org/latest/game/`` 变为
    ``https://raw.communitydragon.org/json/latest/game/``。
    """
    parsed = urllib.parse.urlsplit(url)
    path = parsed.path or "/"
    if path.startswith(f"/{listing_segment}/"):
        return url
    return urllib.parse.urlunsplit(parsed._replace(path=f"/{listing_segment}{path}"))


class DirectoryLister:
    """目录列表获取器"""

    def __init__(
        self,
        config: Config,
        http_client: HTTPClient,
        validator: Optional[UrlValidator] = None,
    ):
        self.config = config
        self.http_client = http_client
        self.validator = validator or UrlValidator(config.allowed_domain)

    @property
    def root_listing_url(self) -> str:
        return f"{self.config.root_url}/{self.config.listing_segment}/"

    async def get_raw_files(self, url: str) -> List[RawFile]:
        """获取一个目录列表页的原始条目

        Args:
            url: 目录列表API的URL（以 '/' 结尾）

        Returns:
            原始条目列表，空目录返回空列表

        Raises:
            InvalidUrlError: URL无效时（不发送请求）
            FetchError: 响应状态码不是2xx或连接失败时
            DecodeError: 响应内容不是预期的JSON数组时
        """
        self.validator.validate(url)

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
                f"Failed to fetch directory listing: {e!r}",
                url=sanitize_url_for_logging(url),
            ) from e

        try:
            raw_files = _RAW_FILES_ADAPTER.validate_json(body)
        except PydanticValidationError as e:
            logger.error("Failed to deserialize JSON file: %s", url)
            raise DecodeError(
                "Directory listing does not match the expected schema",
                url=url,
                context={"errors": e.error_count(), "detail": e.errors()[0]["msg"]},
            ) from e

        return raw_files or []

    async def list_directory(self, url: str) -> List[ListedFile]:
        """获取目录列表并附带来源URL"""
        raw_files = await self.get_raw_files(url)
        return [ListedFile(raw=raw, referrer=url) for raw in raw_files]

    async def get_patch_versions(self) -> List[str]:
        """获取根目录下所有可用的版本"""
        raw_files = await self.get_raw_files(self.root_listing_url)
        return [f.name for f in raw_files if f.name not in NON_VERSION_NAMES]
