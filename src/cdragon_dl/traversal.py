"""遍历策略模块

把一个起始目录URL转换为一串具体的下载任务 (远程URL, 本地目录, 文件名)。

两种策略实现同一个接口，在调用处选择：
- LiveCrawlStrategy: 逐个目录请求JSON列表API，每访问一个目录发送一次请求
- ManifestStrategy: 基于预先获取的 files.exported.txt，不再发送任何列表请求

两种策略对同一版本、同一子树产生相同的本地文件集合。
"""

import logging
import urllib.parse
from abc import ABC, abstractmethod
from typing import AsyncIterator, List, Sequence

from .core.file_manager import FileManager
from .exceptions import InvalidUrlError, PathSecurityError
from .listing import DirectoryLister, build_listing_url
from .models import Config, DownloadTask, ExportedFile, FileType

logger = logging.getLogger(__name__)


def _split_segments(path: str) -> List[str]:
    return [segment for segment in path.split("/") if segment]


class TraversalStrategy(ABC):
    """遍历策略基类"""

    name = "base"

    def __init__(self, config: Config, file_manager: FileManager):
        self.config = config
        self.file_manager = file_manager

    def exceeds_max_depth(self, depth: int) -> bool:
        """max_depth 为 0 时不限制深度"""
        return self.config.max_depth > 0 and depth >= self.config.max_depth

    @abstractmethod
    def iter_tasks(self, url: str) -> AsyncIterator[DownloadTask]:
        """按发现顺序产生下载任务

        Args:
            url: 已经过验证的起始目录URL
        """
        raise NotImplementedError


class LiveCrawlStrategy(TraversalStrategy):
    """实时遍历JSON目录列表

    待访问目录保存在一个后进先出的栈中。任何一次列表返回空结果都会终止
    整个遍历（包括子目录），空列表被视为“目录不存在”。
    """

    name = "live"

    def __init__(self, config: Config, file_manager: FileManager, lister: DirectoryLister):
        super().__init__(config, file_manager)
        self.lister = lister
        self.listing_calls = 0

    async def iter_tasks(self, url: str) -> AsyncIterator[DownloadTask]:
        seed = build_listing_url(url, self.config.listing_segment)
        frontier: List[str] = [seed]

        while frontier:
            listing_url = frontier.pop()
            logger.debug("Getting json files: %s", urllib.parse.unquote(listing_url))

            files = await self.lister.list_directory(listing_url)
            self.listing_calls += 1
            if not files:
                logger.info(
                    "Empty listing, stopping traversal: %s",
                    urllib.parse.unquote(listing_url),
                )
                break

            relative = [
                urllib.parse.unquote(segment)
                for segment in _split_segments(listing_url[len(seed):])
            ]

            for listed in files:
                raw = listed.raw
                if raw.type == FileType.DIRECTORY:
                    child_url = listed.url + "/"
                    depth = len(_split_segments(child_url[len(seed):]))
                    if self.exceeds_max_depth(depth):
                        logger.debug(
                            "Skipping directory as it exceeds max depth: %s",
                            (depth, self.config.max_depth, raw.name),
                        )
                        continue
                    logger.debug("Pushing directory: %s", (listing_url, raw.name))
                    frontier.append(child_url)

                elif raw.type == FileType.FILE:
                    try:
                        directory = self.file_manager.resolve_directory(relative)
                        file_name = self.file_manager.ensure_safe_name(raw.name)
                    except PathSecurityError as e:
                        logger.warning("Skipping unsafe file name: %s", e)
                        continue
                    yield DownloadTask(url=listed.url, directory=directory, file_name=file_name)

                else:
                    logger.warning(
                        "Skipping 'other' type, file is likely missing: %s", listed.url
                    )

            logger.debug("Directories left: %d", len(frontier))


class ManifestStrategy(TraversalStrategy):
    """基于清单的遍历

    只在获取清单时发送一次请求，之后完全在内存中过滤。
    """

    name = "manifest"

    def __init__(
        self,
        config: Config,
        file_manager: FileManager,
        exported_files: Sequence[ExportedFile],
    ):
        super().__init__(config, file_manager)
        self.exported_files = exported_files

    def parse_start_url(self, url: str):
        """解析起始URL中的版本号与版本内的目录段

        Returns:
            (版本号, 目录段列表)

        Raises:
            InvalidUrlError: URL不在仓库根URL下或缺少版本号时
        """
        root = self.config.root_url
        if not url.startswith(root + "/"):
            raise InvalidUrlError(
                f"The URL must be under {root} to use exported files: {url}", url=url
            )

        parts = [urllib.parse.unquote(p) for p in _split_segments(url[len(root):])]
        if not parts:
            raise InvalidUrlError(f"The URL must contain a version: {url}", url=url)
        return parts[0], parts[1:]

    async def iter_tasks(self, url: str) -> AsyncIterator[DownloadTask]:
        version, exclude = self.parse_start_url(url)
        logger.debug("Parsed patch version: %s", version)

        prefix = urllib.parse.unquote(url)
        for exported in self.exported_files:
            if not exported.url.startswith(prefix):
                continue

            # 起始URL已包含的目录段不在本地重复创建
            relative = exported.directories[len(exclude):]
            if self.exceeds_max_depth(len(relative)):
                logger.debug(
                    "Skipping directory as it exceeds max depth: %s",
                    (len(relative), self.config.max_depth, relative, exported.file_name),
                )
                continue

            try:
                directory = self.file_manager.resolve_directory(relative)
                file_name = self.file_manager.ensure_safe_name(exported.file_name)
            except PathSecurityError as e:
                logger.warning("Skipping unsafe file name: %s", e)
                continue
            # 清单中的路径未转义
            request_url = urllib.parse.quote(exported.url, safe=":/")
            yield DownloadTask(url=request_url, directory=directory, file_name=file_name)
