"""客户端模块

实现 CommunityDragonClient 主类：持有配置与并发闸门，把URL验证、遍历策略和
下载执行器组装在一起，并汇总一次目录下载中所有文件的结果。
"""

import asyncio
import logging
from typing import Any, Callable, List, Optional, Sequence

import aiohttp

from .config import get_config, override_config
from .core.file_manager import FileManager
from .core.network_client import HTTPClient
from .core.validator import UrlValidator
from .exceptions import ConfigurationError, CdragonDlException
from .executor import DownloadExecutor
from .listing import DirectoryLister
from .manifest import ManifestFetcher, search
from .models import (
    Config,
    DownloadProgress,
    DownloadSummary,
    DownloadTask,
    ExportedFile,
    ListedFile,
    RawFile,
)
from .traversal import LiveCrawlStrategy, ManifestStrategy, TraversalStrategy

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[DownloadProgress], None]


class CommunityDragonClient:
    """CommunityDragon 目录下载客户端

    示例:

        async with CommunityDragonClient(Config(max_depth=1)) as client:
            await client.download_directory(
                "https://raw.communitydragon.org/latest/game/data/images/"
            )

            latest = await client.list_manifest("latest")
            await client.download_directory(
                "https://raw.communitydragon.org/latest/game/data/images/", latest
            )

    同一个客户端上并发执行的所有下载共用一个并发闸门，无论它们来自哪种遍历策略。
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        session: Optional[aiohttp.ClientSession] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        """初始化客户端

        Args:
            config: 配置对象（可选，默认从环境变量加载）
            session: 外部注入的 aiohttp 会话（可选）
            progress_callback: 每完成一个文件调用一次的进度回调（可选）
        """
        config = config or get_config()
        self.progress_callback = progress_callback
        self._active_runs = 0
        self.http_client = HTTPClient(config, session)
        self._build(config)

    def _build(self, config: Config) -> None:
        """根据配置创建各组件与并发闸门"""
        self.config = config
        self.http_client.config = config
        self.file_manager = FileManager(config)
        self.validator = UrlValidator(config.allowed_domain)
        self.lister = DirectoryLister(config, self.http_client, self.validator)
        self.manifest = ManifestFetcher(config, self.http_client, self.lister)
        self.executor = DownloadExecutor(config, self.http_client, self.file_manager)
        self._gate = asyncio.Semaphore(config.max_concurrent_downloads)

    async def __aenter__(self) -> "CommunityDragonClient":
        await self.http_client.__aenter__()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self.http_client.close()

    @property
    def is_running(self) -> bool:
        return self._active_runs > 0

    @property
    def max_concurrent_downloads(self) -> int:
        return self.config.max_concurrent_downloads

    @max_concurrent_downloads.setter
    def max_concurrent_downloads(self, value: int) -> None:
        self.configure(max_concurrent_downloads=value)

    def configure(self, **changes: Any) -> Config:
        """替换配置并重建并发闸门，只能在两次下载之间调用

        Raises:
            ConfigurationError: 有下载正在进行或新配置不合法时
        """
        if self.is_running:
            raise ConfigurationError(
                "Configuration cannot change while a download is running",
                context={"changes": changes},
            )
        self._build(override_config(self.config, **changes))
        return self.config

    async def download_directory(
        self, url: str, exported_files: Optional[Sequence[ExportedFile]] = None
    ) -> DownloadSummary:
        """下载目录下的所有文件

        不提供清单时逐个请求JSON目录列表（支持 raw 与 universe 子域名）；
        提供清单时只在内存中过滤清单（仅支持 raw 子域名）。

        Args:
            url: 以 '/' 结尾的目录URL
            exported_files: 与URL版本一致的清单（可选）

        Returns:
            下载结果汇总

        Raises:
            InvalidUrlError: URL无效时（不发送请求）
            FetchError, DecodeError: 目录列表获取失败时（中止整个下载）
            DownloadExhaustedError, DownloadError: 所有下载结束后，若有文件失败则抛出第一个错误
        """
        if exported_files is None:
            strategy: TraversalStrategy = LiveCrawlStrategy(
                self.config, self.file_manager, self.lister
            )
        else:
            strategy = ManifestStrategy(self.config, self.file_manager, exported_files)
        return await self.download_with(strategy, url)

    async def download_with(self, strategy: TraversalStrategy, url: str) -> DownloadSummary:
        """使用指定的遍历策略下载目录"""
        self.validator.validate(url)

        self._active_runs += 1
        try:
            await self.file_manager.prepare_output_root()
            logger.info("Downloading directory: %s (%s)", url, strategy.name)
            summary = await self._run(strategy, url, self._gate)
        finally:
            self._active_runs -= 1

        logger.info(
            "Finished directory: %s (downloaded=%d, skipped=%d, not_found=%d, failed=%d)",
            url,
            summary.downloaded,
            summary.skipped_existing + summary.skipped_filter,
            summary.not_found,
            summary.failed,
        )
        return summary

    async def _run(
        self, strategy: TraversalStrategy, url: str, gate: asyncio.Semaphore
    ) -> DownloadSummary:
        """边遍历边调度下载任务，遍历结束后等待所有任务完成"""
        summary = DownloadSummary(url=url)
        progress = DownloadProgress()
        errors: List[Exception] = []
        pending: List[asyncio.Task] = []

        try:
            async for task in strategy.iter_tasks(url):
                pending.append(
                    asyncio.create_task(self._run_task(task, gate, summary, progress, errors))
                )
                progress.scheduled += 1
            logger.debug("Finished adding files to queue: %d", len(pending))
        except BaseException:
            # 列表/清单错误是结构性的，取消已调度的下载
            for scheduled in pending:
                scheduled.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            raise

        await asyncio.gather(*pending)

        if errors:
            first = errors[0]
            logger.error("%d file(s) failed to download under %s", len(errors), url)
            if isinstance(first, CdragonDlException):
                first.context.update(failed=summary.failed, total=summary.total)
            raise first

        return summary

    async def _run_task(
        self,
        task: DownloadTask,
        gate: asyncio.Semaphore,
        summary: DownloadSummary,
        progress: DownloadProgress,
        errors: List[Exception],
    ) -> None:
        """执行一个下载任务，单个文件的错误不影响其它任务"""
        try:
            outcome = await self.executor.download(task, gate)
            summary.record(outcome)
        except Exception as e:
            summary.failed += 1
            summary.failed_urls.append(task.url)
            errors.append(e)

        progress.completed += 1
        progress.current_file = str(task.file_path)
        if self.progress_callback:
            self.progress_callback(progress.model_copy())

    async def list_manifest(self, version: str) -> List[ExportedFile]:
        """获取指定版本的 files.exported.txt 清单"""
        return await self.manifest.list_manifest(version)

    async def get_patch_versions(self) -> List[str]:
        """获取所有可用版本"""
        return await self.lister.get_patch_versions()

    async def list_directory(self, url: str) -> List[ListedFile]:
        """获取目录列表API的条目（附带来源URL）"""
        return await self.lister.list_directory(url)

    async def get_raw_files(self, url: str) -> List[RawFile]:
        """获取目录列表API的原始条目"""
        return await self.lister.get_raw_files(url)

    def search(self, query: str, exported_files: Sequence[ExportedFile]) -> List[str]:
        """在清单中搜索文件URL，支持正则表达式"""
        return search(query, exported_files)


# 便捷函数
async def download_directory(
    url: str,
    config: Optional[Config] = None,
    exported_version: Optional[str] = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> DownloadSummary:
    """下载目录的便捷函数

    Args:
        url: 目录URL
        config: 配置对象（可选）
        exported_version: 指定时先获取该版本的清单并使用清单策略
        progress_callback: 进度回调（可选）
    """
    async with CommunityDragonClient(config, progress_callback=progress_callback) as client:
        exported_files = None
        if exported_version is not None:
            exported_files = await client.list_manifest(exported_version)
        return await client.download_directory(url, exported_files)


def download_directory_sync(
    url: str,
    config: Optional[Config] = None,
    exported_version: Optional[str] = None,
) -> DownloadSummary:
    """同步版本的目录下载，不能在运行中的事件循环内调用"""
    return asyncio.run(download_directory(url, config, exported_version))
