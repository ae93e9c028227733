"""下载执行器模块

执行单个文件的下载：跳过已存在/未通过过滤的文件，通过并发闸门限制同时进行的
下载数，对瞬时错误进行重试，并把响应体流式写入本地文件。

执行器本身不持有可变状态（重试统计除外），并发闸门由调用方传入。
"""

import asyncio
import logging
from typing import Optional

import aiohttp

from .core.file_manager import FileManager
from .core.network_client import HTTPClient, sanitize_url_for_logging
from .exceptions import DownloadError, DownloadExhaustedError, map_http_exception
from .models import Config, DownloadOutcome, DownloadTask
from .retry import RetryConfig, RetryStats, create_retry_decorator, is_retryable_error

logger = logging.getLogger(__name__)

HTTP_NOT_FOUND = 404


class DownloadExecutor:
    """单文件下载执行器"""

    def __init__(
        self,
        config: Config,
        http_client: HTTPClient,
        file_manager: FileManager,
        stats: Optional[RetryStats] = None,
    ):
        """初始化下载执行器

        Args:
            config: 配置对象
            http_client: HTTP客户端
            file_manager: 文件管理器
            stats: 重试统计（可选，默认创建新实例）
        """
        self.config = config
        self.http_client = http_client
        self.file_manager = file_manager
        self.retry_config = RetryConfig.from_config(config)
        self.stats = stats or RetryStats()
        self._attempt_with_retry = create_retry_decorator(self.retry_config, self.stats)(
            self._attempt
        )

    async def download(self, task: DownloadTask, gate: asyncio.Semaphore) -> DownloadOutcome:
        """下载一个文件

        Args:
            task: 下载任务
            gate: 并发闸门，每次尝试占用一个名额

        Returns:
            下载结果

        Raises:
            DownloadError: 收到 404 以外的 4xx 响应时（不重试）
            DownloadExhaustedError: 所有尝试都遇到瞬时错误时
            FileOperationError: 本地写入失败时
        """
        file_path = task.file_path
        if self.config.skip_existing and await self.file_manager.file_exists(file_path):
            logger.debug("Skipping file as it exists: %s", file_path)
            return DownloadOutcome.SKIPPED_EXISTING

        name_filter = self.config.name_filter
        if name_filter and name_filter not in task.file_name:
            logger.debug("File doesn't pass filter: %s", (task.file_name, name_filter))
            return DownloadOutcome.SKIPPED_FILTER

        try:
            return await self._attempt_with_retry(task, gate)
        except aiohttp.ClientError as e:
            if is_retryable_error(e):
                raise self._exhausted(task, e) from e
            raise DownloadError(
                f"Request failed: {e!r}",
                url=sanitize_url_for_logging(task.url),
                file_path=str(file_path),
            ) from e
        except Exception as e:
            if not is_retryable_error(e):
                raise
            raise self._exhausted(task, e) from e

    def _exhausted(self, task: DownloadTask, error: BaseException) -> DownloadExhaustedError:
        logger.error("Failed retrying: %s", task.url)
        return DownloadExhaustedError(
            "Failed to download file",
            url=sanitize_url_for_logging(task.url),
            attempts=self.retry_config.max_attempts,
            context={"last_error": str(error) or type(error).__name__},
        )

    async def _attempt(self, task: DownloadTask, gate: asyncio.Semaphore) -> DownloadOutcome:
        """单次下载尝试，整个尝试期间占用闸门名额"""
        async with gate:
            logger.info("Downloading file: %s", task.url)
            try:
                response = await self.http_client.get(task.url)
                async with response:
                    status = response.status

                    if status >= 500:
                        logger.warning("Received 5xx request: %s", (status, task.url))
                        raise map_http_exception(
                            status, f"HTTP {status}: {response.reason}", url=task.url
                        )

                    if status == HTTP_NOT_FOUND:
                        logger.error("Bad file url: %s", task.url)
                        return DownloadOutcome.NOT_FOUND

                    if not 200 <= status < 300:
                        logger.error("Received 4XX request: %s", (status, task.url))
                        raise map_http_exception(
                            status,
                            f"HTTP {status}: {response.reason}",
                            url=sanitize_url_for_logging(task.url),
                            file_path=str(task.file_path),
                        )

                    logger.debug("Successful request: %s", task.url)
                    await self.file_manager.create_directory(task.directory)
                    await self.file_manager.write_stream(
                        task.file_path,
                        response.content.iter_chunked(self.config.chunk_size),
                    )
                    return DownloadOutcome.DOWNLOADED

            except asyncio.TimeoutError:
                logger.warning("Timed out request: %s", task.url)
                raise
            except aiohttp.ClientError as e:
                logger.warning("Connection error: %s", (task.url, repr(e)))
                raise
