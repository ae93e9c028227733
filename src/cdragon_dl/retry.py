"""重试机制模块

实现文件下载的重试、错误分类与退避延迟
"""

import asyncio
import logging
from typing import Any, Callable, Optional, TypeVar

import aiohttp
from pydantic import BaseModel, Field, field_validator

from .exceptions import NetworkError

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class RetryConfig(BaseModel):
    """重试配置"""

    max_attempts: int = Field(default=3, description="最大尝试次数")
    base_delay: float = Field(default=0.0, description="基础延迟(秒)")
    backoff_factor: float = Field(default=2.0, description="退避因子")
    max_delay: float = Field(default=30.0, description="最大延迟(秒)")

    @field_validator("max_attempts")
    @classmethod
    def validate_max_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_attempts must be at least 1")
        return v

    @field_validator("base_delay")
    @classmethod
    def validate_base_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError("base_delay cannot be negative")
        return v

    @classmethod
    def from_config(cls, config: Any) -> "RetryConfig":
        """从应用配置创建重试配置"""
        return cls(
            max_attempts=getattr(config, "max_retries", 3),
            base_delay=getattr(config, "retry_delay", 0.0),
            backoff_factor=getattr(config, "backoff_factor", 2.0),
            max_delay=getattr(config, "max_retry_delay", 30.0),
        )

    def compute_delay(self, attempt: int) -> float:
        """第 attempt 次（从0开始）失败后的等待时间"""
        return min(self.base_delay * (self.backoff_factor**attempt), self.max_delay)


class RetryStats(BaseModel):
    """重试统计"""

    total_attempts: int = Field(default=0, description="总尝试次数")
    failed_attempts: int = Field(default=0, description="失败次数")
    total_delay: float = Field(default=0.0, description="总延迟时间")
    last_error: Optional[str] = Field(default=None, description="最后的错误信息")

    def record_attempt(self, is_success: bool, error: Optional[str] = None) -> None:
        """记录一次尝试"""
        self.total_attempts += 1
        if not is_success:
            self.failed_attempts += 1
            self.last_error = error

    def record_delay(self, delay: float) -> None:
        """记录延迟时间"""
        self.total_delay += delay


def is_retryable_error(error: BaseException) -> bool:
    """判断错误是否可重试

    只有瞬时错误可重试：5xx、超时、连接中断。404 与其他 4xx 不重试。
    """
    # 超时
    if isinstance(error, asyncio.TimeoutError):
        return True

    # 连接建立失败或中途断开、响应体不完整
    if isinstance(error, (aiohttp.ClientConnectionError, aiohttp.ClientPayloadError)):
        return True

    # 网络错误，根据状态码判断
    if isinstance(error, NetworkError):
        return error.status_code is not None and error.status_code >= 500

    return False


def create_retry_decorator(
    config: RetryConfig, stats: Optional[RetryStats] = None
) -> Callable[[F], F]:
    """创建重试装饰器

    不可重试的错误立即抛出；可重试的错误在最后一次尝试后原样抛出，
    由调用方决定如何包装。
    """

    if stats is None:
        stats = RetryStats()

    def decorator(func: F) -> F:
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            for attempt in range(config.max_attempts):
                try:
                    result = await func(*args, **kwargs)
                    stats.record_attempt(True)
                    return result

                except Exception as e:
                    stats.record_attempt(False, str(e) or type(e).__name__)

                    if not is_retryable_error(e):
                        raise

                    if attempt == config.max_attempts - 1:
                        raise

                    delay = config.compute_delay(attempt)
                    if delay > 0:
                        logger.debug(
                            "Retrying in %.2fs (attempt %d/%d)",
                            delay,
                            attempt + 2,
                            config.max_attempts,
                        )
                        stats.record_delay(delay)
                        await asyncio.sleep(delay)

            raise RuntimeError("Unexpected retry loop completion")

        return wrapper  # type: ignore

    return decorator
