"""网络客户端模块

负责 aiohttp 会话的创建与管理。所有列表、清单和文件请求共用同一个会话，
调用方也可以注入自己的会话（例如在多个客户端之间复用连接池）。
"""

import urllib.parse
from typing import Any, Dict, Optional

import aiohttp

from ..models import Config

DEFAULT_POOL_SIZE = 100


def sanitize_url_for_logging(url: str) -> str:
    """清理URL中的查询参数用于日志记录

    Args:
        url: 原始URL

    Returns:
        去掉查询参数与片段后的URL，并还原转义字符便于阅读
    """
    try:
        parsed = urllib.parse.urlsplit(url)
        return urllib.parse.unquote(f"{parsed.scheme}://{parsed.netloc}{parsed.path}")
    except ValueError:
        return "[URL]"


class HTTPClient:
    """HTTP客户端

    负责:
    - 会话的延迟创建和关闭
    - 超时与连接池配置
    - 默认请求头
    """

    def __init__(self, config: Config, session: Optional[aiohttp.ClientSession] = None):
        """初始化HTTP客户端

        Args:
            config: 配置对象
            session: 外部注入的会话，注入时由调用方负责关闭
        """
        self.config = config
        self._session: Optional[aiohttp.ClientSession] = session
        self._owns_session = session is None

    async def __aenter__(self) -> "HTTPClient":
        """异步上下文管理器入口"""
        await self._create_session()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """异步上下文管理器退出"""
        await self.close()

    @property
    def session(self) -> Optional[aiohttp.ClientSession]:
        return self._session

    async def _create_session(self) -> aiohttp.ClientSession:
        """创建HTTP会话"""
        if self._session is not None and not self._session.closed:
            return self._session

        self._session = aiohttp.ClientSession(
            connector=self._create_connector(),
            timeout=self._create_timeout_config(),
            headers=self._create_headers(),
            auto_decompress=True,
            raise_for_status=False,
        )
        self._owns_session = True
        return self._session

    def _create_connector(self) -> aiohttp.TCPConnector:
        """创建TCP连接器

        下载并发由闸门控制，连接池只需不小于闸门大小，目录列表请求共享同一个池。
        """
        return aiohttp.TCPConnector(
            limit=max(self.config.max_concurrent_downloads, DEFAULT_POOL_SIZE),
            use_dns_cache=True,
            enable_cleanup_closed=True,
        )

    def _create_timeout_config(self) -> aiohttp.ClientTimeout:
        """创建超时配置"""
        return aiohttp.ClientTimeout(
            total=self.config.timeout,
            connect=self.config.connection_timeout,
            sock_connect=self.config.connection_timeout,
        )

    def _create_headers(self) -> Dict[str, str]:
        return {"User-Agent": self.config.user_agent}

    async def close(self) -> None:
        """关闭HTTP会话（只关闭自己创建的会话）"""
        if self._session and self._owns_session:
            await self._session.close()
            self._session = None

    async def get(self, url: str, **kwargs: Any) -> aiohttp.ClientResponse:
        """发送GET请求

        返回的响应需要由调用方通过 ``async with response`` 释放。

        Raises:
            asyncio.TimeoutError: 请求超时
            aiohttp.ClientError: 连接失败等传输层错误
        """
        session = await self._create_session()
        return await session.get(url, **kwargs)
