"""核心模块

这个包包含了与具体遍历策略无关的基础设施：
- validator: 目录URL验证
- network_client: aiohttp 会话管理
- file_manager: 本地文件操作
"""

from .file_manager import FileManager
from .network_client import HTTPClient, sanitize_url_for_logging
from .validator import UrlValidator

__all__ = [
    "FileManager",
    "HTTPClient",
    "UrlValidator",
    "sanitize_url_for_logging",
]
