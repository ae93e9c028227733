"""cdragon-dl - CommunityDragon 目录下载器

把 CommunityDragon 上的远程目录（JSON 目录列表或 files.exported.txt 清单）
异步、限流、可重试地镜像到本地
"""

from .client import CommunityDragonClient, download_directory, download_directory_sync
from .config import get_config
from .exceptions import (
    CdragonDlException,
    ConfigurationError,
    DecodeError,
    DownloadError,
    DownloadExhaustedError,
    FetchError,
    FileOperationError,
    InvalidUrlError,
    InvalidVersionError,
    NetworkError,
    ParseError,
    PathSecurityError,
    ValidationError,
)
from .manifest import search
from .models import (
    Config,
    DownloadOutcome,
    DownloadProgress,
    DownloadSummary,
    DownloadTask,
    ExportedFile,
    FileType,
    ListedFile,
    RawFile,
)
from .traversal import LiveCrawlStrategy, ManifestStrategy, TraversalStrategy

# 版本信息
__version__ = "1.0.0"
__title__ = "cdragon-dl"
__description__ = "CommunityDragon 目录下载器"
__license__ = "MIT"

# 公共API
__all__ = [
    # 核心类
    "CommunityDragonClient",
    # 遍历策略
    "TraversalStrategy",
    "LiveCrawlStrategy",
    "ManifestStrategy",
    # 数据模型
    "Config",
    "DownloadOutcome",
    "DownloadProgress",
    "DownloadSummary",
    "DownloadTask",
    "ExportedFile",
    "FileType",
    "ListedFile",
    "RawFile",
    # 便捷函数
    "download_directory",
    "download_directory_sync",
    "search",
    # 配置管理
    "get_config",
    # 异常类
    "CdragonDlException",
    "ValidationError",
    "InvalidUrlError",
    "InvalidVersionError",
    "NetworkError",
    "FetchError",
    "ParseError",
    "DecodeError",
    "DownloadError",
    "DownloadExhaustedError",
    "FileOperationError",
    "PathSecurityError",
    "ConfigurationError",
    # 元数据
    "__version__",
]