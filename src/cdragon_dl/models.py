"""数据模型定义

使用 Pydantic 进行类型安全的数据验证和模型定义
"""

import urllib.parse
from enum import Enum
from pathlib import Path
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# 常量定义
DEFAULT_ROOT_URL = "https://raw.communitydragon.org"
DEFAULT_ALLOWED_DOMAIN = "communitydragon.org"
DEFAULT_LISTING_SEGMENT = "json"
DEFAULT_USER_AGENT = "cdragon-dl/1.0 (+https://github.com/cdragon-dl/cdragon-dl)"


class FileType(str, Enum):
    """目录列表条目类型"""

    DIRECTORY = "directory"
    FILE = "file"
    # 服务器返回的未知类型（如损坏的链接），永远不下载
    OTHER = "other"


class RawFile(BaseModel):
    """目录列表API返回的原始条目"""

    name: str = Field(..., description="文件名")
    type: FileType = Field(default=FileType.OTHER, description="条目类型")
    mtime: str = Field(default="", description="修改时间")
    size: Optional[int] = Field(default=None, description="文件大小(字节)")

    @field_validator("type", mode="before")
    @classmethod
    def coerce_unknown_type(cls, v: Any) -> FileType:
        """未知的类型值统一归为 other，而不是让整个列表解析失败"""
        try:
            return FileType(v)
        except ValueError:
            return FileType.OTHER

    @field_validator("mtime", mode="before")
    @classmethod
    def coerce_mtime(cls, v: Any) -> str:
        if v is None:
            return ""
        return str(v)

    @property
    def encoded_name(self) -> str:
        """URL路径段安全的文件名"""
        return urllib.parse.quote(self.name, safe="")

    @property
    def is_directory(self) -> bool:
        return self.type == FileType.DIRECTORY

    @property
    def is_file(self) -> bool:
        return self.type == FileType.FILE

    model_config = ConfigDict(extra="ignore", frozen=True)


class ListedFile(BaseModel):
    """带有来源目录URL的列表条目"""

    raw: RawFile
    referrer: str = Field(..., description="列出该条目的目录URL")

    @property
    def url(self) -> str:
        return self.referrer + self.raw.encoded_name

    model_config = ConfigDict(frozen=True)


class ExportedFile(BaseModel):
    """files.exported.txt 中的一行"""

    path: str = Field(..., description="版本内的相对路径")
    version: str = Field(..., description="所属版本")
    root_url: str = Field(default=DEFAULT_ROOT_URL, description="仓库根URL")

    @field_validator("path")
    @classmethod
    def validate_relative_path(cls, v: str) -> str:
        """路径必须是版本内的相对路径，不能包含协议和主机"""
        if "://" in v:
            raise ValueError(f"Path must be root-relative: {v}")
        return v

    @property
    def url(self) -> str:
        return f"{self.root_url}/{self.version}/{self.path}"

    @property
    def directories(self) -> List[str]:
        """文件所在的各级目录"""
        if "/" not in self.path:
            return []
        return [part for part in self.path.split("/") if part][:-1]

    @property
    def file_name(self) -> str:
        if "/" not in self.path:
            return self.path
        parts = [part for part in self.path.split("/") if part]
        return parts[-1] if parts else ""

    model_config = ConfigDict(frozen=True)


class DownloadTask(BaseModel):
    """单个文件下载任务 - 由遍历策略产生，由下载执行器消费"""

    url: str = Field(..., description="远程文件URL")
    directory: Path = Field(..., description="本地目录")
    file_name: str = Field(..., description="本地文件名（未转义）")

    @property
    def file_path(self) -> Path:
        return self.directory / self.file_name

    model_config = ConfigDict(frozen=True)


class DownloadOutcome(str, Enum):
    """单个文件的下载结果"""

    DOWNLOADED = "downloaded"
    SKIPPED_EXISTING = "skipped_existing"
    SKIPPED_FILTER = "skipped_filter"
    NOT_FOUND = "not_found"


class DownloadProgress(BaseModel):
    """目录下载进度"""

    completed: int = Field(default=0, description="已完成的任务数")
    scheduled: int = Field(default=0, description="已调度的任务数")
    current_file: str = Field(default="", description="最近完成的文件")

    @property
    def percentage(self) -> float:
        if self.scheduled > 0:
            return (self.completed / self.scheduled) * 100
        return 0.0

    model_config = ConfigDict(extra="forbid")


class DownloadSummary(BaseModel):
    """目录下载结果汇总"""

    url: str = Field(..., description="起始目录URL")
    downloaded: int = Field(default=0)
    skipped_existing: int = Field(default=0)
    skipped_filter: int = Field(default=0)
    not_found: int = Field(default=0)
    failed: int = Field(default=0)
    failed_urls: List[str] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return (
            self.downloaded
            + self.skipped_existing
            + self.skipped_filter
            + self.not_found
            + self.failed
        )

    @property
    def success(self) -> bool:
        return self.failed == 0

    def record(self, outcome: DownloadOutcome) -> None:
        """累计一个文件的结果"""
        setattr(self, outcome.value, getattr(self, outcome.value) + 1)


class Config(BaseModel):
    """应用配置模型 - 每个客户端实例不可变"""

    # 下载行为
    max_concurrent_downloads: int = Field(default=20, description="最大并发下载数")
    output_path: str = Field(default="out", description="输出目录")
    max_retries: int = Field(default=3, description="每个文件的最大尝试次数")
    max_depth: int = Field(default=0, description="最大遍历深度，0表示不限制")
    overwrite_output: bool = Field(default=True, description="开始前删除已存在的输出目录")
    skip_existing: bool = Field(default=True, description="跳过本地已存在的文件")
    name_filter: str = Field(default="", description="只下载文件名包含该字符串的文件")

    # 网络配置
    timeout: int = Field(default=30, description="单个请求总超时时间(秒)")
    connection_timeout: int = Field(default=10, description="连接超时时间(秒)")
    chunk_size: int = Field(default=65536, description="下载块大小")
    user_agent: str = Field(default=DEFAULT_USER_AGENT, description="HTTP用户代理")

    # 重试退避
    retry_delay: float = Field(default=0.0, description="重试基础延迟(秒)")
    backoff_factor: float = Field(default=2.0, description="退避因子")
    max_retry_delay: float = Field(default=30.0, description="最大重试延迟(秒)")

    # 远程仓库
    root_url: str = Field(default=DEFAULT_ROOT_URL, description="仓库根URL")
    allowed_domain: str = Field(default=DEFAULT_ALLOWED_DOMAIN, description="允许的域名")
    listing_segment: str = Field(
        default=DEFAULT_LISTING_SEGMENT, description="目录列表API路径段"
    )

    @field_validator(
        "max_concurrent_downloads",
        "max_retries",
        "timeout",
        "connection_timeout",
        "chunk_size",
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """验证必须为正数"""
        if v <= 0:
            raise ValueError("Value must be positive")
        return v

    @field_validator("max_depth")
    @classmethod
    def validate_max_depth(cls, v: int) -> int:
        if v < 0:
            raise ValueError("max_depth cannot be negative")
        return v

    @field_validator("retry_delay", "max_retry_delay")
    @classmethod
    def validate_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Delay cannot be negative")
        return v

    @field_validator("root_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    model_config = ConfigDict(extra="forbid", frozen=True)
