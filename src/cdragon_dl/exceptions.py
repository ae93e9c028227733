"""异常定义模块

定义应用专用的异常类，区分结构性错误（列表/清单获取失败，中止整个遍历）
与单个文件的下载错误（不影响其它并发下载）
"""

from typing import Any, Dict, Optional


class CdragonDlException(Exception):
    """cdragon-dl 基础异常类"""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def _context_str(self) -> str:
        return ", ".join(f"{k}={v}" for k, v in self.context.items())

    def __str__(self) -> str:
        if self.context:
            return f"{self.message} (Context: {self._context_str()})"
        return self.message


class ValidationError(CdragonDlException):
    """输入验证异常"""

    pass


class InvalidUrlError(ValidationError):
    """URL格式不合法，在任何网络请求之前抛出"""

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.url = url


class InvalidVersionError(ValidationError):
    """请求的版本不在服务器当前可用的版本列表中"""

    def __init__(
        self,
        message: str,
        version: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.version = version

    def __str__(self) -> str:
        parts = [self.message]
        if self.version:
            parts.append(f"Version: {self.version}")
        if self.context:
            parts.append(f"Context: {self._context_str()}")
        return " | ".join(parts)


class NetworkError(CdragonDlException):
    """网络请求异常"""

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.url = url
        self.status_code = status_code

    def __str__(self) -> str:
        parts = [self.message]
        if self.url:
            parts.append(f"URL: {self.url}")
        if self.status_code:
            parts.append(f"Status: {self.status_code}")
        if self.context:
            parts.append(f"Context: {self._context_str()}")
        return " | ".join(parts)


class FetchError(NetworkError):
    """目录列表或清单请求返回非2xx状态码，不重试"""

    pass


class ParseError(CdragonDlException):
    """响应内容解析异常"""

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.url = url

    def __str__(self) -> str:
        parts = [self.message]
        if self.url:
            parts.append(f"URL: {self.url}")
        if self.context:
            parts.append(f"Context: {self._context_str()}")
        return " | ".join(parts)


class DecodeError(ParseError):
    """目录列表JSON或清单文本不符合预期格式"""

    pass


class DownloadError(CdragonDlException):
    """文件下载异常"""

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        file_path: Optional[str] = None,
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.url = url
        self.file_path = file_path
        self.status_code = status_code

    def __str__(self) -> str:
        parts = [self.message]
        if self.url:
            parts.append(f"URL: {self.url}")
        if self.file_path:
            parts.append(f"File: {self.file_path}")
        if self.status_code:
            parts.append(f"Status: {self.status_code}")
        if self.context:
            parts.append(f"Context: {self._context_str()}")
        return " | ".join(parts)


class DownloadExhaustedError(DownloadError):
    """重试次数耗尽仍未下载成功"""

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        attempts: int = 0,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, url=url, context=context)
        self.attempts = attempts


class FileOperationError(CdragonDlException):
    """文件操作异常"""

    def __init__(
        self,
        message: str,
        file_path: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.file_path = file_path
        self.operation = operation

    def __str__(self) -> str:
        parts = [self.message]
        if self.operation:
            parts.append(f"Operation: {self.operation}")
        if self.file_path:
            parts.append(f"File: {self.file_path}")
        if self.context:
            parts.append(f"Context: {self._context_str()}")
        return " | ".join(parts)


class PathSecurityError(FileOperationError):
    """远程文件名试图逃离输出目录"""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, file_path=path, operation="path_check", context=context)
        self.path = path


class ConfigurationError(CdragonDlException):
    """配置异常"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.config_key = config_key
        self.config_value = config_value

    def __str__(self) -> str:
        parts = [self.message]
        if self.config_key:
            parts.append(f"Key: {self.config_key}")
        if self.config_value is not None:
            parts.append(f"Value: {self.config_value}")
        if self.context:
            parts.append(f"Context: {self._context_str()}")
        return " | ".join(parts)


def map_http_exception(status_code: int, message: str, **kwargs) -> CdragonDlException:
    """根据HTTP状态码映射文件下载异常

    5xx 映射为可重试的 NetworkError，其余映射为不可重试的 DownloadError。
    404 由调用方单独处理（放弃该文件，不视为错误）。
    """
    if status_code >= 500:
        return NetworkError(message, status_code=status_code, **kwargs)
    return DownloadError(message, status_code=status_code, **kwargs)
