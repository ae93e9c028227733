"""测试异常类"""

import pytest

from cdragon_dl.exceptions import (
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
    map_http_exception,
)


class TestExceptionHierarchy:
    """测试异常继承关系"""

    @pytest.mark.parametrize(
        "exc_class, parent",
        [
            (ValidationError, CdragonDlException),
            (InvalidUrlError, ValidationError),
            (InvalidVersionError, ValidationError),
            (FetchError, NetworkError),
            (DecodeError, ParseError),
            (DownloadExhaustedError, DownloadError),
            (PathSecurityError, FileOperationError),
            (ConfigurationError, CdragonDlException),
        ],
    )
    def test_inheritance(self, exc_class, parent):
        assert issubclass(exc_class, parent)


class TestExceptionMessages:
    """测试异常信息格式"""

    def test_base_with_context(self):
        error = CdragonDlException("Something failed", context={"count": 2})

        assert str(error) == "Something failed (Context: count=2)"
        assert str(CdragonDlException("plain")) == "plain"

    def test_invalid_url(self):
        error = InvalidUrlError("The URL must end with '/': x", url="x")

        assert error.url == "x"
        assert str(error) == "The URL must end with '/': x"

    def test_invalid_version(self):
        error = InvalidVersionError("Invalid version provided", version="0.0")
        assert str(error) == "Invalid version provided | Version: 0.0"

    def test_fetch_error(self):
        error = FetchError("HTTP 503: Service Unavailable", url="https://x/", status_code=503)

        assert error.status_code == 503
        assert "URL: https://x/" in str(error)
        assert "Status: 503" in str(error)

    def test_decode_error(self):
        error = DecodeError("bad body", url="https://x/", context={"errors": 1})
        assert str(error) == "bad body | URL: https://x/ | Context: errors=1"

    def test_download_exhausted(self):
        error = DownloadExhaustedError("Failed to download file", url="https://x/a", attempts=3)

        assert error.attempts == 3
        assert error.status_code is None
        assert str(error) == "Failed to download file | URL: https://x/a"

    def test_path_security(self):
        error = PathSecurityError("Dangerous pattern", path="../a")

        assert error.path == "../a"
        assert error.operation == "path_check"
        assert "File: ../a" in str(error)

    def test_configuration(self):
        error = ConfigurationError("bad", config_key="max_depth", config_value=-1)
        assert str(error) == "bad | Key: max_depth | Value: -1"


class TestMapHttpException:
    """测试HTTP状态码映射"""

    @pytest.mark.parametrize("status", [500, 502, 503, 504])
    def test_server_errors(self, status):
        error = map_http_exception(status, "server error", url="https://x/a")

        assert type(error) is NetworkError
        assert error.status_code == status

    @pytest.mark.parametrize("status", [400, 403, 410])
    def test_client_errors(self, status):
        error = map_http_exception(status, "client error", url="https://x/a", file_path="a")

        assert type(error) is DownloadError
        assert error.status_code == status
        assert error.file_path == "a"
