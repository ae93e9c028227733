"""URL验证模块

在任何网络请求之前拒绝格式错误、非HTTP(S)、域名不符或缺少结尾斜杠的目录URL。
"""

import re
import urllib.parse

from ..exceptions import InvalidUrlError
from ..models import DEFAULT_ALLOWED_DOMAIN

# 原始URL中不允许出现的字符（空白与控制字符）
_ILLEGAL_URL_CHARS = re.compile(r"[\s\x00-\x1f\x7f]")


class UrlValidator:
    """目录URL验证器

    验证规则:
    - 非空
    - 绝对URL（有协议和主机）且不包含空白/控制字符
    - 协议为 http 或 https
    - 主机为允许的域名或其子域名
    - 以 '/' 结尾
    """

    ALLOWED_SCHEMES = ("http", "https")

    def __init__(self, allowed_domain: str = DEFAULT_ALLOWED_DOMAIN):
        self.allowed_domain = allowed_domain.lower()

    def validate(self, url: str) -> str:
        """验证目录URL

        Args:
            url: 要验证的URL

        Returns:
            原样返回的URL

        Raises:
            InvalidUrlError: URL无效时
        """
        if url is None or not url.strip():
            raise InvalidUrlError(f"The URL must not be empty: {url!r}", url=url)

        if _ILLEGAL_URL_CHARS.search(url):
            raise InvalidUrlError(f"The URL must be a valid URI string: {url}", url=url)

        try:
            parsed = urllib.parse.urlsplit(url)
            hostname = parsed.hostname
        except ValueError as e:
            raise InvalidUrlError(
                f"The URL must be a valid URI string: {url}", url=url
            ) from e

        if not parsed.scheme or not hostname:
            raise InvalidUrlError(f"The URL must be a valid URI string: {url}", url=url)

        if parsed.scheme.lower() not in self.ALLOWED_SCHEMES:
            raise InvalidUrlError(f"The URL must be HTTP or HTTPS: {url}", url=url)

        if not self._is_allowed_host(hostname):
            raise InvalidUrlError(
                f"The URL must be in a valid CommunityDragon path: {url}", url=url
            )

        if not url.endswith("/"):
            raise InvalidUrlError(f"The URL must end with '/': {url}", url=url)

        return url

    def is_valid(self, url: str) -> bool:
        try:
            self.validate(url)
            return True
        except InvalidUrlError:
            return False

    def _is_allowed_host(self, hostname: str) -> bool:
        hostname = hostname.lower()
        return hostname == self.allowed_domain or hostname.endswith(
            "." + self.allowed_domain
        )
