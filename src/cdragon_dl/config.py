"""配置管理模块

支持从环境变量（CDRAGON_DL_ 前缀）与 .env 文件加载配置
"""

from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError
from .models import (
    DEFAULT_ALLOWED_DOMAIN,
    DEFAULT_LISTING_SEGMENT,
    DEFAULT_ROOT_URL,
    DEFAULT_USER_AGENT,
    Config,
)

ENV_PREFIX = "cdragon_dl_"


class Settings(BaseSettings):
    """应用设置类，继承自 Pydantic BaseSettings"""

    # 下载行为
    cdragon_dl_max_concurrent_downloads: int = 20
    cdragon_dl_output_path: str = "out"
    cdragon_dl_max_retries: int = 3
    cdragon_dl_max_depth: int = 0
    cdragon_dl_overwrite_output: bool = True
    cdragon_dl_skip_existing: bool = True
    cdragon_dl_name_filter: str = ""

    # 网络配置
    cdragon_dl_timeout: int = 30
    cdragon_dl_connection_timeout: int = 10
    cdragon_dl_chunk_size: int = 65536
    cdragon_dl_user_agent: str = DEFAULT_USER_AGENT

    # 重试退避
    cdragon_dl_retry_delay: float = 0.0

    # 远程仓库
    cdragon_dl_root_url: str = DEFAULT_ROOT_URL
    cdragon_dl_allowed_domain: str = DEFAULT_ALLOWED_DOMAIN
    cdragon_dl_listing_segment: str = DEFAULT_LISTING_SEGMENT

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


class ConfigManager:
    """配置管理器"""

    def __init__(self):
        self._config: Optional[Config] = None

    def get_config(self) -> Config:
        """获取配置，优先环境变量，然后使用默认值"""
        if self._config is not None:
            return self._config

        # 从环境变量加载设置
        settings = Settings()
        config_dict = settings.model_dump()

        # 移除 cdragon_dl_ 前缀
        clean_config = {}
        for key, value in config_dict.items():
            if key.startswith(ENV_PREFIX):
                clean_config[key[len(ENV_PREFIX):]] = value
            else:
                clean_config[key] = value

        try:
            self._config = Config(**clean_config)
            return self._config
        except PydanticValidationError as e:
            raise ConfigurationError(f"Failed to validate configuration: {e}") from e

    def reset(self) -> None:
        """丢弃缓存的配置，下次调用时重新读取环境变量"""
        self._config = None


# 全局配置管理器实例
config_manager = ConfigManager()


def get_config() -> Config:
    """获取全局配置"""
    return config_manager.get_config()


def override_config(config: Config, **changes: Any) -> Config:
    """基于已有配置创建新配置，忽略值为 None 的字段

    Raises:
        ConfigurationError: 覆盖后的配置不合法时
    """
    config_dict = config.model_dump()
    for key, value in changes.items():
        if value is None:
            continue
        if key not in config_dict:
            raise ConfigurationError("Unknown configuration key", config_key=key)
        config_dict[key] = value

    try:
        return Config(**config_dict)
    except PydanticValidationError as e:
        raise ConfigurationError(f"Failed to validate configuration: {e}") from e

