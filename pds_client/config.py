"""
Централизованная конфигурация клиента
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from pds_client.constants import (
    DEFAULT_API_TIMEOUT,
    ROUTE_DASHBOARD,
    ROUTE_LOGIN,
    STORAGE_TOKEN_KEY,
)


class Settings(BaseSettings):
    """Настройки клиента с валидацией через Pydantic (переменные PDS_*)"""

    # API
    api_url: str = "http://localhost:8080/api"
    api_timeout: float = DEFAULT_API_TIMEOUT

    # Хранилище токена
    token_storage_key: str = STORAGE_TOKEN_KEY

    # Маршруты
    login_route: str = ROUTE_LOGIN
    landing_route: str = ROUTE_DASHBOARD

    # Логирование
    log_level: str = "INFO"
    json_logs: bool = False
    log_file: Optional[str] = None

    model_config = SettingsConfigDict(
        env_prefix="PDS_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """Возвращает синглтон настроек"""
    return Settings()
