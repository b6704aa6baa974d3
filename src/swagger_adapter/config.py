"""Configuration for the Swagger MCP Adapter."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional, Tuple

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError


logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="", env_file=".env", case_sensitive=False, extra="ignore")

    service_name: str = Field(default="swagger-mcp-adapter")

    swagger_url: Optional[str] = Field(default=None)
    swagger_path: Optional[str] = Field(default=None)

    api_base_url: Optional[str] = Field(default=None)
    api_timeout_seconds: float = Field(default=30, gt=0)
    refresh_interval_seconds: float = Field(default=3600, ge=0)

    auth_type: str = Field(default="none")
    auth_token: Optional[str] = Field(default=None)
    auth_header: str = Field(default="Authorization")
    api_key_header: str = Field(default="X-API-Key")

    tool_prefix: str = Field(default="")

    adapter_transport: str = Field(default="stdio")
    adapter_host: str = Field(default="0.0.0.0")
    adapter_port: int = Field(default=8000)
    adapter_auth_token: Optional[str] = Field(default=None)

    log_level: str = Field(default="INFO")
    enable_request_logging: bool = Field(default=False)

    def document_source(self) -> Tuple[str, str]:
        if self.swagger_url:
            if self.swagger_path:
                logger.warning(
                    "Both SWAGGER_URL and SWAGGER_PATH are set; using SWAGGER_URL %s", self.swagger_url
                )
            return "url", self.swagger_url
        if self.swagger_path:
            return "path", self.swagger_path
        raise ConfigurationError("Either SWAGGER_URL or SWAGGER_PATH must be provided")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
