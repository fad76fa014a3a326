"""Configuration for the OpenAPI MCP gateway."""

from __future__ import annotations

import json
from functools import lru_cache
from typing import Dict, List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


VERSION = "0.1.0"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    service_name: str = Field(default="openapi-gateway")

    gateway_spec_url: Optional[str] = Field(default=None)
    gateway_base_url: Optional[str] = Field(default=None)

    gateway_host: str = Field(default="0.0.0.0")
    gateway_port: int = Field(default=8000)

    gateway_server_name: Optional[str] = Field(default=None)
    gateway_server_version: str = Field(default="1.0")
    gateway_instructions: Optional[str] = Field(default=None)

    gateway_forward_headers: str = Field(default="Authorization")
    gateway_upstream_headers: Optional[str] = Field(default=None)

    gateway_verify_ssl: bool = Field(default=True)
    gateway_timeout_seconds: float = Field(default=30)

    gateway_log_level: str = Field(default="INFO")

    def forward_headers(self) -> List[str]:
        return [item.strip() for item in self.gateway_forward_headers.split(",") if item.strip()]

    def upstream_headers(self) -> Dict[str, str]:
        if not self.gateway_upstream_headers:
            return {}
        data = json.loads(self.gateway_upstream_headers)
        if not isinstance(data, dict):
            raise ValueError("gateway_upstream_headers must be a JSON object")
        return {str(key): str(value) for key, value in data.items()}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
