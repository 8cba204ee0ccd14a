"""Configuration for the OpenAPI Tool Bridge."""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    service_name: str = Field(default="openapi-tool-bridge")

    bridge_transport: str = Field(default="streamable-http")
    bridge_host: str = Field(default="0.0.0.0")
    bridge_port: int = Field(default=8000)
    bridge_service_token: Optional[str] = Field(default=None)
    bridge_log_level: str = Field(default="INFO")

    bridge_http_timeout_seconds: float = Field(default=30)
    bridge_tools_dump_path: Optional[str] = Field(default="tools-output.json")

    # Spec exposed as MCP tools at startup
    bridge_spec_url: Optional[str] = Field(default=None)
    bridge_base_url: Optional[str] = Field(default=None)
    bridge_converter: str = Field(default="mapper")
    bridge_upstream_token: Optional[str] = Field(default=None)

    registry_root: str = Field(default=".")
    registry_index_file: str = Field(default="registry-index.json")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
