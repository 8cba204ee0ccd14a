"""Pytest configuration and fixtures."""

import copy
from typing import Any, Dict

import pytest

from openapi_tool_bridge.config import Settings
from openapi_tool_bridge.registry import RegistryCache


ITEMS_SPEC: Dict[str, Any] = {
    "openapi": "3.0.3",
    "info": {"title": "Items", "version": "1.0.0"},
    "servers": [{"url": "https://api.example.com/v1"}],
    "paths": {
        "/items/{id}": {
            "parameters": [
                {"name": "id", "in": "path", "required": True, "schema": {"type": "string"}}
            ],
            "get": {
                "operationId": "getItem",
                "summary": "Fetch an item",
                "parameters": [
                    {"name": "verbose", "in": "query", "schema": {"type": "boolean"}},
                    {"name": "X-Trace-Id", "in": "header", "schema": {"type": "string"}},
                    {"name": "session", "in": "cookie", "schema": {"type": "string"}},
                ],
            },
            "put": {
                "operationId": "updateItem",
                "description": "Replace an item",
                "requestBody": {
                    "required": True,
                    "content": {
                        "application/json": {
                            "schema": {
                                "type": "object",
                                "properties": {"label": {"type": "string"}},
                            }
                        }
                    },
                },
            },
        },
        "/items": {
            "get": {
                "summary": "List items",
                "parameters": [
                    {"name": "limit", "in": "query", "schema": {"type": "integer"}}
                ],
            }
        },
    },
}


REGISTRY_FILES: Dict[str, Any] = {
    "registry-index.json": {
        "entries": [
            {"name": "io.example/weather", "version": "1.0.0", "file": "weather-1.json"},
            {"name": "io.example/weather", "version": "2.0.0", "file": "weather-2.json"},
            {"name": "io.example/weather", "version": "1.10.0", "file": "weather-1.json"},
            {"name": "io.example/calculator", "version": "0.1.0"},
        ]
    },
    "weather-1.json": {
        "name": "io.example/weather",
        "version": "1.0.0",
        "description": "Weather forecasts",
    },
    "weather-2.json": {
        "name": "io.example/weather",
        "version": "2.0.0",
        "description": "Weather forecasts",
    },
    "server.json": {"name": "io.example/calculator", "version": "0.1.0"},
}


class FixtureLoader:
    """In-memory registry loader that records which files were read."""

    def __init__(self, files: Dict[str, Any]) -> None:
        self.files = files
        self.calls: list[str] = []

    def __call__(self, filename: str) -> Any:
        self.calls.append(filename)
        if filename not in self.files:
            raise FileNotFoundError(filename)
        return self.files[filename]


@pytest.fixture
def items_spec() -> Dict[str, Any]:
    return copy.deepcopy(ITEMS_SPEC)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(bridge_tools_dump_path=str(tmp_path / "tools-output.json"))


@pytest.fixture
def registry_loader() -> FixtureLoader:
    return FixtureLoader(copy.deepcopy(REGISTRY_FILES))


@pytest.fixture
def registry_cache(registry_loader) -> RegistryCache:
    return RegistryCache(registry_loader)
