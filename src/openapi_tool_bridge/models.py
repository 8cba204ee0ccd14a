"""Internal models for tool definitions, requests and results."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


DEFAULT_SERVER_FILE = "server.json"


class ParameterLocation(str, Enum):
    PATH = "path"
    QUERY = "query"
    HEADER = "header"
    BODY = "body"


@dataclass(frozen=True)
class ParameterMapping:
    input_key: str
    location: ParameterLocation
    target_key: str


@dataclass(frozen=True)
class ToolDefinition:
    """Canonical description of one callable HTTP operation.

    ``accepts_body`` marks operations that declare a request body content
    type; when no mapping produces a body, the whole input is sent instead.
    """

    name: str
    description: str
    http_method: str
    path_template: str
    parameter_mappings: Tuple[ParameterMapping, ...] = ()
    input_schema: Dict[str, Any] = field(default_factory=dict)
    accepts_body: bool = False

    def to_listing(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
            "path": self.path_template,
            "method": self.http_method.upper(),
        }


@dataclass(frozen=True)
class RequestDescriptor:
    method: str
    url: str
    headers: Dict[str, str]
    body: Any = None

    def content(self) -> Optional[str]:
        if self.body is None:
            return None
        if isinstance(self.body, str):
            return self.body
        return json.dumps(self.body)


@dataclass(frozen=True)
class RawResponse:
    status_code: int
    headers: Dict[str, str]
    text: str

    @property
    def content_type(self) -> str:
        for key, value in self.headers.items():
            if key.lower() == "content-type":
                return value
        return ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


@dataclass(frozen=True)
class ResultEnvelope:
    content: List[Dict[str, str]]
    is_error: bool = False

    @classmethod
    def text(cls, text: str, is_error: bool = False) -> "ResultEnvelope":
        return cls(content=[{"type": "text", "text": text}], is_error=is_error)

    @classmethod
    def error(cls, message: str) -> "ResultEnvelope":
        return cls.text(message, is_error=True)

    def to_dict(self) -> Dict[str, Any]:
        return {"content": [dict(item) for item in self.content], "isError": self.is_error}


@dataclass(frozen=True)
class RegistryEntry:
    name: str
    version: str
    file: str = DEFAULT_SERVER_FILE

    @property
    def cursor(self) -> str:
        return f"{self.name}:{self.version}"
