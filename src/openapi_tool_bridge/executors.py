"""Request synthesis, HTTP execution and response normalisation."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote, urlencode

import httpx

from .logging import redact_headers
from .models import (
    ParameterLocation,
    RawResponse,
    RequestDescriptor,
    ResultEnvelope,
    ToolDefinition,
)

logger = logging.getLogger(__name__)

# Characters encodeURIComponent leaves untouched
_PATH_SAFE = "-_.!~*'()"


class ExecutionError(Exception):
    pass


class ResponseFormatError(Exception):
    pass


class MissingParameterError(ValueError):
    pass


def build_request(
    tool: ToolDefinition,
    base_url: str,
    payload: Dict[str, Any],
    credential: Optional[str] = None,
    strict: bool = False,
) -> RequestDescriptor:
    """Synthesize the outgoing HTTP request for ``tool`` from ``payload``.

    Mappings whose input key is missing from the payload are skipped, so an
    unresolved ``{placeholder}`` stays in the URL. With ``strict`` set, a
    missing key that the input schema lists as required raises
    ``MissingParameterError`` instead.
    """
    if strict:
        _check_required(tool, payload)

    url = (base_url or "") + tool.path_template
    headers: Dict[str, str] = {}
    query: Dict[str, str] = {}
    body: Any = None

    for mapping in tool.parameter_mappings:
        if mapping.input_key not in payload:
            continue
        value = payload[mapping.input_key]

        if mapping.location is ParameterLocation.PATH:
            token = f"{{{mapping.target_key}}}"
            url = url.replace(token, quote(_stringify(value), safe=_PATH_SAFE))
        elif mapping.location is ParameterLocation.QUERY:
            query[mapping.target_key] = _stringify(value)
        elif mapping.location is ParameterLocation.HEADER:
            headers[mapping.target_key] = _stringify(value)
        elif mapping.location is ParameterLocation.BODY and body is None:
            body = value

    if body is None and tool.accepts_body and payload:
        body = payload

    if query:
        url += "?" + urlencode(query)

    _set_header(headers, "Content-Type", "application/json")
    if credential:
        _set_header(
            headers,
            "Authorization",
            credential if credential.startswith("Bearer ") else f"Bearer {credential}",
        )

    return RequestDescriptor(
        method=tool.http_method.upper(), url=url, headers=headers, body=body
    )


def _set_header(headers: Dict[str, str], name: str, value: str) -> None:
    # Header names are case-insensitive; keep a single entry per name.
    for key in [key for key in headers if key.lower() == name.lower()]:
        del headers[key]
    headers[name] = value


def normalize_response(response: RawResponse) -> ResultEnvelope:
    if "application/json" in response.content_type:
        try:
            data = json.loads(response.text)
        except ValueError as exc:
            raise ResponseFormatError(
                f"Upstream declared JSON but returned an unparseable body: {exc}"
            ) from exc
        text = json.dumps(data, indent=2, ensure_ascii=False)
    else:
        text = response.text

    return ResultEnvelope.text(text, is_error=not response.ok)


class HttpExecutor:
    """Issues exactly one HTTP request per call; no retries."""

    def __init__(
        self,
        timeout_seconds: float = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    async def send(self, request: RequestDescriptor) -> RawResponse:
        logger.debug(
            "Sending %s %s headers=%s",
            request.method,
            request.url,
            redact_headers(request.headers),
        )
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds, transport=self.transport
            ) as client:
                response = await client.request(
                    request.method,
                    request.url,
                    headers=request.headers,
                    content=request.content(),
                )
        except httpx.HTTPError as exc:
            raise ExecutionError(f"{request.method} {request.url} failed: {exc}") from exc

        logger.info("%s %s -> %s", request.method, request.url, response.status_code)
        return RawResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            text=response.text,
        )


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    if value is None:
        return "null"
    return str(value)


def _check_required(tool: ToolDefinition, payload: Dict[str, Any]) -> None:
    required = set(tool.input_schema.get("required") or [])
    missing = [
        mapping.input_key
        for mapping in tool.parameter_mappings
        if mapping.input_key in required and mapping.input_key not in payload
    ]
    if missing:
        raise MissingParameterError(
            f"Tool '{tool.name}' is missing required input: {', '.join(missing)}"
        )
