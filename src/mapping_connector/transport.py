"""Outbound HTTP transport.

The engine depends only on the `Transport` protocol:

    call(method, url, headers, query_params, body) -> response body

A non-2xx response raises `TargetApiError` carrying the status and the decoded
body; a failure to reach the remote system raises `TransportError`. Both are
the errors the engine retries.

`HttpxTransport` is the default implementation on top of `httpx.AsyncClient`.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol

import httpx

from .errors import TargetApiError, TransportError

logger = logging.getLogger(__name__)

__all__ = ["HttpxTransport", "OutboundRequest", "Transport"]


@dataclass
class OutboundRequest:
    """Request being assembled for the target API (auth strategies decorate it)."""

    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, Any] = field(default_factory=dict)
    body: Any = None


class Transport(Protocol):  # pragma: no cover - structural typing helper
    async def call(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        query_params: Dict[str, Any],
        body: Any,
    ) -> Any: ...


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class HttpxTransport:
    """`Transport` backed by httpx.

    When no client is supplied a private `AsyncClient` is created lazily and
    closed by `aclose()`.
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None, *, timeout: float = 30.0):
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout, follow_redirects=True)
        return self._client

    async def call(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        query_params: Dict[str, Any],
        body: Any,
    ) -> Any:
        client = self._get_client()
        try:
            response = await client.request(
                method,
                url,
                headers=headers or None,
                params=query_params or None,
                json=body,
            )
        except httpx.HTTPError as e:
            raise TransportError(f"Request to {url} failed: {e}") from e
        payload = _decode_body(response)
        if not response.is_success:
            logger.debug(
                "target responded status=%s url=%s", response.status_code, url
            )
            raise TargetApiError(
                f"Target API responded with status {response.status_code}",
                status=response.status_code,
                body=payload,
            )
        return payload

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
