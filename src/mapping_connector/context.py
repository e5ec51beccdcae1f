"""Per-call execution context.

Created by the host for one inbound request and discarded once the call
completes. Nothing in here is shared between calls.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from .mapping.diagnostics import Diagnostics
from .models.mapping import AuthSpec

__all__ = ["ExecutionContext"]

# Inbound headers that describe the inbound hop and must not be forwarded.
_HOP_HEADERS = {"authorization", "host", "content-length", "connection", "transfer-encoding"}


@dataclass
class ExecutionContext:
    method: Optional[str] = None
    query_params: Dict[str, Any] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    # Bearer token forwarded from the caller ("passthrough" token)
    incoming_token: Optional[str] = None
    # Caller-supplied auth spec, subject to the stored spec's precedence
    auth: Optional[AuthSpec] = None
    diagnostics: Diagnostics = field(default_factory=Diagnostics)

    @classmethod
    def from_inbound_headers(
        cls,
        headers: Mapping[str, str],
        *,
        method: Optional[str] = None,
        query_params: Optional[Dict[str, Any]] = None,
        auth: Optional[AuthSpec] = None,
    ) -> "ExecutionContext":
        """Build a context from raw inbound request headers.

        An `Authorization: Bearer <token>` header becomes the passthrough
        token. Hop-specific headers (including Authorization itself) are not
        forwarded to the target.
        """
        incoming_token: Optional[str] = None
        forwarded: Dict[str, str] = {}
        for name, value in headers.items():
            lowered = name.lower()
            if lowered == "authorization":
                if isinstance(value, str) and value.lower().startswith("bearer "):
                    incoming_token = value[7:].strip() or None
                continue
            if lowered in _HOP_HEADERS:
                continue
            forwarded[name] = value
        return cls(
            method=method,
            query_params=dict(query_params or {}),
            headers=forwarded,
            incoming_token=incoming_token,
            auth=auth,
        )
