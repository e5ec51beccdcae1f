"""Connector engine: orchestrates one request -> call -> response cycle.

`ConnectorEngine.execute` drives a single call through:

    resolve mapping -> auth precedence check -> request transform
    -> URL placeholders -> query parameters -> headers
    -> auth validate + inject -> target call with retry
    -> response transform | error transform

The engine keeps no state between calls; everything call-specific lives in
the `ExecutionContext`. The only shared state it touches is the token cache
owned by the injected `AuthStrategyRegistry`.

Configuration and authentication failures are raised before the target is
contacted and are never retried. Target-call failures (`TargetApiError`,
`TransportError`) are retried with a fixed delay and, once retries are
exhausted, either converted into a normal result through the document's
`errorMapping` or re-raised.
"""
from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Union

from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from .auth import AuthStrategyRegistry
from .context import ExecutionContext
from .errors import (
    AuthMismatchError,
    ConfigurationError,
    ConnectorError,
    InternalError,
    MappingNotFoundError,
    Messages,
    TargetApiError,
    TransportError,
)
from .mapping.path_resolver import MISSING, resolve
from .mapping.transform_catalog import stringify
from .mapping.transformer import Transformer
from .models.mapping import AuthSpec, AuthType, MappingDocument, MappingType, RequestMapping
from .registry import MappingRepository
from .transport import OutboundRequest, Transport

logger = logging.getLogger(__name__)

__all__ = [
    "ConnectorEngine",
    "ExecutionContext",
    "error_source",
    "resolve_effective_auth",
    "resolve_query_params",
    "resolve_url",
]

MappingRef = Union[str, MappingDocument, Dict[str, Any]]
SleepFn = Callable[[float], Awaitable[None]]

_BODY_METHODS = {"POST", "PUT", "PATCH"}
# Errors the call loop retries; everything else fails the call at once.
_RETRYABLE = (TargetApiError, TransportError)


def resolve_url(url: str, path_params: Mapping[str, str], payload: Any) -> str:
    """Substitute `:name` and `{name}` placeholders from the inbound payload.

    Each entry of `path_params` maps a placeholder name to a path expression.
    Placeholders whose path does not resolve become the empty string.

    Example:
        >>> resolve_url("https://api/x/:id/{kind}", {"id": "$.id", "kind": "$.k"}, {"id": 7, "k": "a"})
        'https://api/x/7/a'
    """
    resolved = url
    for name, path in path_params.items():
        value = resolve(payload, path)
        text = "" if value is MISSING or value is None else stringify(value)
        resolved = resolved.replace("{" + name + "}", text)
        # `:id` must not also match the start of `:identifier`.
        resolved = re.sub(
            r":" + re.escape(name) + r"(?![A-Za-z0-9_])",
            lambda _m, text=text: text,
            resolved,
        )
    return resolved


def _is_path_expression(value: Any) -> bool:
    return isinstance(value, str) and (value == "$" or value.startswith("$."))


def resolve_query_params(
    static_params: Mapping[str, Any], caller_params: Mapping[str, Any], payload: Any
) -> Dict[str, Any]:
    """Merge static and caller parameters, resolving path-valued entries.

    Caller parameters override document parameters with the same name. Values
    written as path expressions (`$.a.b`) are looked up in the inbound payload
    and the parameter is dropped when the lookup finds nothing.
    """
    merged: Dict[str, Any] = {**static_params, **caller_params}
    resolved: Dict[str, Any] = {}
    for key, value in merged.items():
        if _is_path_expression(value):
            extracted = resolve(payload, value)
            if extracted is not MISSING:
                resolved[key] = extracted
        else:
            resolved[key] = value
    return resolved


def resolve_effective_auth(
    stored: Optional[AuthSpec], supplied: Optional[AuthSpec]
) -> AuthSpec:
    """Apply the stored-vs-caller auth precedence rules.

    A stored type other than NONE pins the type: a caller spec naming a
    different type is rejected. Config fields from the stored spec win over
    caller fields on collision, so a caller can add but never override
    server-held values. With no stored type the caller's spec is used as is.

    Raises:
        AuthMismatchError: the caller's auth type conflicts with the stored one.
    """
    stored_type = stored.authType if stored is not None else AuthType.NONE
    if supplied is not None and stored_type != AuthType.NONE and supplied.authType != stored_type:
        raise AuthMismatchError(
            Messages.auth_mismatch(supplied.authType.value, stored_type.value)
        )
    if stored_type != AuthType.NONE:
        effective_type = stored_type
    elif supplied is not None:
        effective_type = supplied.authType
    else:
        effective_type = AuthType.NONE
    config: Dict[str, Any] = {}
    if supplied is not None:
        config.update(supplied.config)
    if stored is not None:
        config.update(stored.config)
    return AuthSpec(authType=effective_type, config=config)


def error_source(error: ConnectorError) -> Dict[str, Any]:
    """Structured value an error mapping is applied to."""
    status = getattr(error, "status", None)
    body = getattr(error, "body", None)
    if isinstance(body, dict) and body:
        return body
    if body not in (None, "", [], {}):
        return {"message": str(error), "status": status, "body": body}
    return {"message": str(error), "status": status if status is not None else "UNKNOWN"}


def _has_request_rules(mapping: Optional[RequestMapping]) -> bool:
    if mapping is None:
        return False
    if mapping.type == MappingType.CUSTOM and mapping.logic:
        return True
    return bool(mapping.mappings)


class ConnectorEngine:
    """Resilient orchestrator for mapping-driven target API calls.

    Args:
        transport: collaborator performing the outbound HTTP call.
        repository: mapping lookup used when `execute` receives a key.
        transformer: mapping engine (defaults to one over the default catalog).
        auth_registry: auth strategy dispatch; owns the shared token cache.
        sleep: coroutine used for inter-attempt delays (`asyncio.sleep`).
        default_retry_delay_ms: delay used when a policy sets none.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        repository: Optional[MappingRepository] = None,
        transformer: Optional[Transformer] = None,
        auth_registry: Optional[AuthStrategyRegistry] = None,
        sleep: SleepFn = asyncio.sleep,
        default_retry_delay_ms: int = 1000,
    ):
        self.transport = transport
        self.repository = repository
        self.transformer = transformer if transformer is not None else Transformer()
        self.auth_registry = auth_registry if auth_registry is not None else AuthStrategyRegistry()
        self._sleep = sleep
        self._default_retry_delay_ms = default_retry_delay_ms

    def resolve_mapping(self, ref: MappingRef) -> MappingDocument:
        """Turn a key, dict or document into a validated `MappingDocument`."""
        if isinstance(ref, MappingDocument):
            return ref
        if isinstance(ref, dict):
            try:
                return MappingDocument.model_validate(ref)
            except ValidationError as e:
                key = str(ref.get("id") or ref.get("name") or "<inline>")
                raise ConfigurationError(
                    Messages.invalid_mapping(key, f"{e.error_count()} validation error(s)")
                ) from e
        if not isinstance(ref, str) or not ref.strip():
            raise ConfigurationError(Messages.CONNECTOR_KEY_REQUIRED)
        if self.repository is None:
            raise ConfigurationError(Messages.REPOSITORY_REQUIRED)
        document = self.repository.find_by_id_or_name(ref)
        if document is None:
            raise MappingNotFoundError(Messages.mapping_not_found(ref))
        return document

    async def execute(
        self,
        mapping: MappingRef,
        payload: Any,
        context: Optional[ExecutionContext] = None,
    ) -> Any:
        """Run one full cycle and return the (response- or error-mapped) result.

        Raises:
            ConfigurationError: unusable key, document or auth configuration.
            AuthenticationError: credentials could not be produced.
            TargetApiError / TransportError: the target call failed after all
                retries and no error mapping is configured.
            InternalError: anything else.
        """
        ctx = context if context is not None else ExecutionContext()
        try:
            document = self.resolve_mapping(mapping)
            auth = resolve_effective_auth(document.authConfig, ctx.auth)
            request = await self._prepare_request(document, payload, ctx, auth)
        except ConnectorError:
            raise
        except Exception as e:  # pragma: no cover - unexpected failure
            logger.exception("Unexpected error preparing connector call")
            raise InternalError(str(e) or Messages.INTERNAL_ERROR) from e

        logger.info(
            "Calling target mapping=%s method=%s url=%s auth=%s",
            document.id,
            request.method,
            request.url,
            auth.authType.value,
        )
        try:
            raw = await self._call_with_retry(document, request)
        except _RETRYABLE as e:
            if document.errorMapping is None:
                raise
            logger.info(
                "Target call failed for mapping=%s status=%s; applying error mapping",
                document.id,
                getattr(e, "status", None),
            )
            return self.transformer.transform(
                error_source(e), document.errorMapping, document.transforms, ctx.diagnostics
            )
        except ConnectorError:
            raise
        except Exception as e:
            logger.exception("Unexpected error calling target for mapping=%s", document.id)
            raise InternalError(str(e) or Messages.INTERNAL_ERROR) from e

        result = self.transformer.transform(
            raw, document.responseMapping, document.transforms, ctx.diagnostics
        )
        if ctx.diagnostics.has_errors:
            logger.info(
                "Mapping %s completed with field_errors=%d custom_logic_errors=%d",
                document.id,
                ctx.diagnostics.field_error_count,
                ctx.diagnostics.custom_logic_error_count,
            )
        return result

    async def _prepare_request(
        self,
        document: MappingDocument,
        payload: Any,
        ctx: ExecutionContext,
        auth: AuthSpec,
    ) -> OutboundRequest:
        target = document.targetApi
        method = (ctx.method or target.method or "GET").upper()

        body = payload
        if _has_request_rules(document.requestMapping):
            body = self.transformer.transform(
                payload, document.requestMapping, document.transforms, ctx.diagnostics
            )
        if body is None and method in _BODY_METHODS:
            body = {}

        request = OutboundRequest(
            method=method,
            url=resolve_url(target.url, target.pathParams, payload),
            headers={**target.headers, **ctx.headers},
            query_params=resolve_query_params(target.queryParams, ctx.query_params, payload),
            body=body,
        )
        if auth.authType != AuthType.NONE:
            self.auth_registry.validate(auth, ctx)
            request = await self.auth_registry.inject(request, auth, ctx)
        return request

    async def _call_with_retry(self, document: MappingDocument, request: OutboundRequest) -> Any:
        policy = document.targetApi.resilience
        delay_ms = (
            policy.retryDelayMs
            if policy.retryDelayMs is not None
            else self._default_retry_delay_ms
        )

        def _log_retry(state: RetryCallState) -> None:
            error = state.outcome.exception() if state.outcome else None
            logger.warning(
                "Attempt %d/%d failed for mapping=%s (%s); retrying in %d ms",
                state.attempt_number,
                policy.retryCount + 1,
                document.id,
                error,
                delay_ms,
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(policy.retryCount + 1),
            wait=wait_fixed(delay_ms / 1000.0),
            retry=retry_if_exception_type(_RETRYABLE),
            before_sleep=_log_retry,
            sleep=self._sleep,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self.transport.call(
                    request.method,
                    request.url,
                    request.headers,
                    request.query_params,
                    request.body,
                )
        raise InternalError(Messages.INTERNAL_ERROR)  # pragma: no cover - unreachable
