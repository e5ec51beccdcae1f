"""Auth strategies and the registry that dispatches to them.

Every `AuthType` has exactly one strategy with two operations:

* `validate(spec, context)` - raise `AuthValidationError` when required
  configuration is absent. Pure.
* `inject(request, spec, context)` - return a copy of the outbound request
  decorated with credentials. Dynamic strategies (BEARER with `tokenUrl`,
  OAUTH2) may perform a token fetch, served from the shared `TokenCache`
  whenever a non-expired token exists.

| Type    | Required config                      | Injection                                  |
|---------|--------------------------------------|--------------------------------------------|
| NONE    | -                                    | no-op                                      |
| BASIC   | username, password                   | Authorization: Basic base64(user:pass)     |
| API_KEY | keyName, keyValue                    | header (or query when location=QUERY)      |
| BEARER  | token / tokenUrl / passthrough token | headerName: tokenPrefix + token            |
| OAUTH2  | tokenUrl, clientId, clientSecret     | Authorization: Bearer <client-cred token>  |
| JWT     | issuer, audience, privateKeyRef      | validation only; request left unchanged    |

Adding an auth type means one `AuthType` member, one strategy class and one
entry in `AuthStrategyRegistry.__init__`.
"""
from __future__ import annotations

import base64
import hashlib
import json
import logging
from dataclasses import replace
from typing import Any, Dict, Iterable, Optional, Protocol

import httpx

from ..context import ExecutionContext
from ..errors import AuthenticationError, AuthValidationError, Messages
from ..models.mapping import AuthSpec, AuthType, normalize_auth_type
from ..transport import OutboundRequest
from .token_cache import CacheKey, TokenCache

logger = logging.getLogger(__name__)

__all__ = [
    "AuthStrategy",
    "AuthStrategyRegistry",
    "ApiKeyAuthStrategy",
    "BasicAuthStrategy",
    "BearerAuthStrategy",
    "JwtAuthStrategy",
    "NoAuthStrategy",
    "OAuth2AuthStrategy",
    "TokenFetcher",
]

# Response fields searched (in order) for a dynamically fetched token.
_TOKEN_FIELDS = ("accessToken", "access_token", "token")


class AuthStrategy(Protocol):  # pragma: no cover - structural typing helper
    def validate(self, spec: AuthSpec, context: Optional[ExecutionContext] = None) -> None: ...

    async def inject(
        self,
        request: OutboundRequest,
        spec: AuthSpec,
        context: Optional[ExecutionContext] = None,
    ) -> OutboundRequest: ...


def _require(spec: AuthSpec, fields: Iterable[str], label: str) -> None:
    for name in fields:
        if not spec.config.get(name):
            raise AuthValidationError(Messages.auth_required_fields(label, f'"{name}"'))


def _with_header(request: OutboundRequest, name: str, value: str) -> OutboundRequest:
    return replace(request, headers={**request.headers, name: value})


class TokenFetcher:
    """Fetches access tokens over HTTP and memoizes them in a `TokenCache`."""

    def __init__(
        self,
        cache: TokenCache,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
        default_ttl: float = 3600.0,
        expiry_margin: float = 60.0,
    ):
        self.cache = cache
        self._client = http_client
        self._timeout = timeout
        self._default_ttl = default_ttl
        self._expiry_margin = expiry_margin

    async def client_credentials(self, config: Dict[str, Any]) -> str:
        """OAuth2 client-credentials exchange (form-encoded body)."""
        token_url = str(config["tokenUrl"])
        key = ("oauth2", token_url, str(config["clientId"]))
        cached = self.cache.get(key)
        if cached:
            return cached
        form = {
            "grant_type": config.get("grantType") or "client_credentials",
            "client_id": str(config["clientId"]),
            "client_secret": str(config["clientSecret"]),
            "scope": config.get("scope") or "",
        }
        data = await self._post(token_url, data=form)
        return self._store(key, token_url, data)

    async def login(self, config: Dict[str, Any]) -> str:
        """Bearer login: post the configured payload as JSON and read back a token."""
        token_url = str(config["tokenUrl"])
        payload = config.get("loginPayload") or config.get("credentials") or {}
        key = ("bearer", token_url, str(config.get("clientId") or ""), _payload_digest(payload))
        cached = self.cache.get(key)
        if cached:
            return cached
        data = await self._post(token_url, json=payload)
        return self._store(key, token_url, data)

    def _store(self, key: CacheKey, token_url: str, data: Dict[str, Any]) -> str:
        token = _extract_token(data)
        if not token:
            raise AuthenticationError(
                Messages.auth_token_generation_failed(Messages.auth_token_not_found(token_url))
            )
        expires_in = _parse_expires_in(data.get("expires_in"), self._default_ttl)
        self.cache.put(key, token, expires_in, self._expiry_margin)
        logger.debug("Fetched token url=%s expires_in=%s", token_url, expires_in)
        return token

    async def _post(self, url: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            if self._client is not None:
                response = await self._client.post(url, **kwargs)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(url, **kwargs)
        except httpx.HTTPError as e:
            raise AuthenticationError(Messages.auth_token_generation_failed(str(e))) from e
        if response.status_code >= 400:
            raise AuthenticationError(
                Messages.auth_token_generation_failed(
                    f"status={response.status_code} body={response.text[:300]}"
                )
            )
        try:
            data = response.json()
        except ValueError as e:
            raise AuthenticationError(
                Messages.auth_token_generation_failed(f"invalid JSON from {url}")
            ) from e
        if not isinstance(data, dict):
            raise AuthenticationError(
                Messages.auth_token_generation_failed(Messages.auth_token_not_found(url))
            )
        return data


def _payload_digest(payload: Any) -> str:
    text = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def _extract_token(data: Dict[str, Any]) -> Optional[str]:
    for name in _TOKEN_FIELDS:
        value = data.get(name)
        if value:
            return str(value)
    nested = data.get("data")
    if isinstance(nested, dict) and nested.get("token"):
        return str(nested["token"])
    return None


def _parse_expires_in(raw: Any, default: float) -> float:
    if isinstance(raw, bool) or raw in (None, ""):
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


class NoAuthStrategy:
    def validate(self, spec: AuthSpec, context: Optional[ExecutionContext] = None) -> None:
        return None

    async def inject(
        self,
        request: OutboundRequest,
        spec: AuthSpec,
        context: Optional[ExecutionContext] = None,
    ) -> OutboundRequest:
        return request


class BasicAuthStrategy:
    def validate(self, spec: AuthSpec, context: Optional[ExecutionContext] = None) -> None:
        if not spec.config.get("username") or not spec.config.get("password"):
            raise AuthValidationError(
                Messages.auth_required_fields("BASIC", '"username" and "password"')
            )

    async def inject(
        self,
        request: OutboundRequest,
        spec: AuthSpec,
        context: Optional[ExecutionContext] = None,
    ) -> OutboundRequest:
        raw = f"{spec.config.get('username')}:{spec.config.get('password')}".encode("utf-8")
        return _with_header(request, "Authorization", f"Basic {base64.b64encode(raw).decode('ascii')}")


class ApiKeyAuthStrategy:
    def validate(self, spec: AuthSpec, context: Optional[ExecutionContext] = None) -> None:
        if not spec.config.get("keyName") or not spec.config.get("keyValue"):
            raise AuthValidationError(
                Messages.auth_required_fields("API_KEY", '"keyName" and "keyValue"')
            )

    async def inject(
        self,
        request: OutboundRequest,
        spec: AuthSpec,
        context: Optional[ExecutionContext] = None,
    ) -> OutboundRequest:
        name = str(spec.config["keyName"])
        value = str(spec.config["keyValue"])
        location = str(spec.config.get("location") or "HEADER").upper()
        if location == "QUERY":
            return replace(request, query_params={**request.query_params, name: value})
        return _with_header(request, name, value)


class BearerAuthStrategy:
    """Bearer token from (in order) the caller, static config, or a login call."""

    def __init__(self, fetcher: TokenFetcher):
        self._fetcher = fetcher

    def validate(self, spec: AuthSpec, context: Optional[ExecutionContext] = None) -> None:
        if context is not None and context.incoming_token:
            return
        if spec.config.get("token") or spec.config.get("tokenUrl"):
            return
        raise AuthValidationError(
            Messages.auth_required_fields(
                "BEARER", '"token" or "tokenUrl" (or a passthrough bearer token)'
            )
        )

    async def inject(
        self,
        request: OutboundRequest,
        spec: AuthSpec,
        context: Optional[ExecutionContext] = None,
    ) -> OutboundRequest:
        config = spec.config
        token = context.incoming_token if context is not None else None
        source = "passthrough"
        if not token and config.get("token"):
            token, source = str(config["token"]), "static"
        if not token and config.get("tokenUrl"):
            token, source = await self._fetcher.login(config), "dynamic"
        if not token:
            raise AuthenticationError(
                "Bearer token missing in request and no fallback/generation configured"
            )
        header_name = config.get("headerName") or "Authorization"
        prefix = config.get("tokenPrefix")
        if prefix is None:
            prefix = "Bearer "
        logger.debug("Injecting bearer token source=%s header=%s", source, header_name)
        return _with_header(request, header_name, f"{prefix}{token}")


class OAuth2AuthStrategy:
    def __init__(self, fetcher: TokenFetcher):
        self._fetcher = fetcher

    def validate(self, spec: AuthSpec, context: Optional[ExecutionContext] = None) -> None:
        _require(spec, ("tokenUrl", "clientId", "clientSecret"), "OAUTH2")

    async def inject(
        self,
        request: OutboundRequest,
        spec: AuthSpec,
        context: Optional[ExecutionContext] = None,
    ) -> OutboundRequest:
        token = await self._fetcher.client_credentials(spec.config)
        return _with_header(request, "Authorization", f"Bearer {token}")


class JwtAuthStrategy:
    def validate(self, spec: AuthSpec, context: Optional[ExecutionContext] = None) -> None:
        _require(spec, ("issuer", "audience", "privateKeyRef"), "JWT")

    async def inject(
        self,
        request: OutboundRequest,
        spec: AuthSpec,
        context: Optional[ExecutionContext] = None,
    ) -> OutboundRequest:
        # Structural only: the request is not signed.
        logger.debug("JWT auth configured for issuer=%s; request left unsigned", spec.config.get("issuer"))
        return request


class AuthStrategyRegistry:
    """Closed dispatch from `AuthType` to its strategy.

    The token cache is injected so the hosting process owns its lifetime and
    every registry built by that process shares the same tokens.
    """

    def __init__(
        self,
        token_cache: Optional[TokenCache] = None,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
        default_token_ttl: float = 3600.0,
        expiry_margin: float = 60.0,
    ):
        self.token_cache = token_cache if token_cache is not None else TokenCache()
        fetcher = TokenFetcher(
            self.token_cache,
            http_client=http_client,
            timeout=timeout,
            default_ttl=default_token_ttl,
            expiry_margin=expiry_margin,
        )
        self._strategies: Dict[AuthType, AuthStrategy] = {
            AuthType.NONE: NoAuthStrategy(),
            AuthType.BASIC: BasicAuthStrategy(),
            AuthType.API_KEY: ApiKeyAuthStrategy(),
            AuthType.BEARER: BearerAuthStrategy(fetcher),
            AuthType.OAUTH2: OAuth2AuthStrategy(fetcher),
            AuthType.JWT: JwtAuthStrategy(),
        }

    def get(self, auth_type: AuthType | str) -> AuthStrategy:
        return self._strategies[normalize_auth_type(auth_type)]

    def validate(self, spec: AuthSpec, context: Optional[ExecutionContext] = None) -> None:
        self.get(spec.authType).validate(spec, context)

    async def inject(
        self,
        request: OutboundRequest,
        spec: AuthSpec,
        context: Optional[ExecutionContext] = None,
    ) -> OutboundRequest:
        return await self.get(spec.authType).inject(request, spec, context)
