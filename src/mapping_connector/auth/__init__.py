"""Authentication strategies for outbound target calls."""
from .strategies import (
    ApiKeyAuthStrategy,
    AuthStrategy,
    AuthStrategyRegistry,
    BasicAuthStrategy,
    BearerAuthStrategy,
    JwtAuthStrategy,
    NoAuthStrategy,
    OAuth2AuthStrategy,
    TokenFetcher,
)
from .token_cache import TokenCache, TokenCacheEntry

__all__ = [
    "ApiKeyAuthStrategy",
    "AuthStrategy",
    "AuthStrategyRegistry",
    "BasicAuthStrategy",
    "BearerAuthStrategy",
    "JwtAuthStrategy",
    "NoAuthStrategy",
    "OAuth2AuthStrategy",
    "TokenCache",
    "TokenCacheEntry",
    "TokenFetcher",
]
