"""Process-wide cache of dynamically fetched access tokens.

The cache is an explicit object created by the hosting process and injected
into the auth strategy registry. Keys are tuples that start with the
strategy kind, followed by the token URL and the credential identity
(`("oauth2", url, client_id)`, or `("bearer", url, client_id,
payload_digest)` for logins).
Entries are refreshed lazily: a lookup after expiry is a miss and the strategy
fetches a new token.

Entries are immutable and swapped under a lock, so concurrent readers never
observe a partially written entry. Two concurrent misses for the same key may
both fetch; the last write wins, which is harmless because both tokens are
valid. The lock is only held for dictionary access, never across a network
call or an await.
"""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

__all__ = ["TokenCache", "TokenCacheEntry", "CacheKey"]

CacheKey = Tuple[str, ...]


@dataclass(frozen=True)
class TokenCacheEntry:
    token: str
    expires_at: float  # epoch seconds


class TokenCache:
    def __init__(self, clock: Callable[[], float] = time.time):
        self._entries: Dict[CacheKey, TokenCacheEntry] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def now(self) -> float:
        return self._clock()

    def get(self, key: CacheKey) -> Optional[str]:
        """Return the cached token for `key` if it has not expired."""
        with self._lock:
            entry = self._entries.get(key)
        if entry is not None and entry.expires_at > self._clock():
            return entry.token
        return None

    def put(
        self, key: CacheKey, token: str, expires_in: float, margin: float = 60.0
    ) -> TokenCacheEntry:
        """Store `token`, expiring `margin` seconds before the server-declared lifetime."""
        entry = TokenCacheEntry(token=token, expires_at=self._clock() + expires_in - margin)
        with self._lock:
            self._entries[key] = entry
        return entry

    def invalidate(self, key: CacheKey) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
