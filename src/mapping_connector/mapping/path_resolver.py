"""Path expression reads and writes over JSON-like values.

Bracketed, wildcard and filter expressions go through `jsonpath-ng`; compiled
expressions are cached because the same handful of paths is evaluated for
every call against a mapping document.
Writes use a plain dotted walk so that a target such as `$.customer.name`
creates intermediate objects on demand.

Read semantics:
    * plain dotted path (no brackets, wildcards or filters) -> the same walk
      `assign` uses, so any key `assign` can write reads back
    * other non-wildcard path -> first match, or MISSING when nothing matches
    * path ending in `[*]` -> the collection at the prefix (list copy) or MISSING
      when the prefix is not a list
    * other wildcard / recursive paths -> list of all matches (possibly empty)
    * parse or evaluation errors -> MISSING (fail-soft)

MISSING stands for "no value". It is distinct from None, which is a real JSON
null and is written like any other value.
"""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any

from jsonpath_ng import parse as _jsonpath_parse

logger = logging.getLogger(__name__)

__all__ = ["MISSING", "is_missing", "resolve", "assign", "split_target"]


class _Missing:
    _instance: "_Missing | None" = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> "_Missing":
        return self

    def __deepcopy__(self, memo: Any) -> "_Missing":
        return self


MISSING: Any = _Missing()


def is_missing(value: Any) -> bool:
    return value is MISSING


# Characters that need the full JSONPath grammar.
_JSONPATH_SYNTAX = frozenset("[]*?()@|")


def _is_plain(path: str) -> bool:
    return ".." not in path and not any(ch in _JSONPATH_SYNTAX for ch in path)


def _walk(value: Any, parts: list[str]) -> Any:
    current = value
    for part in parts:
        if not isinstance(current, dict) or part not in current:
            return MISSING
        current = current[part]
    return current


@lru_cache(maxsize=512)
def _compile(path: str) -> Any:
    return _jsonpath_parse(path)


def resolve(value: Any, path: str) -> Any:
    """Evaluate `path` against `value`, returning MISSING when unresolvable."""
    if not path or not isinstance(path, str):
        return MISSING
    path = path.strip()
    if _is_plain(path):
        return _walk(value, split_target(path))
    try:
        if path.endswith("[*]"):
            base = resolve(value, path[:-3] or "$")
            return list(base) if isinstance(base, list) else MISSING
        matches = _compile(path).find(value)
    except Exception as e:  # jsonpath-ng raises plain Exception subclasses for lexer/parser errors
        logger.debug("path resolution failed path=%s err=%s", path, e)
        return MISSING
    if "*" in path or ".." in path:
        return [m.value for m in matches]
    if not matches:
        return MISSING
    return matches[0].value


def split_target(path: str) -> list[str]:
    """Split a target path into its non-empty segments (root marker removed)."""
    if not path:
        return []
    clean = path.strip()
    if clean.startswith("$."):
        clean = clean[2:]
    elif clean.startswith("$"):
        clean = clean[1:]
    return [part for part in clean.split(".") if part]


def assign(target: dict[str, Any], path: str, value: Any) -> dict[str, Any]:
    """Deep-set `value` at `path` inside `target`, creating objects as needed.

    Intermediate levels that are missing or not objects are replaced by empty
    objects. Paths without any segment leave `target` untouched. Returns
    `target` for convenience.
    """
    parts = split_target(path)
    if not parts:
        return target
    current = target
    for part in parts[:-1]:
        nxt = current.get(part)
        if not isinstance(nxt, dict):
            nxt = {}
            current[part] = nxt
        current = nxt
    current[parts[-1]] = value
    return target
