"""Named value transforms used by field rules and CUSTOM mappings.

Two kinds of transform exist:

* Built-ins (`roundTo2`, `uppercase`, `lowercase`, `toNumber`, `toString`):
  pure, total functions that leave values of the wrong kind untouched.
* Custom logic: plain Python callables registered under a name in a
  `TransformCatalog`. Mapping documents refer to them by name (the `logic`
  field of a transform definition or of a CUSTOM mapping). Documents never
  carry executable code; new logic ships as a plugin module that registers
  its functions on import (see `load_transform_plugins`).

Custom logic runs on a deep copy of the value. Any exception it raises is
converted into an `{"error": ...}` value and recorded in diagnostics.
"""
from __future__ import annotations

import copy
import importlib
import json
import logging
import math
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from ..errors import ConfigurationError, Messages
from ..models.mapping import TransformDefinition
from .diagnostics import Diagnostics

logger = logging.getLogger(__name__)

CustomLogic = Callable[[Any], Any]

__all__ = [
    "BUILTIN_TRANSFORMS",
    "CustomLogic",
    "TransformCatalog",
    "default_catalog",
    "load_transform_plugins",
    "register",
    "stringify",
    "to_number",
]


def stringify(value: Any) -> str:
    """String form of a JSON value.

    Scalars are spelled the way JavaScript's String() spells them (`null`,
    `true`, `3` for 3.0, `NaN`). Lists and objects become compact JSON text.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return str(value)


def to_number(value: Any) -> Any:
    """Numeric coercion mirroring JavaScript's Number(); unparsable input gives NaN."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if value is None:
        return 0
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            return math.nan
    return math.nan


def _round_to_2(value: Any) -> Any:
    if isinstance(value, bool) or not isinstance(value, float):
        return value
    if math.isnan(value) or math.isinf(value):
        return value
    try:
        # repr() gives the shortest decimal form, so 100.555 rounds to 100.56
        return float(Decimal(repr(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))
    except InvalidOperation:
        return value


def _uppercase(value: Any) -> Any:
    return value.upper() if isinstance(value, str) else value


def _lowercase(value: Any) -> Any:
    return value.lower() if isinstance(value, str) else value


BUILTIN_TRANSFORMS: Dict[str, Callable[[Any], Any]] = {
    "roundTo2": _round_to_2,
    "uppercase": _uppercase,
    "lowercase": _lowercase,
    "toNumber": to_number,
    "toString": stringify,
}


class TransformCatalog:
    """Registry of custom-logic functions keyed by name."""

    def __init__(self, functions: Optional[Mapping[str, CustomLogic]] = None):
        self._functions: Dict[str, CustomLogic] = dict(functions or {})

    def register(self, name: str, fn: Optional[CustomLogic] = None) -> Any:
        """Register `fn` under `name`; usable directly or as a decorator."""
        if not name:
            raise ValueError("custom logic name must be non-empty")

        def _decorator(func: CustomLogic) -> CustomLogic:
            if name in BUILTIN_TRANSFORMS:
                logger.warning("custom logic %s is hidden by the built-in of the same name", name)
            self._functions[name] = func
            return func

        if fn is not None:
            return _decorator(fn)
        return _decorator

    def unregister(self, name: str) -> None:
        self._functions.pop(name, None)

    def get(self, name: str) -> Optional[CustomLogic]:
        return self._functions.get(name)

    def names(self) -> List[str]:
        return sorted(self._functions)

    def __contains__(self, name: object) -> bool:
        return name in self._functions

    def run_custom(
        self,
        logic_name: Optional[str],
        value: Any,
        diagnostics: Optional[Diagnostics] = None,
    ) -> Any:
        """Execute registered logic on a copy of `value`.

        Failures (including an unknown logic name) become `{"error": msg}`.
        """
        fn = self._functions.get(logic_name) if logic_name else None
        try:
            if fn is None:
                raise LookupError(f"no custom logic registered as '{logic_name}'")
            return fn(copy.deepcopy(value))
        except Exception as e:
            message = Messages.custom_transform_error(str(e))
            logger.warning(message)
            if diagnostics is not None:
                diagnostics.record_custom_logic_error(logic_name, message)
            return {"error": message}

    def apply(
        self,
        value: Any,
        transform_name: str,
        custom_transforms: Optional[Mapping[str, TransformDefinition]] = None,
        diagnostics: Optional[Diagnostics] = None,
    ) -> Any:
        """Apply a named transform: built-in, then document-defined, then registered."""
        builtin = BUILTIN_TRANSFORMS.get(transform_name)
        if builtin is not None:
            return builtin(value)
        definition = (custom_transforms or {}).get(transform_name)
        if definition is not None:
            return self.run_custom(definition.logic, value, diagnostics)
        if transform_name in self._functions:
            return self.run_custom(transform_name, value, diagnostics)
        logger.debug("unknown transform %s; value passed through", transform_name)
        return value


default_catalog = TransformCatalog()
register = default_catalog.register


def load_transform_plugins(modules: Iterable[str]) -> List[str]:
    """Import plugin modules so their custom logic registers itself.

    Returns the names of the modules imported. A module that cannot be
    imported is a configuration error.
    """
    loaded: List[str] = []
    for module_name in modules:
        name = module_name.strip()
        if not name:
            continue
        try:
            importlib.import_module(name)
        except ImportError as e:
            raise ConfigurationError(f"Cannot load transform plugin '{name}': {e}") from e
        loaded.append(name)
        logger.info("Loaded transform plugin %s", name)
    return loaded
