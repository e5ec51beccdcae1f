"""Mapping engine: apply a request/response mapping document to a value.

Dispatch on `mapping.type`:
    DIRECT          -> value returned unchanged
    OBJECT / STATIC -> field rules build a fresh object (default)
    ARRAY           -> field rules applied to every element under `root`
    CUSTOM          -> registered custom logic applied to the whole value

Object mode processes rules in document order. For each rule:
    1. condition set: evaluate it; pick valueIfTrue (or the source lookup when
       no literal was given) / valueIfFalse (rule skipped when not given)
    2. otherwise resolve `source`, falling back to `default`
    3. required and still missing -> FieldMappingError, recorded and skipped
    4. transform applied to defined values
    5. defined results written at `target`
Object-level `defaults` then fill only the paths no rule produced.

Failures inside a single rule never abort the object; they are logged and
recorded in the `Diagnostics` passed by the caller.
"""
from __future__ import annotations

import logging
import math
from typing import Any, Dict, Mapping, Optional

from ..errors import FieldMappingError, Messages
from ..models.mapping import FieldRule, MappingType, ResponseMapping, TransformDefinition
from .diagnostics import Diagnostics
from .path_resolver import MISSING, assign, resolve, split_target
from .transform_catalog import TransformCatalog, default_catalog, stringify

logger = logging.getLogger(__name__)

__all__ = ["Transformer", "evaluate_condition", "transform"]


def _strip_quotes(text: str) -> str:
    text = text.strip()
    if len(text) >= 1 and text[0] in "'\"":
        text = text[1:]
    if len(text) >= 1 and text[-1] in "'\"":
        text = text[:-1]
    return text


def _is_truthy(value: Any) -> bool:
    # JavaScript truthiness: empty containers count as true.
    if value is MISSING or value is None or value is False:
        return False
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value != 0 and not (isinstance(value, float) and math.isnan(value))
    if isinstance(value, str):
        return value != ""
    return True


def evaluate_condition(data: Any, condition: str) -> bool:
    """Evaluate `path == 'literal'` or a bare truthy-path condition against `data`."""
    if "==" in condition:
        path, literal = condition.split("==", 1)
        resolved = resolve(data, _strip_quotes(path))
        if resolved is MISSING:
            return False
        return stringify(resolved) == _strip_quotes(literal)
    return _is_truthy(resolve(data, condition.strip()))


def _occupied(result: Dict[str, Any], path: str) -> bool:
    """True when `path` or any of its prefixes already holds a written value."""
    current: Any = result
    for part in split_target(path):
        if not isinstance(current, dict):
            return True
        if part not in current:
            return False
        current = current[part]
    return True


class Transformer:
    """Applies mapping documents using a catalog of custom logic."""

    def __init__(self, catalog: Optional[TransformCatalog] = None):
        self.catalog = catalog if catalog is not None else default_catalog

    def transform(
        self,
        source: Any,
        mapping: Optional[ResponseMapping],
        custom_transforms: Optional[Mapping[str, TransformDefinition]] = None,
        diagnostics: Optional[Diagnostics] = None,
    ) -> Any:
        """Transform `source` according to `mapping` (identity when no mapping)."""
        if mapping is None or mapping.type == MappingType.DIRECT:
            return source
        if mapping.type == MappingType.ARRAY:
            return self._transform_array(source, mapping, custom_transforms, diagnostics)
        if mapping.type == MappingType.CUSTOM and mapping.logic:
            return self.catalog.run_custom(mapping.logic, source, diagnostics)
        return self._transform_object(source, mapping, custom_transforms, diagnostics)

    def _transform_array(
        self,
        source: Any,
        mapping: ResponseMapping,
        custom_transforms: Optional[Mapping[str, TransformDefinition]],
        diagnostics: Optional[Diagnostics],
    ) -> Any:
        if not mapping.root:
            return []
        root_items = resolve(source, mapping.root)
        if not isinstance(root_items, list):
            message = Messages.root_array_not_found(mapping.root)
            logger.warning(message)
            if diagnostics is not None:
                diagnostics.warn(message)
            return []
        item_mapping = mapping.model_copy(update={"type": MappingType.OBJECT, "root": None})
        # Each element becomes the `$` of its own object mapping.
        transformed = [
            self._transform_object(item, item_mapping, custom_transforms, diagnostics)
            for item in root_items
        ]
        if mapping.outputWrapper:
            return assign({}, mapping.outputWrapper, transformed)
        return transformed

    def _transform_object(
        self,
        source: Any,
        mapping: ResponseMapping,
        custom_transforms: Optional[Mapping[str, TransformDefinition]],
        diagnostics: Optional[Diagnostics],
    ) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        for rule in mapping.mappings:
            try:
                value = self._resolve_field_value(source, rule)
                if rule.required and value is MISSING:
                    raise FieldMappingError(Messages.required_field_missing(rule.source))
                if value is MISSING:
                    continue
                if rule.transform:
                    value = self.catalog.apply(
                        value, rule.transform, custom_transforms, diagnostics
                    )
                if value is not MISSING:
                    assign(result, rule.target, value)
            except Exception as e:
                logger.warning("Mapping failed for %s: %s", rule.source, e)
                if diagnostics is not None:
                    diagnostics.record_field_error(rule.source, rule.target, str(e))

        for path, default_value in mapping.defaults.items():
            if not _occupied(result, path):
                assign(result, path, default_value)
        return result

    @staticmethod
    def _resolve_field_value(source: Any, rule: FieldRule) -> Any:
        if rule.condition:
            if evaluate_condition(source, rule.condition):
                if rule.given("valueIfTrue"):
                    return rule.valueIfTrue
                return resolve(source, rule.source)
            return rule.valueIfFalse if rule.given("valueIfFalse") else MISSING
        value = resolve(source, rule.source)
        if value is MISSING and rule.given("default"):
            return rule.default
        return value


_default_transformer = Transformer()


def transform(
    source: Any,
    mapping: Optional[ResponseMapping],
    custom_transforms: Optional[Mapping[str, TransformDefinition]] = None,
    diagnostics: Optional[Diagnostics] = None,
) -> Any:
    """Module-level convenience using the default custom-logic catalog."""
    return _default_transformer.transform(source, mapping, custom_transforms, diagnostics)
