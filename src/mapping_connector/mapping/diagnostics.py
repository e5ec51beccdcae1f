"""Per-call record of errors the transformer recovered from.

Field-level and custom-logic failures never abort a transform, but they must
not disappear either. The transformer appends one entry per recovered failure
here; callers (and tests) read the counts to detect partial results.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

__all__ = ["Diagnostics", "FieldIssue"]


@dataclass(frozen=True)
class FieldIssue:
    source: Optional[str]
    target: Optional[str]
    message: str


@dataclass
class Diagnostics:
    field_errors: List[FieldIssue] = field(default_factory=list)
    custom_logic_errors: List[FieldIssue] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def field_error_count(self) -> int:
        return len(self.field_errors)

    @property
    def custom_logic_error_count(self) -> int:
        return len(self.custom_logic_errors)

    @property
    def has_errors(self) -> bool:
        return bool(self.field_errors or self.custom_logic_errors)

    def record_field_error(self, source: Optional[str], target: Optional[str], message: str) -> None:
        self.field_errors.append(FieldIssue(source, target, message))

    def record_custom_logic_error(self, name: Optional[str], message: str) -> None:
        self.custom_logic_errors.append(FieldIssue(name, None, message))

    def warn(self, message: str) -> None:
        self.warnings.append(message)
