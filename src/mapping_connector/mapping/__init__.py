"""Mapping engine package.

Modules:
    path_resolver: path expression reads (`resolve`) and writes (`assign`)
    transform_catalog: built-in transforms and registered custom logic
    diagnostics: per-call record of recovered field / custom-logic errors
    transformer: applies request, response and error mapping documents
"""
from .diagnostics import Diagnostics, FieldIssue
from .path_resolver import MISSING, assign, resolve
from .transform_catalog import TransformCatalog, default_catalog, register
from .transformer import Transformer, transform

__all__ = [
    "Diagnostics",
    "FieldIssue",
    "MISSING",
    "TransformCatalog",
    "Transformer",
    "assign",
    "default_catalog",
    "register",
    "resolve",
    "transform",
]
