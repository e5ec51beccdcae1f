"""mapping_connector package.

Configuration-driven integration engine: a mapping document describes how to
reshape an inbound payload, which target API to call and how to authenticate,
and how to reshape the response. `ConnectorEngine.execute` runs that cycle.
"""
from .context import ExecutionContext
from .engine import ConnectorEngine
from .errors import build_envelope, error_envelope
from .models.mapping import AuthSpec, AuthType, MappingDocument, MappingType

__all__ = [
    "AuthSpec",
    "AuthType",
    "ConnectorEngine",
    "ExecutionContext",
    "MappingDocument",
    "MappingType",
    "build_envelope",
    "error_envelope",
]

__version__ = "0.1.0"
