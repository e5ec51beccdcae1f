"""Error taxonomy for the connector engine.

Every error raised across a connector call derives from `ConnectorError` and
carries two classification attributes used by `error_envelope`:

* `error_type` - one of CLIENT_ERROR, TARGET_API_ERROR, INTERNAL_ERROR
* `status_code` - HTTP-style status reported back to the caller

Configuration and authentication errors are fatal to a call and are raised
before any remote invocation. Target-call errors are retried by the engine and
then either surfaced or converted into data through an error mapping.
`FieldMappingError` never leaves the transformer: it is caught per field and
recorded in diagnostics.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

CLIENT_ERROR = "CLIENT_ERROR"
TARGET_API_ERROR = "TARGET_API_ERROR"
INTERNAL_ERROR = "INTERNAL_ERROR"


class Messages:
    """Message templates shared by engine, strategies and transformer."""

    CONNECTOR_KEY_REQUIRED = "connectorKey is required"
    REPOSITORY_REQUIRED = "A mapping repository is required to resolve mapping keys"
    INTERNAL_ERROR = "An unexpected internal error occurred"

    @staticmethod
    def mapping_not_found(key: str) -> str:
        return f"Mapping with ID or Name '{key}' not found"

    @staticmethod
    def invalid_mapping(key: str, detail: str) -> str:
        return f"Invalid mapping configuration for: {key} ({detail})"

    @staticmethod
    def auth_mismatch(incoming: str, required: str) -> str:
        return f"Auth type {incoming} does not match required {required}"

    @staticmethod
    def auth_required_fields(auth_type: str, fields: str) -> str:
        return f"AuthType {auth_type} requires {fields} in config"

    @staticmethod
    def auth_token_not_found(url: str) -> str:
        return f"Token not found in response from {url}"

    @staticmethod
    def auth_token_generation_failed(msg: str) -> str:
        return f"Failed to generate token: {msg}"

    @staticmethod
    def required_field_missing(field: str) -> str:
        return f"Missing required field: {field}"

    @staticmethod
    def root_array_not_found(path: str) -> str:
        return f"Root path {path} did not resolve to an array"

    @staticmethod
    def custom_transform_error(msg: str) -> str:
        return f"Custom transform error: {msg}"


class ConnectorError(RuntimeError):
    """Base class for all connector failures."""

    error_type: str = INTERNAL_ERROR
    status_code: int = 500


class ConfigurationError(ConnectorError):
    """Mapping or auth configuration is unusable; rejected before any network call."""

    error_type = CLIENT_ERROR
    status_code = 400


class MappingNotFoundError(ConfigurationError):
    status_code = 404


class AuthMismatchError(ConfigurationError):
    """Caller-supplied auth type conflicts with the stored auth type."""


class AuthValidationError(ConfigurationError):
    """An auth spec lacks fields its strategy requires."""


class AuthenticationError(ConnectorError):
    """Credentials could not be produced (token fetch failure, missing bearer token)."""

    error_type = CLIENT_ERROR
    status_code = 401


class TargetApiError(ConnectorError):
    """The remote system answered with a non-2xx status."""

    error_type = TARGET_API_ERROR

    def __init__(self, message: str, *, status: int, body: Any = None):
        super().__init__(message)
        self.status = status
        self.body = body
        self.status_code = status


class TransportError(ConnectorError):
    """The remote system could not be reached (no HTTP status available)."""

    error_type = TARGET_API_ERROR
    status_code = 502
    status: Optional[int] = None
    body: Any = None


class InternalError(ConnectorError):
    error_type = INTERNAL_ERROR
    status_code = 500


class FieldMappingError(ValueError):
    """A single field rule could not be satisfied (e.g. required value missing)."""


def build_envelope(result: Any) -> Dict[str, Any]:
    """Wrap a successful (or error-mapped) result for callers."""
    return {"success": True, "statusCode": 200, "data": result}


def error_envelope(exc: BaseException) -> Dict[str, Any]:
    """Convert an exception into the caller-facing failure shape.

    Target API failures expose the remote body as `targetResponse`; every
    other failure exposes only a message. Exceptions outside the taxonomy are
    reported as INTERNAL_ERROR without further detail.
    """
    if isinstance(exc, TargetApiError):
        return {
            "success": False,
            "statusCode": exc.status,
            "errorType": exc.error_type,
            "targetResponse": exc.body,
        }
    if isinstance(exc, ConnectorError):
        return {
            "success": False,
            "statusCode": exc.status_code,
            "errorType": exc.error_type,
            "message": str(exc) or Messages.INTERNAL_ERROR,
        }
    return {
        "success": False,
        "statusCode": 500,
        "errorType": INTERNAL_ERROR,
        "message": str(exc) or Messages.INTERNAL_ERROR,
    }


__all__ = [
    "CLIENT_ERROR",
    "TARGET_API_ERROR",
    "INTERNAL_ERROR",
    "Messages",
    "ConnectorError",
    "ConfigurationError",
    "MappingNotFoundError",
    "AuthMismatchError",
    "AuthValidationError",
    "AuthenticationError",
    "TargetApiError",
    "TransportError",
    "InternalError",
    "FieldMappingError",
    "build_envelope",
    "error_envelope",
]
