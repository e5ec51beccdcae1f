"""Pydantic models for mapping documents.

A mapping document is the declarative configuration for one integration: how
to reshape the inbound payload, which endpoint to call, how to authenticate
and how to reshape the remote response (or error). Documents are stored as
JSON by an external registry; field names follow that wire format (camelCase)
so a stored document validates directly into `MappingDocument`.

Fields such as `valueIfTrue` or `default` distinguish "absent" from an explicit
JSON null. Use `FieldRule.given(name)` rather than comparing against None.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


class MappingType(str, Enum):
    DIRECT = "DIRECT"
    OBJECT = "OBJECT"
    # Request-side documents historically used STATIC; it maps like OBJECT.
    STATIC = "STATIC"
    ARRAY = "ARRAY"
    CUSTOM = "CUSTOM"


class AuthType(str, Enum):
    NONE = "NONE"
    BASIC = "BASIC"
    API_KEY = "API_KEY"
    BEARER = "BEARER"
    OAUTH2 = "OAUTH2"
    JWT = "JWT"


_AUTH_TYPE_ALIASES: Dict[str, AuthType] = {
    "BEARER_TOKEN": AuthType.BEARER,
    "PASSTHROUGH": AuthType.BEARER,
    "OAUTH2_CLIENT_CREDENTIALS": AuthType.OAUTH2,
    "API-KEY": AuthType.API_KEY,
    "APIKEY": AuthType.API_KEY,
}


def normalize_auth_type(raw: Any) -> AuthType:
    """Map a loosely spelled auth tag (any case, legacy aliases) to `AuthType`."""
    if isinstance(raw, AuthType):
        return raw
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return AuthType.NONE
    tag = str(raw).strip().upper()
    if tag in _AUTH_TYPE_ALIASES:
        return _AUTH_TYPE_ALIASES[tag]
    return AuthType(tag)


class FieldRule(BaseModel):
    """One source -> target line of a mapping."""

    source: str = ""
    target: str
    transform: Optional[str] = None
    condition: Optional[str] = None
    valueIfTrue: Any = None
    valueIfFalse: Any = None
    default: Any = None
    required: bool = False

    def given(self, name: str) -> bool:
        """Return True when `name` was present in the document (null included)."""
        return name in self.model_fields_set


class ResponseMapping(BaseModel):
    """Mapping applied to a response (also the shape used for error mappings)."""

    type: MappingType = MappingType.OBJECT
    description: Optional[str] = None
    root: Optional[str] = None
    outputWrapper: Optional[str] = None
    mappings: List[FieldRule] = Field(default_factory=list)
    defaults: Dict[str, Any] = Field(default_factory=dict)
    # CUSTOM mode: name of a registered custom-logic function.
    logic: Optional[str] = None

    @field_validator("type", mode="before")
    @classmethod
    def _upper_type(cls, v: Any) -> Any:
        if v is None:
            return MappingType.OBJECT
        if isinstance(v, str):
            return v.strip().upper()
        return v


class RequestMapping(ResponseMapping):
    """Mapping applied to the inbound payload before the remote call."""


class TransformDefinition(BaseModel):
    type: str = "FUNCTION"
    logic: str


class ResiliencePolicy(BaseModel):
    retryCount: int = Field(default=0, ge=0)
    # None means "use the configured default delay".
    retryDelayMs: Optional[int] = Field(default=None, ge=0)


class TargetApiSpec(BaseModel):
    url: str
    method: str = "GET"
    headers: Dict[str, str] = Field(default_factory=dict)
    queryParams: Dict[str, Any] = Field(default_factory=dict)
    # placeholder name -> path expression into the inbound payload
    pathParams: Dict[str, str] = Field(default_factory=dict)
    resilience: ResiliencePolicy = Field(default_factory=ResiliencePolicy)

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().upper() or "GET"
        return v


class AuthSpec(BaseModel):
    """Auth type tag plus its type-specific configuration bag.

    Accepts both the nested wire form `{"authType": ..., "config": {...}}` and
    the flattened form `{"type": ..., "username": ..., ...}`.
    """

    authType: AuthType = AuthType.NONE
    config: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _normalize_shape(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        if "authType" in data or "config" in data:
            normalized = dict(data)
            normalized["authType"] = normalize_auth_type(data.get("authType"))
            return normalized
        flat = dict(data)
        tag = flat.pop("type", None)
        return {"authType": normalize_auth_type(tag), "config": flat}


class MappingDocument(BaseModel):
    """Complete configuration for one integration.

    Treated as immutable for the duration of a call; the engine only reads it.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: Optional[str] = None
    version: Optional[str] = None
    sourceSystem: str = ""
    targetSystem: str = ""
    requestMapping: Optional[RequestMapping] = None
    responseMapping: Optional[ResponseMapping] = None
    targetApi: TargetApiSpec
    authConfig: Optional[AuthSpec] = Field(
        default=None, validation_alias=AliasChoices("authConfig", "auth")
    )
    errorMapping: Optional[ResponseMapping] = None
    transforms: Dict[str, TransformDefinition] = Field(default_factory=dict)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def auth_type(self) -> AuthType:
        return self.authConfig.authType if self.authConfig else AuthType.NONE


__all__ = [
    "AuthSpec",
    "AuthType",
    "FieldRule",
    "MappingDocument",
    "MappingType",
    "RequestMapping",
    "ResiliencePolicy",
    "ResponseMapping",
    "TargetApiSpec",
    "TransformDefinition",
    "normalize_auth_type",
]
