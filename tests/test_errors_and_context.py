from __future__ import annotations

import pytest

from mapping_connector.context import ExecutionContext
from mapping_connector.engine import error_source, resolve_effective_auth
from mapping_connector.errors import (
    CLIENT_ERROR,
    INTERNAL_ERROR,
    TARGET_API_ERROR,
    AuthenticationError,
    AuthMismatchError,
    MappingNotFoundError,
    TargetApiError,
    TransportError,
    build_envelope,
    error_envelope,
)
from mapping_connector.models.mapping import AuthSpec, AuthType


def test_success_envelope():
    assert build_envelope({"a": 1}) == {"success": True, "statusCode": 200, "data": {"a": 1}}


def test_target_error_envelope_exposes_remote_body():
    env = error_envelope(TargetApiError("bad", status=409, body={"conflict": True}))
    assert env == {
        "success": False,
        "statusCode": 409,
        "errorType": TARGET_API_ERROR,
        "targetResponse": {"conflict": True},
    }


def test_client_error_envelopes():
    env = error_envelope(MappingNotFoundError("Mapping with ID or Name 'x' not found"))
    assert env["statusCode"] == 404
    assert env["errorType"] == CLIENT_ERROR
    assert env["message"].endswith("not found")
    assert error_envelope(AuthenticationError("no token"))["statusCode"] == 401
    assert error_envelope(AuthMismatchError("mismatch"))["statusCode"] == 400


def test_transport_and_unknown_errors():
    assert error_envelope(TransportError("down"))["statusCode"] == 502
    env = error_envelope(KeyError("x"))
    assert env["statusCode"] == 500
    assert env["errorType"] == INTERNAL_ERROR
    assert "targetResponse" not in env


def test_error_source_shapes():
    assert error_source(TargetApiError("m", status=400, body={"e": 1})) == {"e": 1}
    assert error_source(TargetApiError("m", status=400, body={})) == {"message": "m", "status": 400}
    assert error_source(TransportError("t")) == {"message": "t", "status": "UNKNOWN"}


def test_effective_auth_rules():
    stored = AuthSpec(authType=AuthType.BASIC, config={"username": "srv", "password": "pw"})
    same = AuthSpec(authType=AuthType.BASIC, config={"username": "caller", "extra": 1})
    merged = resolve_effective_auth(stored, same)
    assert merged.authType is AuthType.BASIC
    assert merged.config == {"username": "srv", "password": "pw", "extra": 1}

    with pytest.raises(AuthMismatchError, match="API_KEY"):
        resolve_effective_auth(stored, AuthSpec(authType=AuthType.API_KEY))

    assert resolve_effective_auth(None, None).authType is AuthType.NONE
    assert resolve_effective_auth(stored, None).config == stored.config
    none_stored = AuthSpec(authType=AuthType.NONE, config={"a": 1})
    caller = AuthSpec(authType=AuthType.JWT, config={"issuer": "i"})
    assert resolve_effective_auth(none_stored, caller).authType is AuthType.JWT


def test_context_from_inbound_headers():
    ctx = ExecutionContext.from_inbound_headers(
        {
            "authorization": "Bearer  tok ",
            "Content-Length": "10",
            "X-Correlation": "c-1",
        },
        method="put",
        query_params={"q": "1"},
    )
    assert ctx.incoming_token == "tok"
    assert ctx.headers == {"X-Correlation": "c-1"}
    assert ctx.method == "put"
    assert ctx.query_params == {"q": "1"}
    assert not ctx.diagnostics.has_errors


def test_context_ignores_non_bearer_authorization():
    ctx = ExecutionContext.from_inbound_headers({"Authorization": "Basic abc"})
    assert ctx.incoming_token is None
    assert ctx.headers == {}
