"""Command-line entry point for the mapping connector.

Two commands:

* `execute KEY` runs one connector cycle for the mapping document identified
  by KEY (id or name, looked up in MAPPINGS_DIR) and prints the JSON envelope
  (`{"success": true, "statusCode": 200, "data": ...}` or the failure shape).
* `validate FILE...` checks mapping documents against the model and exits
  with code 1 if any of them is invalid.
"""
from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from dotenv import find_dotenv, load_dotenv
from pydantic import ValidationError

# Load .env file if present (before any config access)
env_file = find_dotenv(usecwd=True) or find_dotenv()
if env_file:
    load_dotenv(env_file)
    logging.debug("Loaded environment from %s", env_file)

from .auth import AuthStrategyRegistry, TokenCache
from .config import get_settings
from .context import ExecutionContext
from .engine import ConnectorEngine
from .errors import ConfigurationError, build_envelope, error_envelope
from .mapping.transform_catalog import load_transform_plugins
from .registry import InMemoryMappingRepository, load_document
from .transport import HttpxTransport

app = typer.Typer(help="Mapping-driven integration connector CLI")


def _parse_pairs(values: Optional[List[str]], option: str) -> Dict[str, str]:
    pairs: Dict[str, str] = {}
    for item in values or []:
        if "=" not in item:
            raise typer.BadParameter(f"expected key=value, got {item!r}", param_hint=option)
        key, value = item.split("=", 1)
        pairs[key.strip()] = value
    return pairs


def _read_payload(path: Optional[Path]) -> Any:
    if path is None:
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise typer.BadParameter(f"cannot read JSON payload: {e}", param_hint="--payload")


@app.callback()
def main() -> None:  # pragma: no cover - simple callback
    """mapping-connector CLI.

    Use a subcommand like 'execute' or 'validate'.
    """
    pass


@app.command(help="Execute one connector cycle and print the result envelope.")
def execute(
    key: str = typer.Argument(..., help="Mapping document id or name"),
    payload: Optional[Path] = typer.Option(
        None, "--payload", "-p", help="Path to a JSON file with the inbound payload"
    ),
    method: Optional[str] = typer.Option(
        None, help="HTTP method override (defaults to the mapping's targetApi.method)"
    ),
    query: Optional[List[str]] = typer.Option(
        None, "--query", "-q", help="Caller query parameter as key=value (repeatable)"
    ),
    header: Optional[List[str]] = typer.Option(
        None, "--header", "-H", help="Caller header as key=value (repeatable)"
    ),
    token: Optional[str] = typer.Option(
        None, help="Bearer token forwarded to BEARER mappings as the passthrough token"
    ),
    mappings_dir: Optional[str] = typer.Option(
        None, help="Directory of mapping documents (overrides MAPPINGS_DIR)"
    ),
) -> None:
    settings = get_settings()
    logging.basicConfig(level=settings.LOG_LEVEL)
    logger = logging.getLogger(__name__)

    directory = mappings_dir or settings.MAPPINGS_DIR
    if not directory:
        raise typer.BadParameter(
            "no mappings directory (set MAPPINGS_DIR or pass --mappings-dir)",
            param_hint="--mappings-dir",
        )
    try:
        loaded = load_transform_plugins(settings.TRANSFORM_PLUGINS)
    except ConfigurationError as e:
        typer.echo(json.dumps(error_envelope(e), indent=2, default=str))
        raise typer.Exit(code=1)
    if loaded:
        logger.info("Loaded transform plugins: %s", ", ".join(loaded))

    inbound_headers = _parse_pairs(header, "--header")
    if token:
        inbound_headers["Authorization"] = f"Bearer {token}"
    context = ExecutionContext.from_inbound_headers(
        inbound_headers,
        method=method,
        query_params=_parse_pairs(query, "--query"),
    )
    body = _read_payload(payload)
    repository = InMemoryMappingRepository.from_directory(directory)

    async def _run() -> Dict[str, Any]:
        transport = HttpxTransport(timeout=settings.HTTP_TIMEOUT_SECONDS)
        engine = ConnectorEngine(
            transport,
            repository=repository,
            auth_registry=AuthStrategyRegistry(
                TokenCache(),
                timeout=settings.HTTP_TIMEOUT_SECONDS,
                default_token_ttl=settings.DEFAULT_TOKEN_TTL_SECONDS,
                expiry_margin=settings.TOKEN_EXPIRY_MARGIN_SECONDS,
            ),
            default_retry_delay_ms=settings.DEFAULT_RETRY_DELAY_MS,
        )
        try:
            result = await engine.execute(key, body, context)
            return build_envelope(result)
        except Exception as e:
            logger.debug("Connector call failed", exc_info=True)
            return error_envelope(e)
        finally:
            await transport.aclose()

    envelope = asyncio.run(_run())
    typer.echo(json.dumps(envelope, indent=2, default=str))
    if context.diagnostics.has_errors:
        logger.warning(
            "Completed with field_errors=%d custom_logic_errors=%d",
            context.diagnostics.field_error_count,
            context.diagnostics.custom_logic_error_count,
        )
    if not envelope.get("success"):
        raise typer.Exit(code=1)


@app.command(help="Validate mapping document files.")
def validate(
    files: List[Path] = typer.Argument(..., help="Mapping document JSON files"),
) -> None:
    failures = 0
    for path in files:
        try:
            document = load_document(path)
        except ValidationError as e:
            failures += 1
            typer.echo(f"INVALID {path}: {e.error_count()} error(s)")
            for err in e.errors():
                loc = ".".join(str(part) for part in err.get("loc", ()))
                typer.echo(f"  {loc}: {err.get('msg')}")
        except (OSError, ValueError) as e:
            failures += 1
            typer.echo(f"INVALID {path}: {e}")
        else:
            typer.echo(f"OK {path} (id={document.id}, auth={document.auth_type.value})")
    if failures:
        raise typer.Exit(code=1)


if __name__ == "__main__":  # pragma: no cover
    app()
