from __future__ import annotations

import json

from typer.testing import CliRunner

from mapping_connector.__main__ import app

runner = CliRunner()


def test_validate_reports_ok_and_invalid(tmp_path):
    good = tmp_path / "good.json"
    good.write_text(
        json.dumps({"id": "g", "targetApi": {"url": "https://x"}, "auth": {"type": "basic"}}),
        encoding="utf-8",
    )
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"id": "b"}), encoding="utf-8")

    ok = runner.invoke(app, ["validate", str(good)])
    assert ok.exit_code == 0
    assert "OK" in ok.output
    assert "auth=BASIC" in ok.output

    failed = runner.invoke(app, ["validate", str(good), str(bad)])
    assert failed.exit_code == 1
    assert "INVALID" in failed.output
    assert "targetApi" in failed.output


def test_execute_unknown_key_prints_failure_envelope(tmp_path, monkeypatch):
    monkeypatch.delenv("TRANSFORM_PLUGINS", raising=False)
    result = runner.invoke(app, ["execute", "nope", "--mappings-dir", str(tmp_path)])
    assert result.exit_code == 1
    envelope = json.loads(result.output[result.output.index("{\n  \"success\""):])
    assert envelope["success"] is False
    assert envelope["statusCode"] == 404
