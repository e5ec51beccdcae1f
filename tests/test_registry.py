from __future__ import annotations

import json
import logging

from mapping_connector.models.mapping import AuthType, MappingDocument
from mapping_connector.registry import InMemoryMappingRepository, load_document


def _write(path, payload):
    path.write_text(json.dumps(payload), encoding="utf-8")


def test_lookup_by_id_then_name():
    doc = MappingDocument.model_validate(
        {"id": "m-1", "name": "invoices", "targetApi": {"url": "https://x"}}
    )
    repo = InMemoryMappingRepository([doc])
    assert repo.find_by_id_or_name("m-1") is doc
    assert repo.find_by_id_or_name("invoices") is doc
    assert repo.find_by_id_or_name("other") is None
    assert repo.find_by_id_or_name("") is None
    assert len(repo) == 1


def test_from_directory_skips_invalid_documents(tmp_path, caplog):
    _write(
        tmp_path / "good.json",
        {
            "id": "good",
            "targetApi": {"url": "https://x", "method": "post"},
            "auth": {"type": "oauth2_client_credentials", "tokenUrl": "https://idp"},
        },
    )
    _write(tmp_path / "bad.json", {"id": "no-target"})
    (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")
    (tmp_path / "ignored.txt").write_text("{}", encoding="utf-8")

    with caplog.at_level(logging.WARNING):
        repo = InMemoryMappingRepository.from_directory(tmp_path)

    assert len(repo) == 1
    doc = repo.find_by_id_or_name("good")
    assert doc.targetApi.method == "POST"
    assert doc.auth_type is AuthType.OAUTH2
    assert doc.authConfig.config == {"tokenUrl": "https://idp"}
    skipped = [r for r in caplog.records if "Skipping invalid mapping" in r.getMessage()]
    assert len(skipped) == 2


def test_from_missing_directory_is_empty(tmp_path):
    assert len(InMemoryMappingRepository.from_directory(tmp_path / "nope")) == 0


def test_load_document_full_shape(tmp_path):
    path = tmp_path / "full.json"
    _write(
        path,
        {
            "id": "full",
            "name": "Full",
            "version": "2",
            "sourceSystem": "crm",
            "targetSystem": "billing",
            "requestMapping": {"type": "OBJECT", "mappings": [{"source": "$.a", "target": "$.b"}]},
            "responseMapping": {"type": "ARRAY", "root": "$.rows[*]", "mappings": []},
            "errorMapping": {"mappings": [{"source": "$.message", "target": "$.m"}]},
            "targetApi": {
                "url": "https://billing/:id",
                "pathParams": {"id": "$.id"},
                "resilience": {"retryCount": 2, "retryDelayMs": 100},
            },
            "authConfig": {"authType": "api_key", "config": {"keyName": "k", "keyValue": "v"}},
            "transforms": {"t": {"type": "FUNCTION", "logic": "registered"}},
        },
    )
    doc = load_document(path)
    assert doc.requestMapping.mappings[0].target == "$.b"
    assert doc.targetApi.resilience.retryCount == 2
    assert doc.auth_type is AuthType.API_KEY
    assert doc.transforms["t"].logic == "registered"
