from __future__ import annotations

import copy

from mapping_connector.mapping.diagnostics import Diagnostics
from mapping_connector.mapping.transform_catalog import TransformCatalog
from mapping_connector.mapping.transformer import Transformer, evaluate_condition, transform
from mapping_connector.models.mapping import (
    MappingType,
    RequestMapping,
    ResponseMapping,
    TransformDefinition,
)


def _mapping(**kwargs) -> ResponseMapping:
    return ResponseMapping.model_validate(kwargs)


ORDER = {"amount": 100.555, "type": "EXPRESS", "user": {"name": "alice"}}

ORDER_RULES = [
    {"source": "$.amount", "target": "$.total", "transform": "roundTo2"},
    {
        "source": "$.type",
        "target": "$.priority",
        "condition": "$.type == 'EXPRESS'",
        "valueIfTrue": "HIGH",
        "valueIfFalse": "NORMAL",
    },
    {"source": "$.user.name", "target": "$.userName", "transform": "uppercase"},
]


def test_object_mapping_scenario():
    result = transform(ORDER, _mapping(mappings=ORDER_RULES))
    assert result == {"total": 100.56, "priority": "HIGH", "userName": "ALICE"}


def test_condition_false_branch():
    payload = {**ORDER, "type": "STANDARD"}
    result = transform(payload, _mapping(mappings=ORDER_RULES))
    assert result["priority"] == "NORMAL"


def test_condition_false_without_value_if_false_skips_field():
    mapping = _mapping(
        mappings=[
            {"source": "$.type", "target": "$.p", "condition": "$.type == 'X'", "valueIfTrue": 1}
        ]
    )
    assert transform({"type": "Y"}, mapping) == {}


def test_condition_true_without_literal_uses_source():
    mapping = _mapping(
        mappings=[{"source": "$.user.name", "target": "$.who", "condition": "$.user.name"}]
    )
    assert transform(ORDER, mapping) == {"who": "alice"}


def test_explicit_null_literal_is_written():
    mapping = _mapping(
        mappings=[
            {
                "source": "$.type",
                "target": "$.p",
                "condition": "$.type == 'NOPE'",
                "valueIfTrue": "x",
                "valueIfFalse": None,
            }
        ]
    )
    assert transform(ORDER, mapping) == {"p": None}


def test_evaluate_condition_forms():
    data = {"n": 0, "s": "", "l": [], "flag": True, "num": 5}
    assert evaluate_condition(data, "$.flag")
    assert evaluate_condition(data, "$.l")
    assert not evaluate_condition(data, "$.n")
    assert not evaluate_condition(data, "$.s")
    assert not evaluate_condition(data, "$.absent")
    assert evaluate_condition(data, "$.num == 5")
    assert evaluate_condition(data, '$.flag == "true"')
    assert not evaluate_condition(data, "$.absent == 'x'")


def test_array_mapping_scenario():
    mapping = _mapping(type="ARRAY", root="$.items[*]", mappings=[{"source": "$.a", "target": "$.v"}])
    assert transform({"items": [{"a": 1}, {"a": 2}]}, mapping) == [{"v": 1}, {"v": 2}]


def test_array_mapping_with_output_wrapper():
    mapping = _mapping(
        type="ARRAY",
        root="$.items[*]",
        outputWrapper="$.data.rows",
        mappings=[{"source": "$.a", "target": "$.v"}],
    )
    assert transform({"items": [{"a": 1}]}, mapping) == {"data": {"rows": [{"v": 1}]}}


def test_array_mapping_non_list_root_is_empty_and_warned():
    diagnostics = Diagnostics()
    mapping = _mapping(type="ARRAY", root="$.items[*]", mappings=[{"source": "$.a", "target": "$.v"}])
    assert transform({"items": {"a": 1}}, mapping, diagnostics=diagnostics) == []
    assert len(diagnostics.warnings) == 1
    assert not diagnostics.has_errors


def test_array_mapping_without_root_is_empty():
    assert transform({"items": [1]}, _mapping(type="ARRAY")) == []


def test_required_field_missing_is_omitted_and_reported():
    diagnostics = Diagnostics()
    mapping = _mapping(
        mappings=[
            {"source": "$.id", "target": "$.orderId", "required": True},
            {"source": "$.user.name", "target": "$.name"},
        ]
    )
    result = transform(ORDER, mapping, diagnostics=diagnostics)
    assert result == {"name": "alice"}
    assert diagnostics.field_error_count == 1
    issue = diagnostics.field_errors[0]
    assert issue.source == "$.id"
    assert issue.target == "$.orderId"
    assert "Missing required field" in issue.message


def test_missing_optional_field_never_writes_a_key():
    mapping = _mapping(mappings=[{"source": "$.nothing", "target": "$.out"}])
    assert transform(ORDER, mapping) == {}


def test_rule_default_fills_missing_source():
    mapping = _mapping(
        mappings=[
            {"source": "$.currency", "target": "$.ccy", "default": "EUR"},
            {"source": "$.id", "target": "$.id", "required": True, "default": "fallback"},
        ]
    )
    diagnostics = Diagnostics()
    assert transform(ORDER, mapping, diagnostics=diagnostics) == {"ccy": "EUR", "id": "fallback"}
    assert diagnostics.field_error_count == 0


def test_object_defaults_never_override_rule_output():
    mapping = _mapping(
        mappings=[{"source": "$.user.name", "target": "$.user.name"}],
        defaults={"$.user.name": "nobody", "$.user.role": "guest", "status": "NEW"},
    )
    assert transform(ORDER, mapping) == {
        "user": {"name": "alice", "role": "guest"},
        "status": "NEW",
    }


def test_nested_default_does_not_replace_scalar_written_by_rule():
    mapping = _mapping(
        mappings=[{"source": "$.a", "target": "$.x"}],
        defaults={"$.x.y": 1, "$.z.w": 2},
    )
    assert transform({"a": 5}, mapping) == {"x": 5, "z": {"w": 2}}


def test_direct_mapping_is_identity_and_idempotent():
    mapping = _mapping(type="DIRECT", mappings=ORDER_RULES)
    once = transform(ORDER, mapping)
    twice = transform(once, mapping)
    assert once is ORDER
    assert twice == ORDER


def test_no_mapping_is_identity():
    assert transform([1, 2], None) == [1, 2]


def test_type_tag_is_case_insensitive():
    assert _mapping(type="array").type == MappingType.ARRAY
    assert RequestMapping.model_validate({"type": None}).type == MappingType.OBJECT


def test_static_request_mapping_behaves_like_object():
    mapping = RequestMapping.model_validate(
        {"type": "STATIC", "mappings": [{"source": "$.user.name", "target": "$.customer"}]}
    )
    assert transform(ORDER, mapping) == {"customer": "alice"}


def test_custom_mode_runs_registered_logic():
    catalog = TransformCatalog({"summarize": lambda v: {"count": len(v["items"])}})
    mapping = _mapping(type="CUSTOM", logic="summarize")
    assert Transformer(catalog).transform({"items": [1, 2, 3]}, mapping) == {"count": 3}


def test_custom_mode_failure_becomes_error_value():
    catalog = TransformCatalog({"explode": lambda v: 1 / 0})
    diagnostics = Diagnostics()
    result = Transformer(catalog).transform(
        {}, _mapping(type="CUSTOM", logic="explode"), diagnostics=diagnostics
    )
    assert result["error"].startswith("Custom transform error:")
    assert diagnostics.custom_logic_error_count == 1


def test_custom_mode_without_logic_maps_as_object():
    mapping = _mapping(type="CUSTOM", mappings=[{"source": "$.type", "target": "$.t"}])
    assert transform(ORDER, mapping) == {"t": "EXPRESS"}


def test_field_transform_uses_document_definitions():
    catalog = TransformCatalog({"initials": lambda v: "".join(p[0] for p in v.split())})
    mapping = _mapping(mappings=[{"source": "$.full", "target": "$.ini", "transform": "toInitials"}])
    defs = {"toInitials": TransformDefinition(logic="initials")}
    result = Transformer(catalog).transform({"full": "Ada Lovelace"}, mapping, defs)
    assert result == {"ini": "AL"}


def test_failing_field_transform_keeps_other_fields():
    catalog = TransformCatalog({"bad": lambda v: v.nope})
    diagnostics = Diagnostics()
    mapping = _mapping(
        mappings=[
            {"source": "$.type", "target": "$.broken", "transform": "bad"},
            {"source": "$.type", "target": "$.ok"},
        ]
    )
    result = Transformer(catalog).transform(ORDER, mapping, diagnostics=diagnostics)
    assert result["ok"] == "EXPRESS"
    assert "error" in result["broken"]
    assert diagnostics.custom_logic_error_count == 1


def test_source_is_not_mutated():
    source = copy.deepcopy(ORDER)
    transform(source, _mapping(mappings=ORDER_RULES, defaults={"x": 1}))
    assert source == ORDER
