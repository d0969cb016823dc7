from __future__ import annotations

import pytest

from core.mapping.models import Segment
from core.templates.template_parser import parse_template, tokenize_value
from core.utils.errors import InputLimitError

_TEMPLATE = """{
  "customerId": "${customer.id}",
  "fullName": "${customer.firstName} ${customer.lastName}",
  "contact": {
    "email": "<#if customer.email??>${customer.email}<#else>N/A</#if>",
    "address": {
      "city": "City: ${customer.address.city}"
    },
    "phone": "${customer.phone}"
  },
  "type": "retail",
  "status": "${order.status}"
}
"""


def test_parse_direct_mapping() -> None:
    result = parse_template('{\n  "customerId": "${customer.id}"\n}')

    assert len(result.mappings) == 1
    record = result.mappings[0]
    assert record.target == "customerId"
    assert record.source == "customer.id"
    assert record.transformation == "direct"
    assert record.is_new is False


def test_parse_concatenate_captures_space_as_text_segment() -> None:
    result = parse_template('"fullName": "${customer.firstName} ${customer.lastName}"')

    record = result.mappings[0]
    assert record.transformation == "concatenate"
    assert record.segments == [
        Segment(kind="field", value="customer.firstName"),
        Segment(kind="text", value=" "),
        Segment(kind="field", value="customer.lastName"),
    ]
    assert record.sources == ["customer.firstName", "customer.lastName"]
    assert record.source == "${customer.firstName} ${customer.lastName}"


def test_parse_single_placeholder_with_text_is_concatenate() -> None:
    result = parse_template('"city": "City: ${customer.address.city}",')

    record = result.mappings[0]
    assert record.transformation == "concatenate"
    assert record.segments[0] == Segment(kind="text", value="City: ")
    assert record.sources == ["customer.address.city"]


def test_parse_conditional_extracts_condition_and_body_source() -> None:
    result = parse_template(
        '"email": "<#if customer.email?has_content>${customer.email}<#else>N/A</#if>"'
    )

    record = result.mappings[0]
    assert record.transformation == "conditional"
    assert record.condition == "customer.email?has_content"
    assert record.source == "customer.email"


def test_parse_tracks_nested_object_paths() -> None:
    result = parse_template(_TEMPLATE)

    assert [record.target for record in result.mappings] == [
        "customerId",
        "fullName",
        "contact.email",
        "contact.address.city",
        "contact.phone",
        "status",
    ]


def test_parse_skips_leaf_without_placeholder() -> None:
    result = parse_template(_TEMPLATE)

    assert [(item.line_no, item.reason) for item in result.skipped] == [(11, "no_placeholder")]
    assert all(record.target != "type" for record in result.mappings)


def test_parse_strips_trailing_comma() -> None:
    result = parse_template('"a": "${x}",')

    assert result.mappings[0].source == "x"
    assert result.mappings[0].transformation == "direct"


def test_parse_inline_empty_object_does_not_push_path() -> None:
    text = '{\n  "meta": {},\n  "id": "${order.id}"\n}'

    result = parse_template(text)

    assert [record.target for record in result.mappings] == ["id"]


def test_parse_ignores_unrecognized_lines_and_stray_closers() -> None:
    text = "}\n<#-- comment -->\n\"a\": \"${x}\"\nnot json at all\n"

    result = parse_template(text)

    assert [record.target for record in result.mappings] == ["a"]
    assert result.skipped == []


def test_parse_assigns_unique_ids() -> None:
    result = parse_template(_TEMPLATE)

    ids = [record.id for record in result.mappings]
    assert len(ids) == len(set(ids))


def test_parse_is_deterministic_apart_from_ids() -> None:
    first = parse_template(_TEMPLATE)
    second = parse_template(_TEMPLATE)

    def strip_ids(records):
        return [record.model_dump(exclude={"id"}) for record in records]

    assert strip_ids(first.mappings) == strip_ids(second.mappings)


def test_parse_raises_when_line_limit_exceeded() -> None:
    with pytest.raises(InputLimitError) as exc_info:
        parse_template("\n".join(['"a": "${x}"'] * 5), max_lines=3)

    assert exc_info.value.limit == 3
    assert exc_info.value.actual == 5


def test_parse_skips_leaves_beyond_max_depth() -> None:
    text = '"a": {\n"b": {\n"c": "${deep}"\n}\n},\n"top": "${shallow}"'

    result = parse_template(text, max_depth=1)

    assert [record.target for record in result.mappings] == ["top"]
    assert [item.reason for item in result.skipped] == ["max_depth"]


def test_tokenize_value_without_placeholders_is_single_text_segment() -> None:
    assert tokenize_value("plain") == [Segment(kind="text", value="plain")]
    assert tokenize_value("") == []


def test_parse_skips_inline_object_without_leaking_path() -> None:
    text = '{\n  "a": {"b": "${x}"},\n  "c": "${y}"\n}'

    result = parse_template(text)

    assert [record.target for record in result.mappings] == ["c"]
    assert [(item.line_no, item.reason) for item in result.skipped] == [(2, "inline_object")]
