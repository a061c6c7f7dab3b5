"""Tests for parameter schema normalization."""

from __future__ import annotations

import logging

import pytest
from pydantic import BaseModel

from meta_mcp.errors import InvalidParameters, SchemaParseFailure
from meta_mcp.schema import PERMISSIVE_SCHEMA, ParameterSchema, normalize_schema


class TestShorthand:
	def test_type_names_become_required_properties(self) -> None:
		schema = normalize_schema({"n": "number", "label": "string"})
		assert schema.json_schema == {
			"type": "object",
			"properties": {"n": {"type": "number"}, "label": {"type": "string"}},
			"required": ["n", "label"],
		}
		assert schema.source == "object"

	def test_nested_property_schema_is_kept(self) -> None:
		schema = normalize_schema({"tags": {"type": "array", "items": {"type": "string"}}})
		assert schema.json_schema["properties"]["tags"]["items"] == {"type": "string"}

	def test_empty_and_none_accept_objects(self) -> None:
		for raw in ({}, None):
			schema = normalize_schema(raw)
			assert schema.errors({"anything": 1}) == []


class TestFullSchema:
	def test_passthrough(self) -> None:
		raw = {
			"type": "object",
			"properties": {"n": {"type": "integer", "minimum": 0}},
			"required": ["n"],
		}
		schema = normalize_schema(raw)
		assert schema.json_schema == raw
		assert schema.json_schema is not raw

	def test_missing_type_defaults_to_object(self) -> None:
		schema = normalize_schema({"properties": {"n": {"type": "number"}}})
		assert schema.json_schema["type"] == "object"

	def test_json_text(self) -> None:
		schema = normalize_schema('{"n": "number"}')
		assert schema.source == "text"
		assert schema.json_schema["required"] == ["n"]

	def test_pydantic_model(self) -> None:
		class Args(BaseModel):
			n: int

		schema = normalize_schema(Args)
		assert schema.source == "validator"
		assert schema.errors({"n": 1}) == []
		assert schema.errors({}) != []

	def test_prebuilt_schema_returned_as_is(self) -> None:
		prebuilt = ParameterSchema(json_schema={"type": "object"})
		assert normalize_schema(prebuilt) is prebuilt


class TestDegrade:
	@pytest.mark.parametrize(
		"raw",
		[
			"{not json",
			["n", "number"],
			{"type": "array"},
			{"n": 5},
			{"type": "object", "properties": {"n": {"type": "nonsense"}}},
		],
	)
	def test_permissive_fallback(self, raw: object, caplog: pytest.LogCaptureFixture) -> None:
		with caplog.at_level(logging.WARNING, logger="meta_mcp.schema"):
			schema = normalize_schema(raw, name="broken")
		assert schema.is_permissive
		assert schema.json_schema == PERMISSIVE_SCHEMA
		assert schema.error
		assert "broken" in caplog.text

	def test_strict_raises(self) -> None:
		with pytest.raises(SchemaParseFailure, match="Invalid parameters schema"):
			normalize_schema("{not json", strict=True)


class TestValidation:
	def test_validate_reports_every_problem(self) -> None:
		schema = normalize_schema({"n": "number", "label": "string"})
		with pytest.raises(InvalidParameters) as exc_info:
			schema.validate({"n": "x"})
		message = str(exc_info.value)
		assert message.startswith("Invalid parameters: ")
		assert "'label' is a required property" in message
		assert "n: 'x' is not of type 'number'" in message

	def test_valid_params_pass(self) -> None:
		normalize_schema({"n": "number"}).validate({"n": 21})
