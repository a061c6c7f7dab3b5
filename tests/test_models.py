"""Tests for data models."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from meta_mcp.models import ExecutionEnvironment, ToolDefinition, ToolResponse, next_timestamp


class TestToolDefinition:
	def test_updated_at_defaults_to_created_at(self) -> None:
		d = ToolDefinition(name="t")
		assert d.updated_at == d.created_at
		assert d.created_at.tzinfo is not None
		assert d.version == 1

	def test_environment_coerced_from_string(self) -> None:
		d = ToolDefinition(name="t", execution_environment="subprocess-shell")
		assert d.execution_environment is ExecutionEnvironment.SUBPROCESS_SHELL

	def test_dict_round_trip(self) -> None:
		d = ToolDefinition(
			name="greet",
			description="says hi",
			parameters_schema={"type": "object", "properties": {"who": {"type": "string"}}},
			implementation_code="return 'hi ' + params.who",
			version=3,
		)
		data = d.to_dict()
		assert data["execution_environment"] == "in-process"
		assert data["created_at"].endswith("+00:00")
		assert ToolDefinition.from_dict(data) == d

	def test_from_dict_fills_missing_optional_fields(self) -> None:
		d = ToolDefinition.from_dict({"name": "x", "created_at": "2024-01-01T00:00:00+00:00"})
		assert d.updated_at == d.created_at
		assert d.parameters_schema == {"type": "object"}
		assert d.version == 1

	def test_summary_keys(self) -> None:
		summary = ToolDefinition(name="t").summary()
		assert set(summary) == {"name", "description", "executionEnvironment", "createdAt", "updatedAt"}


class TestNextTimestamp:
	def test_strictly_after_future_value(self) -> None:
		future = datetime.now(timezone.utc) + timedelta(hours=1)
		assert next_timestamp(future) == future + timedelta(microseconds=1)

	def test_now_when_previous_is_old(self) -> None:
		past = datetime(2020, 1, 1, tzinfo=timezone.utc)
		assert next_timestamp(past) > past


class TestExecutionEnvironment:
	def test_parse_unknown(self) -> None:
		with pytest.raises(ValueError, match="expected one of: in-process"):
			ExecutionEnvironment.parse("wasm")


class TestToolResponse:
	def test_success_shape(self) -> None:
		assert ToolResponse.success("ok").to_dict() == {"content": [{"type": "text", "text": "ok"}]}

	def test_error_shape(self) -> None:
		assert ToolResponse.error("bad").to_dict() == {
			"content": [{"type": "text", "text": "bad"}],
			"isError": True,
		}

	def test_from_json(self) -> None:
		response = ToolResponse.from_json({"a": 1})
		assert response.text == '{\n  "a": 1\n}'
		assert not response.is_error
