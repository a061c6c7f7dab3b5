"""Parameter schema normalization.

A caller may describe a tool's parameters three ways: as an already-built
validator (a ``ParameterSchema`` or a pydantic model class), as a structural
object (a full JSON Schema or a shorthand ``{"n": "number"}`` property map),
or as JSON text encoding one of those objects. ``normalize_schema`` resolves
the input once into a ``ParameterSchema`` holding the canonical JSON Schema
and a jsonschema validator; nothing downstream looks at the raw form again.

Malformed input does not reject the definition by default. It degrades to a
permissive object schema and the failure is recorded on the result and
logged. Strict mode raises ``SchemaParseFailure`` instead.
"""

from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass, field
from typing import Any

import jsonschema
from pydantic import BaseModel

from meta_mcp.errors import InvalidParameters, SchemaParseFailure

logger = logging.getLogger(__name__)

PERMISSIVE_SCHEMA: dict[str, Any] = {"type": "object"}

_FULL_SCHEMA_KEYS = {"$schema", "properties", "required", "additionalProperties", "$defs"}


@dataclass
class ParameterSchema:
	"""Canonical, validated description of a tool's parameters."""

	json_schema: dict[str, Any]
	source: str = "object"  # validator | object | text | permissive
	error: str = ""
	_validator: Any = field(init=False, repr=False, compare=False)

	def __post_init__(self) -> None:
		self._validator = jsonschema.Draft202012Validator(self.json_schema)

	@property
	def is_permissive(self) -> bool:
		return self.source == "permissive"

	def errors(self, params: Any) -> list[str]:
		"""Return human-readable violations of *params*, empty when valid."""
		messages = []
		for err in sorted(self._validator.iter_errors(params), key=lambda e: list(e.absolute_path)):
			location = "/".join(str(p) for p in err.absolute_path)
			messages.append(f"{location}: {err.message}" if location else err.message)
		return messages

	def validate(self, params: Any) -> None:
		"""Raise InvalidParameters if *params* does not satisfy the schema."""
		problems = self.errors(params)
		if problems:
			raise InvalidParameters("Invalid parameters: " + "; ".join(problems))


def permissive_schema(error: str = "") -> ParameterSchema:
	return ParameterSchema(json_schema=dict(PERMISSIVE_SCHEMA), source="permissive", error=error)


def _is_full_schema(obj: dict[str, Any]) -> bool:
	if _FULL_SCHEMA_KEYS & obj.keys():
		return True
	return isinstance(obj.get("type"), str)


def _expand_shorthand(obj: dict[str, Any]) -> dict[str, Any]:
	"""Turn ``{"n": "number"}`` / ``{"n": {...}}`` into an object schema."""
	properties: dict[str, Any] = {}
	for key, value in obj.items():
		if isinstance(value, str):
			properties[key] = {"type": value}
		elif isinstance(value, dict):
			properties[key] = copy.deepcopy(value)
		else:
			raise ValueError(f"property {key!r} must be a type name or a schema object")
	return {"type": "object", "properties": properties, "required": list(properties)}


def _from_object(obj: dict[str, Any]) -> dict[str, Any]:
	schema = copy.deepcopy(obj) if _is_full_schema(obj) else _expand_shorthand(obj)
	schema.setdefault("type", "object")
	if schema["type"] != "object":
		raise ValueError(f"parameters schema must describe an object, got type {schema['type']!r}")
	jsonschema.Draft202012Validator.check_schema(schema)
	return schema


def _degrade(reason: str, strict: bool, label: str) -> ParameterSchema:
	if strict:
		raise SchemaParseFailure(f"Invalid parameters schema{label}: {reason}")
	logger.warning("Invalid parameters schema%s, accepting any input: %s", label, reason)
	return permissive_schema(reason)


def normalize_schema(raw: Any, strict: bool = False, name: str = "") -> ParameterSchema:
	"""Resolve *raw* into a ParameterSchema.

	Args:
		raw: ParameterSchema, pydantic model class, dict, or JSON text.
		strict: Raise SchemaParseFailure instead of degrading to permissive.
		name: Tool name, used only in log messages.

	Returns:
		The canonical ParameterSchema.
	"""
	label = f" for {name!r}" if name else ""

	if isinstance(raw, ParameterSchema):
		return raw
	if isinstance(raw, type) and issubclass(raw, BaseModel):
		return ParameterSchema(json_schema=raw.model_json_schema(), source="validator")

	source = "object"
	if raw is None:
		raw = {}
	if isinstance(raw, (str, bytes)):
		source = "text"
		try:
			raw = json.loads(raw)
		except (json.JSONDecodeError, ValueError) as exc:
			return _degrade(f"not valid JSON ({exc})", strict, label)

	if not isinstance(raw, dict):
		return _degrade(f"expected an object, got {type(raw).__name__}", strict, label)

	try:
		schema = _from_object(raw)
	except (ValueError, jsonschema.SchemaError) as exc:
		reason = exc.message if isinstance(exc, jsonschema.SchemaError) else str(exc)
		return _degrade(reason, strict, label)
	return ParameterSchema(json_schema=schema, source=source)
