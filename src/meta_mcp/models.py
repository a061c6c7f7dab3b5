"""Data models for meta-mcp state."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any


class ExecutionEnvironment(str, Enum):
	"""Isolation strategy used to run a tool's implementation code."""

	IN_PROCESS = "in-process"
	SUBPROCESS_INTERPRETER = "subprocess-interpreter"
	SUBPROCESS_SHELL = "subprocess-shell"

	@classmethod
	def parse(cls, value: str | ExecutionEnvironment) -> ExecutionEnvironment:
		"""Coerce a string to an environment, raising ValueError on unknown names."""
		if isinstance(value, cls):
			return value
		try:
			return cls(str(value))
		except ValueError:
			allowed = ", ".join(e.value for e in cls)
			raise ValueError(f"Unknown execution environment {value!r} (expected one of: {allowed})") from None


# Snapshot keys and environment names written by earlier releases.
_LEGACY_KEYS = {
	"inputSchema": "parameters_schema",
	"implementation": "implementation_code",
	"executionEnvironment": "execution_environment",
	"createdAt": "created_at",
	"updatedAt": "updated_at",
}
_LEGACY_ENVIRONMENTS = {
	"javascript": "in-process",
	"python": "subprocess-interpreter",
	"shell": "subprocess-shell",
}


def _parse_time(value: str) -> datetime:
	parsed = datetime.fromisoformat(value)
	if parsed.tzinfo is None:
		parsed = parsed.replace(tzinfo=timezone.utc)
	return parsed


def _now() -> datetime:
	return datetime.now(timezone.utc)


def next_timestamp(previous: datetime) -> datetime:
	"""Return the current time, nudged forward so it is strictly after *previous*."""
	now = _now()
	if now <= previous:
		return previous + timedelta(microseconds=1)
	return now


@dataclass
class ToolDefinition:
	"""A named, persisted record describing a callable tool."""

	name: str
	description: str = ""
	parameters_schema: dict[str, Any] = field(default_factory=lambda: {"type": "object"})
	implementation_code: str = ""
	execution_environment: ExecutionEnvironment = ExecutionEnvironment.IN_PROCESS
	created_at: datetime = field(default_factory=_now)
	updated_at: datetime | None = None
	version: int = 1

	def __post_init__(self) -> None:
		self.execution_environment = ExecutionEnvironment.parse(self.execution_environment)
		if self.updated_at is None:
			self.updated_at = self.created_at

	def to_dict(self) -> dict[str, Any]:
		return {
			"name": self.name,
			"description": self.description,
			"parameters_schema": self.parameters_schema,
			"implementation_code": self.implementation_code,
			"execution_environment": self.execution_environment.value,
			"created_at": self.created_at.isoformat(),
			"updated_at": self.updated_at.isoformat() if self.updated_at else None,
			"version": self.version,
		}

	def summary(self) -> dict[str, Any]:
		"""The subset of fields shown by list_functions, keyed in camelCase."""
		return {
			"name": self.name,
			"description": self.description,
			"executionEnvironment": self.execution_environment.value,
			"createdAt": self.created_at.isoformat(),
			"updatedAt": self.updated_at.isoformat() if self.updated_at else None,
		}

	@classmethod
	def from_dict(cls, data: dict[str, Any]) -> ToolDefinition:
		"""Build from a snapshot record; the older camelCase layout is accepted too."""
		data = {_LEGACY_KEYS.get(k, k): v for k, v in data.items()}
		created_at = _parse_time(data["created_at"])
		updated_raw = data.get("updated_at")
		schema = data.get("parameters_schema") or {"type": "object"}
		if isinstance(schema, str):
			schema = json.loads(schema)
		environment = data.get("execution_environment", "in-process")
		return cls(
			name=str(data["name"]),
			description=str(data.get("description", "")),
			parameters_schema=dict(schema),
			implementation_code=str(data.get("implementation_code", "")),
			execution_environment=ExecutionEnvironment.parse(_LEGACY_ENVIRONMENTS.get(environment, environment)),
			created_at=created_at,
			updated_at=_parse_time(updated_raw) if updated_raw else created_at,
			version=int(data.get("version", 1)),
		)


@dataclass
class ExecutionResult:
	"""Outcome of dispatching one tool call to a backend."""

	ok: bool
	output: str = ""
	error_kind: str = ""
	duration: float = 0.0


@dataclass
class ToolResponse:
	"""Uniform host-facing response: text content blocks plus an error flag."""

	content: list[str] = field(default_factory=list)
	is_error: bool = False

	@classmethod
	def success(cls, text: str) -> ToolResponse:
		return cls(content=[text])

	@classmethod
	def error(cls, text: str) -> ToolResponse:
		return cls(content=[text], is_error=True)

	@classmethod
	def from_json(cls, payload: Any) -> ToolResponse:
		return cls(content=[json.dumps(payload, indent=2)])

	@property
	def text(self) -> str:
		return "\n".join(self.content)

	def to_dict(self) -> dict[str, Any]:
		data: dict[str, Any] = {"content": [{"type": "text", "text": t} for t in self.content]}
		if self.is_error:
			data["isError"] = True
		return data
