"""Invocation metrics and logging setup for meta-mcp."""

from __future__ import annotations

import json
import logging
import sys
import time
from dataclasses import dataclass, field


@dataclass
class ToolStats:
	"""Counters for a single tool."""

	name: str = ""
	calls: int = 0
	failures: int = 0
	timeouts: int = 0
	total_duration_s: float = 0.0

	@property
	def avg_duration_s(self) -> float:
		if self.calls == 0:
			return 0.0
		return self.total_duration_s / self.calls

	@property
	def failure_rate(self) -> float:
		if self.calls == 0:
			return 0.0
		return self.failures / self.calls

	def to_dict(self) -> dict[str, object]:
		return {
			"name": self.name,
			"calls": self.calls,
			"failures": self.failures,
			"timeouts": self.timeouts,
			"avg_duration_s": round(self.avg_duration_s, 4),
			"failure_rate": round(self.failure_rate, 3),
		}


@dataclass
class InvocationStats:
	"""Aggregate invocation counters keyed by tool name."""

	tools: dict[str, ToolStats] = field(default_factory=dict)

	def record(self, name: str, duration_s: float, ok: bool, timed_out: bool = False) -> ToolStats:
		stats = self.tools.setdefault(name, ToolStats(name=name))
		stats.calls += 1
		stats.total_duration_s += duration_s
		if not ok:
			stats.failures += 1
		if timed_out:
			stats.timeouts += 1
		return stats

	def get(self, name: str) -> ToolStats | None:
		return self.tools.get(name)

	def forget(self, name: str) -> None:
		self.tools.pop(name, None)

	def to_dict(self) -> dict[str, object]:
		return {name: s.to_dict() for name, s in sorted(self.tools.items())}

	def to_json(self) -> str:
		return json.dumps(self.to_dict(), indent=2)


class Timer:
	"""Wall-clock stopwatch usable as a context manager."""

	def __init__(self) -> None:
		self._start: float = 0.0
		self.elapsed: float = 0.0

	def __enter__(self) -> "Timer":
		self._start = time.monotonic()
		return self

	def __exit__(self, *args: object) -> None:
		self.elapsed = time.monotonic() - self._start


def setup_logging(level: str = "INFO", json_format: bool = False) -> None:
	"""Configure the ``meta_mcp`` logger.

	Logs always go to stderr: stdout carries the MCP stdio transport.

	Args:
		level: Log level (DEBUG, INFO, WARNING, ERROR).
		json_format: If True, emit structured JSON log lines.
	"""
	root = logging.getLogger("meta_mcp")
	root.setLevel(getattr(logging, level.upper(), logging.INFO))

	if root.handlers:
		return

	handler = logging.StreamHandler(sys.stderr)

	if json_format:
		handler.setFormatter(_JsonFormatter())
	else:
		handler.setFormatter(logging.Formatter(
			"%(asctime)s [%(levelname)s] %(name)s: %(message)s",
			datefmt="%Y-%m-%d %H:%M:%S",
		))

	root.addHandler(handler)
	root.propagate = False


class _JsonFormatter(logging.Formatter):
	"""One JSON object per record, for log shippers."""

	def format(self, record: logging.LogRecord) -> str:
		payload: dict[str, object] = {
			"time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
			"level": record.levelname,
			"logger": record.name,
			"message": record.getMessage(),
		}
		if record.exc_info:
			payload["exc"] = self.formatException(record.exc_info)
		return json.dumps(payload)
