"""Abstract base class for tool execution backends."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any, ClassVar

from meta_mcp.models import ExecutionEnvironment, ToolDefinition


class ExecutionBackend(ABC):
	"""Abstract base for tool execution backends."""

	environment: ClassVar[ExecutionEnvironment]

	@abstractmethod
	async def execute(
		self, definition: ToolDefinition, params: dict[str, Any], timeout: float
	) -> Any:
		"""Run *definition*'s code with *params*. Returns the tool's value.

		Raises a MetaMCPError subclass on failure; ExecutionTimeout when the
		*timeout* budget (seconds) is exceeded.
		"""


async def kill_process(proc: asyncio.subprocess.Process) -> None:
	"""Kill a subprocess and reap it, tolerating one that already exited."""
	try:
		proc.kill()
		await proc.wait()
	except ProcessLookupError:
		pass
