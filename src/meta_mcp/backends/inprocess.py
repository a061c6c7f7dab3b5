"""In-process sandbox backend -- runs Python tool code with restricted globals.

The code is the body of ``async def __tool_main__(params)``: it may ``await``
and must ``return`` its result. Only ``params``, ``log``, ``sleep``, a reduced
set of builtins and a few pure helper modules are visible. ``print`` and
``log`` go to the host logger (stderr); stdout belongs to the MCP transport.

Source is screened here before anything runs: dunder names, private or
frame-walking attributes, attribute-walking format strings and imports
outside the allowlist are rejected. Execution happens in a short-lived child
interpreter (``sandbox_runner.py``) so the wall-clock budget holds even for
long calls into C code: on expiry the child is killed.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, ClassVar

from meta_mcp.backends import sandbox_runner
from meta_mcp.backends.base import ExecutionBackend, kill_process
from meta_mcp.config import SecurityConfig, subprocess_env
from meta_mcp.errors import ExecutionFailure, ExecutionTimeout, SerializationFailure
from meta_mcp.models import ExecutionEnvironment, ToolDefinition

logger = logging.getLogger(__name__)

RUNNER_PATH = Path(sandbox_runner.__file__)

_MAX_STDERR = 2000


def _sandbox_filename(name: str) -> str:
	return f"<tool:{name}>"


def _forward_output(tool_name: str, stderr: bytes) -> None:
	tool_logger = logging.getLogger(f"meta_mcp.sandbox.{tool_name}")
	for line in stderr.decode("utf-8", errors="replace").splitlines():
		if line.strip():
			tool_logger.info(line)


class InProcessBackend(ExecutionBackend):
	"""Execute tool code in a restricted namespace inside a killable child."""

	environment: ClassVar[ExecutionEnvironment] = ExecutionEnvironment.IN_PROCESS

	def __init__(self, security: SecurityConfig | None = None) -> None:
		self._security = security

	def check(self, definition: ToolDefinition) -> None:
		"""Parse and screen *definition*'s code without running it."""
		try:
			sandbox_runner.parse_source(definition.implementation_code, _sandbox_filename(definition.name))
		except SyntaxError as exc:
			raise ExecutionFailure(f"SyntaxError: {exc.msg} (line {(exc.lineno or 1) - 1})") from exc
		except sandbox_runner.SandboxRejected as exc:
			raise ExecutionFailure(f"Sandbox rejected code: {exc}") from exc

	async def execute(
		self, definition: ToolDefinition, params: dict[str, Any], timeout: float
	) -> Any:
		self.check(definition)
		try:
			request = json.dumps({
				"name": definition.name,
				"code": definition.implementation_code,
				"params": params,
			}, default=str)
		except (TypeError, ValueError) as exc:
			raise ExecutionFailure(f"Parameters are not JSON-serializable: {exc}") from exc

		try:
			proc = await asyncio.create_subprocess_exec(
				sys.executable, "-I", str(RUNNER_PATH),
				stdin=asyncio.subprocess.PIPE,
				stdout=asyncio.subprocess.PIPE,
				stderr=asyncio.subprocess.PIPE,
				env=subprocess_env(self._security),
			)
		except OSError as exc:
			raise ExecutionFailure(f"Failed to start sandbox: {exc}") from exc

		try:
			stdout, stderr = await asyncio.wait_for(proc.communicate(request.encode("utf-8")), timeout=timeout)
		except asyncio.TimeoutError:
			logger.error("Sandbox for %s timed out after %gs, killing pid %s", definition.name, timeout, proc.pid)
			await kill_process(proc)
			raise ExecutionTimeout(f"Execution timed out after {timeout:g}s") from None
		except asyncio.CancelledError:
			await kill_process(proc)
			raise

		_forward_output(definition.name, stderr)
		if proc.returncode != 0:
			err_text = stderr.decode("utf-8", errors="replace").strip()
			raise ExecutionFailure(f"Sandbox exited with code {proc.returncode}: {err_text[-_MAX_STDERR:]}")
		try:
			reply = json.loads(stdout)
		except (json.JSONDecodeError, ValueError) as exc:
			raise SerializationFailure(f"Sandbox reply is not JSON: {exc}") from exc
		if not reply.get("ok"):
			raise ExecutionFailure(reply.get("error", "Sandbox reported an unknown error"))
		return reply.get("value")
