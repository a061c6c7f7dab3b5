"""Subprocess shell backend -- runs a command line through ``/bin/sh``.

The implementation code is joined with one ``key=value`` token per parameter
(values JSON encoded) and the resulting line is handed to the shell as is.
Pipes, redirection and ``$VAR`` expansion work in the implementation, and
they work in parameter values too: nothing is escaped. Enabling this
environment means trusting both the implementation and every caller that
can supply parameters.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import signal
from typing import Any, ClassVar

from meta_mcp.backends.base import ExecutionBackend, kill_process
from meta_mcp.config import SecurityConfig, subprocess_env
from meta_mcp.errors import ExecutionFailure, ExecutionTimeout
from meta_mcp.models import ExecutionEnvironment, ToolDefinition

logger = logging.getLogger(__name__)

_MAX_STDERR = 2000
_NOT_FOUND_CODES = (126, 127)


def format_argument(key: str, value: Any) -> str:
	"""Render one parameter as a ``key=<json>`` token."""
	return f"{key}={json.dumps(value)}"


def build_command(implementation: str, params: dict[str, Any]) -> str:
	"""Append the parameter tokens to *implementation*, unescaped."""
	if not implementation.strip():
		raise ExecutionFailure("Shell implementation is empty")
	tokens = [format_argument(k, v) for k, v in params.items()]
	return " ".join([implementation, *tokens]) if tokens else implementation


async def _kill_group(proc: asyncio.subprocess.Process) -> None:
	# The shell may have forked children that hold the pipes open.
	try:
		os.killpg(proc.pid, signal.SIGKILL)
	except (ProcessLookupError, PermissionError):
		pass
	await kill_process(proc)


class ShellBackend(ExecutionBackend):
	"""Run the implementation as a shell command and return its trimmed stdout."""

	environment: ClassVar[ExecutionEnvironment] = ExecutionEnvironment.SUBPROCESS_SHELL

	def __init__(self, security: SecurityConfig | None = None) -> None:
		self._security = security

	async def execute(
		self, definition: ToolDefinition, params: dict[str, Any], timeout: float
	) -> Any:
		command = build_command(definition.implementation_code, params)
		logger.debug("Running shell command for tool %s", definition.name)
		try:
			proc = await asyncio.create_subprocess_shell(
				command,
				stdout=asyncio.subprocess.PIPE,
				stderr=asyncio.subprocess.PIPE,
				env=subprocess_env(self._security),
				start_new_session=True,
			)
		except OSError as exc:
			raise ExecutionFailure(f"Failed to start shell: {exc}") from exc

		try:
			stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
		except asyncio.TimeoutError:
			logger.error("Tool %s timed out after %gs, killing pid %s", definition.name, timeout, proc.pid)
			await _kill_group(proc)
			raise ExecutionTimeout(f"Execution timed out after {timeout:g}s") from None
		except asyncio.CancelledError:
			await _kill_group(proc)
			raise

		err_text = stderr.decode("utf-8", errors="replace").strip()
		if proc.returncode in _NOT_FOUND_CODES:
			raise ExecutionFailure(f"Command not found or not executable: {err_text[-_MAX_STDERR:]}")
		if proc.returncode != 0:
			raise ExecutionFailure(
				f"Command failed with exit code {proc.returncode}: {err_text[-_MAX_STDERR:]}"
			)
		return stdout.decode("utf-8", errors="replace").strip()
