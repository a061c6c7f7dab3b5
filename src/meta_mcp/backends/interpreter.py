"""Subprocess interpreter backend -- runs tool code in a separate Python process."""

from __future__ import annotations

import asyncio
import json
import logging
import shutil
import tempfile
from pathlib import Path
from typing import Any, ClassVar

from meta_mcp.backends.base import ExecutionBackend, kill_process
from meta_mcp.config import InterpreterConfig, SecurityConfig, subprocess_env
from meta_mcp.errors import ExecutionFailure, ExecutionTimeout, SerializationFailure
from meta_mcp.models import ExecutionEnvironment, ToolDefinition

logger = logging.getLogger(__name__)

SCRIPT_NAME = "script.py"
PARAMS_NAME = "params.json"
TEMP_PREFIX = "meta-mcp-"

# argv[1] is the params file, argv[2] the script; both are passed as arguments
# so no path is ever spliced into code.
_BOOTSTRAP = (
	"import json, sys\n"
	"with open(sys.argv[1], encoding='utf-8') as f:\n"
	"    params = json.load(f)\n"
	"with open(sys.argv[2], encoding='utf-8') as f:\n"
	"    source = f.read()\n"
	"del f\n"
	"exec(compile(source, sys.argv[2], 'exec'))\n"
)

_MAX_STDERR = 2000


class InterpreterBackend(ExecutionBackend):
	"""Write code and params to a fresh temp dir, run them, parse stdout as JSON."""

	environment: ClassVar[ExecutionEnvironment] = ExecutionEnvironment.SUBPROCESS_INTERPRETER

	def __init__(
		self,
		config: InterpreterConfig | None = None,
		security: SecurityConfig | None = None,
	) -> None:
		self._config = config or InterpreterConfig()
		self._security = security

	async def execute(
		self, definition: ToolDefinition, params: dict[str, Any], timeout: float
	) -> Any:
		temp_root = self._config.temp_dir or None
		tmp_dir = Path(tempfile.mkdtemp(prefix=TEMP_PREFIX, dir=temp_root))
		try:
			script_path = tmp_dir / SCRIPT_NAME
			params_path = tmp_dir / PARAMS_NAME
			script_path.write_text(definition.implementation_code, encoding="utf-8")
			try:
				params_path.write_text(json.dumps(params), encoding="utf-8")
			except (TypeError, ValueError) as exc:
				raise ExecutionFailure(f"Parameters are not JSON-serializable: {exc}") from exc

			stdout = await self._run(
				[self._config.resolved_command, "-c", _BOOTSTRAP, str(params_path), str(script_path)],
				cwd=tmp_dir,
				timeout=timeout,
			)
		finally:
			shutil.rmtree(tmp_dir, ignore_errors=True)

		output = stdout.strip()
		try:
			return json.loads(output)
		except (json.JSONDecodeError, ValueError) as exc:
			preview = output[:200]
			raise SerializationFailure(
				f"Interpreter output is not a single JSON value ({exc}): {preview!r}"
			) from exc

	async def _run(self, command: list[str], cwd: Path, timeout: float) -> str:
		try:
			proc = await asyncio.create_subprocess_exec(
				*command,
				cwd=str(cwd),
				stdout=asyncio.subprocess.PIPE,
				stderr=asyncio.subprocess.PIPE,
				env=subprocess_env(self._security),
			)
		except OSError as exc:
			raise ExecutionFailure(f"Failed to start interpreter {command[0]!r}: {exc}") from exc

		try:
			stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
		except asyncio.TimeoutError:
			logger.error("Interpreter timed out after %gs, killing pid %s", timeout, proc.pid)
			await kill_process(proc)
			raise ExecutionTimeout(f"Execution timed out after {timeout:g}s") from None
		except asyncio.CancelledError:
			await kill_process(proc)
			raise

		err_text = stderr.decode("utf-8", errors="replace").strip()
		if err_text:
			logger.info("Interpreter stderr: %s", err_text[:_MAX_STDERR])
		if proc.returncode != 0:
			raise ExecutionFailure(
				f"Interpreter exited with code {proc.returncode}: {err_text[-_MAX_STDERR:]}"
			)
		return stdout.decode("utf-8", errors="replace")
