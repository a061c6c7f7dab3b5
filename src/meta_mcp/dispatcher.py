"""Execution dispatcher: picks a backend, enforces budgets, normalizes results."""

from __future__ import annotations

import json
import logging
from typing import Any

from meta_mcp.backends import ExecutionBackend, InProcessBackend, InterpreterBackend, ShellBackend
from meta_mcp.capabilities import CapabilityGate
from meta_mcp.config import MetaConfig
from meta_mcp.errors import ExecutionFailure, ExecutionTimeout, MetaMCPError
from meta_mcp.metrics import InvocationStats, Timer
from meta_mcp.models import ExecutionEnvironment, ExecutionResult, ToolDefinition
from meta_mcp.tracing import ToolTracer

logger = logging.getLogger(__name__)


def stringify_result(value: Any) -> str:
	"""Text is returned verbatim; everything else is rendered as JSON."""
	if isinstance(value, str):
		return value
	return json.dumps(value, indent=2, default=str)


class Dispatcher:
	"""Run tool definitions on the backend matching their environment.

	Backend failures never propagate: every outcome becomes an ExecutionResult.
	"""

	def __init__(
		self,
		gate: CapabilityGate,
		backends: dict[ExecutionEnvironment, ExecutionBackend],
		timeouts: dict[ExecutionEnvironment, float],
		tracer: ToolTracer | None = None,
		stats: InvocationStats | None = None,
	) -> None:
		self._gate = gate
		self._backends = backends
		self._timeouts = timeouts
		self._tracer = tracer or ToolTracer()
		self.stats = stats or InvocationStats()

	def timeout_for(self, environment: ExecutionEnvironment) -> float:
		return self._timeouts[environment]

	async def dispatch(self, definition: ToolDefinition, params: dict[str, Any]) -> ExecutionResult:
		env = definition.execution_environment
		logger.info("Executing custom tool %s (%s)", definition.name, env.value)

		with self._tracer.start_tool_span(definition.name, env.value) as span, Timer() as timer:
			try:
				self._gate.check(env)
				backend = self._backends.get(env)
				if backend is None:
					raise ExecutionFailure(f"Unsupported execution environment: {env.value}")
				value = await backend.execute(definition, params, self.timeout_for(env))
				result = ExecutionResult(ok=True, output=stringify_result(value))
			except MetaMCPError as exc:
				logger.warning("Error executing tool %s: %s: %s", definition.name, type(exc).__name__, exc)
				span.record_exception(exc)
				result = ExecutionResult(
					ok=False,
					output=f"Error executing tool: {exc}",
					error_kind=type(exc).__name__,
				)
			except Exception as exc:
				logger.exception("Unexpected error executing tool %s", definition.name)
				span.record_exception(exc)
				result = ExecutionResult(
					ok=False,
					output=f"Error executing tool: {type(exc).__name__}: {exc}",
					error_kind=ExecutionFailure.__name__,
				)
			span.set_attribute("tool.ok", result.ok)

		result.duration = timer.elapsed
		self.stats.record(
			definition.name,
			timer.elapsed,
			ok=result.ok,
			timed_out=result.error_kind == ExecutionTimeout.__name__,
		)
		return result


def build_dispatcher(
	config: MetaConfig,
	gate: CapabilityGate,
	tracer: ToolTracer | None = None,
) -> Dispatcher:
	"""Create a Dispatcher with the three standard backends from *config*."""
	backends: dict[ExecutionEnvironment, ExecutionBackend] = {
		ExecutionEnvironment.IN_PROCESS: InProcessBackend(config.security),
		ExecutionEnvironment.SUBPROCESS_INTERPRETER: InterpreterBackend(config.interpreter, config.security),
		ExecutionEnvironment.SUBPROCESS_SHELL: ShellBackend(config.security),
	}
	timeouts = {
		ExecutionEnvironment.IN_PROCESS: config.sandbox.timeout,
		ExecutionEnvironment.SUBPROCESS_INTERPRETER: config.interpreter.timeout,
		ExecutionEnvironment.SUBPROCESS_SHELL: config.shell.timeout,
	}
	return Dispatcher(gate, backends, timeouts, tracer=tracer)
