"""Capability gate: which execution environments are permitted."""

from __future__ import annotations

import logging

from meta_mcp.config import CapabilitiesConfig
from meta_mcp.errors import CapabilityDenied
from meta_mcp.models import ExecutionEnvironment

logger = logging.getLogger(__name__)

_LABELS = {
	ExecutionEnvironment.IN_PROCESS: "In-process execution",
	ExecutionEnvironment.SUBPROCESS_INTERPRETER: "Python subprocess execution",
	ExecutionEnvironment.SUBPROCESS_SHELL: "Shell execution",
}


class CapabilityGate:
	"""Consulted on every admission and every invocation.

	Flags are read from the config object on each check rather than copied at
	construction, so disabling an environment also blocks definitions that were
	stored while it was enabled.
	"""

	def __init__(self, config: CapabilitiesConfig) -> None:
		self._config = config

	def is_allowed(self, environment: ExecutionEnvironment | str) -> bool:
		env = ExecutionEnvironment.parse(environment)
		if env is ExecutionEnvironment.IN_PROCESS:
			return self._config.allow_in_process
		if env is ExecutionEnvironment.SUBPROCESS_INTERPRETER:
			return self._config.allow_interpreter
		return self._config.allow_shell

	def check(self, environment: ExecutionEnvironment | str) -> None:
		"""Raise CapabilityDenied if *environment* is disabled."""
		env = ExecutionEnvironment.parse(environment)
		if not self.is_allowed(env):
			logger.warning("Denied %s: capability disabled", env.value)
			raise CapabilityDenied(f"{_LABELS[env]} is not allowed in this environment.")

	def allowed_environments(self) -> list[ExecutionEnvironment]:
		return [env for env in ExecutionEnvironment if self.is_allowed(env)]
