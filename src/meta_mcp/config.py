"""TOML configuration loader for meta-mcp."""

from __future__ import annotations

import os
import shutil
import sys
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

DEFAULT_CONFIG = "meta-mcp.toml"
DEFAULT_SNAPSHOT = "./tools.json"


@dataclass
class CapabilitiesConfig:
	"""Which execution environments may be admitted and invoked."""

	allow_in_process: bool = True
	allow_interpreter: bool = False
	allow_shell: bool = False


@dataclass
class PersistenceConfig:
	"""Durable snapshot settings."""

	enabled: bool = True
	snapshot_path: str = DEFAULT_SNAPSHOT

	@property
	def resolved_path(self) -> Path:
		return Path(os.path.expanduser(self.snapshot_path))


@dataclass
class SchemaConfig:
	"""Parameter schema handling."""

	strict: bool = False  # reject unparseable schemas instead of accepting anything
	validate_inputs: bool = True


@dataclass
class SandboxConfig:
	"""In-process sandbox settings."""

	timeout: float = 5.0


@dataclass
class InterpreterConfig:
	"""Subprocess interpreter settings."""

	command: str = ""  # empty means sys.executable
	timeout: float = 30.0
	temp_dir: str = ""

	@property
	def resolved_command(self) -> str:
		return self.command or sys.executable


@dataclass
class ShellConfig:
	"""Subprocess shell settings."""

	timeout: float = 30.0


@dataclass
class SecurityConfig:
	"""Environment passed to subprocess backends."""

	extra_env_keys: list[str] = field(default_factory=list)


@dataclass
class LoggingConfig:
	level: str = "INFO"
	json: bool = False


@dataclass
class TracingConfig:
	"""OpenTelemetry tracing settings."""

	enabled: bool = False
	service_name: str = "meta-mcp"
	exporter: str = "console"  # console | otlp | none
	otlp_endpoint: str = "http://localhost:4317"


@dataclass
class MetaConfig:
	"""Top-level meta-mcp configuration."""

	capabilities: CapabilitiesConfig = field(default_factory=CapabilitiesConfig)
	persistence: PersistenceConfig = field(default_factory=PersistenceConfig)
	schema: SchemaConfig = field(default_factory=SchemaConfig)
	sandbox: SandboxConfig = field(default_factory=SandboxConfig)
	interpreter: InterpreterConfig = field(default_factory=InterpreterConfig)
	shell: ShellConfig = field(default_factory=ShellConfig)
	security: SecurityConfig = field(default_factory=SecurityConfig)
	logging: LoggingConfig = field(default_factory=LoggingConfig)
	tracing: TracingConfig = field(default_factory=TracingConfig)


def _build_capabilities(data: dict[str, Any]) -> CapabilitiesConfig:
	cc = CapabilitiesConfig()
	for key in ("allow_in_process", "allow_interpreter", "allow_shell"):
		if key in data:
			setattr(cc, key, bool(data[key]))
	return cc


def _build_persistence(data: dict[str, Any]) -> PersistenceConfig:
	pc = PersistenceConfig()
	if "enabled" in data:
		pc.enabled = bool(data["enabled"])
	if "snapshot_path" in data:
		pc.snapshot_path = str(data["snapshot_path"])
	return pc


def _build_schema(data: dict[str, Any]) -> SchemaConfig:
	sc = SchemaConfig()
	if "strict" in data:
		sc.strict = bool(data["strict"])
	if "validate_inputs" in data:
		sc.validate_inputs = bool(data["validate_inputs"])
	return sc


def _build_sandbox(data: dict[str, Any]) -> SandboxConfig:
	sc = SandboxConfig()
	if "timeout" in data:
		sc.timeout = float(data["timeout"])
	return sc


def _build_interpreter(data: dict[str, Any]) -> InterpreterConfig:
	ic = InterpreterConfig()
	if "command" in data:
		ic.command = str(data["command"])
	if "timeout" in data:
		ic.timeout = float(data["timeout"])
	if "temp_dir" in data:
		ic.temp_dir = str(data["temp_dir"])
	return ic


def _build_shell(data: dict[str, Any]) -> ShellConfig:
	sc = ShellConfig()
	if "timeout" in data:
		sc.timeout = float(data["timeout"])
	return sc


def _build_security(data: dict[str, Any]) -> SecurityConfig:
	sc = SecurityConfig()
	if "extra_env_keys" in data:
		sc.extra_env_keys = [str(k) for k in data["extra_env_keys"]]
	return sc


def _build_logging(data: dict[str, Any]) -> LoggingConfig:
	lc = LoggingConfig()
	if "level" in data:
		lc.level = str(data["level"]).upper()
	if "json" in data:
		lc.json = bool(data["json"])
	return lc


def _build_tracing(data: dict[str, Any]) -> TracingConfig:
	tc = TracingConfig()
	if "enabled" in data:
		tc.enabled = bool(data["enabled"])
	if "service_name" in data:
		tc.service_name = str(data["service_name"])
	if "exporter" in data:
		tc.exporter = str(data["exporter"])
	if "otlp_endpoint" in data:
		tc.otlp_endpoint = str(data["otlp_endpoint"])
	return tc


_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _env_bool(name: str, current: bool) -> bool:
	"""Read a boolean env var, keeping *current* when unset or unrecognized."""
	raw = os.environ.get(name)
	if raw is None:
		return current
	value = raw.strip().lower()
	if value in _TRUE_VALUES:
		return True
	if value in _FALSE_VALUES:
		return False
	return current


def apply_env_overrides(config: MetaConfig) -> MetaConfig:
	"""Apply environment variable overrides on top of file values."""
	caps = config.capabilities
	caps.allow_in_process = _env_bool("ALLOW_IN_PROCESS_EXECUTION", caps.allow_in_process)
	caps.allow_interpreter = _env_bool("ALLOW_PYTHON_EXECUTION", caps.allow_interpreter)
	caps.allow_shell = _env_bool("ALLOW_SHELL_EXECUTION", caps.allow_shell)
	config.persistence.enabled = _env_bool("PERSIST_TOOLS", config.persistence.enabled)
	if os.environ.get("TOOLS_DB_PATH"):
		config.persistence.snapshot_path = os.environ["TOOLS_DB_PATH"]
	if os.environ.get("META_MCP_LOG_LEVEL"):
		config.logging.level = os.environ["META_MCP_LOG_LEVEL"].upper()
	return config


def load_config(path: str | Path | None = None) -> MetaConfig:
	"""Load a meta-mcp.toml config file and apply env overrides.

	Args:
		path: Path to the TOML config file. When None, ``META_MCP_CONFIG`` is
			consulted; if that is unset too, defaults are used.

	Returns:
		Parsed MetaConfig.

	Raises:
		FileNotFoundError: If an explicitly given config file doesn't exist.
		tomllib.TOMLDecodeError: If config is invalid TOML.
	"""
	if path is None:
		path = os.environ.get("META_MCP_CONFIG") or None
	if path is None:
		return apply_env_overrides(MetaConfig())

	config_path = Path(path)
	if not config_path.exists():
		raise FileNotFoundError(f"Config file not found: {config_path}")

	with open(config_path, "rb") as f:
		data = tomllib.load(f)

	mc = MetaConfig()
	if "capabilities" in data:
		mc.capabilities = _build_capabilities(data["capabilities"])
	if "persistence" in data:
		mc.persistence = _build_persistence(data["persistence"])
	if "schema" in data:
		mc.schema = _build_schema(data["schema"])
	if "sandbox" in data:
		mc.sandbox = _build_sandbox(data["sandbox"])
	if "interpreter" in data:
		mc.interpreter = _build_interpreter(data["interpreter"])
	if "shell" in data:
		mc.shell = _build_shell(data["shell"])
	if "security" in data:
		mc.security = _build_security(data["security"])
	if "logging" in data:
		mc.logging = _build_logging(data["logging"])
	if "tracing" in data:
		mc.tracing = _build_tracing(data["tracing"])
	return apply_env_overrides(mc)


_ENV_ALLOWLIST = {
	# System essentials
	"HOME", "USER", "LOGNAME", "LANG", "LC_ALL", "LC_CTYPE",
	"TMPDIR", "TMP", "TEMP",
	# Process lookup
	"PATH", "PWD", "SYSTEMROOT",
	# Python toolchain
	"VIRTUAL_ENV", "PYTHONPATH", "PYTHONDONTWRITEBYTECODE",
	# Encoding
	"PYTHONIOENCODING", "PYTHONUTF8",
}

# Keys that must never reach tool subprocesses, even if listed in extra_env_keys
_ENV_DENYLIST = {
	"ANTHROPIC_API_KEY", "OPENAI_API_KEY",
	"AWS_SECRET_ACCESS_KEY", "AWS_SESSION_TOKEN",
	"GITHUB_TOKEN", "GH_TOKEN", "GITLAB_TOKEN",
	"NPM_TOKEN", "PYPI_TOKEN",
	"DATABASE_URL", "REDIS_URL",
}


def subprocess_env(security: SecurityConfig | None = None) -> dict[str, str]:
	"""Build a restricted environment for tool subprocesses.

	Sandbox, interpreter and shell children see only the allowlisted system
	variables plus `security.extra_env_keys`; denylisted credentials never pass.
	"""
	allowed = set(_ENV_ALLOWLIST)
	if security is not None:
		allowed |= set(security.extra_env_keys)
	return {
		k: v for k, v in os.environ.items()
		if k in allowed and k not in _ENV_DENYLIST
	}


def validate_config(config: MetaConfig) -> list[tuple[str, str]]:
	"""Perform semantic validation of a loaded MetaConfig.

	Returns a list of (level, message) tuples where level is 'error' or 'warning'.
	"""
	issues: list[tuple[str, str]] = []

	# 1. interpreter is executable when that backend is enabled
	if config.capabilities.allow_interpreter:
		command = config.interpreter.resolved_command
		if shutil.which(command) is None and not Path(command).is_file():
			issues.append(("error", f"interpreter not found: {command}"))

	# 2. timeouts are positive
	for label, value in (
		("sandbox.timeout", config.sandbox.timeout),
		("interpreter.timeout", config.interpreter.timeout),
		("shell.timeout", config.shell.timeout),
	):
		if value <= 0:
			issues.append(("error", f"{label} must be positive: {value}"))

	# 3. snapshot directory is writable
	if config.persistence.enabled:
		parent = config.persistence.resolved_path.parent
		if parent.exists() and not os.access(parent, os.W_OK):
			issues.append(("error", f"snapshot directory is not writable: {parent}"))

	# 4. temp dir exists if set
	if config.interpreter.temp_dir and not Path(os.path.expanduser(config.interpreter.temp_dir)).is_dir():
		issues.append(("error", f"interpreter.temp_dir does not exist: {config.interpreter.temp_dir}"))

	# 5. risky settings
	if config.capabilities.allow_shell:
		issues.append(("warning", "shell execution is enabled; tool code and unescaped parameter values run with server privileges"))
	if not any((
		config.capabilities.allow_in_process,
		config.capabilities.allow_interpreter,
		config.capabilities.allow_shell,
	)):
		issues.append(("warning", "all execution environments are disabled"))
	if config.tracing.exporter not in ("console", "otlp", "none"):
		issues.append(("warning", f"unknown tracing exporter: {config.tracing.exporter}"))

	return issues
