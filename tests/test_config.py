"""Tests for config loading."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from meta_mcp.config import (
	_ENV_DENYLIST,
	MetaConfig,
	SecurityConfig,
	load_config,
	subprocess_env,
	validate_config,
)


@pytest.fixture()
def full_config(tmp_path: Path) -> Path:
	toml = tmp_path / "meta-mcp.toml"
	toml.write_text(f"""\
[capabilities]
allow_in_process = true
allow_interpreter = true
allow_shell = false

[persistence]
enabled = true
snapshot_path = "{tmp_path / 'store' / 'tools.json'}"

[schema]
strict = true
validate_inputs = false

[sandbox]
timeout = 2.5

[interpreter]
command = "{sys.executable}"
timeout = 12
temp_dir = "{tmp_path}"

[shell]
timeout = 7

[security]
extra_env_keys = ["MY_TOOL_HOME"]

[logging]
level = "debug"
json = true

[tracing]
enabled = true
exporter = "none"
""")
	return toml


class TestLoadConfig:
	def test_defaults_without_file(self) -> None:
		config = load_config()
		assert config.capabilities.allow_in_process is True
		assert config.capabilities.allow_interpreter is False
		assert config.capabilities.allow_shell is False
		assert config.persistence.enabled is True
		assert config.schema.strict is False
		assert config.sandbox.timeout == 5.0

	def test_full_file(self, full_config: Path, tmp_path: Path) -> None:
		config = load_config(full_config)
		assert config.capabilities.allow_interpreter is True
		assert config.persistence.resolved_path == tmp_path / "store" / "tools.json"
		assert config.schema.strict is True
		assert config.schema.validate_inputs is False
		assert config.sandbox.timeout == 2.5
		assert config.interpreter.timeout == 12.0
		assert config.interpreter.resolved_command == sys.executable
		assert config.shell.timeout == 7.0
		assert config.security.extra_env_keys == ["MY_TOOL_HOME"]
		assert config.logging.level == "DEBUG"
		assert config.logging.json is True
		assert config.tracing.exporter == "none"

	def test_partial_file_keeps_defaults(self, tmp_path: Path) -> None:
		toml = tmp_path / "meta-mcp.toml"
		toml.write_text("[shell]\ntimeout = 3\n")
		config = load_config(toml)
		assert config.shell.timeout == 3.0
		assert config.sandbox.timeout == 5.0
		assert config.capabilities.allow_in_process is True

	def test_missing_file_raises(self, tmp_path: Path) -> None:
		with pytest.raises(FileNotFoundError):
			load_config(tmp_path / "nope.toml")

	def test_config_path_from_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
		toml = tmp_path / "env.toml"
		toml.write_text("[sandbox]\ntimeout = 9\n")
		monkeypatch.setenv("META_MCP_CONFIG", str(toml))
		assert load_config().sandbox.timeout == 9.0

	def test_interpreter_command_defaults_to_current_python(self) -> None:
		assert MetaConfig().interpreter.resolved_command == sys.executable


class TestEnvOverrides:
	def test_capability_flags(self, monkeypatch: pytest.MonkeyPatch) -> None:
		monkeypatch.setenv("ALLOW_IN_PROCESS_EXECUTION", "false")
		monkeypatch.setenv("ALLOW_PYTHON_EXECUTION", "1")
		monkeypatch.setenv("ALLOW_SHELL_EXECUTION", "yes")
		config = load_config()
		assert config.capabilities.allow_in_process is False
		assert config.capabilities.allow_interpreter is True
		assert config.capabilities.allow_shell is True

	def test_env_wins_over_file(self, full_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
		monkeypatch.setenv("ALLOW_PYTHON_EXECUTION", "off")
		monkeypatch.setenv("PERSIST_TOOLS", "0")
		monkeypatch.setenv("TOOLS_DB_PATH", "/tmp/other.json")
		config = load_config(full_config)
		assert config.capabilities.allow_interpreter is False
		assert config.persistence.enabled is False
		assert config.persistence.snapshot_path == "/tmp/other.json"

	def test_unrecognized_boolean_keeps_value(self, monkeypatch: pytest.MonkeyPatch) -> None:
		monkeypatch.setenv("ALLOW_IN_PROCESS_EXECUTION", "maybe")
		assert load_config().capabilities.allow_in_process is True

	def test_log_level(self, monkeypatch: pytest.MonkeyPatch) -> None:
		monkeypatch.setenv("META_MCP_LOG_LEVEL", "warning")
		assert load_config().logging.level == "WARNING"


class TestSubprocessEnv:
	def test_denylisted_keys_stripped(self, monkeypatch: pytest.MonkeyPatch) -> None:
		monkeypatch.setenv("OPENAI_API_KEY", "sk-secret")
		monkeypatch.setenv("PATH", "/usr/bin")
		env = subprocess_env()
		assert "OPENAI_API_KEY" not in env
		assert env["PATH"] == "/usr/bin"

	def test_unlisted_keys_dropped(self, monkeypatch: pytest.MonkeyPatch) -> None:
		monkeypatch.setenv("MY_TOOL_HOME", "/opt/tool")
		assert "MY_TOOL_HOME" not in subprocess_env()

	def test_extra_keys_pass_through(self, monkeypatch: pytest.MonkeyPatch) -> None:
		monkeypatch.setenv("MY_TOOL_HOME", "/opt/tool")
		env = subprocess_env(SecurityConfig(extra_env_keys=["MY_TOOL_HOME"]))
		assert env["MY_TOOL_HOME"] == "/opt/tool"

	def test_extra_keys_cannot_unlock_denylist(self, monkeypatch: pytest.MonkeyPatch) -> None:
		monkeypatch.setenv("GITHUB_TOKEN", "ghp_x")
		env = subprocess_env(SecurityConfig(extra_env_keys=["GITHUB_TOKEN"]))
		assert "GITHUB_TOKEN" not in env
		assert "GITHUB_TOKEN" in _ENV_DENYLIST


class TestValidateConfig:
	def test_defaults_are_clean(self, tmp_path: Path) -> None:
		config = MetaConfig()
		config.persistence.snapshot_path = str(tmp_path / "tools.json")
		assert validate_config(config) == []

	def test_non_positive_timeout(self) -> None:
		config = MetaConfig()
		config.sandbox.timeout = 0
		issues = validate_config(config)
		assert ("error", "sandbox.timeout must be positive: 0") in issues

	def test_missing_interpreter(self) -> None:
		config = MetaConfig()
		config.capabilities.allow_interpreter = True
		config.interpreter.command = "/definitely/not/python"
		issues = validate_config(config)
		assert any(lvl == "error" and "interpreter not found" in msg for lvl, msg in issues)

	def test_missing_temp_dir(self, tmp_path: Path) -> None:
		config = MetaConfig()
		config.interpreter.temp_dir = str(tmp_path / "missing")
		issues = validate_config(config)
		assert any("temp_dir does not exist" in msg for _, msg in issues)

	def test_shell_enabled_warns(self) -> None:
		config = MetaConfig()
		config.capabilities.allow_shell = True
		issues = validate_config(config)
		assert any(lvl == "warning" and "shell" in msg for lvl, msg in issues)

	def test_everything_disabled_warns(self) -> None:
		config = MetaConfig()
		config.capabilities.allow_in_process = False
		issues = validate_config(config)
		assert ("warning", "all execution environments are disabled") in issues
