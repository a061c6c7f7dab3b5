"""Shared pytest fixtures and factory functions for meta-mcp tests."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import pytest

from meta_mcp.config import MetaConfig
from meta_mcp.runtime import Runtime, build_runtime

_ENV_KEYS = (
	"ALLOW_IN_PROCESS_EXECUTION",
	"ALLOW_PYTHON_EXECUTION",
	"ALLOW_SHELL_EXECUTION",
	"PERSIST_TOOLS",
	"TOOLS_DB_PATH",
	"META_MCP_LOG_LEVEL",
	"META_MCP_CONFIG",
)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
	for key in _ENV_KEYS:
		monkeypatch.delenv(key, raising=False)


@pytest.fixture(autouse=True)
def _reset_logging() -> Any:
	"""Undo setup_logging so caplog keeps seeing meta_mcp records."""
	yield
	root = logging.getLogger("meta_mcp")
	root.handlers.clear()
	root.propagate = True
	root.setLevel(logging.NOTSET)


@pytest.fixture()
def config(tmp_path: Path) -> MetaConfig:
	"""MetaConfig persisting into tmp_path with short budgets."""
	cfg = MetaConfig()
	cfg.persistence.snapshot_path = str(tmp_path / "tools.json")
	cfg.sandbox.timeout = 2.0
	cfg.interpreter.timeout = 15.0
	cfg.shell.timeout = 15.0
	return cfg


@pytest.fixture()
def runtime(config: MetaConfig) -> Runtime:
	return build_runtime(config)

