"""Tests for the tool definition store."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from meta_mcp.models import ToolDefinition
from meta_mcp.store import ToolStore


def _definition(name: str, **kwargs: object) -> ToolDefinition:
	return ToolDefinition(name=name, description=f"{name} tool", implementation_code="return 1", **kwargs)


class TestToolStore:
	@pytest.mark.asyncio
	async def test_upsert_writes_snapshot(self, tmp_path: Path) -> None:
		path = tmp_path / "tools.json"
		store = ToolStore(path)
		await store.upsert(_definition("b"))
		await store.upsert(_definition("a"))

		data = json.loads(path.read_text())
		assert list(data) == ["a", "b"]
		assert data["a"]["implementation_code"] == "return 1"
		assert store.names() == ["a", "b"]
		assert [d.name for d in store.list()] == ["a", "b"]

	@pytest.mark.asyncio
	async def test_reload_is_idempotent(self, tmp_path: Path) -> None:
		path = tmp_path / "tools.json"
		store = ToolStore(path)
		originals = [_definition(n) for n in ("x", "y", "z")]
		for d in originals:
			await store.upsert(d)

		fresh = ToolStore(path)
		assert fresh.load() == originals
		assert fresh.load() == originals
		assert len(fresh) == 3

	@pytest.mark.asyncio
	async def test_remove(self, tmp_path: Path) -> None:
		path = tmp_path / "tools.json"
		store = ToolStore(path)
		await store.upsert(_definition("gone"))
		removed = await store.remove("gone")
		assert removed is not None and removed.name == "gone"
		assert "gone" not in store
		assert json.loads(path.read_text()) == {}
		assert await store.remove("gone") is None

	@pytest.mark.asyncio
	async def test_atomic_write_leaves_no_temp_files(self, tmp_path: Path) -> None:
		store = ToolStore(tmp_path / "tools.json")
		for i in range(5):
			await store.upsert(_definition(f"t{i}"))
		assert [p.name for p in tmp_path.iterdir()] == ["tools.json"]

	@pytest.mark.asyncio
	async def test_creates_parent_directory(self, tmp_path: Path) -> None:
		path = tmp_path / "nested" / "dir" / "tools.json"
		store = ToolStore(path)
		await store.upsert(_definition("a"))
		assert path.exists()

	@pytest.mark.asyncio
	async def test_not_persistent(self, tmp_path: Path) -> None:
		path = tmp_path / "tools.json"
		store = ToolStore(path, persist=False)
		await store.upsert(_definition("a"))
		assert await store.save() is True
		assert not path.exists()
		assert store.get("a") is not None

	@pytest.mark.asyncio
	async def test_save_failure_is_logged(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
		blocker = tmp_path / "file"
		blocker.write_text("")
		store = ToolStore(blocker / "tools.json")
		with caplog.at_level(logging.ERROR, logger="meta_mcp.store"):
			await store.upsert(_definition("a"))
			assert await store.save() is False
		assert "Error saving tools snapshot" in caplog.text
		assert store.get("a") is not None


class TestLoad:
	def test_missing_file_is_empty(self, tmp_path: Path) -> None:
		store = ToolStore(tmp_path / "absent.json")
		assert store.load() == []

	def test_corrupt_file_is_empty(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
		path = tmp_path / "tools.json"
		path.write_text("{ not json")
		with caplog.at_level(logging.ERROR, logger="meta_mcp.store"):
			assert ToolStore(path).load() == []
		assert "Error loading tools snapshot" in caplog.text

	def test_non_object_file_is_empty(self, tmp_path: Path) -> None:
		path = tmp_path / "tools.json"
		path.write_text("[1, 2]")
		assert ToolStore(path).load() == []

	def test_malformed_entry_skipped(self, tmp_path: Path) -> None:
		good = _definition("good")
		path = tmp_path / "tools.json"
		path.write_text(json.dumps({
			"good": good.to_dict(),
			"bad": {"name": "bad"},
			"worse": {"name": "worse", "created_at": "2024-01-01T00:00:00+00:00", "execution_environment": "cobol"},
		}))
		store = ToolStore(path)
		assert store.load() == [good]
		assert "bad" not in store

	def test_camel_case_records_load(self, tmp_path: Path) -> None:
		path = tmp_path / "tools.json"
		path.write_text(json.dumps({
			"double": {
				"name": "double",
				"description": "doubles a number",
				"inputSchema": {"n": "number"},
				"implementation": "return params.n * 2",
				"executionEnvironment": "javascript",
				"createdAt": "2024-05-01T10:00:00.000Z",
				"updatedAt": "2024-05-02T10:00:00.000Z",
			},
			"greet": {
				"name": "greet",
				"inputSchema": '{"who": "string"}',
				"implementation": "echo hello",
				"executionEnvironment": "shell",
				"createdAt": "2024-05-01T10:00:00.000Z",
			},
		}))
		store = ToolStore(path)
		assert len(store.load()) == 2
		double = store.get("double")
		assert double.parameters_schema == {"n": "number"}
		assert double.implementation_code == "return params.n * 2"
		assert double.execution_environment.value == "in-process"
		assert double.updated_at > double.created_at
		greet = store.get("greet")
		assert greet.parameters_schema == {"who": "string"}
		assert greet.execution_environment.value == "subprocess-shell"
		assert greet.updated_at == greet.created_at

	def test_load_replaces_previous_contents(self, tmp_path: Path) -> None:
		path = tmp_path / "tools.json"
		path.write_text("{}")
		store = ToolStore(path)
		store._tools["stale"] = _definition("stale")
		store.load()
		assert len(store) == 0
