"""Tool definition store: in-memory map backed by a JSON snapshot file."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path

from meta_mcp.models import ToolDefinition

logger = logging.getLogger(__name__)


class ToolStore:
	"""Single source of truth for which tools exist.

	Every mutation rewrites the whole snapshot (``name -> definition``). Writes
	are best-effort: a failed write is logged and the in-memory change is kept,
	so memory and disk may diverge until the next successful write or restart.
	"""

	def __init__(self, snapshot_path: str | Path | None = None, persist: bool = True) -> None:
		self._path = Path(snapshot_path) if snapshot_path is not None else None
		self._persist = persist and self._path is not None
		self._tools: dict[str, ToolDefinition] = {}
		self._write_lock = asyncio.Lock()

	@property
	def path(self) -> Path | None:
		return self._path

	@property
	def persistent(self) -> bool:
		return self._persist

	def __contains__(self, name: object) -> bool:
		return name in self._tools

	def __len__(self) -> int:
		return len(self._tools)

	def load(self) -> list[ToolDefinition]:
		"""Hydrate from the snapshot. Returns the loaded definitions.

		A missing snapshot means an empty registry. Any other read or decode
		failure is logged and the registry starts empty.
		"""
		self._tools.clear()
		if not self._persist or self._path is None:
			return []
		try:
			data = json.loads(self._path.read_text(encoding="utf-8"))
		except FileNotFoundError:
			return []
		except (OSError, ValueError) as exc:
			logger.error("Error loading tools snapshot %s: %s", self._path, exc)
			return []

		if not isinstance(data, dict):
			logger.error("Error loading tools snapshot %s: expected an object", self._path)
			return []

		for name, raw in data.items():
			try:
				definition = ToolDefinition.from_dict(raw)
			except (KeyError, TypeError, ValueError) as exc:
				logger.warning("Skipping malformed tool %r in snapshot: %s", name, exc)
				continue
			self._tools[definition.name] = definition

		logger.info("Loaded %d custom tools from %s", len(self._tools), self._path)
		return self.list()

	def get(self, name: str) -> ToolDefinition | None:
		return self._tools.get(name)

	def list(self) -> list[ToolDefinition]:
		"""All definitions sorted by name."""
		return sorted(self._tools.values(), key=lambda d: d.name)

	def names(self) -> list[str]:
		return sorted(self._tools)

	async def upsert(self, definition: ToolDefinition) -> None:
		self._tools[definition.name] = definition
		await self.save()

	async def remove(self, name: str) -> ToolDefinition | None:
		removed = self._tools.pop(name, None)
		if removed is not None:
			await self.save()
		return removed

	async def save(self) -> bool:
		"""Write the full snapshot. Returns False (after logging) on failure."""
		if not self._persist:
			return True
		async with self._write_lock:
			payload = {name: d.to_dict() for name, d in sorted(self._tools.items())}
			try:
				await asyncio.to_thread(_write_atomic, self._path, payload)
			except (OSError, TypeError, ValueError) as exc:
				logger.error("Error saving tools snapshot %s: %s", self._path, exc)
				return False
		return True


def _write_atomic(path: Path, payload: dict) -> None:
	"""Write *payload* to a temp file beside *path*, then rename it into place."""
	path.parent.mkdir(parents=True, exist_ok=True)
	fd, tmp_name = tempfile.mkstemp(prefix=".tools-", suffix=".json", dir=path.parent)
	try:
		with os.fdopen(fd, "w", encoding="utf-8") as f:
			json.dump(payload, f, indent=2)
		os.replace(tmp_name, path)
	except BaseException:
		Path(tmp_name).unlink(missing_ok=True)
		raise
