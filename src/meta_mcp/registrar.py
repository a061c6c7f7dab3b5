"""Tool registrar: exposes stored definitions to the MCP host."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from mcp.types import Tool

from meta_mcp.dispatcher import Dispatcher
from meta_mcp.errors import InvalidParameters
from meta_mcp.models import ToolDefinition, ToolResponse
from meta_mcp.schema import ParameterSchema, normalize_schema
from meta_mcp.store import ToolStore

logger = logging.getLogger(__name__)


@dataclass
class RegisteredTool:
	"""A definition as currently advertised to the host."""

	tool: Tool
	schema: ParameterSchema


class ToolRegistrar:
	"""Bridge between the store and the host.

	Holds no definitions of its own: invocations look the definition up in the
	store by name. Registering a name that is already registered replaces the
	previous entry.
	"""

	def __init__(self, store: ToolStore, dispatcher: Dispatcher, validate_inputs: bool = True) -> None:
		self._store = store
		self._dispatcher = dispatcher
		self._validate_inputs = validate_inputs
		self._registered: dict[str, RegisteredTool] = {}

	@property
	def dispatcher(self) -> Dispatcher:
		return self._dispatcher

	def register(self, definition: ToolDefinition, schema: ParameterSchema | None = None) -> RegisteredTool:
		if schema is None:
			schema = normalize_schema(definition.parameters_schema, name=definition.name)
		entry = RegisteredTool(
			tool=Tool(
				name=definition.name,
				description=definition.description,
				inputSchema=schema.json_schema,
			),
			schema=schema,
		)
		replaced = definition.name in self._registered
		self._registered[definition.name] = entry
		logger.info("%s custom tool: %s", "Re-registered" if replaced else "Registered", definition.name)
		return entry

	def unregister(self, name: str) -> bool:
		removed = self._registered.pop(name, None) is not None
		if removed:
			self._dispatcher.stats.forget(name)
			logger.info("Unregistered custom tool: %s", name)
		return removed

	def is_registered(self, name: str) -> bool:
		return name in self._registered

	def get(self, name: str) -> RegisteredTool | None:
		return self._registered.get(name)

	def list_tools(self) -> list[Tool]:
		return [self._registered[name].tool for name in sorted(self._registered)]

	def register_all(self) -> int:
		"""Register every definition currently in the store. Returns the count."""
		count = 0
		for definition in self._store.list():
			try:
				self.register(definition)
			except Exception:
				logger.exception("Failed to register tool %s", definition.name)
				continue
			count += 1
		return count

	async def invoke(self, name: str, params: dict[str, Any] | None) -> ToolResponse:
		"""Run a registered tool and adapt the outcome to a ToolResponse."""
		params = params or {}
		entry = self._registered.get(name)
		definition = self._store.get(name)
		if entry is None or definition is None:
			return ToolResponse.error(f'No function named "{name}" exists.')

		if self._validate_inputs:
			try:
				entry.schema.validate(params)
			except InvalidParameters as exc:
				logger.warning("Rejected call to %s: %s", name, exc)
				return ToolResponse.error(f"Error executing tool: {exc}")

		result = await self._dispatcher.dispatch(definition, params)
		if result.ok:
			return ToolResponse.success(result.output)
		return ToolResponse.error(result.output)
