"""Management operations: define, update, delete, list and inspect functions."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import replace
from typing import Any, AsyncIterator

from meta_mcp.capabilities import CapabilityGate
from meta_mcp.errors import DuplicateName, MetaMCPError, NotFound
from meta_mcp.models import ExecutionEnvironment, ToolDefinition, ToolResponse, next_timestamp
from meta_mcp.registrar import ToolRegistrar
from meta_mcp.schema import normalize_schema
from meta_mcp.store import ToolStore
from meta_mcp.tracing import ToolTracer

logger = logging.getLogger(__name__)

MANAGEMENT_TOOL_NAMES = frozenset({
	"define_function",
	"update_function",
	"delete_function",
	"list_functions",
	"get_function_details",
})


class FunctionManager:
	"""Admission and lifecycle of custom functions.

	Every public method returns a ToolResponse; failures never raise. Mutations
	of the same name are serialized through a per-name lock so concurrent
	updates cannot silently overwrite each other.
	"""

	def __init__(
		self,
		store: ToolStore,
		registrar: ToolRegistrar,
		gate: CapabilityGate,
		strict_schemas: bool = False,
		tracer: ToolTracer | None = None,
	) -> None:
		self._store = store
		self._registrar = registrar
		self._gate = gate
		self._strict = strict_schemas
		self._tracer = tracer or ToolTracer()
		self._locks: dict[str, asyncio.Lock] = {}
		self._lock_users: dict[str, int] = {}

	@asynccontextmanager
	async def _name_lock(self, name: str) -> AsyncIterator[None]:
		"""Hold the lock for *name*; it is dropped once nobody holds or awaits it."""
		lock = self._locks.get(name)
		if lock is None:
			lock = self._locks[name] = asyncio.Lock()
		self._lock_users[name] = self._lock_users.get(name, 0) + 1
		try:
			async with lock:
				yield
		finally:
			self._lock_users[name] -= 1
			if not self._lock_users[name]:
				del self._lock_users[name]
				del self._locks[name]

	async def define_function(
		self,
		name: str,
		description: str,
		parameters_schema: Any,
		implementation_code: str,
		execution_environment: ExecutionEnvironment | str = ExecutionEnvironment.IN_PROCESS,
	) -> ToolResponse:
		logger.info("Defining new function: %s", name)
		if not name or not name.strip():
			return ToolResponse.error("Function name must not be empty.")
		if not implementation_code:
			return ToolResponse.error("Implementation code must not be empty.")
		if name in MANAGEMENT_TOOL_NAMES:
			return ToolResponse.error(f'"{name}" is a reserved management function name.')

		async with self._name_lock(name):
			with self._tracer.start_admin_span("define", name):
				try:
					if name in self._store:
						raise DuplicateName(
							f'A function named "{name}" already exists. Use update_function to modify it.'
						)
					env = ExecutionEnvironment.parse(execution_environment)
					self._gate.check(env)
					schema = normalize_schema(parameters_schema, strict=self._strict, name=name)
				except (MetaMCPError, ValueError) as exc:
					return ToolResponse.error(str(exc))

				definition = ToolDefinition(
					name=name,
					description=description,
					parameters_schema=schema.json_schema,
					implementation_code=implementation_code,
					execution_environment=env,
				)
				try:
					self._registrar.register(definition, schema)
				except Exception as exc:
					logger.exception("Failed to register tool %s", name)
					return ToolResponse.error(f"Error creating function: {exc}")
				await self._store.upsert(definition)

		message = f'Successfully created new function "{name}". You can now use it as a tool.'
		if schema.is_permissive and schema.error:
			message += f" Warning: the parameters schema could not be parsed ({schema.error}); any input will be accepted."
		return ToolResponse.success(message)

	async def update_function(
		self,
		name: str,
		description: str | None = None,
		parameters_schema: Any = None,
		implementation_code: str | None = None,
		execution_environment: ExecutionEnvironment | str | None = None,
	) -> ToolResponse:
		logger.info("Updating function: %s", name)
		async with self._name_lock(name):
			with self._tracer.start_admin_span("update", name):
				current = self._store.get(name)
				try:
					if current is None:
						raise NotFound(
							f'No function named "{name}" exists. Use define_function to create it.'
						)
					env = (
						ExecutionEnvironment.parse(execution_environment)
						if execution_environment is not None
						else current.execution_environment
					)
					self._gate.check(env)
					schema = (
						normalize_schema(parameters_schema, strict=self._strict, name=name)
						if parameters_schema is not None
						else normalize_schema(current.parameters_schema, name=name)
					)
				except (MetaMCPError, ValueError) as exc:
					return ToolResponse.error(str(exc))

				updated = replace(
					current,
					description=description if description is not None else current.description,
					parameters_schema=schema.json_schema,
					implementation_code=(
						implementation_code if implementation_code is not None else current.implementation_code
					),
					execution_environment=env,
					updated_at=next_timestamp(current.updated_at),
					version=current.version + 1,
				)
				try:
					self._registrar.register(updated, schema)
				except Exception as exc:
					logger.exception("Failed to re-register tool %s", name)
					return ToolResponse.error(f"Error updating function: {exc}")
				await self._store.upsert(updated)

		return ToolResponse.success(f'Successfully updated function "{name}".')

	async def delete_function(self, name: str) -> ToolResponse:
		logger.info("Deleting function: %s", name)
		async with self._name_lock(name):
			with self._tracer.start_admin_span("delete", name):
				if name not in self._store:
					return ToolResponse.error(f'No function named "{name}" exists.')
				self._registrar.unregister(name)
				await self._store.remove(name)
		return ToolResponse.success(f'Successfully deleted function "{name}".')

	def list_functions(self) -> ToolResponse:
		logger.info("Listing all functions")
		return ToolResponse.from_json([d.summary() for d in self._store.list()])

	def get_function_details(self, name: str) -> ToolResponse:
		logger.info("Getting details for function: %s", name)
		definition = self._store.get(name)
		if definition is None:
			return ToolResponse.error(f'No function named "{name}" exists.')
		return ToolResponse.from_json(definition.to_dict())
