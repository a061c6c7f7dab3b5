"""Wiring of the store, registrar, dispatcher and manager from a config."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from meta_mcp.capabilities import CapabilityGate
from meta_mcp.config import MetaConfig
from meta_mcp.dispatcher import Dispatcher, build_dispatcher
from meta_mcp.manager import FunctionManager
from meta_mcp.registrar import ToolRegistrar
from meta_mcp.store import ToolStore
from meta_mcp.tracing import ToolTracer

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
	"""Everything a running server needs, built once at startup."""

	config: MetaConfig
	gate: CapabilityGate
	store: ToolStore
	dispatcher: Dispatcher
	registrar: ToolRegistrar
	manager: FunctionManager
	tracer: ToolTracer


def build_runtime(config: MetaConfig | None = None, load: bool = True) -> Runtime:
	"""Construct a Runtime and, when *load* is set, restore persisted tools."""
	config = config or MetaConfig()
	gate = CapabilityGate(config.capabilities)
	tracer = ToolTracer(config.tracing)
	store = ToolStore(config.persistence.resolved_path, persist=config.persistence.enabled)
	dispatcher = build_dispatcher(config, gate, tracer=tracer)
	registrar = ToolRegistrar(store, dispatcher, validate_inputs=config.schema.validate_inputs)
	manager = FunctionManager(
		store,
		registrar,
		gate,
		strict_schemas=config.schema.strict,
		tracer=tracer,
	)
	runtime = Runtime(
		config=config,
		gate=gate,
		store=store,
		dispatcher=dispatcher,
		registrar=registrar,
		manager=manager,
		tracer=tracer,
	)
	if load:
		store.load()
		count = registrar.register_all()
		logger.info("Registered %d persisted custom tools", count)
	return runtime
