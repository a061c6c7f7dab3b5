"""MCP server exposing the management tools and every registered custom tool."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from mcp.server import Server
from mcp.server.lowlevel import NotificationOptions
from mcp.server.stdio import stdio_server
from mcp.types import CallToolResult, TextContent, Tool
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from meta_mcp.capabilities import CapabilityGate
from meta_mcp.config import MetaConfig, load_config
from meta_mcp.models import ToolResponse
from meta_mcp.runtime import Runtime, build_runtime

logger = logging.getLogger(__name__)

SERVER_NAME = "meta-mcp"

_MUTATING = {"define_function", "update_function", "delete_function"}


# -- Argument models --

class _Args(BaseModel):
	model_config = ConfigDict(extra="forbid")


class DefineFunctionArgs(_Args):
	name: str = Field(description="Unique name of the new tool")
	description: str = Field(description="What the tool does, shown to the agent")
	parameters_schema: Any = Field(
		description=(
			"JSON Schema for the tool's parameters, or a shorthand object "
			'mapping parameter names to types such as {"n": "number"}'
		),
	)
	implementation_code: str = Field(
		description=(
			"Python function body for in-process, a Python script for "
			"subprocess-interpreter, or a command line for subprocess-shell"
		),
	)
	execution_environment: str = Field(
		default="in-process",
		description="in-process, subprocess-interpreter or subprocess-shell",
	)


class UpdateFunctionArgs(_Args):
	name: str = Field(description="Name of the tool to update")
	description: str | None = None
	parameters_schema: Any = None
	implementation_code: str | None = None
	execution_environment: str | None = None


class NameArgs(_Args):
	name: str = Field(description="Name of the tool")


class NoArgs(_Args):
	pass


def _input_schema(model: type[BaseModel]) -> dict[str, Any]:
	schema = model.model_json_schema()
	schema.pop("title", None)
	schema.setdefault("properties", {})
	return schema


# -- Tool definitions --

def management_tools(gate: CapabilityGate) -> list[Tool]:
	"""The five management tools. The define description lists permitted environments."""
	allowed = ", ".join(env.value for env in gate.allowed_environments()) or "none"
	return [
		Tool(
			name="define_function",
			description=(
				"Create a new custom tool from code. Allowed execution environments: "
				f"{allowed}. In-process code is the body of an async function that "
				"receives `params` and returns the result."
			),
			inputSchema=_input_schema(DefineFunctionArgs),
		),
		Tool(
			name="update_function",
			description="Update fields of an existing custom tool. Omitted fields are kept.",
			inputSchema=_input_schema(UpdateFunctionArgs),
		),
		Tool(
			name="delete_function",
			description="Delete a custom tool and stop exposing it.",
			inputSchema=_input_schema(NameArgs),
		),
		Tool(
			name="list_functions",
			description="List all custom tools, sorted by name.",
			inputSchema=_input_schema(NoArgs),
		),
		Tool(
			name="get_function_details",
			description="Show the full definition of a custom tool, including its code.",
			inputSchema=_input_schema(NameArgs),
		),
	]


async def _dispatch(runtime: Runtime, name: str, args: dict[str, Any]) -> ToolResponse:
	manager = runtime.manager
	try:
		if name == "define_function":
			return await manager.define_function(**DefineFunctionArgs.model_validate(args).model_dump())
		elif name == "update_function":
			return await manager.update_function(**UpdateFunctionArgs.model_validate(args).model_dump())
		elif name == "delete_function":
			return await manager.delete_function(NameArgs.model_validate(args).name)
		elif name == "list_functions":
			NoArgs.model_validate(args)
			return manager.list_functions()
		elif name == "get_function_details":
			return manager.get_function_details(NameArgs.model_validate(args).name)
	except ValidationError as exc:
		errors = "; ".join(
			f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}"
			for err in exc.errors()
		)
		return ToolResponse.error(f"Invalid arguments for {name}: {errors}")
	return await runtime.registrar.invoke(name, args)


def _to_call_tool_result(response: ToolResponse) -> CallToolResult:
	return CallToolResult(
		content=[TextContent(type="text", text=text) for text in response.content],
		isError=response.is_error,
	)


async def _notify_tools_changed(server: Server) -> None:
	try:
		await server.request_context.session.send_tool_list_changed()
	except Exception as exc:
		logger.debug("Could not send tools/list_changed: %s", exc)


def create_server(runtime: Runtime) -> Server:
	"""Build a low-level MCP server bound to *runtime*."""
	server: Server = Server(SERVER_NAME)

	@server.list_tools()
	async def list_tools() -> list[Tool]:
		return management_tools(runtime.gate) + runtime.registrar.list_tools()

	# Custom tool inputs are checked by the registrar, management inputs by pydantic
	@server.call_tool(validate_input=False)
	async def call_tool(name: str, arguments: dict[str, Any] | None) -> CallToolResult:
		try:
			response = await _dispatch(runtime, name, arguments or {})
		except Exception as exc:
			logger.exception("Unhandled error in tool %s", name)
			response = ToolResponse.error(f"Error executing tool: {exc}")
		if name in _MUTATING and not response.is_error:
			await _notify_tools_changed(server)
		return _to_call_tool_result(response)

	return server


async def serve_stdio(runtime: Runtime) -> None:
	server = create_server(runtime)
	options = server.create_initialization_options(
		notification_options=NotificationOptions(tools_changed=True),
	)
	async with stdio_server() as (read_stream, write_stream):
		await server.run(read_stream, write_stream, options)


def run_mcp_server(config: MetaConfig | None = None) -> None:
	"""Entry point for `meta-mcp serve`."""
	runtime = build_runtime(config or load_config())
	logger.info(
		"Starting %s with %d custom tools (environments: %s)",
		SERVER_NAME,
		len(runtime.store),
		", ".join(env.value for env in runtime.gate.allowed_environments()) or "none",
	)
	asyncio.run(serve_stdio(runtime))
