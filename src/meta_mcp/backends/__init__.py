"""Tool execution backends for meta-mcp."""

from __future__ import annotations

from meta_mcp.backends.base import ExecutionBackend
from meta_mcp.backends.inprocess import InProcessBackend
from meta_mcp.backends.interpreter import InterpreterBackend
from meta_mcp.backends.shell import ShellBackend

__all__ = [
	"ExecutionBackend",
	"InProcessBackend",
	"InterpreterBackend",
	"ShellBackend",
]
