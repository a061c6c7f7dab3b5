"""Exception taxonomy for admission and execution failures."""

from __future__ import annotations


class MetaMCPError(Exception):
	"""Base class for every failure reported back to the host."""


class CapabilityDenied(MetaMCPError):
	"""Raised when an execution environment is disabled."""


class DuplicateName(MetaMCPError):
	"""Raised when defining a function whose name is taken."""


class NotFound(MetaMCPError):
	"""Raised when operating on a function that does not exist."""


class SchemaParseFailure(MetaMCPError):
	"""Raised (strict mode only) when a parameter schema cannot be normalized."""


class InvalidParameters(MetaMCPError):
	"""Raised when call arguments do not match the registered schema."""


class ExecutionTimeout(MetaMCPError):
	"""Raised when tool code exceeds its wall-clock budget."""


class ExecutionFailure(MetaMCPError):
	"""Raised when tool code raises, is rejected, or exits non-zero."""


class SerializationFailure(MetaMCPError):
	"""Raised when interpreter output is not a single JSON value."""
