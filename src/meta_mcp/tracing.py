"""OpenTelemetry tracing integration with no-op fallback."""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from typing import Any, Generator

from meta_mcp.config import TracingConfig

logger = logging.getLogger(__name__)

try:
	from opentelemetry.sdk.resources import Resource
	from opentelemetry.sdk.trace import TracerProvider
	from opentelemetry.sdk.trace.export import (
		ConsoleSpanExporter,
		SimpleSpanProcessor,
	)

	OTEL_AVAILABLE = True
except ImportError:
	OTEL_AVAILABLE = False


class NoOpSpan:
	"""Span stand-in used when tracing is off; every call is discarded."""

	def set_attribute(self, key: str, value: Any) -> None:
		pass

	def record_exception(self, exception: BaseException) -> None:
		pass


class ToolTracer:
	"""Spans around tool invocations and management operations.

	Inactive unless tracing is enabled and opentelemetry-sdk is importable;
	an inactive tracer hands out NoOpSpan objects.
	"""

	def __init__(self, config: TracingConfig | None = None) -> None:
		self._config = config or TracingConfig()
		self._tracer: Any = None

		if not self._config.enabled or not OTEL_AVAILABLE:
			if self._config.enabled and not OTEL_AVAILABLE:
				logger.warning(
					"Tracing enabled but opentelemetry not installed. "
					"Install with: pip install meta-mcp[tracing]"
				)
			return
		if self._config.exporter == "none":
			return

		resource = Resource.create({"service.name": self._config.service_name})
		provider = TracerProvider(resource=resource)

		if self._config.exporter == "otlp":
			try:
				from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
				provider.add_span_processor(
					SimpleSpanProcessor(OTLPSpanExporter(endpoint=self._config.otlp_endpoint))
				)
			except ImportError:
				logger.warning(
					"OTLP exporter not available. Install opentelemetry-exporter-otlp-proto-grpc"
				)
				provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter(out=sys.stderr)))
		else:
			# ConsoleSpanExporter defaults to stdout, which is the MCP transport
			provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter(out=sys.stderr)))

		self._tracer = provider.get_tracer("meta-mcp")

	@property
	def active(self) -> bool:
		return self._tracer is not None

	@contextmanager
	def start_tool_span(self, name: str, environment: str) -> Generator[Any, None, None]:
		if not self.active:
			yield NoOpSpan()
			return
		with self._tracer.start_as_current_span("tool.invoke") as span:
			span.set_attribute("tool.name", name)
			span.set_attribute("tool.environment", environment)
			yield span

	@contextmanager
	def start_admin_span(self, operation: str, name: str) -> Generator[Any, None, None]:
		if not self.active:
			yield NoOpSpan()
			return
		with self._tracer.start_as_current_span(f"admin.{operation}") as span:
			span.set_attribute("tool.name", name)
			yield span
