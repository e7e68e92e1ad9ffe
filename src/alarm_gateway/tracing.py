"""OpenTelemetry tracing for provider operations, no-op when disabled."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Generator

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor

from alarm_gateway.config import TracingConfig

logger = logging.getLogger(__name__)


class NoOpSpan:
	"""A no-op span that acts as a context manager and attribute sink."""

	def set_attribute(self, key: str, value: Any) -> None:
		pass

	def record_exception(self, exception: BaseException) -> None:
		pass

	def end(self) -> None:
		pass


class GatewayTracer:
	"""Wraps provider operations in spans when tracing is enabled."""

	def __init__(self, config: TracingConfig | None = None) -> None:
		self._config = config or TracingConfig()
		self._tracer: Any = None

		if not self._config.enabled:
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
				provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
		else:
			provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

		self._tracer = provider.get_tracer("alarm-gateway")

	@property
	def active(self) -> bool:
		return self._tracer is not None

	@contextmanager
	def start_operation_span(self, operation: str, address: Any) -> Generator[Any, None, None]:
		if not self.active:
			yield NoOpSpan()
			return
		with self._tracer.start_as_current_span(f"alarms.{operation}") as span:
			span.set_attribute("alarm.operation", operation)
			span.set_attribute("alarm.address", str(address))
			yield span
