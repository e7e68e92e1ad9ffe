"""Tests for OpenTelemetry tracing integration."""

from __future__ import annotations

from helpers import COLLECTION

from alarm_gateway.config import TracingConfig
from alarm_gateway.provider import AlarmProvider
from alarm_gateway.tracing import GatewayTracer, NoOpSpan


class TestNoOpSpan:
	def test_set_attribute_is_noop(self) -> None:
		NoOpSpan().set_attribute("key", "value")  # should not raise

	def test_record_exception_is_noop(self) -> None:
		NoOpSpan().record_exception(ValueError("test"))  # should not raise


class TestTracingDisabled:
	def test_default_is_inactive(self) -> None:
		tracer = GatewayTracer()
		assert not tracer.active
		with tracer.start_operation_span("fetch", COLLECTION) as span:
			assert isinstance(span, NoOpSpan)

	def test_disabled_config(self) -> None:
		tracer = GatewayTracer(TracingConfig(enabled=False))
		with tracer.start_operation_span("insert", COLLECTION) as span:
			assert isinstance(span, NoOpSpan)


class TestTracingEnabled:
	def test_real_span_with_attributes(self) -> None:
		tracer = GatewayTracer(TracingConfig(enabled=True, exporter="console"))
		assert tracer.active
		with tracer.start_operation_span("fetch", COLLECTION) as span:
			assert not isinstance(span, NoOpSpan)
			assert span.is_recording()
			assert span.attributes["alarm.operation"] == "fetch"
			assert span.attributes["alarm.address"] == str(COLLECTION)

	def test_provider_operations_run_under_tracer(self, provider: AlarmProvider) -> None:
		provider.tracer = GatewayTracer(TracingConfig(enabled=True, exporter="console"))
		new = provider.insert(COLLECTION, {"title": "Wake"})
		assert provider.update(new, {"title": "Later"}) == 1
		assert len(provider.fetch(COLLECTION)) == 1
		assert provider.delete(new) == 1
