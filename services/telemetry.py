"""
OpenTelemetry integration
Tracing and metrics for MCP requests and calendar tool calls
"""

import logging
from typing import Optional
from opentelemetry import trace, metrics
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.requests import RequestsInstrumentor
from services.config import Settings, get_settings

logger = logging.getLogger(__name__)

INSTRUMENTATION_NAME = "calendar-mcp"

class TelemetryManager:
    """Manages OpenTelemetry setup and instrumentation"""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._initialized = False

    def setup(self, app=None):
        """Setup OpenTelemetry tracing and metrics"""
        if self._initialized:
            return

        if not self.settings.enable_telemetry:
            logger.info("Telemetry disabled")
            return

        if not self.settings.otel_exporter_endpoint:
            logger.warning("OTEL exporter endpoint not configured, telemetry disabled")
            return

        resource = Resource.create({
            "service.name": self.settings.server_name,
            "service.version": self.settings.server_version,
        })

        self._setup_tracing(resource)
        self._setup_metrics(resource)
        self._setup_instrumentation(app)

        self._initialized = True
        logger.info(f"OpenTelemetry exporting to {self.settings.otel_exporter_endpoint}")

    def _setup_tracing(self, resource: Resource):
        tracer_provider = TracerProvider(resource=resource)
        tracer_provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=self.settings.otel_exporter_endpoint, insecure=True))
        )
        trace.set_tracer_provider(tracer_provider)

    def _setup_metrics(self, resource: Resource):
        metric_reader = PeriodicExportingMetricReader(
            exporter=OTLPMetricExporter(endpoint=self.settings.otel_exporter_endpoint, insecure=True),
            export_interval_millis=10000
        )
        metrics.set_meter_provider(MeterProvider(resource=resource, metric_readers=[metric_reader]))

    def _setup_instrumentation(self, app=None):
        if app is not None:
            FastAPIInstrumentor.instrument_app(app)
        # google-auth token exchange goes through requests
        RequestsInstrumentor().instrument()

class ToolMetrics:
    """
    Instruments recorded around every tools/call

    Instruments come from the global providers, so they are no-ops until
    TelemetryManager.setup() installs real ones.
    """

    def __init__(self):
        meter = metrics.get_meter(INSTRUMENTATION_NAME)
        self.tool_calls = meter.create_counter(
            "mcp_tool_calls_total",
            description="Total number of MCP tool calls"
        )
        self.tool_duration = meter.create_histogram(
            "mcp_tool_call_duration_seconds",
            unit="s",
            description="Duration of MCP tool calls in seconds"
        )
        self.errors = meter.create_counter(
            "mcp_errors_total",
            description="Total number of JSON-RPC error responses"
        )

    def record_tool_call(self, tool_name: str, duration: float, success: bool):
        attributes = {"tool": tool_name, "success": success}
        self.tool_calls.add(1, attributes)
        self.tool_duration.record(duration, attributes)

    def record_error(self, code: int, method: str):
        self.errors.add(1, {"code": code, "method": str(method)})

def get_tracer() -> trace.Tracer:
    return trace.get_tracer(INSTRUMENTATION_NAME)
