"""
OpenTelemetry tracing for text input attempts.

Each input_text call and each tier it tries can be recorded as a span, so
slow or failing tiers can be inspected after the fact.

Export modes:
- File: JSON Lines written to the application data directory (default)
- OTLP: sent to a Jaeger/OTEL collector when an endpoint is configured
"""

import json
from contextlib import nullcontext
from datetime import datetime
from pathlib import Path
from typing import IO, ContextManager, Optional, Sequence

from loguru import logger
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SpanExporter,
    SpanExportResult,
)

from screentype.settings import TelemetryConfig
from screentype.utils import get_app_data_dir

# Tracer lifecycle: both are None until initialize_telemetry() succeeds
_tracer: Optional[trace.Tracer] = None
_tracer_provider: Optional[TracerProvider] = None


class JSONLinesSpanExporter(SpanExporter):
    """
    Writes finished spans to a file, one JSON object per line.

    The file is rotated once it grows past max_size_mb (0 disables rotation).
    """

    def __init__(self, trace_file_path: Path, max_size_mb: int = 10):
        self.trace_file_path = trace_file_path
        self.max_size_mb = max_size_mb
        self.file_handle: Optional[IO[str]] = None

    def _ensure_open(self) -> IO[str]:
        # Reopen after rotation moved the file away
        is_open = self.file_handle is not None and not self.file_handle.closed
        if not is_open or not self.trace_file_path.exists():
            if is_open:
                self.file_handle.close()
            self.trace_file_path.parent.mkdir(parents=True, exist_ok=True)
            self.file_handle = open(self.trace_file_path, "a", encoding="utf-8")
        return self.file_handle

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        if not spans:
            return SpanExportResult.SUCCESS

        try:
            _rotate_trace_file_if_needed(self.trace_file_path, self.max_size_mb)
            handle = self._ensure_open()
            for span in spans:
                span_data = {
                    "name": span.name,
                    "trace_id": format(span.context.trace_id, "032x"),
                    "span_id": format(span.context.span_id, "016x"),
                    "parent_id": (
                        format(span.parent.span_id, "016x") if span.parent else None
                    ),
                    "start_time": span.start_time,
                    "end_time": span.end_time,
                    "status": str(span.status.status_code),
                    "attributes": dict(span.attributes) if span.attributes else {},
                }
                handle.write(json.dumps(span_data, default=str) + "\n")
            handle.flush()
            return SpanExportResult.SUCCESS
        except Exception as e:
            logger.error(f"Failed to export spans to JSON file: {e}")
            return SpanExportResult.FAILURE

    def shutdown(self) -> None:
        if self.file_handle is not None:
            try:
                self.file_handle.close()
            except Exception as e:
                logger.warning(f"Error closing trace file: {e}")
            finally:
                self.file_handle = None


def _get_trace_file_path(trace_file: Optional[str] = None) -> Path:
    if trace_file is not None:
        return Path(trace_file).expanduser().resolve()
    return get_app_data_dir() / "traces.jsonl"


def _rotate_trace_file_if_needed(trace_file_path: Path, max_size_mb: int = 10) -> None:
    """Rename the trace file with a timestamp once it exceeds max_size_mb."""
    if max_size_mb <= 0 or not trace_file_path.exists():
        return

    file_size_mb = trace_file_path.stat().st_size / (1024 * 1024)
    if file_size_mb < max_size_mb:
        return

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    rotated_path = trace_file_path.with_name(
        f"{trace_file_path.stem}.{timestamp}{trace_file_path.suffix}"
    )
    try:
        trace_file_path.rename(rotated_path)
        logger.info(f"Rotated trace file to: {rotated_path} (size: {file_size_mb:.2f} MB)")
    except OSError as e:
        logger.warning(f"Failed to rotate trace file: {e}")


def initialize_telemetry(config: TelemetryConfig) -> None:
    """
    Initialize OpenTelemetry tracing from configuration.

    Failures are logged and leave tracing disabled; text input never
    depends on telemetry.
    """
    global _tracer, _tracer_provider

    if not config.enabled:
        logger.info("Telemetry disabled")
        return

    if not config.otlp_endpoint and not config.export_to_file:
        logger.warning(
            "Telemetry enabled but no exporters configured. "
            "Set otlp_endpoint or export_to_file=true"
        )
        return

    try:
        provider = TracerProvider(
            resource=Resource(attributes={SERVICE_NAME: config.service_name})
        )
        exporters_configured = []

        if config.otlp_endpoint:
            try:
                exporter = OTLPSpanExporter(endpoint=config.otlp_endpoint, insecure=True)
                provider.add_span_processor(BatchSpanProcessor(exporter))
                exporters_configured.append(f"OTLP({config.otlp_endpoint})")
            except Exception as e:
                logger.warning(
                    f"Failed to initialize OTLP exporter to {config.otlp_endpoint}: {e}"
                )

        if config.export_to_file:
            trace_file_path = _get_trace_file_path(config.trace_file)
            provider.add_span_processor(
                BatchSpanProcessor(JSONLinesSpanExporter(trace_file_path))
            )
            exporters_configured.append(f"File({trace_file_path})")

        if not exporters_configured:
            logger.warning("No trace exporters were successfully initialized")
            return

        trace.set_tracer_provider(provider)
        _tracer_provider = provider
        _tracer = provider.get_tracer(__name__)
        logger.info(
            f"Telemetry initialized: service={config.service_name}, "
            f"exporters={', '.join(exporters_configured)}"
        )
    except Exception as e:
        logger.warning(f"Failed to initialize telemetry: {e}. Continuing without tracing.")
        _tracer = None
        _tracer_provider = None


def get_tracer() -> Optional[trace.Tracer]:
    """Return the tracer, or None if telemetry is not initialized."""
    return _tracer


def start_span(name: str, **attributes) -> ContextManager:
    """Start a span as the current span, or do nothing if tracing is off."""
    tracer = get_tracer()
    if tracer is None:
        return nullcontext()
    return tracer.start_as_current_span(name, attributes=attributes)


def shutdown_telemetry() -> None:
    """Shutdown telemetry and flush any pending spans."""
    global _tracer, _tracer_provider

    if _tracer_provider is not None:
        try:
            _tracer_provider.shutdown()
            logger.info("Telemetry shutdown complete")
        except Exception as e:
            logger.warning(f"Error during telemetry shutdown: {e}")
        finally:
            _tracer_provider = None
            _tracer = None


def set_span_attributes(**attributes) -> None:
    """Attach attributes to the current span, if one is recording."""
    span = trace.get_current_span()
    if span.is_recording():
        for key, value in attributes.items():
            span.set_attribute(key, value)
