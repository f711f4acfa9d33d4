"""
OpenTelemetry tracing for recording cycles.

Each processed recording produces a `cycle` span with one child span per
stage (`stage.transcribe`, `stage.refine`, `stage.output`). Spans can be
written to a local JSON Lines file, sent to an OTLP collector, or both.
Tracing is off unless enabled in the settings; `traced_span` is a no-op
while it is off.
"""

import json
import time
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import IO, Any, Dict, Iterator, Optional, Sequence

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
from opentelemetry.trace import Status, StatusCode

from whisperkey.utils import get_app_data_dir

_tracer: Optional[trace.Tracer] = None
_tracer_provider: Optional[TracerProvider] = None


def _span_to_dict(span: ReadableSpan, resource: Resource) -> Dict[str, Any]:
    """Convert a finished span to an OTLP-style JSON object."""
    context = span.context
    return {
        "name": span.name,
        "context": {
            "trace_id": format(context.trace_id, "032x"),
            "span_id": format(context.span_id, "016x"),
            "trace_state": str(context.trace_state) if context.trace_state else "",
        },
        "kind": str(span.kind),
        "parent_id": format(span.parent.span_id, "016x") if span.parent else None,
        "start_time": span.start_time,
        "end_time": span.end_time,
        "status": {
            "status_code": str(span.status.status_code),
            "description": span.status.description,
        },
        "attributes": dict(span.attributes or {}),
        "events": [
            {
                "name": event.name,
                "timestamp": event.timestamp,
                "attributes": dict(event.attributes or {}),
            }
            for event in (span.events or [])
        ],
        "resource": {"attributes": dict(resource.attributes or {})},
    }


class JSONLinesSpanExporter(SpanExporter):
    """
    Appends finished spans to a JSON Lines file, one span per line.

    The file is rotated (renamed with a timestamp suffix) once it grows past
    max_size_mb. A max_size_mb of 0 disables rotation.
    """

    def __init__(self, trace_file_path: Path, resource: Resource, max_size_mb: int = 10):
        self.trace_file_path = trace_file_path
        self.resource = resource
        self.max_size_mb = max_size_mb
        self.file_handle: Optional[IO[str]] = None
        self._open_file()

    def _open_file(self) -> None:
        if self.file_handle is not None:
            try:
                self.file_handle.close()
            except Exception as e:
                logger.warning(f"Error closing trace file before rotation: {e}")

        self.trace_file_path.parent.mkdir(parents=True, exist_ok=True)
        self.file_handle = open(self.trace_file_path, "a", encoding="utf-8")

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        if not spans:
            return SpanExportResult.SUCCESS

        try:
            if rotate_trace_file_if_needed(self.trace_file_path, self.max_size_mb):
                self._open_file()
            elif self.file_handle is None or self.file_handle.closed:
                self._open_file()

            for span in spans:
                line = json.dumps(_span_to_dict(span, self.resource), default=str)
                self.file_handle.write(line + "\n")
            self.file_handle.flush()
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


def get_trace_file_path(trace_file: Optional[str] = None) -> Path:
    """Get the path to the trace export file.

    Args:
        trace_file: Optional custom path. If None, uses the app data directory.

    Returns:
        Path to the trace file
    """
    if trace_file is not None:
        return Path(trace_file).expanduser().resolve()

    data_dir = get_app_data_dir()
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir / "traces.jsonl"


def rotate_trace_file_if_needed(trace_file_path: Path, max_size_mb: int = 10) -> bool:
    """Rotate the trace file if it exceeds max_size_mb.

    Returns:
        True if the file was rotated
    """
    if max_size_mb <= 0 or not trace_file_path.exists():
        return False

    file_size_mb = trace_file_path.stat().st_size / (1024 * 1024)
    if file_size_mb < max_size_mb:
        return False

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    rotated_path = trace_file_path.with_name(
        f"{trace_file_path.stem}.{timestamp}{trace_file_path.suffix}"
    )
    try:
        trace_file_path.rename(rotated_path)
    except OSError as e:
        logger.warning(f"Failed to rotate trace file: {e}")
        return False

    logger.info(f"Rotated trace file to: {rotated_path} (size: {file_size_mb:.2f} MB)")
    return True


def initialize_telemetry(
    service_name: str = "whisperkey",
    otlp_endpoint: Optional[str] = None,
    export_to_file: bool = True,
    trace_file: Optional[str] = None,
    enabled: bool = True,
    rotation_enabled: bool = True,
    rotation_max_size_mb: int = 10,
) -> None:
    """
    Initialize OpenTelemetry tracing with the configured exporters.

    Failures are logged and leave tracing disabled; they never stop the
    application from starting.

    Args:
        service_name: Service name attached to every span
        otlp_endpoint: OTLP gRPC collector endpoint, or None to skip OTLP
        export_to_file: Whether to write spans to a JSON Lines file
        trace_file: Custom path for the trace file (default: app data dir)
        enabled: Whether tracing is enabled at all
        rotation_enabled: Whether to rotate the trace file by size
        rotation_max_size_mb: Size in MB at which the trace file is rotated
    """
    global _tracer, _tracer_provider

    if not enabled:
        logger.info("Telemetry disabled")
        return

    if not otlp_endpoint and not export_to_file:
        logger.warning(
            "Telemetry enabled but no exporters configured. "
            "Set otlp_endpoint or export_to_file=true"
        )
        return

    resource = Resource(attributes={SERVICE_NAME: service_name})
    provider = TracerProvider(resource=resource)
    exporters_configured = []

    if otlp_endpoint:
        try:
            provider.add_span_processor(
                BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True))
            )
            exporters_configured.append(f"OTLP({otlp_endpoint})")
        except Exception as e:
            logger.warning(f"Failed to initialize OTLP exporter to {otlp_endpoint}: {e}")

    if export_to_file:
        try:
            trace_file_path = get_trace_file_path(trace_file)
            file_exporter = JSONLinesSpanExporter(
                trace_file_path=trace_file_path,
                resource=resource,
                max_size_mb=rotation_max_size_mb if rotation_enabled else 0,
            )
            provider.add_span_processor(BatchSpanProcessor(file_exporter))
            exporters_configured.append(f"File({trace_file_path})")
        except Exception as e:
            logger.warning(f"Failed to initialize file exporter: {e}")

    if not exporters_configured:
        logger.warning("No trace exporters were successfully initialized")
        return

    trace.set_tracer_provider(provider)
    _tracer_provider = provider
    _tracer = trace.get_tracer("whisperkey")
    logger.info(
        f"Telemetry initialized: service={service_name}, "
        f"exporters={', '.join(exporters_configured)}"
    )


def get_tracer() -> Optional[trace.Tracer]:
    """
    Get the global tracer instance.

    Returns:
        The tracer, or None if telemetry is not initialized
    """
    return _tracer


@contextmanager
def traced_span(name: str, **attributes: Any) -> Iterator[Optional[trace.Span]]:
    """Run the enclosed block inside a span named `name`.

    Records the duration, marks the span OK or ERROR, and records any
    exception before re-raising it. Yields None when tracing is off.
    """
    tracer = get_tracer()
    if tracer is None:
        yield None
        return

    start_time = time.time()
    with tracer.start_as_current_span(
        name,
        attributes=attributes,
        record_exception=False,
        set_status_on_exception=False,
    ) as span:
        try:
            yield span
        except Exception as e:
            span.set_attribute("duration_ms", (time.time() - start_time) * 1000)
            span.set_status(Status(StatusCode.ERROR, str(e)))
            span.record_exception(e)
            raise
        span.set_attribute("duration_ms", (time.time() - start_time) * 1000)
        if span.is_recording() and span.status.status_code is StatusCode.UNSET:
            span.set_status(Status(StatusCode.OK))


def shutdown_telemetry() -> None:
    """Flush pending spans and shut the tracer provider down."""
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
