"""Observability utilities built on OpenTelemetry spans.

- configure_tracing: Install a tracer provider once; optionally export spans
  to the console for local debugging.
- span: Context manager opening a span with attributes around a block of work
  (embedding calls, ranking queries, per-file ingestion).

Without configure_tracing, OpenTelemetry's default no-op provider is used and
span() costs almost nothing.
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

_otel_inited: bool = False


def configure_tracing(console_export: bool = False) -> None:
    """Set a global tracer provider, once per process.

    Args:
        console_export: Attach a ConsoleSpanExporter (users can configure an
            OTLP exporter externally instead).
    """
    global _otel_inited
    if _otel_inited:
        return
    tp = TracerProvider()
    if console_export:
        tp.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(tp)
    _otel_inited = True


@contextmanager
def span(name: str, attributes: Optional[Dict[str, Any]] = None) -> Iterator[trace.Span]:
    """Open an OpenTelemetry span for the enclosed block.

    Exceptions raised inside the block are recorded on the span and re-raised.
    """
    tracer = trace.get_tracer("foundry_rag")
    with tracer.start_as_current_span(name) as otel_span:
        for k, v in (attributes or {}).items():
            if v is not None:
                otel_span.set_attribute(k, v)
        yield otel_span
