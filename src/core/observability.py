"""Tracing helpers for generation and persistence calls.

Spans are created through the OpenTelemetry API. Without a configured SDK the
API hands back a non-recording tracer, so instrumented code runs unchanged in
tests and local development.

PII and Sensitive Data Guidance:
--------------------------------
- NEVER put draft text, guidance, transcripts or candidate answers in span
  attributes
- Slot keys (entity id + field), content kind, transport mode, byte and frame
  counts are safe
"""

from __future__ import annotations

from opentelemetry import trace
from opentelemetry.trace import Tracer


def get_tracer(name: str) -> Tracer:
    """Get an OpenTelemetry tracer for custom instrumentation.

    Example:
        tracer = get_tracer(__name__)

        with tracer.start_as_current_span("drafts.generate") as span:
            span.set_attribute("draft.kind", kind.name)
    """
    return trace.get_tracer(name)
