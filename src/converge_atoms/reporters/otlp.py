"""OTLP reporter using OpenTelemetry SDK."""

from __future__ import annotations

from typing import TYPE_CHECKING

from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

if TYPE_CHECKING:
    from converge_atoms.runner import Outcome


class OTLPReporter:
    def __init__(self, endpoint: str, headers: dict[str, str] | None = None) -> None:
        resource = Resource.create({"service.name": "converge-atoms"})
        exporter = OTLPSpanExporter(endpoint=endpoint, headers=headers or {})
        provider = TracerProvider(resource=resource)
        provider.add_span_processor(BatchSpanProcessor(exporter))
        self._provider = provider
        self._tracer = provider.get_tracer("converge-atoms")

    def emit_outcome(self, outcome: "Outcome") -> None:
        attrs: dict[str, str | bool | float] = {
            "atom.kind": outcome.kind,
            "atom.status": outcome.status.value,
            "atom.changed": outcome.changed,
            "atom.description": outcome.description,
            "atom.duration_s": outcome.duration_s,
        }
        if outcome.error:
            attrs["atom.error"] = outcome.error
        with self._tracer.start_as_current_span(
            f"Atom - {outcome.kind}",
            attributes=attrs,
        ):
            pass

    def flush(self) -> None:
        self._provider.force_flush()

    def shutdown(self) -> None:
        self._provider.shutdown()
