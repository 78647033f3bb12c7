"""Prometheus instrumentation for the document service.

Labels stay low-cardinality: document type, representation, algorithm, failure kind.
"""
from __future__ import annotations

from prometheus_client import (
    CollectorRegistry,
    Counter,
    generate_latest,
    CONTENT_TYPE_LATEST,
)

# Registry must be created before metric objects reference it.
REGISTRY = CollectorRegistry()

FILES_CREATED = Counter(
    "bwnf_files_created_total",
    "Containers assembled by create().",
    ["document_type"],
    registry=REGISTRY,
)
FILES_WRITTEN = Counter(
    "bwnf_files_written_total",
    "Containers serialized by write().",
    ["fmt"],
    registry=REGISTRY,
)
BYTES_WRITTEN = Counter(
    "bwnf_bytes_written_total",
    "Total bytes of serialized containers.",
    registry=REGISTRY,
)
FILES_SIGNED = Counter(
    "bwnf_files_signed_total",
    "Signatures produced, by algorithm and role.",
    ["algorithm", "role"],
    registry=REGISTRY,
)
VERIFY_FAILURES = Counter(
    "bwnf_verify_failures_total",
    "Failed read/validate operations by error kind.",
    ["reason"],
    registry=REGISTRY,
)
FUNDING_DETECTED = Counter(
    "bwnf_funding_detected_total",
    "Payment observations attached to grant submissions.",
    ["funded"],
    registry=REGISTRY,
)


def export_metrics() -> tuple[bytes, str]:
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
