"""Canonical payload contracts for the worker-process boundary.

Partitioned runs ship records to worker processes as plain dicts (the
``to_dict`` forms of the models) and receive plain dicts back. Each payload
is defined here as a ``TypedDict`` so field names have a single source of
truth.
"""

from __future__ import annotations

from typing import Any, TypedDict

# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


class RawFeaturePayload(TypedDict):
    """Serialised ``RawFeature``."""

    record_id: str
    geometry: dict[str, Any] | None
    properties: dict[str, Any]
    crs: str
    source_file: str
    feature_index: int


class FeatureRecordPayload(TypedDict):
    """Serialised ``FeatureRecord``."""

    record_id: str
    geometry: dict[str, Any]
    crs: str
    status: str
    designation_kind: str
    management_category: str
    realm: str
    reported_area_km2: float | None
    established_year: int | None
    computed_area_km2: float | None
    region: str
    name: str
    area_warning: str
    geometry_type: str


class AuditEntryPayload(TypedDict):
    """Serialised ``AuditEntry``."""

    record_id: str
    stage: str
    code: str
    category: str
    message: str
    dropped: bool


# ---------------------------------------------------------------------------
# Partition worker (input = PartitionInput, output = PartitionResult)
# ---------------------------------------------------------------------------


class PartitionInput(TypedDict):
    """Input to one partition worker."""

    key: str
    features: list[RawFeaturePayload]
    config: dict[str, Any]


class PartitionResult(TypedDict):
    """Output of one partition worker."""

    key: str
    records: list[FeatureRecordPayload]
    audit: list[AuditEntryPayload]
