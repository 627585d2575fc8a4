"""Cleaning pipeline orchestrator.

Coordinates the cleaning stages over one batch of provider features:

1. Normalize attributes: sentinel codes, status allow-list, exclusions
2. Reproject: into the equal-area working CRS
3. Expand points: circles sized to the reported area, buffered in the
   working CRS
4. Repair geometry: precision grid, validity, slivers
5. Resolve overlaps: per-realm erasure (skipped when ``erase_overlaps``
   is disabled; overlapping records are then emitted as-is)
6. Recompute area: equal-area ``computed_area_km2``

``dissolve_features`` is the lighter alternative entry point: the same
stages 1-4 followed by a dissolve into one unattributed footprint.

No per-record failure aborts a batch. Every dropped record has an entry in
the returned audit log.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from pa_clean.activities.dissolve import DissolveResult, dissolve
from pa_clean.activities.expand_points import expand_points
from pa_clean.activities.normalize_attributes import normalize_attributes
from pa_clean.activities.recompute_area import recompute_areas
from pa_clean.activities.repair_geometry import repair_records, reproject_records
from pa_clean.activities.resolve_overlaps import resolve_overlaps
from pa_clean.core.config import PipelineConfig
from pa_clean.models.audit import AuditLog

if TYPE_CHECKING:
    from collections.abc import Iterable

    from pa_clean.models.feature import RawFeature
    from pa_clean.models.record import FeatureRecord

logger = logging.getLogger("pa_clean.orchestrators.pipeline")


@dataclass(slots=True)
class CleanResult:
    """Output of one cleaning run.

    Attributes:
        records: Cleaned records (valid geometry, normalized attributes,
            recomputed area).
        audit: Audit entries for every dropped or normalized record.
    """

    records: list[FeatureRecord] = field(default_factory=list)
    audit: AuditLog = field(default_factory=AuditLog)

    @property
    def total_area_km2(self) -> float:
        return sum(r.computed_area_km2 or 0.0 for r in self.records)

    def summary(self) -> dict[str, object]:
        """Record counts, total area and audit counts per stage and reason."""
        return {
            "records": len(self.records),
            "total_area_km2": self.total_area_km2,
            "audit": self.audit.summary(),
        }


def clean_features(
    features: Iterable[RawFeature],
    config: PipelineConfig | None = None,
) -> CleanResult:
    """Run the full cleaning pipeline over one batch.

    Args:
        features: Raw provider features.
        config: Pipeline configuration (validated before use).

    Returns:
        ``CleanResult`` with cleaned records in input order and the audit log.

    Raises:
        ConfigValidationError: If ``config`` is out of range.
    """
    config = (config or PipelineConfig()).validate()
    audit = AuditLog()
    started = time.perf_counter()

    records = _prepare(features, config, audit)
    if config.erase_overlaps:
        records = resolve_overlaps(records, config=config, audit=audit)
    else:
        logger.info("Overlap erasure disabled | records=%d", len(records))
    records = recompute_areas(records, config=config)

    result = CleanResult(records=records, audit=audit)
    logger.info(
        "Pipeline completed | records=%d | dropped=%d | total_area=%.3f km2 | duration=%.1fs",
        len(result.records),
        len(audit.dropped),
        result.total_area_km2,
        time.perf_counter() - started,
    )
    return result


def dissolve_features(
    features: Iterable[RawFeature],
    config: PipelineConfig | None = None,
) -> tuple[DissolveResult, AuditLog]:
    """Clean a batch up to geometry repair and dissolve it.

    Returns:
        The dissolved footprint and the audit log of the preparation stages.
    """
    config = (config or PipelineConfig()).validate()
    audit = AuditLog()
    records = _prepare(features, config, audit)
    result = dissolve(
        records,
        grid_size=config.grid_size,
        crs=config.equal_area_crs,
        equal_area_crs=config.equal_area_crs,
    )
    return result, audit


def _prepare(
    features: Iterable[RawFeature],
    config: PipelineConfig,
    audit: AuditLog,
) -> list[FeatureRecord]:
    """Normalize, reproject, expand and repair."""
    records = normalize_attributes(features, config=config, audit=audit)
    records = reproject_records(records, config.equal_area_crs, audit=audit)
    records = expand_points(records, config=config, audit=audit)
    return repair_records(records, config=config, audit=audit)
