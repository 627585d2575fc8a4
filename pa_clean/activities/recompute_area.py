"""Area recomputation activity.

Derives ``computed_area_km2`` for every record from its current geometry
in an equal-area projection (World Mollweide by default). The provider's
``reported_area_km2`` is never trusted for statistics; it is only compared
against the computed value, and a large disagreement is recorded in
``area_warning`` and logged.

Area in an equal-area projection is independent of where the projection is
centred, so one global projection serves every record.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING

from pa_clean.core.config import PipelineConfig
from pa_clean.core.constants import DEFAULT_EQUAL_AREA_CRS, SQ_METRES_PER_SQ_KM
from pa_clean.utils.projection import metres_per_unit, transform_geometry

if TYPE_CHECKING:
    from collections.abc import Iterable

    from shapely.geometry.base import BaseGeometry

    from pa_clean.models.record import FeatureRecord

logger = logging.getLogger("pa_clean.activities.recompute_area")


def compute_area_km2(
    geometry: BaseGeometry,
    crs: str,
    *,
    equal_area_crs: str = DEFAULT_EQUAL_AREA_CRS,
) -> float:
    """Area of ``geometry`` in square kilometres.

    Args:
        geometry: Polygonal geometry in ``crs``.
        crs: CRS of ``geometry``.
        equal_area_crs: Equal-area CRS used for measurement. The geometry
            is reprojected first unless it is already in that CRS.

    Returns:
        Area in km² (explicit unit).
    """
    projected = transform_geometry(geometry, crs, equal_area_crs)
    unit_m = metres_per_unit(equal_area_crs)
    return projected.area * unit_m * unit_m / SQ_METRES_PER_SQ_KM


def recompute_areas(
    records: Iterable[FeatureRecord],
    *,
    config: PipelineConfig | None = None,
) -> list[FeatureRecord]:
    """Return copies of ``records`` with ``computed_area_km2`` set.

    Sets ``area_warning`` when the reported area is known and differs from
    the computed area by more than ``config.area_warning_ratio`` of the
    reported value. Overlap erasure legitimately shrinks records, so the
    warning is informational only.
    """
    config = config or PipelineConfig()

    updated: list[FeatureRecord] = []
    total_km2 = 0.0
    warnings = 0
    for record in records:
        area_km2 = compute_area_km2(
            record.geometry, record.crs, equal_area_crs=config.equal_area_crs
        )
        area_warning = _area_warning(record, area_km2, config.area_warning_ratio)
        if area_warning:
            warnings += 1
            logger.warning(area_warning)
        updated.append(replace(record, computed_area_km2=area_km2, area_warning=area_warning))
        total_km2 += area_km2

    logger.info(
        "Areas recomputed | records=%d | total=%.3f km2 | warnings=%d | crs=%s",
        len(updated),
        total_km2,
        warnings,
        config.equal_area_crs,
    )
    return updated


def _area_warning(record: FeatureRecord, area_km2: float, ratio: float) -> str:
    reported = record.reported_area_km2
    if not reported:
        return ""
    difference = abs(area_km2 - reported) / reported
    if difference <= ratio:
        return ""
    return (
        f"Computed area {area_km2:.3f} km2 differs from reported area "
        f"{reported:.3f} km2 by {difference:.0%} for record '{record.record_id}'"
    )
