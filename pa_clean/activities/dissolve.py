"""Dissolve activity.

Merges all record geometries into one non-overlapping MultiPolygon,
discarding per-record attribution. Cheaper than overlap resolution and
suited to very large batches when only aggregate coverage is needed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from pa_clean.activities.recompute_area import compute_area_km2
from pa_clean.activities.repair_geometry import polygonal_part, snap_to_grid
from pa_clean.core.constants import DEFAULT_EQUAL_AREA_CRS, STAGE_DISSOLVE
from pa_clean.core.exceptions import ContractError, PermanentError
from pa_clean.models.categories import Realm

if TYPE_CHECKING:
    from collections.abc import Sequence

    from shapely.geometry import MultiPolygon

    from pa_clean.models.record import FeatureRecord

logger = logging.getLogger("pa_clean.activities.dissolve")


class DissolveError(PermanentError):
    """The union of all geometries could not be computed."""

    default_stage = STAGE_DISSOLVE
    default_code = "DISSOLVE_FAILED"


@dataclass(frozen=True, slots=True)
class DissolveResult:
    """Total non-overlapping footprint of a set of records.

    Attributes:
        geometry: Union of all record geometries.
        crs: CRS of ``geometry``.
        area_km2: Equal-area size of ``geometry`` in km².
        record_count: Number of records dissolved.
    """

    geometry: MultiPolygon
    crs: str
    area_km2: float
    record_count: int


def dissolve(
    records: Sequence[FeatureRecord],
    *,
    grid_size: float,
    crs: str | None = None,
    equal_area_crs: str = DEFAULT_EQUAL_AREA_CRS,
) -> DissolveResult:
    """Union every record's geometry into one MultiPolygon.

    Args:
        records: Records with valid polygonal geometry in a single CRS.
        grid_size: Precision grid for the union.
        crs: CRS of the records; inferred from the first record if omitted.
        equal_area_crs: CRS used to measure the dissolved area.

    Raises:
        ContractError: If the records are not all in one CRS.
        DissolveError: If the union fails even after snapping inputs.
    """
    from shapely import union_all
    from shapely.errors import GEOSException
    from shapely.geometry import MultiPolygon

    crs = crs or (records[0].crs if records else equal_area_crs)
    mixed = sorted({r.crs for r in records if r.crs != crs})
    if mixed:
        msg = f"Cannot dissolve records in {crs} together with records in {', '.join(mixed)}"
        raise ContractError(msg, stage=STAGE_DISSOLVE, code="MIXED_CRS")

    geometries = [r.geometry for r in records]
    try:
        merged = union_all(geometries, grid_size=grid_size)
    except GEOSException as first_exc:
        logger.warning("Union failed, retrying on snapped inputs: %s", first_exc)
        try:
            merged = union_all([snap_to_grid(g, grid_size) for g in geometries], grid_size=grid_size)
        except GEOSException as exc:
            msg = f"Union of {len(geometries)} geometries failed: {exc}"
            raise DissolveError(msg) from exc

    merged = polygonal_part(merged)
    if merged.is_empty:
        geometry = MultiPolygon()
    elif merged.geom_type == "Polygon":
        geometry = MultiPolygon([merged])
    else:
        geometry = merged

    area_km2 = compute_area_km2(geometry, crs, equal_area_crs=equal_area_crs) if records else 0.0
    logger.info(
        "Records dissolved | records=%d | parts=%d | area=%.3f km2",
        len(records),
        len(geometry.geoms),
        area_km2,
    )
    return DissolveResult(geometry=geometry, crs=crs, area_km2=area_km2, record_count=len(records))


def dissolve_by_realm(
    records: Sequence[FeatureRecord],
    *,
    grid_size: float,
    equal_area_crs: str = DEFAULT_EQUAL_AREA_CRS,
) -> dict[Realm, DissolveResult]:
    """Dissolve each realm separately; realms with no records are omitted."""
    results: dict[Realm, DissolveResult] = {}
    for realm in Realm:
        members = [r for r in records if r.realm is realm]
        if members:
            results[realm] = dissolve(members, grid_size=grid_size, equal_area_crs=equal_area_crs)
    return results
