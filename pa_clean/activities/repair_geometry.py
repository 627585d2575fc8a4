"""Geometry repair activity.

Makes every geometry topologically valid and aligned to a fixed precision
grid, so that later set operations do not trip over floating-point noise.

Sequence (deterministic and idempotent):

1. Snap all coordinates to the precision grid (``shapely.set_precision``).
2. While the geometry is invalid, repair it (``make_valid``, polygonal
   parts only) and snap again (repair can introduce off-grid
   coordinates). Bounded by ``max_retries``.
3. Remove polygon parts smaller than the sliver tolerance.

Records that cannot be made valid within the retry budget are dropped with
a ``GeometryRepairFailure`` audit entry. Records whose geometry collapses to
nothing (a tiny circle below the grid, a pure sliver) are dropped with an
``EmptyGeometryExclusion`` entry.

Records are first moved to the working equal-area CRS by
``reproject_records``; reprojection failures are audited the same way.
"""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import TYPE_CHECKING

from pa_clean.core.config import PipelineConfig
from pa_clean.core.constants import STAGE_REPAIR, STAGE_REPROJECT
from pa_clean.core.exceptions import PermanentError, ValidationError
from pa_clean.models.audit import AuditLog
from pa_clean.utils.projection import transform_geometry

if TYPE_CHECKING:
    from collections.abc import Iterable

    from shapely.geometry.base import BaseGeometry

    from pa_clean.models.record import FeatureRecord

logger = logging.getLogger("pa_clean.activities.repair_geometry")


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class GeometryRepairFailure(PermanentError):
    """Geometry could not be made valid within the retry budget."""

    default_stage = STAGE_REPAIR
    default_code = "GEOMETRY_REPAIR_FAILED"


class EmptyGeometryExclusion(ValidationError):
    """Geometry has no polygonal area left after snapping and repair."""

    default_stage = STAGE_REPAIR
    default_code = "GEOMETRY_EMPTY"


class ReprojectionFailure(PermanentError):
    """Geometry could not be transformed into the working CRS."""

    default_stage = STAGE_REPROJECT
    default_code = "REPROJECTION_FAILED"


# ---------------------------------------------------------------------------
# Geometry primitives
# ---------------------------------------------------------------------------


def snap_to_grid(geometry: BaseGeometry, grid_size: float) -> BaseGeometry:
    """Round coordinates to multiples of ``grid_size``.

    Raises:
        shapely.errors.GEOSException: If GEOS cannot reduce the precision
            (typically on badly invalid input).
    """
    import shapely

    return shapely.set_precision(geometry, grid_size)


def polygonal_part(geometry: BaseGeometry) -> BaseGeometry:
    """Keep only the areal part of a geometry.

    Polygon and MultiPolygon pass through. Collections are reduced to the
    union of their polygons; anything without area becomes an empty Polygon.
    """
    from shapely.geometry import Polygon

    geom_type = geometry.geom_type
    if geom_type in ("Polygon", "MultiPolygon"):
        return geometry
    if geom_type == "GeometryCollection":
        polygons = [g for g in geometry.geoms if g.geom_type in ("Polygon", "MultiPolygon") and not g.is_empty]  # type: ignore[attr-defined]
        if not polygons:
            return Polygon()
        if len(polygons) == 1:
            return polygons[0]

        from shapely import union_all

        return polygonal_part(union_all(polygons))
    return Polygon()


def drop_slivers(geometry: BaseGeometry, min_area: float) -> BaseGeometry:
    """Remove polygon parts with area below ``min_area`` (working units²)."""
    if min_area <= 0 or geometry.is_empty:
        return geometry

    from shapely.geometry import MultiPolygon, Polygon

    parts = list(getattr(geometry, "geoms", [geometry]))
    kept = [p for p in parts if p.area >= min_area]
    if len(kept) == len(parts):
        return geometry
    if not kept:
        return Polygon()
    if len(kept) == 1:
        return kept[0]
    return MultiPolygon(kept)


def repair_geometry(
    geometry: BaseGeometry,
    *,
    grid_size: float,
    max_retries: int = 3,
    min_sliver_area: float = 0.0,
    record_id: str = "",
) -> BaseGeometry:
    """Snap, repair until valid, and de-sliver a geometry.

    Args:
        geometry: Polygonal input geometry.
        grid_size: Precision grid spacing in the geometry's units.
        max_retries: Maximum number of repair passes.
        min_sliver_area: Parts smaller than this are removed.
        record_id: Identifier used in error messages.

    Returns:
        A valid Polygon or MultiPolygon on the grid (possibly empty).

    Raises:
        GeometryRepairFailure: If the geometry is still invalid after
            ``max_retries`` repair passes.
    """
    from shapely.validation import explain_validity, make_valid

    current = polygonal_part(_snap_or_keep(geometry, grid_size))
    attempts = 0
    while not current.is_valid:
        if attempts >= max_retries:
            msg = (
                f"Geometry still invalid after {attempts} repair pass(es): "
                f"{explain_validity(current)}"
            )
            raise GeometryRepairFailure(msg, record_id=record_id)
        attempts += 1
        current = polygonal_part(_snap_or_keep(make_valid(current), grid_size))

    if attempts:
        logger.debug("Geometry repaired | id=%s | passes=%d", record_id, attempts)
    return drop_slivers(current, min_sliver_area)


# ---------------------------------------------------------------------------
# Record-level API
# ---------------------------------------------------------------------------


def repair_records(
    records: Iterable[FeatureRecord],
    *,
    config: PipelineConfig | None = None,
    audit: AuditLog | None = None,
) -> list[FeatureRecord]:
    """Repair every record's geometry; drop and audit the failures.

    Returns:
        Records with valid, grid-aligned polygonal geometry, in input order.
    """
    config = config or PipelineConfig()
    audit = audit if audit is not None else AuditLog()

    repaired: list[FeatureRecord] = []
    total = 0
    for record in records:
        total += 1
        try:
            geometry = repair_geometry(
                record.geometry,
                grid_size=config.grid_size,
                max_retries=config.max_repair_retries,
                min_sliver_area=config.min_sliver_area,
                record_id=record.record_id,
            )
            if geometry.is_empty:
                msg = "No polygonal area left after snapping to the precision grid"
                raise EmptyGeometryExclusion(msg, record_id=record.record_id)
        except (GeometryRepairFailure, EmptyGeometryExclusion) as exc:
            audit.record(exc)
            logger.warning(
                "Record dropped | stage=%s | id=%s | code=%s | reason=%s",
                exc.stage,
                exc.record_id,
                exc.code,
                exc.message,
            )
            continue
        repaired.append(replace(record, geometry=geometry))

    logger.info(
        "Geometries repaired | input=%d | output=%d | grid=%g",
        total,
        len(repaired),
        config.grid_size,
    )
    return repaired


def reproject_records(
    records: Iterable[FeatureRecord],
    target_crs: str,
    *,
    audit: AuditLog | None = None,
) -> list[FeatureRecord]:
    """Move records into ``target_crs``; drop and audit failed transforms."""
    from pyproj.exceptions import ProjError

    audit = audit if audit is not None else AuditLog()
    projected: list[FeatureRecord] = []
    for record in records:
        try:
            geometry = transform_geometry(record.geometry, record.crs, target_crs)
        except ProjError as exc:
            failure = ReprojectionFailure(str(exc), record_id=record.record_id)
        else:
            if all(math.isfinite(v) for v in geometry.bounds):
                projected.append(replace(record, geometry=geometry, crs=target_crs))
                continue
            failure = ReprojectionFailure(
                f"Geometry falls outside the domain of {target_crs}",
                record_id=record.record_id,
            )
        audit.record(failure)
        logger.warning(
            "Record dropped | stage=%s | id=%s | code=%s | reason=%s",
            failure.stage,
            failure.record_id,
            failure.code,
            failure.message,
        )
    return projected


def _snap_or_keep(geometry: BaseGeometry, grid_size: float) -> BaseGeometry:
    """Snap to grid; leave the geometry for ``make_valid`` if GEOS refuses."""
    from shapely.errors import GEOSException

    try:
        return snap_to_grid(geometry, grid_size)
    except GEOSException as exc:
        logger.debug("Precision snap deferred until after repair: %s", exc)
        return geometry
