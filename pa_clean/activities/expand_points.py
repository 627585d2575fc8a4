"""Point expansion activity.

Providers record some protected areas only as a point locality plus a
self-reported area. Each such record is replaced by a circle centred on the
point whose area equals the reported area:

    r = sqrt(area / pi)

Geographic CRS: the circle is built in an azimuthal equal-area projection
centred on the point (distances and areas are true near the centre), then
transformed back to the record's CRS and cut at the antimeridian if it
crosses it. Projected CRS: the circle is built directly, converting square
kilometres to the CRS axis unit. The pipeline expands points after
reprojection, so circles are normally buffered straight in the equal-area
working CRS.

A MultiPoint record is split evenly: each member gets a circle of
``area / n`` and the circles are unioned, so the total matches the
reported area when they do not touch.

Records without a usable reported area cannot be given a bounded shape and
are dropped with a ``PointWithoutAreaFailure`` audit entry. Very small areas
are allowed; the circle may later vanish below the precision grid.
"""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import TYPE_CHECKING

from pa_clean.core.config import PipelineConfig
from pa_clean.core.constants import SQ_METRES_PER_SQ_KM, STAGE_EXPAND
from pa_clean.core.exceptions import PermanentError
from pa_clean.models.audit import AuditLog
from pa_clean.utils.projection import (
    is_geographic,
    local_equal_area_crs,
    metres_per_unit,
    split_at_antimeridian,
    transform_geometry,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from shapely.geometry import Point
    from shapely.geometry.base import BaseGeometry

    from pa_clean.models.record import FeatureRecord

logger = logging.getLogger("pa_clean.activities.expand_points")


class PointWithoutAreaFailure(PermanentError):
    """A point record has no reported area to size its circle."""

    default_stage = STAGE_EXPAND
    default_code = "POINT_WITHOUT_AREA"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def expand_points(
    records: Iterable[FeatureRecord],
    *,
    config: PipelineConfig | None = None,
    audit: AuditLog | None = None,
) -> list[FeatureRecord]:
    """Replace every point record with a circle of its reported area.

    Polygon records pass through unchanged.

    Returns:
        Records with polygonal geometry only, in input order.
    """
    config = config or PipelineConfig()
    audit = audit if audit is not None else AuditLog()

    expanded: list[FeatureRecord] = []
    points = 0
    for record in records:
        if not record.is_point:
            expanded.append(record)
            continue
        points += 1
        try:
            expanded.append(expand_point(record, quad_segs=config.point_quad_segs))
        except PointWithoutAreaFailure as exc:
            audit.record(exc)
            logger.warning(
                "Record dropped | stage=%s | id=%s | code=%s | reason=%s",
                exc.stage,
                exc.record_id,
                exc.code,
                exc.message,
            )

    logger.info(
        "Points expanded | points=%d | output=%d",
        points,
        len(expanded),
    )
    return expanded


def expand_point(record: FeatureRecord, *, quad_segs: int = 64) -> FeatureRecord:
    """Return a copy of a point record with a circular polygon geometry.

    Raises:
        PointWithoutAreaFailure: If ``reported_area_km2`` is unknown.
    """
    area_km2 = record.reported_area_km2
    if area_km2 is None:
        msg = "Point record has no reported area; cannot size a circle"
        raise PointWithoutAreaFailure(msg, record_id=record.record_id)

    members: list[Point] = list(getattr(record.geometry, "geoms", [record.geometry]))
    share_km2 = area_km2 / len(members)
    circles = [
        point_to_circle(point, share_km2, crs=record.crs, quad_segs=quad_segs) for point in members
    ]

    if len(circles) == 1:
        geometry: BaseGeometry = circles[0]
    else:
        from shapely import union_all

        geometry = union_all(circles)

    logger.debug(
        "Point expanded | id=%s | area=%.6f km2 | radius=%.2f m | parts=%d",
        record.record_id,
        area_km2,
        circle_radius_m(share_km2),
        len(circles),
    )
    return replace(record, geometry=geometry)


def circle_radius_m(area_km2: float) -> float:
    """Radius in metres of a circle with the given area in square kilometres."""
    return math.sqrt(area_km2 * SQ_METRES_PER_SQ_KM / math.pi)


def point_to_circle(point: Point, area_km2: float, *, crs: str, quad_segs: int = 64) -> BaseGeometry:
    """Build a circle of ``area_km2`` around ``point`` in ``crs`` coordinates.

    In a geographic CRS a circle crossing the antimeridian comes back as a
    MultiPolygon with one part on each side.
    """
    radius_m = circle_radius_m(area_km2)

    if not is_geographic(crs):
        return point.buffer(radius_m / metres_per_unit(crs), quad_segs=quad_segs)

    from shapely.geometry import Point as ShapelyPoint

    local_crs = local_equal_area_crs(point.x, point.y)
    circle = ShapelyPoint(0.0, 0.0).buffer(radius_m, quad_segs=quad_segs)
    return split_at_antimeridian(transform_geometry(circle, local_crs, crs))
