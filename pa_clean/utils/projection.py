"""Coordinate reference system helpers shared by the geometry stages.

Wraps pyproj so that CRS objects and transformers are built once per
process, and exposes the few projection facts the stages need: axis unit
scale, local azimuthal equal-area projections, geometry reprojection
and cutting lon/lat polygons at the antimeridian.
All transformers use ``always_xy=True`` so coordinates are ``(x, y)`` /
``(lon, lat)`` regardless of the CRS axis order.
"""

from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from pyproj import CRS, Transformer
    from shapely.geometry import Polygon
    from shapely.geometry.base import BaseGeometry


@lru_cache(maxsize=64)
def get_crs(crs: str) -> CRS:
    """Return a cached ``pyproj.CRS`` for a user-supplied CRS string."""
    from pyproj import CRS

    return CRS.from_user_input(crs)


@lru_cache(maxsize=128)
def get_transformer(source_crs: str, target_crs: str) -> Transformer:
    """Return a cached ``(x, y)``-ordered transformer between two CRSs."""
    from pyproj import Transformer

    return Transformer.from_crs(get_crs(source_crs), get_crs(target_crs), always_xy=True)


def same_crs(crs_a: str, crs_b: str) -> bool:
    """Whether two CRS strings describe the same reference system."""
    return crs_a == crs_b or get_crs(crs_a) == get_crs(crs_b)


def is_geographic(crs: str) -> bool:
    return get_crs(crs).is_geographic


def metres_per_unit(crs: str) -> float:
    """Length of one horizontal axis unit of a projected CRS, in metres."""
    axis = get_crs(crs).axis_info[0]
    return float(axis.unit_conversion_factor)


def local_equal_area_crs(lon: float, lat: float) -> str:
    """Azimuthal equal-area projection centred on ``(lon, lat)``, in metres."""
    return (
        f"+proj=laea +lat_0={lat:.10f} +lon_0={lon:.10f} "
        "+x_0=0 +y_0=0 +ellps=WGS84 +units=m +no_defs +type=crs"
    )


def transform_geometry(geometry: BaseGeometry, source_crs: str, target_crs: str) -> BaseGeometry:
    """Reproject a shapely geometry.  Returns the input when CRSs match."""
    if same_crs(source_crs, target_crs):
        return geometry

    import shapely

    transformer = get_transformer(source_crs, target_crs)
    return shapely.transform(geometry, transformer.transform, interleaved=False)


def split_at_antimeridian(polygon: Polygon) -> BaseGeometry:
    """Cut a lon/lat polygon whose rings jump across the ±180° meridian.

    Ring longitudes are first unwrapped into one continuous range, then the
    part beyond ±180° is cut off and shifted back by 360°. A polygon that
    does not cross the meridian is returned unchanged.
    """
    from shapely import affinity, union_all
    from shapely.geometry import Polygon, box

    reference = polygon.exterior.coords[0][0]
    shell = _unwrap_longitudes(polygon.exterior.coords, reference)
    holes = [_unwrap_longitudes(ring.coords, reference) for ring in polygon.interiors]
    longitudes = [x for x, _ in shell]
    if min(longitudes) >= -180.0 and max(longitudes) <= 180.0:
        return polygon

    unwrapped = Polygon(shell, holes)
    pieces = []
    for shift in (-360.0, 0.0, 360.0):
        piece = unwrapped.intersection(box(-180.0 - shift, -90.0, 180.0 - shift, 90.0))
        if not piece.is_empty:
            pieces.append(affinity.translate(piece, xoff=shift))
    return union_all(pieces)


def _unwrap_longitudes(coords: Iterable[tuple[float, ...]], reference: float) -> list[tuple[float, float]]:
    """Shift each longitude by whole turns so consecutive vertices stay within 180°."""
    unwrapped: list[tuple[float, float]] = []
    previous = reference
    for x, y, *_ in coords:
        x += 360.0 * round((previous - x) / 360.0)
        unwrapped.append((x, y))
        previous = x
    return unwrapped
