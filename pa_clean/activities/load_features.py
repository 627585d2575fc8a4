"""Feature reading and writing.

Reads provider layers (GeoPackage, Shapefile, GeoJSON, File Geodatabase,
anything OGR opens) into ``RawFeature`` objects with fiona, and writes
cleaned ``FeatureRecord`` objects back out. Acquisition and caching of the
provider download stay outside this package; these helpers only translate
between files on disk and the pipeline's models.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pa_clean.core.constants import DEFAULT_FIELD_MAP, DEFAULT_SOURCE_CRS, FIELD_ID
from pa_clean.core.exceptions import ValidationError
from pa_clean.models.feature import RawFeature
from pa_clean.utils.projection import get_crs

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from pa_clean.activities.dissolve import DissolveResult
    from pa_clean.models.record import FeatureRecord

logger = logging.getLogger("pa_clean.activities.load_features")

#: File suffix → OGR driver for writing.
DRIVERS_BY_SUFFIX: dict[str, str] = {
    ".geojson": "GeoJSON",
    ".json": "GeoJSON",
    ".gpkg": "GPKG",
    ".shp": "ESRI Shapefile",
}

#: Output attribute schema for cleaned records.
OUTPUT_PROPERTIES: dict[str, str] = {
    "record_id": "str",
    "name": "str",
    "status": "str",
    "designation_kind": "str",
    "management_category": "str",
    "realm": "str",
    "region": "str",
    "reported_area_km2": "float",
    "established_year": "int",
    "computed_area_km2": "float",
    "area_warning": "str",
    "geometry_type": "str",
}


class FeatureReadError(ValidationError):
    """Raised when a provider layer cannot be opened or is malformed."""

    default_stage = "load_features"
    default_code = "FEATURE_READ_FAILED"


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------


def read_features(
    path: Path | str,
    *,
    layer: str | None = None,
    field_map: Mapping[str, str] | None = None,
    default_crs: str = "",
) -> list[RawFeature]:
    """Read a provider layer into raw features.

    Args:
        path: Path to the dataset.
        layer: Layer name for multi-layer datasets (GeoPackage, GDB).
        field_map: Logical → provider column names; used to find the id.
        default_crs: CRS assumed when the dataset declares none. Left empty,
            the pipeline applies ``PipelineConfig.source_crs``.

    Returns:
        One ``RawFeature`` per row, in file order.

    Raises:
        FeatureReadError: If the dataset cannot be opened.
    """
    import fiona
    from fiona.errors import FionaError
    from shapely.geometry import shape

    path = Path(path)
    fields = field_map or DEFAULT_FIELD_MAP
    id_column = fields[FIELD_ID]

    features: list[RawFeature] = []
    try:
        with fiona.open(str(path), layer=layer) as collection:
            crs = _crs_string(collection, default_crs)
            for index, row in enumerate(collection):
                properties = dict(row.properties or {})
                geometry = shape(row.geometry) if row.geometry is not None else None
                features.append(
                    RawFeature(
                        record_id=_record_id(properties.get(id_column), path.name, index),
                        geometry=geometry,
                        properties=properties,
                        crs=crs,
                        source_file=path.name,
                        feature_index=index,
                    )
                )
    except (FionaError, OSError) as exc:
        msg = f"Cannot read features from {path}: {exc}"
        raise FeatureReadError(msg) from exc

    logger.info(
        "Features read | source=%s | layer=%s | count=%d | crs=%s",
        path.name,
        layer,
        len(features),
        crs,
    )
    return features


def raw_feature_from_geojson(
    feature: Mapping[str, Any],
    *,
    index: int = 0,
    crs: str = "",
    field_map: Mapping[str, str] | None = None,
    source_file: str = "",
) -> RawFeature:
    """Build a raw feature from a GeoJSON ``Feature`` mapping.

    ``crs`` is left empty unless given, so the pipeline's source CRS applies.
    """
    from shapely.geometry import shape

    fields = field_map or DEFAULT_FIELD_MAP
    properties = dict(feature.get("properties") or {})
    geometry_raw = feature.get("geometry")
    record_id = feature.get("id")
    if record_id is None:
        record_id = properties.get(fields[FIELD_ID])
    return RawFeature(
        record_id=_record_id(record_id, source_file, index),
        geometry=shape(geometry_raw) if geometry_raw else None,
        properties=properties,
        crs=crs,
        source_file=source_file,
        feature_index=index,
    )


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------


def write_records(
    path: Path | str,
    records: Iterable[FeatureRecord],
    *,
    crs: str | None = None,
    driver: str | None = None,
    layer: str | None = None,
) -> int:
    """Write cleaned records as MultiPolygon features.

    Args:
        path: Output dataset path.
        records: Cleaned records (polygonal geometry, one CRS).
        crs: Output CRS; defaults to the first record's CRS.
        driver: OGR driver; inferred from the file suffix if omitted.
        layer: Layer name for multi-layer formats.

    Returns:
        Number of features written.
    """
    import fiona
    from shapely.geometry import MultiPolygon, mapping

    path = Path(path)
    records = list(records)
    driver = driver or DRIVERS_BY_SUFFIX.get(path.suffix.lower(), "GPKG")
    crs = crs or (records[0].crs if records else DEFAULT_SOURCE_CRS)
    schema = {"geometry": "MultiPolygon", "properties": dict(OUTPUT_PROPERTIES)}

    with fiona.open(
        str(path), "w", driver=driver, schema=schema, crs_wkt=_crs_wkt(crs), layer=layer
    ) as sink:
        for record in records:
            geometry = record.geometry
            if geometry.geom_type == "Polygon":
                geometry = MultiPolygon([geometry])
            payload = record.to_dict()
            sink.write(
                {
                    "geometry": mapping(geometry),
                    "properties": {key: payload[key] for key in OUTPUT_PROPERTIES},
                }
            )

    logger.info(
        "Records written | target=%s | driver=%s | count=%d",
        path.name,
        driver,
        len(records),
    )
    return len(records)


def write_footprint(
    path: Path | str,
    footprint: DissolveResult,
    *,
    driver: str | None = None,
    layer: str | None = None,
) -> None:
    """Write a dissolved footprint as a single MultiPolygon feature."""
    import fiona
    from shapely.geometry import mapping

    path = Path(path)
    driver = driver or DRIVERS_BY_SUFFIX.get(path.suffix.lower(), "GPKG")
    schema = {
        "geometry": "MultiPolygon",
        "properties": {"record_count": "int", "area_km2": "float"},
    }
    with fiona.open(
        str(path), "w", driver=driver, schema=schema, crs_wkt=_crs_wkt(footprint.crs), layer=layer
    ) as sink:
        sink.write(
            {
                "geometry": mapping(footprint.geometry),
                "properties": {
                    "record_count": footprint.record_count,
                    "area_km2": footprint.area_km2,
                },
            }
        )
    logger.info(
        "Footprint written | target=%s | driver=%s | area=%.3f km2",
        path.name,
        driver,
        footprint.area_km2,
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _record_id(value: object, source_file: str, index: int) -> str:
    """Format a provider id; fall back to ``<source>:<index>`` when absent."""
    if isinstance(value, float) and not math.isnan(value) and value.is_integer():
        value = int(value)
    text = "" if value is None or (isinstance(value, float) and math.isnan(value)) else str(value).strip()
    return text or f"{source_file or 'features'}:{index}"


def _crs_string(collection: object, default_crs: str) -> str:
    crs = getattr(collection, "crs", None)
    if not crs:
        return default_crs
    to_string = getattr(crs, "to_string", None)
    text = to_string() if callable(to_string) else ""
    return text or default_crs


def _crs_wkt(crs: str) -> str:
    return get_crs(crs).to_wkt()
