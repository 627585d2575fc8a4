"""Data model for a raw provider feature.

A RawFeature is one record as delivered by the data-acquisition side:
a geometry (point, polygon or multipolygon, possibly missing) plus the
provider's untyped attribute table row. This is the input to the
normalize_attributes stage, which turns it into a typed ``FeatureRecord``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from shapely.geometry.base import BaseGeometry


@dataclass(frozen=True, slots=True)
class RawFeature:
    """A single provider record before normalization.

    Attributes:
        record_id: Provider identifier (e.g. WDPA ``WDPAID``) as a string.
        geometry: Shapely geometry, or ``None`` when the row has none.
        properties: Provider attribute row, keyed by provider column name.
        crs: Coordinate reference system of ``geometry``; empty when the
            source declares none (``PipelineConfig.source_crs`` then applies).
        source_file: Name of the file the feature was read from.
        feature_index: Zero-based index of this feature within the source.
    """

    record_id: str
    geometry: BaseGeometry | None = None
    properties: dict[str, Any] = field(default_factory=dict)
    crs: str = ""
    source_file: str = ""
    feature_index: int = 0

    def to_dict(self) -> dict[str, object]:
        """Serialise to a GeoJSON-like dict for worker-process transport."""
        from shapely.geometry import mapping

        return {
            "record_id": self.record_id,
            "geometry": mapping(self.geometry) if self.geometry is not None else None,
            "properties": dict(self.properties),
            "crs": self.crs,
            "source_file": self.source_file,
            "feature_index": self.feature_index,
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> RawFeature:
        """Deserialise from a ``to_dict`` payload.

        Raises:
            TypeError: If field values have unexpected types.
        """
        from shapely.geometry import shape

        properties_raw = data.get("properties", {})
        if not isinstance(properties_raw, dict):
            msg = f"properties must be a dict, got {type(properties_raw).__name__}"
            raise TypeError(msg)

        geometry_raw = data.get("geometry")
        if geometry_raw is not None and not isinstance(geometry_raw, dict):
            msg = f"geometry must be a mapping, got {type(geometry_raw).__name__}"
            raise TypeError(msg)

        return cls(
            record_id=str(data.get("record_id", "")),
            geometry=shape(geometry_raw) if geometry_raw else None,
            properties=dict(properties_raw),
            crs=str(data.get("crs") or ""),
            source_file=str(data.get("source_file", "")),
            feature_index=int(data.get("feature_index", 0)),  # type: ignore[arg-type]
        )
