"""Data model for a normalized protected-area record.

A FeatureRecord is the typed, sentinel-free form of a provider feature.
It is produced by the normalize_attributes stage and flows, unchanged in
shape, through point expansion, repair, overlap resolution and area
recomputation. Records are immutable: every stage returns new instances
built with ``dataclasses.replace``.

Units: ``reported_area_km2`` and ``computed_area_km2`` are square
kilometres. ``None`` is the explicit unknown marker for numeric fields.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from pa_clean.core.constants import (
    DEFAULT_SOURCE_CRS,
    GEOMETRY_TYPE_POINT,
    GEOMETRY_TYPE_POLYGON,
)
from pa_clean.core.exceptions import PipelineError
from pa_clean.models.categories import (
    DesignationKind,
    ManagementCategory,
    Realm,
    Status,
)

if TYPE_CHECKING:
    from shapely.geometry.base import BaseGeometry


class ModelValidationError(ValueError, PipelineError):
    """Raised when a domain model is constructed with invalid field values.

    Attributes:
        model: Name of the model class that failed validation.
        field_name: The field that violated the invariant.
        value: The invalid value.
    """

    default_stage = "model_validation"
    default_code = "MODEL_VALIDATION_FAILED"

    def __init__(self, model: str, field_name: str, value: object, message: str) -> None:
        self.model = model
        self.field_name = field_name
        self.value = value
        formatted = f"{model}.{field_name}={value!r}: {message}"
        PipelineError.__init__(self, formatted)


@dataclass(frozen=True, slots=True)
class FeatureRecord:
    """A normalized protected-area record.

    Attributes:
        record_id: Stable provider identifier.
        geometry: Point, Polygon or MultiPolygon in ``crs``.
        crs: Coordinate reference system of ``geometry``.
        status: Lifecycle stage.
        designation_kind: Kind of designation.
        management_category: IUCN management category.
        realm: Terrestrial, marine or mixed context.
        reported_area_km2: Provider-supplied area, ``None`` when unknown.
        established_year: Four-digit year, ``None`` when unknown.
        computed_area_km2: Area recomputed from ``geometry``; ``None``
            until the recompute_area stage has run.
        region: Country/region code used for partitioning (may be empty).
        name: Display name.
        area_warning: Non-empty when computed and reported areas disagree.
        geometry_type: ``"POINT"`` when the provider delivered a point
            locality (the geometry is then a synthesized circle), otherwise
            ``"POLYGON"``.
    """

    record_id: str
    geometry: BaseGeometry
    crs: str = DEFAULT_SOURCE_CRS
    status: Status = Status.DESIGNATED
    designation_kind: DesignationKind = DesignationKind.NATIONAL
    management_category: ManagementCategory = ManagementCategory.NOT_REPORTED
    realm: Realm = Realm.TERRESTRIAL
    reported_area_km2: float | None = None
    established_year: int | None = None
    computed_area_km2: float | None = None
    region: str = ""
    name: str = ""
    area_warning: str = ""
    geometry_type: str = GEOMETRY_TYPE_POLYGON

    def __post_init__(self) -> None:
        if not self.record_id or not self.record_id.strip():
            raise ModelValidationError("FeatureRecord", "record_id", self.record_id, "must not be empty")
        if self.reported_area_km2 is not None and self.reported_area_km2 < 0:
            raise ModelValidationError(
                "FeatureRecord", "reported_area_km2", self.reported_area_km2, "must be >= 0"
            )
        if self.computed_area_km2 is not None and self.computed_area_km2 < 0:
            raise ModelValidationError(
                "FeatureRecord", "computed_area_km2", self.computed_area_km2, "must be >= 0"
            )
        if self.geometry_type not in (GEOMETRY_TYPE_POINT, GEOMETRY_TYPE_POLYGON):
            raise ModelValidationError(
                "FeatureRecord", "geometry_type", self.geometry_type, "must be POINT or POLYGON"
            )

    @property
    def is_point(self) -> bool:
        """Whether the geometry is a point locality rather than a boundary."""
        return self.geometry.geom_type in ("Point", "MultiPoint")

    def to_dict(self) -> dict[str, object]:
        """Serialise to a GeoJSON-like dict for worker-process transport and output."""
        from shapely.geometry import mapping

        return {
            "record_id": self.record_id,
            "geometry": mapping(self.geometry),
            "crs": self.crs,
            "status": self.status.value,
            "designation_kind": self.designation_kind.value,
            "management_category": self.management_category.value,
            "realm": self.realm.value,
            "reported_area_km2": self.reported_area_km2,
            "established_year": self.established_year,
            "computed_area_km2": self.computed_area_km2,
            "region": self.region,
            "name": self.name,
            "area_warning": self.area_warning,
            "geometry_type": self.geometry_type,
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> FeatureRecord:
        """Deserialise from a ``to_dict`` payload.

        Raises:
            TypeError: If the geometry is not a mapping.
            ValueError: If a categorical value is not a known member.
        """
        from shapely.geometry import shape

        geometry_raw = data.get("geometry")
        if not isinstance(geometry_raw, dict):
            msg = f"geometry must be a mapping, got {type(geometry_raw).__name__}"
            raise TypeError(msg)

        reported = data.get("reported_area_km2")
        year = data.get("established_year")
        computed = data.get("computed_area_km2")

        return cls(
            record_id=str(data.get("record_id", "")),
            geometry=shape(geometry_raw),
            crs=str(data.get("crs", DEFAULT_SOURCE_CRS)),
            status=Status(data.get("status", Status.DESIGNATED.value)),
            designation_kind=DesignationKind(
                data.get("designation_kind", DesignationKind.NATIONAL.value)
            ),
            management_category=ManagementCategory(
                data.get("management_category", ManagementCategory.NOT_REPORTED.value)
            ),
            realm=Realm(data.get("realm", Realm.TERRESTRIAL.value)),
            reported_area_km2=float(reported) if reported is not None else None,  # type: ignore[arg-type]
            established_year=int(year) if year is not None else None,  # type: ignore[call-overload]
            computed_area_km2=float(computed) if computed is not None else None,  # type: ignore[arg-type]
            region=str(data.get("region", "")),
            name=str(data.get("name", "")),
            area_warning=str(data.get("area_warning", "")),
            geometry_type=str(data.get("geometry_type", GEOMETRY_TYPE_POLYGON)),
        )
