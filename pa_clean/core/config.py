"""Pipeline configuration loaded from environment variables.

All configuration values have defaults tuned for national-scale analysis
of WDPA-style data. Callers may construct ``PipelineConfig`` directly or
load it with ``from_env()``.

Fail-fast validation:
    ``from_env()`` (and ``validate()``) raise ``ConfigValidationError`` if
    any value is out of its valid range. This catches bad configuration
    before a batch starts rather than part-way through it.
"""

from __future__ import annotations

import enum
import os
from dataclasses import dataclass, field
from typing import TypeVar

from pa_clean.core.constants import (
    DEFAULT_EQUAL_AREA_CRS,
    DEFAULT_FIELD_MAP,
    DEFAULT_SOURCE_CRS,
)
from pa_clean.core.exceptions import PipelineError
from pa_clean.models.categories import (
    DEFAULT_EXCLUDED_DESIGNATIONS,
    DEFAULT_RETAIN_STATUSES,
    DesignationKind,
    Status,
)

#: Overlap precedence orders understood by resolve_overlaps.
PRECEDENCE_INPUT = "input"
PRECEDENCE_ID = "id"
PRECEDENCE_MANAGEMENT = "management"
PRECEDENCE_ORDERS = frozenset({PRECEDENCE_INPUT, PRECEDENCE_ID, PRECEDENCE_MANAGEMENT})

_E = TypeVar("_E", bound=enum.Enum)

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


class ConfigValidationError(PipelineError):
    """Raised when configuration values are out of valid range.

    Attributes:
        key: The configuration key that failed validation.
        value: The invalid value.
        message: Human-readable description of the valid range.
    """

    default_stage = "config"
    default_code = "CONFIG_VALIDATION_FAILED"

    def __init__(self, key: str, value: object, message: str) -> None:
        self.key = key
        self.value = value
        self.message = message
        super().__init__(f"Invalid configuration {key}={value!r}: {message}")


@dataclass(frozen=True, slots=True)
class PipelineConfig:
    """Immutable pipeline configuration.

    Built once per batch and threaded through every stage (and shipped to
    worker processes via ``to_dict``).

    Attributes:
        geometry_precision: Grid-snap denominator; coordinates are rounded
            to multiples of ``1 / geometry_precision`` working units.
            Higher is finer. Override for sub-national or single-site work.
        erase_overlaps: Run the overlap resolver. Disable for very large
            batches and dissolve afterwards instead.
        source_crs: CRS assumed for features that arrive without one
            (a dataset with no declared CRS, a bare ``RawFeature``).
        equal_area_crs: Equal-area working CRS for repair, erasure and area.
        retain_statuses: Status allow-list.
        excluded_designations: Designation kinds dropped outright.
        max_repair_retries: Repair attempts per record before giving up.
        min_sliver_area: Polygon parts smaller than this (working units
            squared) are removed as slivers.
        point_quad_segs: Segments per quarter circle for point expansion.
        overlap_precedence: ``input``, ``id`` or ``management``.
        area_warning_ratio: Relative difference between reported and
            computed area above which a warning is attached to a record.
        max_workers: Worker processes for partitioned runs (1 = in-process).
        field_map: Logical field name to provider column name.
    """

    geometry_precision: float = 1500.0
    erase_overlaps: bool = True
    source_crs: str = DEFAULT_SOURCE_CRS
    equal_area_crs: str = DEFAULT_EQUAL_AREA_CRS
    retain_statuses: frozenset[Status] = DEFAULT_RETAIN_STATUSES
    excluded_designations: frozenset[DesignationKind] = DEFAULT_EXCLUDED_DESIGNATIONS
    max_repair_retries: int = 3
    min_sliver_area: float = 0.1
    point_quad_segs: int = 64
    overlap_precedence: str = PRECEDENCE_INPUT
    area_warning_ratio: float = 0.5
    max_workers: int = 1
    field_map: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_FIELD_MAP))

    @property
    def grid_size(self) -> float:
        """Precision grid spacing in working units."""
        return 1.0 / self.geometry_precision

    def validate(self) -> PipelineConfig:
        """Validate ranges and return ``self``.  Raises ``ConfigValidationError``."""
        _validate(self)
        return self

    @classmethod
    def from_env(cls) -> PipelineConfig:
        """Load and validate configuration from ``PA_*`` environment variables.

        Raises:
            ConfigValidationError: If a value is out of range, a boolean or
                category name is not recognised, or a CRS is empty.
            ValueError: If a numeric environment variable cannot be
                parsed (e.g. ``PA_GEOMETRY_PRECISION=abc``).
        """
        config = cls(
            geometry_precision=float(os.getenv("PA_GEOMETRY_PRECISION", "1500")),
            erase_overlaps=_parse_bool("PA_ERASE_OVERLAPS", os.getenv("PA_ERASE_OVERLAPS", "true")),
            source_crs=os.getenv("PA_SOURCE_CRS", DEFAULT_SOURCE_CRS),
            equal_area_crs=os.getenv("PA_EQUAL_AREA_CRS", DEFAULT_EQUAL_AREA_CRS),
            retain_statuses=_parse_members(
                "PA_RETAIN_STATUSES", os.getenv("PA_RETAIN_STATUSES"), Status, DEFAULT_RETAIN_STATUSES
            ),
            excluded_designations=_parse_members(
                "PA_EXCLUDED_DESIGNATIONS",
                os.getenv("PA_EXCLUDED_DESIGNATIONS"),
                DesignationKind,
                DEFAULT_EXCLUDED_DESIGNATIONS,
            ),
            max_repair_retries=int(os.getenv("PA_MAX_REPAIR_RETRIES", "3")),
            min_sliver_area=float(os.getenv("PA_MIN_SLIVER_AREA", "0.1")),
            point_quad_segs=int(os.getenv("PA_POINT_QUAD_SEGS", "64")),
            overlap_precedence=os.getenv("PA_OVERLAP_PRECEDENCE", PRECEDENCE_INPUT),
            area_warning_ratio=float(os.getenv("PA_AREA_WARNING_RATIO", "0.5")),
            max_workers=int(os.getenv("PA_MAX_WORKERS", "1")),
        )
        return config.validate()

    def to_dict(self) -> dict[str, object]:
        """Serialise for worker-process transport."""
        return {
            "geometry_precision": self.geometry_precision,
            "erase_overlaps": self.erase_overlaps,
            "source_crs": self.source_crs,
            "equal_area_crs": self.equal_area_crs,
            "retain_statuses": sorted(s.value for s in self.retain_statuses),
            "excluded_designations": sorted(d.value for d in self.excluded_designations),
            "max_repair_retries": self.max_repair_retries,
            "min_sliver_area": self.min_sliver_area,
            "point_quad_segs": self.point_quad_segs,
            "overlap_precedence": self.overlap_precedence,
            "area_warning_ratio": self.area_warning_ratio,
            "max_workers": self.max_workers,
            "field_map": dict(self.field_map),
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> PipelineConfig:
        """Deserialise from a ``to_dict`` payload (missing keys take defaults)."""
        defaults = cls()
        return cls(
            geometry_precision=float(data.get("geometry_precision", defaults.geometry_precision)),  # type: ignore[arg-type]
            erase_overlaps=bool(data.get("erase_overlaps", defaults.erase_overlaps)),
            source_crs=str(data.get("source_crs", defaults.source_crs)),
            equal_area_crs=str(data.get("equal_area_crs", defaults.equal_area_crs)),
            retain_statuses=frozenset(
                Status(v) for v in data.get("retain_statuses", [s.value for s in defaults.retain_statuses])  # type: ignore[union-attr]
            ),
            excluded_designations=frozenset(
                DesignationKind(v)
                for v in data.get(  # type: ignore[union-attr]
                    "excluded_designations", [d.value for d in defaults.excluded_designations]
                )
            ),
            max_repair_retries=int(data.get("max_repair_retries", defaults.max_repair_retries)),  # type: ignore[call-overload]
            min_sliver_area=float(data.get("min_sliver_area", defaults.min_sliver_area)),  # type: ignore[arg-type]
            point_quad_segs=int(data.get("point_quad_segs", defaults.point_quad_segs)),  # type: ignore[call-overload]
            overlap_precedence=str(data.get("overlap_precedence", defaults.overlap_precedence)),
            area_warning_ratio=float(data.get("area_warning_ratio", defaults.area_warning_ratio)),  # type: ignore[arg-type]
            max_workers=int(data.get("max_workers", defaults.max_workers)),  # type: ignore[call-overload]
            field_map=dict(data.get("field_map", defaults.field_map)),  # type: ignore[call-overload]
        )


def _parse_bool(key: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigValidationError(key, raw, "must be a boolean (true/false)")


def _parse_members(
    key: str,
    raw: str | None,
    enum_cls: type[_E],
    default: frozenset[_E],
) -> frozenset[_E]:
    """Parse a comma-separated list of enum member names or values."""
    if raw is None:
        return default
    members: set[_E] = set()
    for token in raw.split(","):
        token = token.strip()
        if not token:
            continue
        member = enum_cls.__members__.get(token.upper().replace(" ", "_"))
        if member is None:
            member = enum_cls.from_text(token)  # type: ignore[attr-defined]
        if member is None:
            raise ConfigValidationError(key, token, f"not a known {enum_cls.__name__}")
        members.add(member)
    return frozenset(members)


def _validate(config: PipelineConfig) -> None:
    """Validate configuration ranges.  Raises ``ConfigValidationError``."""
    if config.geometry_precision <= 0:
        raise ConfigValidationError(
            "PA_GEOMETRY_PRECISION",
            config.geometry_precision,
            "must be > 0 (grid cells per working unit)",
        )

    if config.max_repair_retries < 1:
        raise ConfigValidationError(
            "PA_MAX_REPAIR_RETRIES",
            config.max_repair_retries,
            "must be >= 1",
        )

    if config.min_sliver_area < 0:
        raise ConfigValidationError(
            "PA_MIN_SLIVER_AREA",
            config.min_sliver_area,
            "must be >= 0 (working units squared)",
        )

    if config.point_quad_segs < 1:
        raise ConfigValidationError(
            "PA_POINT_QUAD_SEGS",
            config.point_quad_segs,
            "must be >= 1",
        )

    if config.overlap_precedence not in PRECEDENCE_ORDERS:
        raise ConfigValidationError(
            "PA_OVERLAP_PRECEDENCE",
            config.overlap_precedence,
            f"must be one of {sorted(PRECEDENCE_ORDERS)}",
        )

    if config.area_warning_ratio <= 0:
        raise ConfigValidationError(
            "PA_AREA_WARNING_RATIO",
            config.area_warning_ratio,
            "must be > 0",
        )

    if config.max_workers < 1:
        raise ConfigValidationError(
            "PA_MAX_WORKERS",
            config.max_workers,
            "must be >= 1",
        )

    if not config.source_crs:
        raise ConfigValidationError("PA_SOURCE_CRS", config.source_crs, "must not be empty")

    if not config.equal_area_crs:
        raise ConfigValidationError("PA_EQUAL_AREA_CRS", config.equal_area_crs, "must not be empty")
