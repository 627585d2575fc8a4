"""Attribute normalization activity.

Turns provider rows (``RawFeature``) into typed ``FeatureRecord`` objects:

- Sentinel codes (``0`` for unknown area or year, ``""``/``"0"`` for
  categorical fields) become explicit unknown markers: ``None`` for
  numbers, ``NOT_REPORTED`` / ``NOT_APPLICABLE`` for categories.
- Records whose status is outside the allow-list are dropped
  (proposed, not reported, ...).
- Records of an excluded designation kind are dropped (UNESCO-MAB
  biosphere reserves by default).
- Records with a missing, empty or zero-area geometry are dropped as
  placeholders.
- Point and line members of a geometry collection are noted in the audit
  log; only its polygonal members reach the output.

Geometry is inspected but never modified. A feature without a declared CRS
is taken to be in ``PipelineConfig.source_crs``. Every drop, and every field
normalization on a retained record, is written to the audit log.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

from pa_clean.core.config import PipelineConfig
from pa_clean.core.constants import (
    FIELD_DESIGNATION,
    FIELD_DESIGNATION_TYPE,
    FIELD_ESTABLISHED_YEAR,
    FIELD_ID,
    FIELD_MANAGEMENT_CATEGORY,
    FIELD_NAME,
    FIELD_REALM,
    FIELD_REGION,
    FIELD_REPORTED_AREA,
    FIELD_STATUS,
    GEOMETRY_TYPE_POINT,
    GEOMETRY_TYPE_POLYGON,
    MAX_YEAR,
    MIN_YEAR,
    NUMERIC_SENTINELS,
    STAGE_NORMALIZE,
    TEXT_SENTINELS,
)
from pa_clean.core.exceptions import ValidationError
from pa_clean.models.audit import AuditLog
from pa_clean.models.categories import (
    DesignationKind,
    ManagementCategory,
    Realm,
    Status,
)
from pa_clean.models.record import FeatureRecord

if TYPE_CHECKING:
    from collections.abc import Iterable

    from shapely.geometry.base import BaseGeometry

    from pa_clean.models.feature import RawFeature

logger = logging.getLogger("pa_clean.activities.normalize_attributes")

_AREAL_TYPES = frozenset({"Point", "MultiPoint", "Polygon", "MultiPolygon", "GeometryCollection"})


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class NormalizationExclusion(ValidationError):
    """Base class for records removed by the attribute normalizer."""

    default_stage = STAGE_NORMALIZE
    default_code = "ATTRIBUTE_EXCLUDED"


class SentinelNormalizationSkip(NormalizationExclusion):
    """A sentinel value was replaced by an unknown marker. Record retained."""

    default_code = "SENTINEL_NORMALIZED"
    drops_record = False


class UnsupportedStatusExclusion(NormalizationExclusion):
    """Record status is not in the retained allow-list."""

    default_code = "UNSUPPORTED_STATUS"


class ExcludedDesignationExclusion(NormalizationExclusion):
    """Record designation kind has no persistent spatial footprint."""

    default_code = "EXCLUDED_DESIGNATION"


class ZeroAreaPlaceholderExclusion(NormalizationExclusion):
    """Record geometry is missing, empty, non-areal or has zero area."""

    default_code = "ZERO_AREA_PLACEHOLDER"


class InvalidAttributeExclusion(NormalizationExclusion):
    """A required attribute (identifier, realm) is missing or unrecognised."""

    default_code = "INVALID_ATTRIBUTE"


class NonArealPartsSkip(NormalizationExclusion):
    """A geometry collection carries point or line members. Record retained.

    Only the polygonal members describe the area; the others are discarded
    by geometry repair.
    """

    default_code = "NON_AREAL_PARTS_DISCARDED"
    drops_record = False


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def normalize_attributes(
    features: Iterable[RawFeature],
    *,
    config: PipelineConfig | None = None,
    audit: AuditLog | None = None,
) -> list[FeatureRecord]:
    """Normalize provider rows and drop out-of-scope records.

    Args:
        features: Raw provider features.
        config: Pipeline configuration (allow-list, exclusions, field map).
        audit: Audit log receiving drop and normalization entries.

    Returns:
        Normalized records, in input order.
    """
    config = config or PipelineConfig()
    audit = audit if audit is not None else AuditLog()

    records: list[FeatureRecord] = []
    total = 0
    notes_before = len(audit)
    for feature in features:
        total += 1
        try:
            record, notes = normalize_feature(feature, config=config)
        except NormalizationExclusion as exc:
            audit.record(exc)
            logger.warning(
                "Record dropped | stage=%s | id=%s | code=%s | reason=%s",
                exc.stage,
                exc.record_id,
                exc.code,
                exc.message,
            )
            continue
        for note in notes:
            audit.record(note)
        records.append(record)

    logger.info(
        "Attributes normalized | input=%d | retained=%d | dropped=%d | audit_entries=%d",
        total,
        len(records),
        total - len(records),
        len(audit) - notes_before,
    )
    return records


def normalize_feature(
    feature: RawFeature,
    *,
    config: PipelineConfig,
) -> tuple[FeatureRecord, list[NormalizationExclusion]]:
    """Normalize one provider row.

    Returns:
        The normalized record and the informational notes raised for it.

    Raises:
        NormalizationExclusion: If the record is out of scope.
    """
    props = feature.properties
    fields = config.field_map
    record_id = feature.record_id.strip() or _text(props.get(fields[FIELD_ID]))
    if not record_id:
        msg = f"Feature {feature.feature_index} in '{feature.source_file}' has no identifier"
        raise InvalidAttributeExclusion(
            msg, code="MISSING_ID", record_id=f"#{feature.feature_index}"
        )

    notes: list[NormalizationExclusion] = []

    def _note(field_name: str, raw: object, replacement: str) -> None:
        notes.append(
            SentinelNormalizationSkip(
                f"{field_name}={raw!r} normalized to {replacement}",
                record_id=record_id,
            )
        )

    # Status allow-list
    raw_status = props.get(fields[FIELD_STATUS])
    status = Status.from_text(raw_status) if not _is_text_sentinel(raw_status) else None
    if status is None:
        _note(FIELD_STATUS, raw_status, Status.NOT_REPORTED.value)
        status = Status.NOT_REPORTED
    if status not in config.retain_statuses:
        msg = f"Status '{status.value}' is not retained"
        raise UnsupportedStatusExclusion(msg, record_id=record_id)

    # Designation exclusions
    raw_desig_type = props.get(fields[FIELD_DESIGNATION_TYPE])
    designation_kind = DesignationKind.from_text(
        raw_desig_type, props.get(fields[FIELD_DESIGNATION], "")
    )
    if designation_kind is None:
        _note(FIELD_DESIGNATION_TYPE, raw_desig_type, DesignationKind.NOT_APPLICABLE.value)
        designation_kind = DesignationKind.NOT_APPLICABLE
    if designation_kind in config.excluded_designations:
        msg = f"Designation kind '{designation_kind.value}' is excluded"
        raise ExcludedDesignationExclusion(msg, record_id=record_id)

    # Realm has no unknown marker: erasure partitions depend on it
    raw_realm = props.get(fields[FIELD_REALM])
    realm = Realm.from_text(raw_realm)
    if realm is None:
        msg = f"Realm {raw_realm!r} is not terrestrial, marine or mixed"
        raise InvalidAttributeExclusion(msg, code="UNKNOWN_REALM", record_id=record_id)

    _check_geometry(feature, record_id)
    discarded = _non_areal_parts(feature.geometry)  # type: ignore[arg-type]
    if discarded:
        notes.append(
            NonArealPartsSkip(
                f"{len(discarded)} non-areal member(s) discarded: {', '.join(sorted(set(discarded)))}",
                record_id=record_id,
            )
        )

    raw_category = props.get(fields[FIELD_MANAGEMENT_CATEGORY])
    category = None if _is_text_sentinel(raw_category) else ManagementCategory.from_text(raw_category)
    if category is None:
        _note(FIELD_MANAGEMENT_CATEGORY, raw_category, ManagementCategory.NOT_REPORTED.value)
        category = ManagementCategory.NOT_REPORTED

    raw_area = props.get(fields[FIELD_REPORTED_AREA])
    reported_area = _number(raw_area)
    if reported_area is not None and (reported_area in NUMERIC_SENTINELS or reported_area < 0):
        reported_area = None
    if reported_area is None and raw_area is not None:
        _note(FIELD_REPORTED_AREA, raw_area, "unknown")

    raw_year = props.get(fields[FIELD_ESTABLISHED_YEAR])
    year_value = _number(raw_year)
    established_year: int | None = None
    if (
        year_value is not None
        and year_value.is_integer()
        and year_value not in NUMERIC_SENTINELS
        and MIN_YEAR <= year_value <= MAX_YEAR
    ):
        established_year = int(year_value)
    elif raw_year is not None:
        _note(FIELD_ESTABLISHED_YEAR, raw_year, "unknown")

    record = FeatureRecord(
        record_id=record_id,
        geometry=feature.geometry,  # type: ignore[arg-type]
        crs=feature.crs or config.source_crs,
        status=status,
        designation_kind=designation_kind,
        management_category=category,
        realm=realm,
        reported_area_km2=reported_area,
        established_year=established_year,
        region=_text(props.get(fields[FIELD_REGION])),
        name=_text(props.get(fields[FIELD_NAME])),
        geometry_type=(
            GEOMETRY_TYPE_POINT
            if feature.geometry.geom_type in ("Point", "MultiPoint")  # type: ignore[union-attr]
            else GEOMETRY_TYPE_POLYGON
        ),
    )
    return record, notes


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _check_geometry(feature: RawFeature, record_id: str) -> None:
    """Raise ``ZeroAreaPlaceholderExclusion`` for placeholder geometry."""
    geometry = feature.geometry
    if geometry is None or geometry.is_empty:
        raise ZeroAreaPlaceholderExclusion("Geometry is missing or empty", record_id=record_id)
    geom_type = geometry.geom_type
    if geom_type not in _AREAL_TYPES:
        msg = f"Geometry type {geom_type} cannot describe a protected area"
        raise ZeroAreaPlaceholderExclusion(msg, record_id=record_id)
    if geom_type not in ("Point", "MultiPoint") and geometry.area == 0:
        raise ZeroAreaPlaceholderExclusion("Polygon geometry has zero area", record_id=record_id)


def _non_areal_parts(geometry: BaseGeometry) -> list[str]:
    """Geometry types of the point and line members of a collection."""
    if geometry.geom_type != "GeometryCollection":
        return []
    discarded: list[str] = []
    for member in geometry.geoms:  # type: ignore[attr-defined]
        if member.geom_type == "GeometryCollection":
            discarded.extend(_non_areal_parts(member))
        elif member.geom_type not in ("Polygon", "MultiPolygon") and not member.is_empty:
            discarded.append(member.geom_type)
    return discarded


def _is_text_sentinel(value: object) -> bool:
    return value is None or _text(value) in TEXT_SENTINELS


def _text(value: object) -> str:
    """Stringify a provider value, trimming whitespace and integral floats."""
    if value is None:
        return ""
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value).strip()


def _number(value: object) -> float | None:
    """Parse a provider number; blanks, NaN and non-numeric text are ``None``."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip()) if isinstance(value, str) else float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number
