"""Shared pipeline constants: single source of truth.

Centralises provider column names, sentinel codes, stage names and CRS
defaults that would otherwise be duplicated across the cleaning stages.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Stage names (used in audit entries and log lines)
# ---------------------------------------------------------------------------

STAGE_NORMALIZE = "normalize_attributes"
STAGE_EXPAND = "expand_points"
STAGE_REPROJECT = "reproject"
STAGE_REPAIR = "repair_geometry"
STAGE_RESOLVE = "resolve_overlaps"
STAGE_DISSOLVE = "dissolve"

# ---------------------------------------------------------------------------
# Coordinate reference systems
# ---------------------------------------------------------------------------

DEFAULT_SOURCE_CRS: str = "EPSG:4326"
"""CRS of provider data as delivered."""

DEFAULT_EQUAL_AREA_CRS: str = "ESRI:54009"
"""World Mollweide: pseudo-cylindrical equal-area working projection."""

SQ_METRES_PER_SQ_KM = 1_000_000.0

# ---------------------------------------------------------------------------
# Geometry origin (WDPA GEOMETRY_TYPE)
# ---------------------------------------------------------------------------

GEOMETRY_TYPE_POLYGON = "POLYGON"
"""Record delivered with a surveyed boundary."""

GEOMETRY_TYPE_POINT = "POINT"
"""Record delivered as a point locality; its polygon is a synthesized circle."""

# ---------------------------------------------------------------------------
# Provider field names (WDPA attribute table)
# ---------------------------------------------------------------------------

FIELD_ID = "id"
FIELD_NAME = "name"
FIELD_STATUS = "status"
FIELD_DESIGNATION_TYPE = "designation_type"
FIELD_DESIGNATION = "designation"
FIELD_MANAGEMENT_CATEGORY = "management_category"
FIELD_REALM = "realm"
FIELD_REPORTED_AREA = "reported_area"
FIELD_ESTABLISHED_YEAR = "established_year"
FIELD_REGION = "region"

DEFAULT_FIELD_MAP: dict[str, str] = {
    FIELD_ID: "WDPAID",
    FIELD_NAME: "NAME",
    FIELD_STATUS: "STATUS",
    FIELD_DESIGNATION_TYPE: "DESIG_TYPE",
    FIELD_DESIGNATION: "DESIG_ENG",
    FIELD_MANAGEMENT_CATEGORY: "IUCN_CAT",
    FIELD_REALM: "MARINE",
    FIELD_REPORTED_AREA: "REP_AREA",
    FIELD_ESTABLISHED_YEAR: "STATUS_YR",
    FIELD_REGION: "ISO3",
}
"""Logical field → provider column name."""

# ---------------------------------------------------------------------------
# Sentinel codes ("not applicable / unknown" placeholders)
# ---------------------------------------------------------------------------

NUMERIC_SENTINELS: frozenset[float] = frozenset({0.0})
"""Numeric placeholder codes used for unknown area and year."""

TEXT_SENTINELS: frozenset[str] = frozenset({"", "0"})
"""Text placeholder codes used for unknown categorical values."""

MIN_YEAR = 1000
MAX_YEAR = 9999
