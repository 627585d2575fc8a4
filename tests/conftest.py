"""Shared pytest fixtures for the protected-area cleaning test suite."""

from __future__ import annotations

import itertools
from typing import Any

import pytest
from shapely.geometry import box

from pa_clean.core.config import PipelineConfig
from pa_clean.models.feature import RawFeature
from pa_clean.models.record import FeatureRecord

# World Mollweide: planar metres, equal-area, so rectangles have exact areas.
MOLLWEIDE = "ESRI:54009"


def km_box(x0_km: float, y0_km: float, x1_km: float, y1_km: float):
    """Rectangle in Mollweide metres from kilometre corners."""
    return box(x0_km * 1000, y0_km * 1000, x1_km * 1000, y1_km * 1000)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@pytest.fixture()
def config() -> PipelineConfig:
    """Default configuration with Mollweide input data."""
    return PipelineConfig(source_crs=MOLLWEIDE)


# ---------------------------------------------------------------------------
# Provider features and records
# ---------------------------------------------------------------------------


@pytest.fixture()
def make_feature():
    """Factory for WDPA-style raw features; keyword args override columns."""
    counter = itertools.count()

    def _make(
        record_id: str | int,
        geometry: Any,
        *,
        crs: str = MOLLWEIDE,
        **columns: Any,
    ) -> RawFeature:
        properties: dict[str, Any] = {
            "WDPAID": record_id,
            "NAME": f"Area {record_id}",
            "STATUS": "Designated",
            "DESIG_TYPE": "National",
            "DESIG_ENG": "National Park",
            "IUCN_CAT": "II",
            "MARINE": "0",
            "REP_AREA": None,
            "STATUS_YR": 1990,
            "ISO3": "KEN",
        }
        properties.update(columns)
        return RawFeature(
            record_id=str(record_id),
            geometry=geometry,
            properties=properties,
            crs=crs,
            source_file="wdpa_test.gpkg",
            feature_index=next(counter),
        )

    return _make


@pytest.fixture()
def make_record():
    """Factory for normalized records in Mollweide."""

    def _make(record_id: str, geometry: Any, **fields: Any) -> FeatureRecord:
        fields.setdefault("crs", MOLLWEIDE)
        return FeatureRecord(record_id=record_id, geometry=geometry, **fields)

    return _make


@pytest.fixture()
def nested_features(make_feature) -> list[RawFeature]:
    """Three rectangles: 100 km², 60 km² nested in it, 10 km² half overlapping it."""
    return [
        make_feature(1, km_box(0, 0, 10, 10)),
        make_feature(2, km_box(1, 1, 8.5, 9)),
        make_feature(3, km_box(9, 0, 11, 5)),
    ]
