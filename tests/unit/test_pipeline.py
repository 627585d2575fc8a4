"""End-to-end tests for the cleaning pipeline orchestrator.

Covers:
- Nested-rectangle scenario with overlap erasure on and off
- Point expansion through to recomputed area
- Geographic input reprojected to the working CRS
- Mixed batches: every dropped record is audited, none aborts the run
- Determinism
- Dissolve entry point
"""

from __future__ import annotations

from dataclasses import replace

import pytest
from shapely.geometry import GeometryCollection, Point, Polygon, box

from pa_clean.core.config import ConfigValidationError, PipelineConfig
from pa_clean.orchestrators.pipeline import CleanResult, clean_features, dissolve_features


class TestNestedScenario:
    def test_overlaps_erased(self, nested_features, config) -> None:
        result = clean_features(nested_features, config)

        assert isinstance(result, CleanResult)
        assert [r.record_id for r in result.records] == ["1", "3"]
        assert [r.computed_area_km2 for r in result.records] == pytest.approx([100.0, 5.0])
        assert result.total_area_km2 == pytest.approx(105.0)
        assert result.audit.dropped_ids() == {"2"}

    def test_erasure_disabled_still_recomputes(self, nested_features, config) -> None:
        result = clean_features(nested_features, replace(config, erase_overlaps=False))

        assert [r.record_id for r in result.records] == ["1", "2", "3"]
        assert [r.computed_area_km2 for r in result.records] == pytest.approx([100.0, 60.0, 10.0])
        assert len(result.audit) == 0

    def test_summary(self, nested_features, config) -> None:
        summary = clean_features(nested_features, config).summary()
        assert summary["records"] == 2
        assert summary["total_area_km2"] == pytest.approx(105.0)
        assert summary["audit"] == {
            "dropped": {"resolve_overlaps": {"FULLY_SUBSUMED": 1}},
            "normalized": {},
        }

    def test_deterministic(self, nested_features, config) -> None:
        first = clean_features(nested_features, config)
        second = clean_features(nested_features, config)
        assert [r.to_dict() for r in first.records] == [r.to_dict() for r in second.records]
        assert list(first.audit) == list(second.audit)


class TestPointScenario:
    def test_point_area_round_trip(self, make_feature, config) -> None:
        result = clean_features([make_feature(1, Point(0, 0), REP_AREA=3.14159)], config)
        [record] = result.records
        assert record.geometry.geom_type == "Polygon"
        assert record.computed_area_km2 == pytest.approx(3.14159, rel=1e-3)
        assert record.geometry_type == "POINT"

    def test_point_without_area_audited(self, make_feature, config) -> None:
        result = clean_features([make_feature(1, Point(0, 0), REP_AREA=0)], config)
        assert result.records == []
        assert [(e.code, e.dropped) for e in result.audit] == [
            ("SENTINEL_NORMALIZED", False),
            ("POINT_WITHOUT_AREA", True),
        ]

    def test_geographic_point(self, make_feature) -> None:
        feature = make_feature(1, Point(10.0, 45.0), crs="EPSG:4326", REP_AREA=50.0)
        [record] = clean_features([feature], PipelineConfig()).records
        assert record.crs == "ESRI:54009"
        assert record.computed_area_km2 == pytest.approx(50.0, rel=1e-2)

    @pytest.mark.parametrize(
        ("point", "area_km2"),
        [(Point(179.99, -17.0), 100.0), (Point(-179.995, 60.0), 10.0)],
    )
    def test_geographic_point_on_antimeridian(self, make_feature, point: Point, area_km2: float) -> None:
        feature = make_feature(1, point, crs="EPSG:4326", REP_AREA=area_km2)
        [record] = clean_features([feature], PipelineConfig()).records
        assert record.computed_area_km2 == pytest.approx(area_km2, rel=1e-2)
        assert record.area_warning == ""


class TestMixedBatch:
    def test_collection_point_members_audited(self, make_feature, config) -> None:
        collection = GeometryCollection([box(0, 0, 1000, 1000), Point(5000, 5000)])
        result = clean_features([make_feature(1, collection, REP_AREA=5.0)], config)

        [record] = result.records
        assert record.geometry.geom_type == "Polygon"
        assert record.computed_area_km2 == pytest.approx(1.0)
        assert record.geometry_type == "POLYGON"
        assert result.audit.summary()["normalized"] == {
            "normalize_attributes": {"NON_AREAL_PARTS_DISCARDED": 1}
        }

    def test_every_drop_audited(self, make_feature, config) -> None:
        features = [
            make_feature(1, box(0, 0, 1000, 1000)),
            make_feature(2, box(0, 0, 1000, 1000), STATUS="Proposed"),
            make_feature(
                3,
                box(5000, 0, 6000, 1000),
                DESIG_TYPE="International",
                DESIG_ENG="UNESCO-MAB Biosphere Reserve",
            ),
            make_feature(4, None),
            make_feature(5, Point(50_000, 0)),
            make_feature(6, Polygon([(20_000, 0), (21_000, 1000), (21_000, 0), (20_000, 1000)])),
            make_feature(7, box(0, 0, 500, 500)),
        ]
        result = clean_features(features, config)

        assert [r.record_id for r in result.records] == ["1", "6"]
        assert result.records[1].geometry.is_valid
        assert result.records[1].computed_area_km2 == pytest.approx(0.5)
        assert result.audit.summary()["dropped"] == {
            "expand_points": {"POINT_WITHOUT_AREA": 1},
            "normalize_attributes": {
                "EXCLUDED_DESIGNATION": 1,
                "UNSUPPORTED_STATUS": 1,
                "ZERO_AREA_PLACEHOLDER": 1,
            },
            "resolve_overlaps": {"FULLY_SUBSUMED": 1},
        }

    def test_emitted_geometry_polygonal_and_valid(self, make_feature, config) -> None:
        features = [
            make_feature(i, Point(i * 1500, 0), REP_AREA=2.0) for i in range(5)
        ]
        result = clean_features(features, config)
        for record in result.records:
            assert record.geometry.is_valid
            assert record.geometry.geom_type in ("Polygon", "MultiPolygon")

    def test_invalid_config_fails_fast(self, nested_features) -> None:
        with pytest.raises(ConfigValidationError):
            clean_features(nested_features, PipelineConfig(geometry_precision=0))


class TestDissolveFeatures:
    def test_dissolve(self, nested_features, config) -> None:
        dissolved, audit = dissolve_features(nested_features, config)
        assert dissolved.area_km2 == pytest.approx(105.0)
        assert dissolved.record_count == 3
        assert dissolved.geometry.geom_type == "MultiPolygon"
        assert len(audit) == 0
