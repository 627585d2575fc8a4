"""Tests for pipeline configuration.

Covers:
- Default values
- Loading from environment variables
- Type coercion (string env vars → numeric fields and category sets)
- Fail-fast range validation
- Worker-process round trip via to_dict / from_dict
"""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest

from pa_clean.core.config import ConfigValidationError, PipelineConfig
from pa_clean.models.categories import DesignationKind, Status


class TestPipelineConfigDefaults:
    """Verify default configuration values."""

    def test_default_precision(self) -> None:
        cfg = PipelineConfig()
        assert cfg.geometry_precision == 1500.0
        assert cfg.grid_size == pytest.approx(1 / 1500)

    def test_default_erase_overlaps(self) -> None:
        assert PipelineConfig().erase_overlaps is True

    def test_default_crs(self) -> None:
        cfg = PipelineConfig()
        assert cfg.source_crs == "EPSG:4326"
        assert cfg.equal_area_crs == "ESRI:54009"

    def test_default_retained_statuses(self) -> None:
        cfg = PipelineConfig()
        assert cfg.retain_statuses == {Status.DESIGNATED, Status.INSCRIBED, Status.ESTABLISHED}

    def test_default_excluded_designations(self) -> None:
        assert PipelineConfig().excluded_designations == {DesignationKind.BIOSPHERE_RESERVE}

    def test_default_precedence(self) -> None:
        assert PipelineConfig().overlap_precedence == "input"

    def test_default_field_map(self) -> None:
        cfg = PipelineConfig()
        assert cfg.field_map["id"] == "WDPAID"
        assert cfg.field_map["realm"] == "MARINE"


class TestPipelineConfigFromEnv:
    """Verify loading from environment variables."""

    def test_loads_from_environment(self) -> None:
        """All env vars are read and coerced to correct types."""
        env = {
            "PA_GEOMETRY_PRECISION": "100",
            "PA_ERASE_OVERLAPS": "false",
            "PA_SOURCE_CRS": "EPSG:3857",
            "PA_EQUAL_AREA_CRS": "EPSG:6933",
            "PA_RETAIN_STATUSES": "designated, Adopted",
            "PA_EXCLUDED_DESIGNATIONS": "",
            "PA_MAX_REPAIR_RETRIES": "5",
            "PA_MIN_SLIVER_AREA": "0",
            "PA_POINT_QUAD_SEGS": "16",
            "PA_OVERLAP_PRECEDENCE": "management",
            "PA_AREA_WARNING_RATIO": "0.25",
            "PA_MAX_WORKERS": "4",
        }
        with patch.dict(os.environ, env, clear=True):
            cfg = PipelineConfig.from_env()

        assert cfg.geometry_precision == 100.0
        assert cfg.erase_overlaps is False
        assert cfg.source_crs == "EPSG:3857"
        assert cfg.equal_area_crs == "EPSG:6933"
        assert cfg.retain_statuses == {Status.DESIGNATED, Status.ADOPTED}
        assert cfg.excluded_designations == frozenset()
        assert cfg.max_repair_retries == 5
        assert cfg.min_sliver_area == 0.0
        assert cfg.point_quad_segs == 16
        assert cfg.overlap_precedence == "management"
        assert cfg.area_warning_ratio == 0.25
        assert cfg.max_workers == 4

    def test_defaults_when_env_missing(self) -> None:
        """Missing environment variables fall back to defaults."""
        with patch.dict(os.environ, {}, clear=True):
            cfg = PipelineConfig.from_env()

        assert cfg == PipelineConfig()

    def test_member_names_accepted(self) -> None:
        with patch.dict(os.environ, {"PA_RETAIN_STATUSES": "NOT_REPORTED,PROPOSED"}, clear=True):
            cfg = PipelineConfig.from_env()
        assert cfg.retain_statuses == {Status.NOT_REPORTED, Status.PROPOSED}

    def test_frozen_immutability(self) -> None:
        """PipelineConfig is frozen (immutable)."""
        cfg = PipelineConfig()
        with pytest.raises(AttributeError):
            cfg.geometry_precision = 10.0  # type: ignore[misc]


class TestPipelineConfigValidation:
    """Fail-fast range validation in from_env."""

    @pytest.mark.parametrize(
        ("key", "value"),
        [
            ("PA_GEOMETRY_PRECISION", "0"),
            ("PA_GEOMETRY_PRECISION", "-1500"),
            ("PA_MAX_REPAIR_RETRIES", "0"),
            ("PA_MIN_SLIVER_AREA", "-0.5"),
            ("PA_POINT_QUAD_SEGS", "0"),
            ("PA_OVERLAP_PRECEDENCE", "random"),
            ("PA_AREA_WARNING_RATIO", "0"),
            ("PA_MAX_WORKERS", "0"),
            ("PA_SOURCE_CRS", ""),
            ("PA_EQUAL_AREA_CRS", ""),
        ],
    )
    def test_out_of_range_rejected(self, key: str, value: str) -> None:
        with (
            patch.dict(os.environ, {key: value}, clear=True),
            pytest.raises(ConfigValidationError, match=key),
        ):
            PipelineConfig.from_env()

    def test_bad_boolean_rejected(self) -> None:
        with (
            patch.dict(os.environ, {"PA_ERASE_OVERLAPS": "maybe"}, clear=True),
            pytest.raises(ConfigValidationError, match="boolean"),
        ):
            PipelineConfig.from_env()

    def test_unknown_status_rejected(self) -> None:
        with (
            patch.dict(os.environ, {"PA_RETAIN_STATUSES": "Designated,Imaginary"}, clear=True),
            pytest.raises(ConfigValidationError, match="Imaginary"),
        ):
            PipelineConfig.from_env()

    def test_non_numeric_env_raises_value_error(self) -> None:
        """Non-numeric string for a float field → ValueError."""
        with (
            patch.dict(os.environ, {"PA_GEOMETRY_PRECISION": "abc"}, clear=True),
            pytest.raises(ValueError),
        ):
            PipelineConfig.from_env()

    def test_error_contains_key_and_value(self) -> None:
        with pytest.raises(ConfigValidationError) as exc_info:
            PipelineConfig(max_workers=-2).validate()
        assert exc_info.value.key == "PA_MAX_WORKERS"
        assert exc_info.value.value == -2

    def test_validate_returns_self(self) -> None:
        cfg = PipelineConfig()
        assert cfg.validate() is cfg


class TestPipelineConfigSerialisation:
    """to_dict / from_dict carry every field across the process boundary."""

    def test_round_trip(self) -> None:
        cfg = PipelineConfig(
            geometry_precision=10.0,
            erase_overlaps=False,
            retain_statuses=frozenset({Status.ADOPTED}),
            excluded_designations=frozenset(),
            overlap_precedence="id",
            max_workers=3,
        )
        assert PipelineConfig.from_dict(cfg.to_dict()) == cfg

    def test_missing_keys_take_defaults(self) -> None:
        assert PipelineConfig.from_dict({}) == PipelineConfig()
