"""Tests for the unified exception taxonomy.

Validates:
- PipelineError hierarchy and structured attributes
- Category classification (validation, transient, permanent, contract)
- ``to_error_dict()`` produces stable payload keys
- Every stage exception is a PipelineError subclass with a stage and code
- Which exceptions drop their record
"""

from __future__ import annotations

from typing import ClassVar

import pytest

from pa_clean.activities.dissolve import DissolveError
from pa_clean.activities.expand_points import PointWithoutAreaFailure
from pa_clean.activities.load_features import FeatureReadError
from pa_clean.activities.normalize_attributes import (
    ExcludedDesignationExclusion,
    InvalidAttributeExclusion,
    SentinelNormalizationSkip,
    UnsupportedStatusExclusion,
    ZeroAreaPlaceholderExclusion,
)
from pa_clean.activities.repair_geometry import (
    EmptyGeometryExclusion,
    GeometryRepairFailure,
    ReprojectionFailure,
)
from pa_clean.activities.resolve_overlaps import (
    FullySubsumedExclusion,
    OverlapResolutionFailure,
)
from pa_clean.core.config import ConfigValidationError
from pa_clean.core.exceptions import (
    ContractError,
    PermanentError,
    PipelineError,
    TransientError,
    ValidationError,
)
from pa_clean.models.record import ModelValidationError


class TestPipelineErrorBase:
    """PipelineError base class behavior."""

    def test_default_attributes(self) -> None:
        err = PipelineError("boom")
        assert err.message == "boom"
        assert err.stage == ""
        assert err.code == ""
        assert err.retryable is False
        assert err.record_id == ""

    def test_custom_attributes(self) -> None:
        err = PipelineError(
            "fail",
            stage="resolve_overlaps",
            code="OVERLAP_RESOLUTION_FAILED",
            retryable=True,
            record_id="555",
        )
        assert err.stage == "resolve_overlaps"
        assert err.code == "OVERLAP_RESOLUTION_FAILED"
        assert err.retryable is True
        assert err.record_id == "555"

    def test_str_is_message(self) -> None:
        assert str(PipelineError("readable")) == "readable"

    def test_base_category_follows_retryable(self) -> None:
        assert PipelineError("x", retryable=True).category == "transient"
        assert PipelineError("x").category == "permanent"

    def test_to_error_dict_keys(self) -> None:
        payload = PipelineError("x", stage="s", code="C", record_id="1").to_error_dict()
        assert set(payload) == {"category", "code", "stage", "message", "retryable", "record_id"}
        assert payload["record_id"] == "1"


class TestCategoryBases:
    """Category base classes set retryable and category."""

    def test_validation(self) -> None:
        err = ValidationError("bad")
        assert err.category == "validation"
        assert err.retryable is False

    def test_transient(self) -> None:
        err = TransientError("later")
        assert err.category == "transient"
        assert err.retryable is True

    def test_permanent(self) -> None:
        err = PermanentError("never")
        assert err.category == "permanent"
        assert err.retryable is False

    def test_contract(self) -> None:
        err = ContractError("drift")
        assert err.category == "contract"
        assert err.retryable is False


class TestStageExceptions:
    """Every stage exception is part of the taxonomy with stable defaults."""

    EXPECTED: ClassVar[list[tuple[type[PipelineError], type[PipelineError], str, str]]] = [
        (SentinelNormalizationSkip, ValidationError, "normalize_attributes", "SENTINEL_NORMALIZED"),
        (UnsupportedStatusExclusion, ValidationError, "normalize_attributes", "UNSUPPORTED_STATUS"),
        (ExcludedDesignationExclusion, ValidationError, "normalize_attributes", "EXCLUDED_DESIGNATION"),
        (ZeroAreaPlaceholderExclusion, ValidationError, "normalize_attributes", "ZERO_AREA_PLACEHOLDER"),
        (InvalidAttributeExclusion, ValidationError, "normalize_attributes", "INVALID_ATTRIBUTE"),
        (PointWithoutAreaFailure, PermanentError, "expand_points", "POINT_WITHOUT_AREA"),
        (ReprojectionFailure, PermanentError, "reproject", "REPROJECTION_FAILED"),
        (GeometryRepairFailure, PermanentError, "repair_geometry", "GEOMETRY_REPAIR_FAILED"),
        (EmptyGeometryExclusion, ValidationError, "repair_geometry", "GEOMETRY_EMPTY"),
        (OverlapResolutionFailure, PermanentError, "resolve_overlaps", "OVERLAP_RESOLUTION_FAILED"),
        (FullySubsumedExclusion, ValidationError, "resolve_overlaps", "FULLY_SUBSUMED"),
        (DissolveError, PermanentError, "dissolve", "DISSOLVE_FAILED"),
        (FeatureReadError, ValidationError, "load_features", "FEATURE_READ_FAILED"),
    ]

    @pytest.mark.parametrize(("exc_cls", "base", "stage", "code"), EXPECTED)
    def test_defaults(
        self,
        exc_cls: type[PipelineError],
        base: type[PipelineError],
        stage: str,
        code: str,
    ) -> None:
        err = exc_cls("msg", record_id="7")
        assert isinstance(err, base)
        assert err.stage == stage
        assert err.code == code
        assert err.retryable is False
        assert err.to_error_dict()["record_id"] == "7"

    def test_code_override(self) -> None:
        err = InvalidAttributeExclusion("no realm", code="UNKNOWN_REALM")
        assert err.code == "UNKNOWN_REALM"
        assert err.stage == "normalize_attributes"

    def test_only_sentinel_note_keeps_record(self) -> None:
        keeping = [cls for cls, *_ in self.EXPECTED if not cls.drops_record]
        assert keeping == [SentinelNormalizationSkip]


class TestConfigAndModelErrors:
    """Non-record errors are also part of the taxonomy."""

    def test_config_validation_error(self) -> None:
        err = ConfigValidationError("PA_GEOMETRY_PRECISION", -1, "must be > 0")
        assert isinstance(err, PipelineError)
        assert err.key == "PA_GEOMETRY_PRECISION"
        assert err.value == -1
        assert "PA_GEOMETRY_PRECISION" in str(err)

    def test_model_validation_error_is_value_error(self) -> None:
        err = ModelValidationError("FeatureRecord", "record_id", "", "must not be empty")
        assert isinstance(err, ValueError)
        assert isinstance(err, PipelineError)
        assert err.field_name == "record_id"
        assert "FeatureRecord.record_id" in err.message
