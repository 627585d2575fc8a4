"""Data models and schemas.

Defines the data structures used throughout the pipeline:
- RawFeature: Provider record before normalization
- FeatureRecord: Normalized, typed protected-area record
- Status / DesignationKind / ManagementCategory / Realm: closed vocabularies
- AuditEntry / AuditLog: Per-record audit trail
"""

from pa_clean.models.audit import AuditEntry, AuditLog
from pa_clean.models.categories import (
    DesignationKind,
    ManagementCategory,
    Realm,
    Status,
)
from pa_clean.models.feature import RawFeature
from pa_clean.models.record import FeatureRecord, ModelValidationError

__all__ = [
    "AuditEntry",
    "AuditLog",
    "DesignationKind",
    "FeatureRecord",
    "ManagementCategory",
    "ModelValidationError",
    "RawFeature",
    "Realm",
    "Status",
]
