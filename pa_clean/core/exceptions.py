"""Pipeline exception taxonomy.

Every stage raises subclasses of ``PipelineError``. Each error knows the
stage it belongs to, a machine-readable code, whether retrying could help,
and which record it concerns, so the stages can turn it straight into an
``AuditEntry`` instead of aborting the batch.

Categories
----------
- ``ValidationError``: a rule excluded (or normalized) a record.
- ``TransientError``: a numerical operation failed but may succeed on retry.
- ``PermanentError``: a record cannot be processed.
- ``ContractError``: a stage received data it does not accept (mixed CRS,
  schema drift).

Only ``drops_record = False`` errors leave their record in the output;
they exist to put informational rows in the audit log.
"""

from __future__ import annotations

from typing import ClassVar


class PipelineError(Exception):
    """Base exception for all pipeline-domain errors.

    Attributes:
        message: Human-readable error description.
        stage: Pipeline stage that raised the error
            (e.g. ``"expand_points"``, ``"resolve_overlaps"``).
        code: Machine-readable reason (e.g. ``"POINT_WITHOUT_AREA"``).
        retryable: Whether the operation may succeed on retry.
        record_id: Identifier of the record concerned, if any.
    """

    default_stage: ClassVar[str] = ""
    default_code: ClassVar[str] = ""
    default_retryable: ClassVar[bool] = False
    #: Fixed category of a subclass; on the base it follows ``retryable``.
    kind: ClassVar[str | None] = None
    #: Whether the record concerned is removed from the output.
    drops_record: ClassVar[bool] = True

    def __init__(
        self,
        message: str = "",
        *,
        stage: str = "",
        code: str = "",
        retryable: bool | None = None,
        record_id: str = "",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage or self.default_stage
        self.code = code or self.default_code
        self.retryable = self.default_retryable if retryable is None else retryable
        self.record_id = record_id

    @property
    def category(self) -> str:
        if self.kind is not None:
            return self.kind
        return "transient" if self.retryable else "permanent"

    def to_error_dict(self) -> dict[str, object]:
        """Structured payload with stable keys, used for audit entries and logs."""
        return {
            "category": self.category,
            "code": self.code,
            "stage": self.stage,
            "message": self.message,
            "retryable": self.retryable,
            "record_id": self.record_id,
        }


class ValidationError(PipelineError):
    """A rule excluded or normalized a record. Never retryable."""

    kind = "validation"


class TransientError(PipelineError):
    """Failure that may succeed on retry."""

    kind = "transient"
    default_retryable = True


class PermanentError(PipelineError):
    """Record cannot be processed. Not retryable."""

    kind = "permanent"


class ContractError(PipelineError):
    """Stage input violates its contract. Never retryable."""

    kind = "contract"
