"""Audit trail for records normalized or dropped by the pipeline.

Every drop is accompanied by an ``AuditEntry`` (record id, stage, reason).
Informational entries (``dropped=False``) record sentinel normalizations on
retained records. The log is local to one pipeline invocation; partitioned
runs merge the per-partition logs in partition order.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from pa_clean.core.exceptions import PipelineError


@dataclass(frozen=True, slots=True)
class AuditEntry:
    """One audited event for one record.

    Attributes:
        record_id: Identifier of the record concerned.
        stage: Pipeline stage that produced the entry.
        code: Machine-readable reason (e.g. ``"POINT_WITHOUT_AREA"``).
        category: Taxonomy category (``validation``, ``permanent``, ...).
        message: Human-readable description.
        dropped: Whether the record was removed from the output.
    """

    record_id: str
    stage: str
    code: str
    category: str = "validation"
    message: str = ""
    dropped: bool = True

    @classmethod
    def from_error(cls, exc: PipelineError) -> AuditEntry:
        """Build an entry from a taxonomy exception's structured payload."""
        payload = exc.to_error_dict()
        return cls(
            record_id=str(payload["record_id"]),
            stage=str(payload["stage"]),
            code=str(payload["code"]),
            category=str(payload["category"]),
            message=str(payload["message"]),
            dropped=exc.drops_record,
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "record_id": self.record_id,
            "stage": self.stage,
            "code": self.code,
            "category": self.category,
            "message": self.message,
            "dropped": self.dropped,
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> AuditEntry:
        return cls(
            record_id=str(data.get("record_id", "")),
            stage=str(data.get("stage", "")),
            code=str(data.get("code", "")),
            category=str(data.get("category", "validation")),
            message=str(data.get("message", "")),
            dropped=bool(data.get("dropped", True)),
        )


@dataclass(slots=True)
class AuditLog:
    """Append-only collection of audit entries."""

    entries: list[AuditEntry] = field(default_factory=list)

    def record(self, exc: PipelineError) -> AuditEntry:
        """Append an entry for ``exc`` and return it."""
        entry = AuditEntry.from_error(exc)
        self.entries.append(entry)
        return entry

    def extend(self, entries: Iterable[AuditEntry]) -> None:
        self.entries.extend(entries)

    def __iter__(self) -> Iterator[AuditEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def dropped(self) -> list[AuditEntry]:
        return [e for e in self.entries if e.dropped]

    def dropped_ids(self, stage: str | None = None) -> set[str]:
        """Identifiers of dropped records, optionally for one stage."""
        return {e.record_id for e in self.dropped if stage is None or e.stage == stage}

    def summary(self) -> dict[str, dict[str, dict[str, int]]]:
        """Counts per stage and reason code, split into dropped vs normalized.

        Returns:
            ``{"dropped": {stage: {code: n}}, "normalized": {stage: {code: n}}}``
        """
        counts: dict[bool, Counter[tuple[str, str]]] = {True: Counter(), False: Counter()}
        for entry in self.entries:
            counts[entry.dropped][(entry.stage, entry.code)] += 1

        def _nest(counter: Counter[tuple[str, str]]) -> dict[str, dict[str, int]]:
            nested: dict[str, dict[str, int]] = {}
            for (stage, code), n in sorted(counter.items()):
                nested.setdefault(stage, {})[code] = n
            return nested

        return {"dropped": _nest(counts[True]), "normalized": _nest(counts[False])}
