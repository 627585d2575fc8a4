"""Tests for the audit trail (AuditEntry / AuditLog)."""

from __future__ import annotations

from pa_clean.activities.normalize_attributes import (
    SentinelNormalizationSkip,
    UnsupportedStatusExclusion,
)
from pa_clean.activities.resolve_overlaps import FullySubsumedExclusion
from pa_clean.models.audit import AuditEntry, AuditLog


class TestAuditEntry:
    def test_from_error(self) -> None:
        entry = AuditEntry.from_error(UnsupportedStatusExclusion("Proposed", record_id="12"))
        assert entry.record_id == "12"
        assert entry.stage == "normalize_attributes"
        assert entry.code == "UNSUPPORTED_STATUS"
        assert entry.category == "validation"
        assert entry.message == "Proposed"
        assert entry.dropped is True

    def test_informational_entry_not_dropped(self) -> None:
        entry = AuditEntry.from_error(SentinelNormalizationSkip("REP_AREA=0", record_id="1"))
        assert entry.dropped is False

    def test_round_trip(self) -> None:
        entry = AuditEntry("1", "resolve_overlaps", "FULLY_SUBSUMED", "validation", "gone")
        assert AuditEntry.from_dict(entry.to_dict()) == entry


class TestAuditLog:
    def _log(self) -> AuditLog:
        log = AuditLog()
        log.record(SentinelNormalizationSkip("year", record_id="1"))
        log.record(UnsupportedStatusExclusion("Proposed", record_id="2"))
        log.record(UnsupportedStatusExclusion("Not Reported", record_id="3"))
        log.record(FullySubsumedExclusion("nested", record_id="4"))
        return log

    def test_len_and_iter(self) -> None:
        log = self._log()
        assert len(log) == 4
        assert [e.record_id for e in log] == ["1", "2", "3", "4"]

    def test_dropped(self) -> None:
        log = self._log()
        assert [e.record_id for e in log.dropped] == ["2", "3", "4"]
        assert log.dropped_ids() == {"2", "3", "4"}
        assert log.dropped_ids("resolve_overlaps") == {"4"}

    def test_summary(self) -> None:
        assert self._log().summary() == {
            "dropped": {
                "normalize_attributes": {"UNSUPPORTED_STATUS": 2},
                "resolve_overlaps": {"FULLY_SUBSUMED": 1},
            },
            "normalized": {"normalize_attributes": {"SENTINEL_NORMALIZED": 1}},
        }

    def test_extend_keeps_order(self) -> None:
        first, second = self._log(), AuditLog()
        second.record(FullySubsumedExclusion("nested", record_id="9"))
        first.extend(second)
        assert [e.record_id for e in first][-1] == "9"
