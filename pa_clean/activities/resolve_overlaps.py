"""Overlap resolution activity (erasure).

Nested and co-designated protected areas overlap heavily; summing their
areas double-counts the shared ground. This stage turns the records of each
realm into a non-overlapping partition, attributing every piece of shared
area to exactly one record:

1. Records are grouped by realm. Terrestrial, marine and mixed records are
   never erased against each other.
2. Within a realm, records are ordered by precedence (input order by
   default; see ``precedence_key``).
3. Walking that order, each record keeps only the part of its geometry not
   already claimed by an earlier record:
   ``residual = geometry - union(earlier geometries)``.
   The claim always grows by the record's *full* geometry, not just its
   residual, so the claimed region reflects true coverage.
4. Records whose residual is empty are fully subsumed and are dropped with
   an audit note.

The claimed region is never materialised as one growing union. A
``ClaimedArea`` holds an STRtree over the partition's geometries and, for
each record, unions only the earlier geometries that intersect it.

A difference or union that fails with a GEOS error is retried once after
re-snapping both operands to the precision grid; a second failure drops
the record with an ``OverlapResolutionFailure`` audit entry.

Output keeps the input order of the surviving records.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING

from pa_clean.activities.repair_geometry import (
    GeometryRepairFailure,
    repair_geometry,
    snap_to_grid,
)
from pa_clean.core.config import (
    PRECEDENCE_ID,
    PRECEDENCE_INPUT,
    PRECEDENCE_MANAGEMENT,
    PipelineConfig,
)
from pa_clean.core.constants import STAGE_RESOLVE
from pa_clean.core.exceptions import PermanentError, ValidationError
from pa_clean.models.audit import AuditLog
from pa_clean.models.categories import Realm

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence

    from shapely.geometry.base import BaseGeometry

    from pa_clean.models.record import FeatureRecord

logger = logging.getLogger("pa_clean.activities.resolve_overlaps")


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class OverlapResolutionFailure(PermanentError):
    """Set operations failed twice on a record (numerical degeneracy)."""

    default_stage = STAGE_RESOLVE
    default_code = "OVERLAP_RESOLUTION_FAILED"


class FullySubsumedExclusion(ValidationError):
    """Record's whole footprint is claimed by earlier records."""

    default_stage = STAGE_RESOLVE
    default_code = "FULLY_SUBSUMED"


# ---------------------------------------------------------------------------
# Claimed area (per-partition accumulator)
# ---------------------------------------------------------------------------


class ClaimedArea:
    """Area claimed by earlier records of one precedence-ordered partition.

    Position ``i`` in the partition order may only see claims made by
    positions ``0 .. i-1``. Built once per partition and discarded with it.
    """

    def __init__(self, geometries: Sequence[BaseGeometry]) -> None:
        from shapely import STRtree

        self._geometries = list(geometries)
        self._tree = STRtree(self._geometries)

    def earlier_overlapping(self, position: int) -> list[int]:
        """Positions before ``position`` whose geometry intersects it."""
        hits = self._tree.query(self._geometries[position], predicate="intersects")
        return sorted(int(i) for i in hits if i < position)

    def claimed_before(self, position: int, *, grid_size: float | None = None) -> BaseGeometry | None:
        """Union of the earlier geometries that can touch ``position``.

        Returns ``None`` when nothing earlier intersects it.
        """
        earlier = self.earlier_overlapping(position)
        if not earlier:
            return None

        from shapely import union_all

        parts = [self._geometries[i] for i in earlier]
        if grid_size is not None:
            parts = [snap_to_grid(p, grid_size) for p in parts]
        return union_all(parts)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def resolve_overlaps(
    records: Iterable[FeatureRecord],
    *,
    config: PipelineConfig | None = None,
    audit: AuditLog | None = None,
) -> list[FeatureRecord]:
    """Erase overlaps within each realm, first claim wins.

    Args:
        records: Records with valid polygonal geometry in one CRS.
        config: Pipeline configuration (precedence, grid, sliver area).
        audit: Audit log receiving subsumed and failed records.

    Returns:
        Records carrying their residual geometry, in input order.
        ``computed_area_km2`` is cleared; recompute areas afterwards.
    """
    config = config or PipelineConfig()
    audit = audit if audit is not None else AuditLog()

    by_realm: dict[Realm, list[tuple[int, FeatureRecord]]] = {realm: [] for realm in Realm}
    total = 0
    for index, record in enumerate(records):
        by_realm[record.realm].append((index, record))
        total += 1

    key = precedence_key(config.overlap_precedence)
    resolved: list[tuple[int, FeatureRecord]] = []
    for realm, items in by_realm.items():
        if not items:
            continue
        ordered = sorted(items, key=key)
        kept = _erase_partition(ordered, config=config, audit=audit)
        logger.info(
            "Realm resolved | realm=%s | input=%d | output=%d | precedence=%s",
            realm.value,
            len(items),
            len(kept),
            config.overlap_precedence,
        )
        resolved.extend(kept)

    resolved.sort(key=lambda item: item[0])
    logger.info("Overlaps resolved | input=%d | output=%d", total, len(resolved))
    return [record for _, record in resolved]


def precedence_key(order: str) -> Callable[[tuple[int, FeatureRecord]], tuple]:
    """Sort key over ``(input_index, record)`` pairs for a precedence order.

    - ``input``: input order.
    - ``id``: identifier (numeric identifiers numerically), then input order.
    - ``management``: strongest management category first, then earliest
      establishment year (unknown years last), then input order.

    Raises:
        ValueError: If ``order`` is not a known precedence order.
    """
    if order == PRECEDENCE_INPUT:
        return lambda item: (item[0],)
    if order == PRECEDENCE_ID:
        return lambda item: (*_id_key(item[1].record_id), item[0])
    if order == PRECEDENCE_MANAGEMENT:
        return lambda item: (
            item[1].management_category.rank,
            item[1].established_year if item[1].established_year is not None else float("inf"),
            item[0],
        )
    msg = f"Unknown overlap precedence order: {order!r}"
    raise ValueError(msg)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _erase_partition(
    ordered: list[tuple[int, FeatureRecord]],
    *,
    config: PipelineConfig,
    audit: AuditLog,
) -> list[tuple[int, FeatureRecord]]:
    claims = ClaimedArea([record.geometry for _, record in ordered])
    kept: list[tuple[int, FeatureRecord]] = []
    for position, (index, record) in enumerate(ordered):
        try:
            residual = _residual(claims, position, record, config=config)
        except (OverlapResolutionFailure, FullySubsumedExclusion) as exc:
            audit.record(exc)
            logger.warning(
                "Record dropped | stage=%s | id=%s | code=%s | reason=%s",
                exc.stage,
                exc.record_id,
                exc.code,
                exc.message,
            )
            continue
        if residual is record.geometry:
            kept.append((index, record))
        else:
            kept.append((index, replace(record, geometry=residual, computed_area_km2=None)))
    return kept


def _residual(
    claims: ClaimedArea,
    position: int,
    record: FeatureRecord,
    *,
    config: PipelineConfig,
) -> BaseGeometry:
    """Part of ``record`` not claimed by earlier records.

    Raises:
        FullySubsumedExclusion: If nothing is left.
        OverlapResolutionFailure: If set operations fail after one retry.
    """
    import shapely
    from shapely.errors import GEOSException

    try:
        claimed = claims.claimed_before(position)
        if claimed is None:
            return record.geometry
        difference = shapely.difference(record.geometry, claimed)
    except GEOSException as first_exc:
        logger.debug(
            "Difference failed, retrying on precision grid | id=%s | error=%s",
            record.record_id,
            first_exc,
        )
        try:
            claimed = claims.claimed_before(position, grid_size=config.grid_size)
            difference = shapely.difference(snap_to_grid(record.geometry, config.grid_size), claimed)
        except GEOSException as exc:
            msg = f"Set operation failed after re-snapping: {exc}"
            raise OverlapResolutionFailure(msg, record_id=record.record_id) from exc

    try:
        residual = repair_geometry(
            difference,
            grid_size=config.grid_size,
            max_retries=config.max_repair_retries,
            min_sliver_area=config.min_sliver_area,
            record_id=record.record_id,
        )
    except GeometryRepairFailure as exc:
        raise OverlapResolutionFailure(exc.message, record_id=record.record_id) from exc

    if residual.is_empty:
        msg = "Entire footprint already claimed by earlier records"
        raise FullySubsumedExclusion(msg, record_id=record.record_id)
    return residual


def _id_key(record_id: str) -> tuple[int, int, str]:
    if record_id.isdigit():
        return (0, int(record_id), "")
    return (1, 0, record_id)
