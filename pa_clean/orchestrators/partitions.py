"""Partitioned (fan-out / fan-in) cleaning.

Large inputs are split into independent partitions and each partition is
cleaned on its own:

- ``realm``: terrestrial, marine and mixed records are never erased
  against each other, so realm partitions give the same result as one
  sequential run.
- ``region``: country/region codes. Only valid when regions do not
  overlap spatially; records from different regions are not erased
  against each other.

GEOS geometry objects must not be shared between threads, so parallel
runs use worker processes. Partitions travel to workers as ``to_dict``
payloads and each worker returns its own records and audit entries; the
parent merges them in sorted partition-key order. Nothing mutable is shared.

``iter_clean_partitions`` streams partitions one at a time for inputs whose
intermediate state should not be held for every region at once.
"""

from __future__ import annotations

import logging
from concurrent.futures import ProcessPoolExecutor
from typing import TYPE_CHECKING

from pa_clean.core.config import PipelineConfig
from pa_clean.core.constants import FIELD_REALM, FIELD_REGION
from pa_clean.models.audit import AuditEntry, AuditLog
from pa_clean.models.categories import Realm
from pa_clean.models.feature import RawFeature
from pa_clean.models.record import FeatureRecord
from pa_clean.orchestrators.pipeline import CleanResult, clean_features

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from pa_clean.models.contracts import PartitionInput, PartitionResult

logger = logging.getLogger("pa_clean.orchestrators.partitions")

PARTITION_BY_REALM = "realm"
PARTITION_BY_REGION = "region"
UNKNOWN_PARTITION = "unknown"


def partition_key(feature: RawFeature, *, by: str, config: PipelineConfig) -> str:
    """Partition key for one raw feature.

    Features whose realm cannot be parsed share the ``unknown`` partition;
    the normalizer drops and audits them there.

    Raises:
        ValueError: If ``by`` is not ``realm`` or ``region``.
    """
    if by == PARTITION_BY_REALM:
        realm = Realm.from_text(feature.properties.get(config.field_map[FIELD_REALM]))
        return realm.value if realm is not None else UNKNOWN_PARTITION
    if by == PARTITION_BY_REGION:
        region = str(feature.properties.get(config.field_map[FIELD_REGION]) or "").strip()
        return region or UNKNOWN_PARTITION
    msg = f"Unknown partition field: {by!r} (expected 'realm' or 'region')"
    raise ValueError(msg)


def partition_features(
    features: Iterable[RawFeature],
    *,
    by: str = PARTITION_BY_REALM,
    config: PipelineConfig | None = None,
) -> dict[str, list[RawFeature]]:
    """Group features by partition key, keys sorted, input order kept within."""
    config = config or PipelineConfig()
    groups: dict[str, list[RawFeature]] = {}
    for feature in features:
        groups.setdefault(partition_key(feature, by=by, config=config), []).append(feature)
    return {key: groups[key] for key in sorted(groups)}


def iter_clean_partitions(
    features: Iterable[RawFeature],
    config: PipelineConfig | None = None,
    *,
    by: str = PARTITION_BY_REALM,
) -> Iterator[tuple[str, CleanResult]]:
    """Clean partitions one after another, yielding each result as it completes."""
    config = (config or PipelineConfig()).validate()
    for key, members in partition_features(features, by=by, config=config).items():
        logger.info("Partition started | by=%s | key=%s | features=%d", by, key, len(members))
        yield key, clean_features(members, config)


def clean_partitioned(
    features: Iterable[RawFeature],
    config: PipelineConfig | None = None,
    *,
    by: str = PARTITION_BY_REALM,
    max_workers: int | None = None,
) -> CleanResult:
    """Clean every partition and merge the results.

    Args:
        features: Raw provider features.
        config: Pipeline configuration.
        by: Partition field, ``realm`` or ``region``.
        max_workers: Worker processes; defaults to ``config.max_workers``.
            ``1`` runs in-process.

    Returns:
        Records and audit entries concatenated in partition-key order.
    """
    config = (config or PipelineConfig()).validate()
    workers = max_workers or config.max_workers
    merged = CleanResult()

    if workers <= 1:
        for _key, result in iter_clean_partitions(features, config, by=by):
            merged.records.extend(result.records)
            merged.audit.extend(result.audit)
        return merged

    partitions = partition_features(features, by=by, config=config)
    payloads: list[PartitionInput] = [
        {
            "key": key,
            "features": [f.to_dict() for f in members],  # type: ignore[misc]
            "config": config.to_dict(),
        }
        for key, members in partitions.items()
    ]
    logger.info(
        "Partitioned run started | by=%s | partitions=%d | workers=%d",
        by,
        len(payloads),
        workers,
    )
    with ProcessPoolExecutor(max_workers=workers) as pool:
        for outcome in pool.map(clean_partition_payload, payloads):
            merged.records.extend(FeatureRecord.from_dict(r) for r in outcome["records"])  # type: ignore[arg-type]
            merged.audit.extend(AuditEntry.from_dict(e) for e in outcome["audit"])  # type: ignore[arg-type]
    return merged


def clean_partition_payload(payload: PartitionInput) -> PartitionResult:
    """Worker entry point: clean one serialised partition."""
    config = PipelineConfig.from_dict(payload["config"])
    features = [RawFeature.from_dict(f) for f in payload["features"]]  # type: ignore[arg-type]
    result = clean_features(features, config)
    return {
        "key": payload["key"],
        "records": [r.to_dict() for r in result.records],  # type: ignore[misc]
        "audit": [e.to_dict() for e in result.audit],  # type: ignore[misc]
    }


def merge_audit(logs: Iterable[AuditLog]) -> AuditLog:
    """Concatenate audit logs in the given order."""
    merged = AuditLog()
    for log in logs:
        merged.extend(log)
    return merged
