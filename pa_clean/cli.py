"""Command-line entry point: ``pa-clean INPUT OUTPUT``.

Reads a provider layer, runs the cleaning pipeline and writes the cleaned
records (or, with ``--dissolve``, the single dissolved footprint). Defaults
come from ``PA_*`` environment variables; flags override them.

A JSON run summary (record count, total area, audit counts per stage and
reason) is printed to stdout. ``--audit`` additionally writes every audit
entry to a JSON file.
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from pathlib import Path

from pa_clean.activities.load_features import read_features, write_footprint, write_records
from pa_clean.core.config import PRECEDENCE_ORDERS, ConfigValidationError, PipelineConfig
from pa_clean.core.exceptions import PipelineError
from pa_clean.models.audit import AuditLog
from pa_clean.orchestrators.partitions import (
    PARTITION_BY_REALM,
    PARTITION_BY_REGION,
    clean_partitioned,
)
from pa_clean.orchestrators.pipeline import clean_features, dissolve_features

logger = logging.getLogger("pa_clean.cli")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="pa-clean",
        description="Clean protected-area polygons and points for area statistics.",
    )
    p.add_argument("input", help="Provider dataset (GeoPackage, Shapefile, GeoJSON, ...).")
    p.add_argument("output", help="Output dataset; driver inferred from the suffix.")
    p.add_argument("--layer", default=None, help="Layer to read from a multi-layer dataset.")
    p.add_argument("--source-crs", default=None, help="CRS assumed when the input declares none.")
    p.add_argument(
        "--precision",
        type=float,
        default=None,
        help="Grid-snap denominator (coordinates rounded to 1/precision working units).",
    )
    p.add_argument(
        "--erase-overlaps",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Erase overlaps between records of the same realm.",
    )
    p.add_argument(
        "--dissolve",
        action="store_true",
        help="Write one dissolved footprint instead of per-record output.",
    )
    p.add_argument(
        "--precedence",
        choices=sorted(PRECEDENCE_ORDERS),
        default=None,
        help="Which record keeps shared area when overlaps are erased.",
    )
    p.add_argument(
        "--partition-by",
        choices=[PARTITION_BY_REALM, PARTITION_BY_REGION],
        default=None,
        help="Clean independent partitions (region partitions must not overlap).",
    )
    p.add_argument("--workers", type=int, default=None, help="Worker processes for partitioned runs.")
    p.add_argument("--audit", default=None, help="Write audit entries to this JSON file.")
    p.add_argument("-v", "--verbose", action="count", default=0, help="More log output (-vv for debug).")
    return p


def config_from_args(args: argparse.Namespace) -> PipelineConfig:
    """Environment configuration with command-line overrides applied."""
    config = PipelineConfig.from_env()
    overrides: dict[str, object] = {}
    if args.source_crs is not None:
        overrides["source_crs"] = args.source_crs
    if args.precision is not None:
        overrides["geometry_precision"] = args.precision
    if args.erase_overlaps is not None:
        overrides["erase_overlaps"] = args.erase_overlaps
    if args.precedence is not None:
        overrides["overlap_precedence"] = args.precedence
    if args.workers is not None:
        overrides["max_workers"] = args.workers
    return dataclasses.replace(config, **overrides).validate()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    level = logging.WARNING - 10 * min(args.verbose, 2)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s | %(message)s")

    try:
        config = config_from_args(args)
        features = read_features(
            args.input,
            layer=args.layer,
            field_map=config.field_map,
            default_crs=config.source_crs,
        )

        if args.dissolve:
            dissolved, audit = dissolve_features(features, config)
            write_footprint(args.output, dissolved)
            summary: dict[str, object] = {
                "records": dissolved.record_count,
                "total_area_km2": dissolved.area_km2,
                "audit": audit.summary(),
            }
        else:
            if args.partition_by:
                result = clean_partitioned(features, config, by=args.partition_by)
            else:
                result = clean_features(features, config)
            write_records(args.output, result.records, crs=config.equal_area_crs)
            audit = result.audit
            summary = result.summary()
    except ConfigValidationError as exc:
        print(f"ERROR: {exc}", file=sys.stderr, flush=True)
        return 2
    except PipelineError as exc:
        print(f"ERROR: {exc}", file=sys.stderr, flush=True)
        return 2 if exc.category in ("validation", "contract") else 1

    if args.audit:
        _write_audit(Path(args.audit), audit)
    print(json.dumps(summary, indent=2, sort_keys=True), flush=True)
    return 0


def _write_audit(path: Path, audit: AuditLog) -> None:
    entries = [entry.to_dict() for entry in audit]
    path.write_text(json.dumps(entries, indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info("Audit written | target=%s | entries=%d", path, len(entries))


if __name__ == "__main__":
    raise SystemExit(main())
