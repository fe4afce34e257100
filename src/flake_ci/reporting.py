"""Partition pipeline results into cached and needs-build outputs."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable
from uuid import uuid4

import polars as pl

from flake_ci.cache import CacheVerdict
from flake_ci.errors import EncodeError, PipelineFailure, SummaryWriteError
from flake_ci.pipeline import PipelineErr, PipelineResult

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class BuildReport:
    """Outputs that need building (with hash, when known) and those already cached."""

    needs_build: dict[str, str | None] = field(default_factory=dict)
    cached: dict[str, str] = field(default_factory=dict)


def build_report(
    results: Iterable[PipelineResult],
    logger: logging.Logger | None = None,
) -> BuildReport:
    """Consume every result; the first failed candidate aborts the run."""

    effective_logger = logger or LOGGER
    report = BuildReport()
    for result in results:
        if isinstance(result, PipelineErr):
            raise PipelineFailure(result.candidate, result.reason)
        if result.verdict is CacheVerdict.PRESENT:
            effective_logger.info("[CACHED] \t%s", result.candidate)
            report.cached[result.candidate] = result.hash_token
        else:
            effective_logger.info("[BUILD]  \t%s", result.candidate)
            report.needs_build[result.candidate] = result.hash_token
    return report


def unchecked_report(candidates: Iterable[str], logger: logging.Logger | None = None) -> BuildReport:
    """Report every candidate as needing a build, without hashes."""

    effective_logger = logger or LOGGER
    report = BuildReport()
    for candidate in sorted(candidates):
        effective_logger.info("[BUILD]  \t%s", candidate)
        report.needs_build[candidate] = None
    return report


def render_output(report: BuildReport, with_hashes: bool = False) -> str:
    """Serialize the needs-build set as a JSON array, or a name -> hash object."""

    try:
        if with_hashes:
            return json.dumps(dict(sorted(report.needs_build.items())))
        return json.dumps(sorted(report.needs_build))
    except (TypeError, ValueError) as exc:
        raise EncodeError(f"Unable to encode result ({exc})") from exc


def report_frame(report: BuildReport) -> pl.DataFrame:
    """Return one row per candidate with its hash token and status."""

    rows = [
        {"candidate": name, "hash_token": token, "status": "build"}
        for name, token in report.needs_build.items()
    ]
    rows.extend(
        {"candidate": name, "hash_token": token, "status": "cached"}
        for name, token in report.cached.items()
    )
    schema = {"candidate": pl.String, "hash_token": pl.String, "status": pl.String}
    return pl.DataFrame(rows, schema=schema).sort("candidate")


def write_report_summary(report: BuildReport, output_path: Path) -> Path:
    """Write the per-candidate summary as Parquet, atomically."""

    temp_path = output_path.parent / f".{output_path.name}.{uuid4().hex}.tmp"
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        report_frame(report).write_parquet(temp_path)
        os.replace(temp_path, output_path)
    except (OSError, pl.exceptions.PolarsError) as exc:
        raise SummaryWriteError(f"Unable to write summary {output_path} ({exc})") from exc
    finally:
        if temp_path.exists():
            temp_path.unlink()
    return output_path
