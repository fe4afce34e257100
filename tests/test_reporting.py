"""Tests for result partitioning and output rendering."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import polars as pl
import pytest

from flake_ci.cache import CacheVerdict
from flake_ci.errors import FlakeCiError, PipelineFailure, SummaryWriteError
from flake_ci.pipeline import PipelineErr, PipelineOk
from flake_ci.reporting import (
    BuildReport,
    build_report,
    render_output,
    report_frame,
    unchecked_report,
    write_report_summary,
)


def test_partitions_cached_and_build(caplog: pytest.LogCaptureFixture) -> None:
    results = [
        PipelineOk("packages.linux.foo", "h1", CacheVerdict.PRESENT),
        PipelineOk("packages.darwin.foo", "h2", CacheVerdict.ABSENT),
    ]

    with caplog.at_level(logging.INFO, logger="flake_ci"):
        report = build_report(results)

    assert report.cached == {"packages.linux.foo": "h1"}
    assert report.needs_build == {"packages.darwin.foo": "h2"}
    messages = [record.getMessage() for record in caplog.records]
    assert "[CACHED] \tpackages.linux.foo" in messages
    assert "[BUILD]  \tpackages.darwin.foo" in messages


def test_unchecked_verdict_needs_build() -> None:
    report = build_report([PipelineOk("packages.foo", "h1", CacheVerdict.UNCHECKED)])
    assert report.needs_build == {"packages.foo": "h1"}
    assert report.cached == {}


def test_any_error_is_fatal() -> None:
    results = [
        PipelineOk("packages.a", "h1", CacheVerdict.ABSENT),
        PipelineErr("packages.b", "Unable to query binary cache (status 500)"),
    ]

    with pytest.raises(PipelineFailure) as excinfo:
        build_report(results)
    assert excinfo.value.candidate == "packages.b"
    assert "status 500" in str(excinfo.value)


def test_unchecked_report_lists_every_candidate() -> None:
    report = unchecked_report({"packages.b", "packages.a"})
    assert report.needs_build == {"packages.a": None, "packages.b": None}


def test_render_names() -> None:
    report = BuildReport(needs_build={"packages.b": "h2", "packages.a": "h1"}, cached={"packages.c": "h3"})
    assert json.loads(render_output(report)) == ["packages.a", "packages.b"]


def test_render_with_hashes() -> None:
    report = BuildReport(needs_build={"packages.b": "h2", "packages.a": "h1"})
    assert json.loads(render_output(report, with_hashes=True)) == {"packages.a": "h1", "packages.b": "h2"}


def test_render_empty() -> None:
    assert render_output(BuildReport()) == "[]"
    assert render_output(BuildReport(), with_hashes=True) == "{}"


def test_report_frame() -> None:
    report = BuildReport(needs_build={"packages.b": "h2"}, cached={"packages.a": "h1"})

    frame = report_frame(report)

    assert frame.columns == ["candidate", "hash_token", "status"]
    assert frame.to_dicts() == [
        {"candidate": "packages.a", "hash_token": "h1", "status": "cached"},
        {"candidate": "packages.b", "hash_token": "h2", "status": "build"},
    ]


def test_report_frame_empty() -> None:
    assert report_frame(BuildReport()).height == 0


def test_write_report_summary(tmp_path: Path) -> None:
    report = BuildReport(needs_build={"packages.b": None}, cached={"packages.a": "h1"})
    target = tmp_path / "nested" / "summary.parquet"

    written = write_report_summary(report, target)

    assert written == target
    assert pl.read_parquet(target).to_dicts() == report_frame(report).to_dicts()
    assert [path.name for path in target.parent.iterdir()] == ["summary.parquet"]


def test_write_report_summary_failure_is_flake_ci_error(tmp_path: Path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("", encoding="utf-8")

    with pytest.raises(SummaryWriteError, match="Unable to write summary") as excinfo:
        write_report_summary(BuildReport(needs_build={"packages.a": None}), blocker / "summary.parquet")
    assert isinstance(excinfo.value, FlakeCiError)
    assert list(tmp_path.iterdir()) == [blocker]
