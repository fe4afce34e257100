"""Typer CLI entrypoint for flake_ci."""

from __future__ import annotations

import json
import logging
from contextlib import closing
from pathlib import Path

import typer
import yaml
from pydantic import SecretStr

from flake_ci.cache import CacheVerifier
from flake_ci.config import AppSettings, load_settings
from flake_ci.discovery import DiscoveryOptions, discover
from flake_ci.errors import FlakeCiError
from flake_ci.evaluator.client import EvaluatorClient
from flake_ci.logging_utils import configure_logging
from flake_ci.pipeline import VerificationPipeline
from flake_ci.reporting import (
    BuildReport,
    build_report,
    render_output,
    unchecked_report,
    write_report_summary,
)
from flake_ci.resolution import IdentifierResolver

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

app = typer.Typer(
    add_completion=False,
    help="Discover flake outputs and check which ones need building in CI.",
    no_args_is_help=True,
)


def _load_and_configure_logger(
    config_file: Path | None,
    log_level: str | None,
) -> tuple[AppSettings, logging.Logger]:
    settings = load_settings(config_file=config_file)
    if log_level is not None and log_level.strip().upper() not in LOG_LEVELS:
        raise typer.BadParameter(f"log-level must be one of: {','.join(LOG_LEVELS)}")
    logger = configure_logging(
        level=(log_level or settings.logging.level).strip().upper(),
        log_file=settings.logging.log_file,
    )
    return settings, logger


def _parse_json_list(value: str | None, option_name: str) -> list[str] | None:
    if value is None:
        return None
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"{option_name} must be a JSON list of strings.") from exc
    if not isinstance(parsed, list) or not all(isinstance(item, str) for item in parsed):
        raise typer.BadParameter(f"{option_name} must be a JSON list of strings.")
    return parsed


def run_discover(
    settings: AppSettings,
    *,
    prefix: str,
    systems: list[str] | None,
    exclusions: list[str] | None,
    with_hashes: bool,
    client: EvaluatorClient | None = None,
    verifier: CacheVerifier | None = None,
    logger: logging.Logger | None = None,
) -> BuildReport:
    """Discover candidates, then resolve and verify them as the settings ask."""

    evaluator = client or EvaluatorClient.from_config(settings.evaluator)
    discovered = discover(
        evaluator,
        prefix,
        systems,
        exclusions,
        options=DiscoveryOptions(
            skip_token=settings.evaluator.skip_token,
            on_eval_error=settings.discovery.on_eval_error,
        ),
        logger=logger,
    )

    owned_verifier: CacheVerifier | None = None
    if verifier is None and settings.cache.endpoint:
        verifier = owned_verifier = CacheVerifier(
            settings.cache.endpoint,
            settings.auth_token_value(),
            timeout=settings.cache.request_timeout_seconds,
            pool_maxsize=settings.pipeline.verify_parallelism,
        )
    if verifier is None and not with_hashes:
        return unchecked_report(discovered.candidates, logger=logger)

    pipeline = VerificationPipeline(
        IdentifierResolver(evaluator, store_prefix=settings.evaluator.store_prefix),
        verifier,
        resolve_parallelism=settings.pipeline.resolve_parallelism,
        verify_parallelism=settings.pipeline.verify_parallelism,
        logger=logger,
    )
    try:
        with closing(pipeline.run(discovered.candidates)) as stream:
            return build_report(stream, logger=logger)
    finally:
        if owned_verifier is not None:
            owned_verifier.close()


@app.command("show-config")
def show_config(
    config_file: Path | None = typer.Option(
        None,
        "--config-file",
        help="Optional settings YAML path.",
        exists=False,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
) -> None:
    """Print the effective configuration after env overrides."""

    settings = load_settings(config_file=config_file)
    typer.echo(yaml.safe_dump(settings.as_dict(), sort_keys=False))


@app.command("discover")
def discover_command(
    prefix: str = typer.Option(
        ...,
        "--prefix",
        help="Search the flake for this output type (e.g. packages).",
    ),
    systems: str | None = typer.Option(
        None,
        "--systems",
        help='Also descend into these system sub-attributes (JSON list, e.g. \'["x86_64-linux"]\').',
    ),
    filter_: str | None = typer.Option(
        None,
        "--filter",
        help="Filter out these outputs (JSON list of names or attribute paths).",
    ),
    check: str | None = typer.Option(
        None,
        "--check",
        help="Check this binary cache endpoint before reporting outputs.",
    ),
    auth: str | None = typer.Option(
        None,
        "--auth",
        help="Bearer token for the binary cache.",
    ),
    with_hashes: bool = typer.Option(
        False,
        "--with-hashes",
        help="Return an object mapping output names to hashes.",
    ),
    resolve_parallelism: int | None = typer.Option(
        None,
        "--resolve-parallelism",
        min=1,
        help="Concurrent evaluator calls when resolving hashes.",
    ),
    verify_parallelism: int | None = typer.Option(
        None,
        "--verify-parallelism",
        min=1,
        help="Concurrent binary cache requests.",
    ),
    summary_file: Path | None = typer.Option(
        None,
        "--summary-file",
        help="Optional Parquet file receiving one row per checked output.",
        dir_okay=False,
    ),
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        help="Override the configured log level.",
    ),
    config_file: Path | None = typer.Option(
        None,
        "--config-file",
        help="Optional settings YAML path.",
        exists=False,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
) -> None:
    """Discover flake outputs and print the ones that need building as JSON."""

    parsed_systems = _parse_json_list(systems, "systems")
    parsed_filter = _parse_json_list(filter_, "filter")

    settings, logger = _load_and_configure_logger(config_file, log_level)
    cache_updates: dict[str, object] = {}
    if check is not None:
        cache_updates["endpoint"] = check
    if auth is not None:
        cache_updates["auth_token"] = SecretStr(auth)
    pipeline_updates: dict[str, object] = {}
    if resolve_parallelism is not None:
        pipeline_updates["resolve_parallelism"] = resolve_parallelism
    if verify_parallelism is not None:
        pipeline_updates["verify_parallelism"] = verify_parallelism
    settings = settings.model_copy(
        update={
            "cache": settings.cache.model_copy(update=cache_updates),
            "pipeline": settings.pipeline.model_copy(update=pipeline_updates),
        }
    )

    try:
        report = run_discover(
            settings,
            prefix=prefix,
            systems=parsed_systems,
            exclusions=parsed_filter,
            with_hashes=with_hashes,
            logger=logger,
        )
        output = render_output(report, with_hashes=with_hashes)
        if summary_file is not None:
            write_report_summary(report, summary_file)
            logger.info("discover.summary_written path=%s", summary_file)
    except FlakeCiError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    typer.echo(output)


def main() -> None:
    """CLI script entrypoint."""

    app()


if __name__ == "__main__":
    main()
