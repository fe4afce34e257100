"""Discover candidate flake outputs under a prefix and optional systems."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Sequence

from flake_ci.config import EvalErrorPolicy
from flake_ci.errors import DiscoveryError, EvalError
from flake_ci.evaluator.client import EvaluatorClient
from flake_ci.evaluator.expressions import discover_expression

LOGGER = logging.getLogger(__name__)

DEFAULT_SKIP_TOKEN = "SKIPPED"


@dataclass(frozen=True, slots=True)
class DiscoveryOptions:
    """Runtime options for candidate discovery."""

    skip_token: str = DEFAULT_SKIP_TOKEN
    on_eval_error: EvalErrorPolicy = "degrade"


@dataclass(frozen=True, slots=True)
class DiscoveryResult:
    """Deduplicated candidates plus what was dropped along the way."""

    candidates: frozenset[str]
    skipped: tuple[str, ...] = ()
    failed_labels: tuple[str, ...] = ()


def output_labels(prefix: str, systems: Sequence[str] | None) -> list[str]:
    """Return the attribute labels to evaluate: the prefix, or one per system."""

    if systems is None:
        return [prefix]
    return [f"{prefix}.{system}" for system in systems]


def _evaluate_label(
    client: EvaluatorClient,
    label: str,
    expression: str,
) -> dict[str, str]:
    payload: Any = client.evaluate_json(label, expression)
    if not isinstance(payload, dict) or not all(
        isinstance(key, str) and isinstance(value, str) for key, value in payload.items()
    ):
        raise EvalError(f"Expected a JSON object of strings for {label}")
    return payload


def discover(
    client: EvaluatorClient,
    prefix: str,
    systems: Sequence[str] | None = None,
    exclusions: Sequence[str] | None = None,
    *,
    options: DiscoveryOptions | None = None,
    logger: logging.Logger | None = None,
) -> DiscoveryResult:
    """Enumerate candidate attribute paths, dropping excluded ones.

    Every label is evaluated with the same transform; entries whose value is the
    skip token are reported once and left out. A label whose evaluation fails is
    handled according to `options.on_eval_error`: ``"degrade"`` contributes no
    candidates for that label, ``"fail"`` raises `DiscoveryError`.
    """

    effective_logger = logger or LOGGER
    run_options = options or DiscoveryOptions()

    unchecked: dict[str, str] = {}
    failed_labels: list[str] = []
    for label in output_labels(prefix, systems):
        expression = discover_expression(label, run_options.skip_token, exclusions)
        try:
            unchecked.update(_evaluate_label(client, label, expression))
        except EvalError as exc:
            if run_options.on_eval_error == "fail":
                raise DiscoveryError(label, exc) from exc
            effective_logger.warning("discover.eval_failed label=%s error=%s", label, exc)
            failed_labels.append(label)

    candidates: set[str] = set()
    skipped: list[str] = []
    for name, value in unchecked.items():
        if value == run_options.skip_token:
            effective_logger.info("[SKIPPED]\t%s", name)
            skipped.append(name)
        else:
            candidates.add(name)

    effective_logger.debug(
        "discover.done candidates=%s skipped=%s failed_labels=%s",
        len(candidates),
        len(skipped),
        len(failed_labels),
    )
    return DiscoveryResult(
        candidates=frozenset(candidates),
        skipped=tuple(skipped),
        failed_labels=tuple(failed_labels),
    )
