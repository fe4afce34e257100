"""Subprocess wrapper around `nix eval`."""

from __future__ import annotations

import json
import logging
import subprocess
from dataclasses import dataclass, field
from typing import Any, Sequence

from flake_ci.config import EvaluatorConfig
from flake_ci.errors import EvalError

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EvaluatorClient:
    """Runs the evaluator against attributes of one flake reference."""

    command: str = "nix"
    flake_ref: str = "."
    extra_args: Sequence[str] = field(default_factory=tuple)

    @classmethod
    def from_config(cls, config: EvaluatorConfig) -> "EvaluatorClient":
        return cls(command=config.command, flake_ref=config.flake_ref, extra_args=tuple(config.extra_args))

    def build_args(self, attribute_path: str, transform_expression: str) -> list[str]:
        """Return the full argv for one evaluation."""

        return [
            self.command,
            "eval",
            f"{self.flake_ref}#{attribute_path}",
            "--apply",
            transform_expression,
            "--json",
            "--quiet",
            *self.extra_args,
        ]

    def evaluate(self, attribute_path: str, transform_expression: str) -> str:
        """Evaluate `attribute_path` with `transform_expression` applied and return stdout.

        Stdin and stderr are inherited so evaluator diagnostics reach the caller's
        terminal unchanged.
        """

        args = self.build_args(attribute_path, transform_expression)
        LOGGER.debug("evaluator.run attribute=%s", attribute_path)
        try:
            completed = subprocess.run(args, stdout=subprocess.PIPE, check=False)
        except OSError as exc:
            raise EvalError(f"Nix failed ({exc})") from exc

        try:
            output = completed.stdout.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise EvalError(f"Unable to decode Nix output ({exc})") from exc

        if completed.returncode != 0:
            raise EvalError(f"Nix exited with status {completed.returncode} for {attribute_path}")
        return output

    def evaluate_json(self, attribute_path: str, transform_expression: str) -> Any:
        """Evaluate and decode the JSON document printed by the evaluator."""

        output = self.evaluate(attribute_path, transform_expression)
        try:
            return json.loads(output)
        except json.JSONDecodeError as exc:
            raise EvalError(f"Unable to parse json ({exc})") from exc
