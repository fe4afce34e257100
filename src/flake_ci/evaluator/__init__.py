"""Evaluator package for invoking `nix eval` and building its transforms."""

from flake_ci.evaluator.client import EvaluatorClient
from flake_ci.evaluator.expressions import OUT_PATH_EXPR, discover_expression, nix_string

__all__ = [
    "EvaluatorClient",
    "OUT_PATH_EXPR",
    "discover_expression",
    "nix_string",
]
