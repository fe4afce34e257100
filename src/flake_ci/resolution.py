"""Resolve candidates to realization paths and cache hash tokens."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from flake_ci.errors import MalformedPathError
from flake_ci.evaluator.client import EvaluatorClient
from flake_ci.evaluator.expressions import OUT_PATH_EXPR

LOGGER = logging.getLogger(__name__)

DEFAULT_STORE_PREFIX = "/nix/store/"


def hash_token_from_path(path: str, store_prefix: str = DEFAULT_STORE_PREFIX) -> str:
    """Extract the hash token from `/nix/store/<hash>-<name>`.

    Raises `MalformedPathError` unless the path starts with `store_prefix` and its
    first component holds a non-empty hash followed by `-`.
    """

    if not path.startswith(store_prefix):
        raise MalformedPathError(path)
    component = path[len(store_prefix):].split("/", 1)[0]
    token, separator, _ = component.partition("-")
    if not separator or not token:
        raise MalformedPathError(path)
    return token


@dataclass(frozen=True, slots=True)
class IdentifierResolver:
    client: EvaluatorClient
    store_prefix: str = DEFAULT_STORE_PREFIX

    def resolve_path(self, candidate: str) -> str:
        """Return the output path the evaluator reports for `candidate`."""

        path = self.client.evaluate_json(candidate, OUT_PATH_EXPR)
        if not isinstance(path, str):
            raise MalformedPathError(path)
        return path

    def resolve_hash(self, candidate: str) -> str:
        token = hash_token_from_path(self.resolve_path(candidate), self.store_prefix)
        LOGGER.debug("resolve.hash candidate=%s token=%s", candidate, token)
        return token
