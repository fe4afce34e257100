"""Shared fakes for evaluator and HTTP interactions."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Callable

import pytest

from flake_ci.errors import EvalError
from flake_ci.evaluator.expressions import OUT_PATH_EXPR


class FakeEvaluator:
    """Answers `evaluate_json` from canned discovery payloads and output paths."""

    def __init__(
        self,
        listings: dict[str, Any] | None = None,
        out_paths: dict[str, Any] | None = None,
    ) -> None:
        self.listings = listings or {}
        self.out_paths = out_paths or {}
        self.calls: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def evaluate_json(self, attribute_path: str, transform_expression: str) -> Any:
        with self._lock:
            self.calls.append((attribute_path, transform_expression))
        source = self.out_paths if transform_expression == OUT_PATH_EXPR else self.listings
        value = source.get(attribute_path)
        if value is None:
            raise EvalError(f"no canned answer for {attribute_path}")
        if isinstance(value, Exception):
            raise value
        return value


@dataclass
class FakeResponse:
    status_code: int


@dataclass
class FakeSession:
    """Stand-in for `requests.Session` driven by a URL -> status (or exception) map."""

    answers: dict[str, int | Exception] = field(default_factory=dict)
    default: int | Exception = 404
    requests_seen: list[tuple[str, dict[str, str], float | None]] = field(default_factory=list)
    on_get: Callable[[str], None] | None = None
    closed: bool = False
    mounted: dict[str, Any] = field(default_factory=dict)

    def get(self, url: str, headers: dict[str, str] | None = None, timeout: float | None = None) -> FakeResponse:
        self.requests_seen.append((url, dict(headers or {}), timeout))
        if self.on_get is not None:
            self.on_get(url)
        answer = self.answers.get(url, self.default)
        if isinstance(answer, Exception):
            raise answer
        return FakeResponse(answer)

    def mount(self, prefix: str, adapter: Any) -> None:
        self.mounted[prefix] = adapter

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()
