"""Two-stage resolve/verify pipeline over a set of candidates.

Stage A resolves each candidate to a hash token on a small pool (every
resolution is an evaluator subprocess). Stage B probes the binary cache on a
larger pool. A single relay thread connects the two: it receives exactly one
message per candidate from Stage A, either a resolved pair or a failure marker,
and forwards resolved pairs to Stage B. Every candidate produces exactly one
`PipelineResult` on the result stream, whichever stage it fails in.
"""

from __future__ import annotations

import logging
import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterable, Iterator

from flake_ci.cache import CacheVerdict, CacheVerifier
from flake_ci.resolution import IdentifierResolver

LOGGER = logging.getLogger(__name__)

DEFAULT_RESOLVE_PARALLELISM = 4
DEFAULT_VERIFY_PARALLELISM = 16

_RESOLVE_FAILED = object()
_STOP = object()


@dataclass(frozen=True, slots=True)
class PipelineOk:
    candidate: str
    hash_token: str
    verdict: CacheVerdict


@dataclass(frozen=True, slots=True)
class PipelineErr:
    candidate: str
    reason: str


PipelineResult = PipelineOk | PipelineErr


def _describe(exc: Exception) -> str:
    message = str(exc)
    return message if message else type(exc).__name__


class VerificationPipeline:
    """Resolve and verify candidates with independently sized worker pools.

    Results arrive in completion order. Pools live only for the duration of one
    `run` call. Without a verifier, resolved candidates are reported as
    `CacheVerdict.UNCHECKED`.
    """

    def __init__(
        self,
        resolver: IdentifierResolver,
        verifier: CacheVerifier | None = None,
        *,
        resolve_parallelism: int = DEFAULT_RESOLVE_PARALLELISM,
        verify_parallelism: int = DEFAULT_VERIFY_PARALLELISM,
        logger: logging.Logger | None = None,
    ) -> None:
        if resolve_parallelism < 1:
            raise ValueError("resolve_parallelism must be >= 1")
        if verify_parallelism < 1:
            raise ValueError("verify_parallelism must be >= 1")
        self.resolver = resolver
        self.verifier = verifier
        self.resolve_parallelism = resolve_parallelism
        self.verify_parallelism = verify_parallelism
        self.logger = logger or LOGGER

    def _resolve_one(self, candidate: str, relay: queue.Queue, results: queue.Queue) -> None:
        try:
            token = self.resolver.resolve_hash(candidate)
        except Exception as exc:
            self.logger.debug("pipeline.resolve_failed candidate=%s error=%s", candidate, exc)
            results.put(PipelineErr(candidate, _describe(exc)))
            relay.put(_RESOLVE_FAILED)
            return
        relay.put((candidate, token))

    def _verify_one(
        self,
        verifier: CacheVerifier,
        candidate: str,
        token: str,
        results: queue.Queue,
    ) -> None:
        try:
            verdict = verifier.verify(token)
        except Exception as exc:
            self.logger.debug("pipeline.verify_failed candidate=%s error=%s", candidate, exc)
            results.put(PipelineErr(candidate, _describe(exc)))
            return
        results.put(PipelineOk(candidate, token, verdict))

    def _relay(
        self,
        total: int,
        relay: queue.Queue,
        results: queue.Queue,
        verify_pool: ThreadPoolExecutor,
    ) -> None:
        for _ in range(total):
            message = relay.get()
            if message is _STOP:
                return
            if message is _RESOLVE_FAILED:
                continue
            candidate, token = message
            if self.verifier is None:
                results.put(PipelineOk(candidate, token, CacheVerdict.UNCHECKED))
                continue
            try:
                verify_pool.submit(self._verify_one, self.verifier, candidate, token, results)
            except RuntimeError as exc:
                results.put(PipelineErr(candidate, _describe(exc)))

    def run(self, candidates: Iterable[str]) -> Iterator[PipelineResult]:
        """Yield one result per submitted candidate, in arrival order."""

        items = list(candidates)
        total = len(items)
        if total == 0:
            return

        relay: queue.Queue = queue.Queue()
        results: queue.Queue = queue.Queue()
        resolve_pool = ThreadPoolExecutor(
            max_workers=self.resolve_parallelism,
            thread_name_prefix="flake-ci-resolve",
        )
        verify_pool = ThreadPoolExecutor(
            max_workers=self.verify_parallelism,
            thread_name_prefix="flake-ci-verify",
        )
        relay_thread = threading.Thread(
            target=self._relay,
            args=(total, relay, results, verify_pool),
            name="flake-ci-relay",
            daemon=True,
        )
        self.logger.debug(
            "pipeline.start candidates=%s resolve_parallelism=%s verify_parallelism=%s",
            total,
            self.resolve_parallelism,
            self.verify_parallelism,
        )
        relay_thread.start()
        try:
            for candidate in items:
                resolve_pool.submit(self._resolve_one, candidate, relay, results)
            for _ in range(total):
                yield results.get()
        finally:
            # On early close, queued work is cancelled; in-flight calls run to completion.
            resolve_pool.shutdown(wait=False, cancel_futures=True)
            relay.put(_STOP)
            relay_thread.join()
            verify_pool.shutdown(wait=False, cancel_futures=True)

    def collect(self, candidates: Iterable[str]) -> list[PipelineResult]:
        return list(self.run(candidates))
