"""Exception taxonomy shared by discovery, resolution, verification and reporting."""

from __future__ import annotations


class FlakeCiError(RuntimeError):
    """Base class for failures surfaced to the CLI as `Error: ...`."""


class EvalError(FlakeCiError):
    """The evaluator subprocess could not be run or produced undecodable output."""


class DiscoveryError(FlakeCiError):
    """Discovery could not enumerate candidates for a label."""

    def __init__(self, label: str, cause: Exception) -> None:
        super().__init__(f"Discovery failed for {label} ({cause})")
        self.label = label


class ResolveError(FlakeCiError):
    """A candidate could not be resolved to a hash token."""


class MalformedPathError(ResolveError):
    def __init__(self, path: object) -> None:
        super().__init__(f"Malformed realization path: {path!r}")
        self.path = path


class VerifyError(FlakeCiError):
    """The binary cache returned neither a hit nor a definitive miss."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PipelineFailure(FlakeCiError):
    def __init__(self, candidate: str, reason: str) -> None:
        super().__init__(f"{candidate}: {reason}")
        self.candidate = candidate
        self.reason = reason


class EncodeError(FlakeCiError):
    """The result set could not be serialized."""


class SummaryWriteError(FlakeCiError):
    """The run summary file could not be written."""
