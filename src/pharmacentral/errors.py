"""Error taxonomy shared by ingestion, translation and storage layers."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class PipelineError(Exception):
    """Base pipeline error."""

    message: str
    code: str = "pipeline_error"

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True)
class FetchExhausted(PipelineError):
    """Every relay, retry and the direct fallback failed for one source."""

    source_name: str = ""
    last_error: str | None = None
    code: str = "fetch_exhausted"


@dataclass(slots=True)
class ParseError(PipelineError):
    """Payload or entry could not be parsed."""

    code: str = "parse_error"


@dataclass(slots=True)
class ProviderUnavailable(PipelineError):
    """Translation provider failed or returned a malformed response."""

    provider: str = ""
    code: str = "provider_unavailable"


@dataclass(slots=True)
class RateLimited(ProviderUnavailable):
    """Translation provider signalled quota exhaustion."""

    code: str = "rate_limited"


@dataclass(slots=True)
class QualityRejected(PipelineError):
    """Candidate translation scored below the quality threshold."""

    score: float = 0.0
    code: str = "quality_rejected"


@dataclass(slots=True)
class CacheIOError(PipelineError):
    """Persistent storage read or write failed."""

    code: str = "cache_io"
