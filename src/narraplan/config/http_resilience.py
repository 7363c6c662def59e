"""Retry, rate-limit and cache settings shared by the service clients."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import httpx
from httpx_retries import Retry

from .storage import get_http_cache_path

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path

type CachePredicate = Callable[[object], bool]

RETRYABLE_STATUSES = frozenset({408, 429, 500, 502, 503, 504})
IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """When a failed request is tried again.

    Reads are always retryable. ``retry_post`` extends that to POST for
    endpoints whose answer depends only on the request body.
    """

    total: int = 3
    backoff_factor: float = 0.5
    max_backoff_wait: float = 20.0
    backoff_jitter: float = 1.0
    retry_post: bool = False
    status_forcelist: frozenset[int] = RETRYABLE_STATUSES
    retry_on_exceptions: tuple[type[httpx.HTTPError], ...] = (
        httpx.TimeoutException,
        httpx.NetworkError,
        httpx.RemoteProtocolError,
    )

    def methods(self) -> frozenset[str]:
        if self.retry_post:
            return IDEMPOTENT_METHODS | {"POST"}
        return IDEMPOTENT_METHODS

    def build(self) -> Retry:
        return Retry(
            total=self.total,
            backoff_factor=self.backoff_factor,
            max_backoff_wait=self.max_backoff_wait,
            backoff_jitter=self.backoff_jitter,
            respect_retry_after_header=True,
            allowed_methods=sorted(self.methods()),
            status_forcelist=sorted(self.status_forcelist),
            retry_on_exceptions=self.retry_on_exceptions,
        )


@dataclass(slots=True, frozen=True)
class RateLimit:
    max_calls: int
    per_seconds: float


@dataclass(slots=True, frozen=True)
class CacheConfig:
    """Response cache kept in a SQLite file.

    ``should_cache`` receives the decoded JSON body; responses it rejects,
    and bodies that are not JSON, are never stored.
    """

    sqlite_path: Path | None = None
    ttl_seconds: float | None = None
    should_cache: CachePredicate | None = None

    def database_path(self) -> str:
        return str(self.sqlite_path or get_http_cache_path())


@dataclass(slots=True, frozen=True)
class ResilienceConfig:
    name: str
    timeout_seconds: float = 30.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    ratelimit: RateLimit | None = None
    cache: CacheConfig | None = None
    default_headers: Mapping[str, str] | None = None


def bearer_headers(api_key: str | None) -> dict[str, str] | None:
    """Authorization header for an optional service key."""
    if not api_key:
        return None
    return {"Authorization": f"Bearer {api_key}"}
