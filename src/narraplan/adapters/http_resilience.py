"""Async HTTP client shared by the extraction and web search adapters.

Requests pass through an optional rate limiter, then a retrying transport.
Configs carrying a :class:`CacheConfig` additionally get a SQLite response
cache whose admission is decided on the decoded JSON body.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, TypedDict, Unpack

import httpx
from aiolimiter import AsyncLimiter
from hishel import AsyncSqliteStorage, FilterPolicy
from hishel import Response as HishelCacheResponse
from hishel._policies import BaseFilter
from hishel.httpx import AsyncCacheClient
from httpx_retries import RetryTransport

if TYPE_CHECKING:
    from types import TracebackType

    from httpx._types import QueryParamTypes, URLTypes

    from narraplan.config.http_resilience import CachePredicate, CacheConfig, ResilienceConfig

log = logging.getLogger(__name__)


class RequestOptions(TypedDict, total=False):
    json: object
    params: QueryParamTypes | None


class ResilientClient:
    """Applies the retry, rate-limit and cache settings of one service config.

    ``transport`` sits underneath the retry layer; pass an
    ``httpx.MockTransport`` to answer requests in-process.
    """

    def __init__(
        self,
        config: ResilienceConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._limiter = (
            AsyncLimiter(config.ratelimit.max_calls, config.ratelimit.per_seconds)
            if config.ratelimit is not None
            else None
        )
        retrying = RetryTransport(transport=transport, retry=config.retry.build())
        headers = dict(config.default_headers or {})
        if config.cache is None:
            self._client: httpx.AsyncClient = httpx.AsyncClient(
                transport=retrying, timeout=config.timeout_seconds, headers=headers
            )
        else:
            storage, policy = _cache_components(config.cache)
            self._client = AsyncCacheClient(
                transport=retrying,
                timeout=config.timeout_seconds,
                headers=headers,
                storage=storage,
                policy=policy,
            )

    async def __aenter__(self) -> ResilientClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get(self, url: URLTypes, **kwargs: Unpack[RequestOptions]) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: URLTypes, **kwargs: Unpack[RequestOptions]) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def request(
        self, method: str, url: URLTypes, **kwargs: Unpack[RequestOptions]
    ) -> httpx.Response:
        if self._limiter is None:
            response = await self._client.request(method, url, **kwargs)
        else:
            async with self._limiter:
                response = await self._client.request(method, url, **kwargs)
        log.debug(
            "%s %s %s -> %s", self.config.name, method, response.request.url, response.status_code
        )
        return response


class _JsonPredicateFilter(BaseFilter[HishelCacheResponse]):
    def __init__(self, predicate: CachePredicate) -> None:
        self._predicate = predicate

    def needs_body(self) -> bool:
        return True

    def apply(self, item: HishelCacheResponse, body: bytes | None) -> bool:  # noqa: ARG002
        if body is None:
            return True
        try:
            payload = json.loads(body)
        except (UnicodeDecodeError, json.JSONDecodeError):
            return False
        return bool(self._predicate(payload))


def _cache_components(config: CacheConfig) -> tuple[AsyncSqliteStorage, FilterPolicy | None]:
    storage = AsyncSqliteStorage(
        database_path=config.database_path(),
        default_ttl=config.ttl_seconds,
        refresh_ttl_on_access=True,
    )
    if config.should_cache is None:
        return storage, None
    return storage, FilterPolicy(response_filters=[_JsonPredicateFilter(config.should_cache)])
