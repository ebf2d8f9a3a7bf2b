import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping

import httpx

USER_AGENT = "RampLoad-Performance-Tester/1.0"
DEFAULT_TIMEOUT_MS = 5000
PAGE_TIMEOUT_MS = 30_000


class HTTPClientError(Exception):
    pass

class RequestTimeout(HTTPClientError):
    """No response arrived before the deadline, the request was aborted."""
    pass

class NetworkError(HTTPClientError):
    """Connection level failure (refused, reset, DNS, protocol)."""
    pass


@dataclass(frozen=True)
class HTTPResponse:
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: str = ""


@dataclass(frozen=True)
class PageSpeedResult:
    total_load_time: float  # ms
    time_to_first_byte: float  # ms
    content_size: int
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalLoadTime": self.total_load_time,
            "timeToFirstByte": self.time_to_first_byte,
            "contentSize": self.content_size,
            "statusCode": self.status_code,
            "headers": dict(self.headers),
        }


class AsyncHTTPClient:
    """Thin timed wrapper over a single httpx.AsyncClient bound to the target base url.

    No retries happen here, callers decide what a failure means.
    """
    def __init__(self,
                 base_url: str,
                 transport: httpx.AsyncBaseTransport | None = None,
                 user_agent: str = USER_AGENT):
        self.base_url = base_url.rstrip("/")
        self.user_agent = user_agent
        ## no pool cap, queueing inside the pool would show up as latency
        self._client = httpx.AsyncClient(base_url=self.base_url,
                                         transport=transport,
                                         headers={"User-Agent": user_agent},
                                         limits=httpx.Limits(max_connections=None, max_keepalive_connections=None),
                                         follow_redirects=False)

    async def __aenter__(self) -> "AsyncHTTPClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        await self.aclose()
        return False

    async def aclose(self) -> None:
        await self._client.aclose()

    def __repr__(self) -> str:
        return f"AsyncHTTPClient(base_url={self.base_url}, user_agent={self.user_agent})"

    async def request(self,
                      path: str,
                      method: str = "GET",
                      body: str | bytes | Mapping[str, Any] | None = None,
                      headers: Mapping[str, str] | None = None,
                      timeout_ms: float = DEFAULT_TIMEOUT_MS) -> HTTPResponse:
        timeout_s = timeout_ms / 1000.0
        kwargs: Dict[str, Any] = {"headers": dict(headers or {}),
                                  "timeout": timeout_s}
        if isinstance(body, Mapping):
            kwargs["json"] = dict(body)
        elif body is not None:
            kwargs["content"] = body
        try:
            ## wait_for cancels the in-flight request, also for transports that ignore httpx timeouts
            response = await asyncio.wait_for(self._client.request(method, path, **kwargs),
                                              timeout=timeout_s)
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            logging.debug(f"{method} {path} timed out after {timeout_ms} ms")
            raise RequestTimeout(f"Request timeout after {timeout_ms} ms: {method} {path}") from e
        except httpx.HTTPError as e:
            logging.debug(f"{method} {path} failed: {e!r}")
            raise NetworkError(f"{method} {path} failed: {e}") from e
        return HTTPResponse(status_code=response.status_code,
                            headers=dict(response.headers),
                            body=response.text)

    async def measure_page(self,
                           path: str,
                           timeout_ms: float = PAGE_TIMEOUT_MS) -> PageSpeedResult:
        timeout_s = timeout_ms / 1000.0

        async def _load() -> PageSpeedResult:
            start = time.perf_counter()
            async with self._client.stream("GET", path, timeout=timeout_s) as response:
                first_byte = (time.perf_counter() - start) * 1000
                size = 0
                async for chunk in response.aiter_bytes():
                    size += len(chunk)
            total = (time.perf_counter() - start) * 1000
            return PageSpeedResult(total_load_time=total,
                                   time_to_first_byte=first_byte,
                                   content_size=size,
                                   status_code=response.status_code,
                                   headers=dict(response.headers))
        try:
            return await asyncio.wait_for(_load(), timeout=timeout_s)
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise RequestTimeout(f"Request timeout after {timeout_ms} ms: GET {path}") from e
        except httpx.HTTPError as e:
            raise NetworkError(f"GET {path} failed: {e}") from e
