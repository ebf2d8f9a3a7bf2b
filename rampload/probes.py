"""
One-off probes that run outside the ramped load: a health check before the run,
page load timing, and a serial per-endpoint benchmark.
"""
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Literal, Tuple

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from rampload.http_client import AsyncHTTPClient, HTTPClientError, HTTPResponse
from rampload.thresholds import Recommendation, ThresholdSet, evaluate_page_speed

HEALTH_TIMEOUT_MS = 5000
ENDPOINT_TIMEOUT_MS = 10_000
ENDPOINT_ITERATIONS = 50

class ServerUnavailable(Exception):
    pass

class PageSpec(BaseModel):
    model_config = ConfigDict(frozen=True)
    name: str
    path: str

class EndpointSpec(BaseModel):
    model_config = ConfigDict(frozen=True)
    name: str
    path: str
    method: Literal["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"] = "GET"
    body: Dict[str, Any] | None = None
    iterations: int = Field(default=ENDPOINT_ITERATIONS, gt=0)


DEFAULT_PAGES: List[PageSpec] = [
    PageSpec(name="Homepage", path="/"),
    PageSpec(name="Dashboard", path="/dashboard"),
    PageSpec(name="Login", path="/login"),
]

DEFAULT_ENDPOINTS: List[EndpointSpec] = [
    EndpointSpec(name="Health Check", path="/api/health"),
    EndpointSpec(name="Auth Me", path="/api/auth/me"),
    EndpointSpec(name="Login", path="/api/auth/login", method="POST", body={"pin": "0000", "isDemo": True}),
]


async def check_server_health(client: AsyncHTTPClient,
                              path: str = "/",
                              timeout_ms: float = HEALTH_TIMEOUT_MS) -> HTTPResponse:
    try:
        response = await client.request(path, timeout_ms=timeout_ms)
    except HTTPClientError as e:
        logging.error(f"Server health check failed for {client.base_url}{path}: {e}")
        raise ServerUnavailable(f"{client.base_url}{path} is not reachable: {e}") from e
    if response.status_code != 200:
        logging.error(f"Server health check for {client.base_url}{path} returned {response.status_code}")
        raise ServerUnavailable(f"Server returned status {response.status_code}")
    logging.info(f"Server {client.base_url} is healthy and responsive")
    return response


async def measure_pages(client: AsyncHTTPClient,
                        pages: Iterable[PageSpec],
                        thresholds: ThresholdSet) -> Tuple[Dict[str, Dict[str, Any]], List[Recommendation]]:
    results: Dict[str, Dict[str, Any]] = {}
    recommendations: List[Recommendation] = []
    for page in pages:
        try:
            measured = await client.measure_page(page.path)
        except HTTPClientError as e:
            logging.error(f"Page speed test failed for {page.name}: {e}")
            results[page.name] = {"error": str(e)}
            continue
        logging.info(f"{page.name}: load {measured.total_load_time:.0f} ms, ttfb {measured.time_to_first_byte:.0f} ms, {measured.content_size} bytes")
        results[page.name] = measured.to_dict()
        recommendations.extend(evaluate_page_speed(measured, thresholds, page.name))
    return results, recommendations


@dataclass(frozen=True)
class EndpointBenchmark:
    avg_response_time: float
    min_response_time: float
    max_response_time: float
    throughput: float
    success_rate: float
    total_requests: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "avgResponseTime": self.avg_response_time,
            "minResponseTime": self.min_response_time,
            "maxResponseTime": self.max_response_time,
            "throughput": self.throughput,
            "successRate": self.success_rate,
            "totalRequests": self.total_requests,
        }


async def benchmark_endpoint(client: AsyncHTTPClient,
                             endpoint: EndpointSpec,
                             timeout_ms: float = ENDPOINT_TIMEOUT_MS) -> EndpointBenchmark:
    """Serial requests against one endpoint. A failed request counts as a full timeout."""
    samples = np.empty(endpoint.iterations, dtype=np.float64)
    successes = 0
    started = time.perf_counter()
    for i in range(endpoint.iterations):
        t0 = time.perf_counter()
        try:
            response = await client.request(endpoint.path,
                                             method=endpoint.method,
                                             body=endpoint.body,
                                             timeout_ms=timeout_ms)
        except HTTPClientError:
            samples[i] = timeout_ms
            continue
        samples[i] = (time.perf_counter() - t0) * 1000
        if 200 <= response.status_code < 400:
            successes += 1
    total_s = time.perf_counter() - started
    return EndpointBenchmark(
        avg_response_time=float(samples.mean()),
        min_response_time=float(samples.min()),
        max_response_time=float(samples.max()),
        throughput=endpoint.iterations / total_s if total_s > 0 else 0.0,
        success_rate=successes / endpoint.iterations,
        total_requests=endpoint.iterations,
    )


async def benchmark_endpoints(client: AsyncHTTPClient,
                              endpoints: Iterable[EndpointSpec]) -> Dict[str, Dict[str, Any]]:
    results: Dict[str, Dict[str, Any]] = {}
    for endpoint in endpoints:
        try:
            bench = await benchmark_endpoint(client, endpoint)
        except Exception as e:
            logging.error(f"API test failed for {endpoint.name}: {e}")
            results[endpoint.name] = {"error": str(e)}
            continue
        logging.info(f"{endpoint.name}: avg {bench.avg_response_time:.1f} ms, {bench.throughput:.2f} req/s, success {bench.success_rate * 100:.1f}%")
        results[endpoint.name] = bench.to_dict()
    return results
