import asyncio
import logging
import random
import time
from enum import Enum

from rampload.http_client import AsyncHTTPClient, HTTPClientError
from rampload.metrics import LoadTestMetrics
from rampload.result_buffer import SharedResultBuffer

MAX_ITERATIONS = 1000
REQUEST_TIMEOUT_MS = 10_000
MAX_JITTER_MS = 100.0

class WorkerState(Enum):
    CREATED = "created"
    RUNNING = "running"
    STOP_REQUESTED = "stop_requested"
    STOPPED = "stopped"

class RequestWorker:
    """One virtual user: a serial stream of requests against a single path.

    stop() is cooperative. The flag is read at the top of the loop, so a request
    already in flight finishes (bounded by its own timeout) and is recorded.
    """
    def __init__(self,
                 client: AsyncHTTPClient,
                 path: str,
                 buffer: SharedResultBuffer,
                 max_iterations: int = MAX_ITERATIONS,
                 request_timeout_ms: float = REQUEST_TIMEOUT_MS,
                 max_jitter_ms: float = MAX_JITTER_MS,
                 metrics: LoadTestMetrics | None = None,
                 label: str | None = None):
        self.client = client
        self.path = path
        self.buffer = buffer
        self.max_iterations = max_iterations
        self.request_timeout_ms = request_timeout_ms
        self.max_jitter_ms = max_jitter_ms
        self.metrics = metrics
        self.label = label or path
        self.state = WorkerState.CREATED
        self.iterations = 0

    def __repr__(self) -> str:
        return f"RequestWorker(path={self.path}, state={self.state.value}, iterations={self.iterations}/{self.max_iterations})"

    def stop(self) -> None:
        if self.state in (WorkerState.CREATED, WorkerState.RUNNING):
            self.state = WorkerState.STOP_REQUESTED

    @property
    def running(self) -> bool:
        return self.state == WorkerState.RUNNING

    async def run(self) -> int:
        if self.state != WorkerState.CREATED:
            ## stopped before the task got scheduled
            self.state = WorkerState.STOPPED
            return self.iterations
        self.state = WorkerState.RUNNING
        if self.metrics: self.metrics.worker_started(self.label)
        try:
            while self.state == WorkerState.RUNNING and self.iterations < self.max_iterations:
                await self._iteration()
                self.iterations += 1
                await asyncio.sleep(random.uniform(0, self.max_jitter_ms) / 1000.0)
        finally:
            self.state = WorkerState.STOPPED
            if self.metrics: self.metrics.worker_stopped(self.label)
        logging.debug(f"Worker for {self.label} stopped after {self.iterations} requests")
        return self.iterations

    async def _iteration(self) -> None:
        t0 = time.perf_counter()
        try:
            response = await self.client.request(self.path, timeout_ms=self.request_timeout_ms)
        except HTTPClientError as e:
            logging.debug(f"Request to {self.path} failed: {e}")
            self.buffer.record_failure()
            if self.metrics:
                self.metrics.record_request(self.label)
                self.metrics.record_failure(self.label)
            return
        elapsed_ms = (time.perf_counter() - t0) * 1000
        ok = self.buffer.record_response(elapsed_ms, response.status_code)
        if self.metrics:
            self.metrics.record_request(self.label)
            self.metrics.record_latency(self.label, elapsed_ms)
            if not ok:
                self.metrics.record_failure(self.label)
