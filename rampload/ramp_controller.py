import asyncio
import logging
from typing import Callable, List

from rampload.aggregator import LoadTestResult, summarize
from rampload.http_client import AsyncHTTPClient
from rampload.metrics import LoadTestMetrics
from rampload.result_buffer import SharedResultBuffer
from rampload.worker import RequestWorker

WorkerFactory = Callable[[str, SharedResultBuffer], RequestWorker]

class RampController:
    """Spawns workers at an even cadence over the ramp-up window and stops them all
    once the test duration has elapsed.

    The duration is measured from the start of the run, not from the end of the ramp.
    With ramp_up_s >= duration_s the run stops before reaching full concurrency:
    worker k starts at k * ramp_up_s / target and is never spawned when that offset
    is not strictly before the deadline.
    """
    def __init__(self,
                 client: AsyncHTTPClient,
                 worker_factory: WorkerFactory | None = None,
                 metrics: LoadTestMetrics | None = None,
                 label: str | None = None):
        self.client = client
        self.metrics = metrics
        self.label = label
        self.worker_factory = worker_factory or self._default_worker
        self.workers: List[RequestWorker] = []
        self.spawn_failures = 0
        self.buffer: SharedResultBuffer | None = None
        self._stop = asyncio.Event()

    def _default_worker(self, path: str, buffer: SharedResultBuffer) -> RequestWorker:
        return RequestWorker(self.client, path, buffer, metrics=self.metrics, label=self.label or path)

    @property
    def spawned(self) -> int:
        return len(self.workers)

    async def run(self,
                  target_concurrency: int,
                  duration_s: float,
                  ramp_up_s: float,
                  path: str) -> LoadTestResult:
        if target_concurrency <= 0:
            logging.warning(f"Target concurrency {target_concurrency} for {path}, nothing to spawn")
            return LoadTestResult.empty()
        if self.buffer is not None:
            raise RuntimeError("RampController instances run once, create a new one per scenario run")

        loop = asyncio.get_running_loop()
        started = loop.time()
        self.buffer = buffer = SharedResultBuffer()
        ramp_interval = ramp_up_s / target_concurrency
        logging.info(f"Ramping {target_concurrency} workers on {path} every {ramp_interval * 1000:.1f} ms, duration {duration_s}s")

        async with asyncio.TaskGroup() as tg:
            ticker = tg.create_task(self._ramp(tg, target_concurrency, ramp_interval, duration_s, started, path, buffer))
            await asyncio.sleep(max(started + duration_s - loop.time(), 0.0))
            self._stop.set()
            for worker in self.workers:
                worker.stop()
            logging.debug(f"Duration elapsed for {path}: {self.spawned} workers signalled, draining in-flight requests")
            await ticker
        ## end is stamped after the drain so every recorded request falls inside [start, end]
        buffer.finish()
        result = summarize(buffer)
        logging.info(f"Load run on {path} finished: {result.total_requests} requests, "
                     f"{self.spawned}/{target_concurrency} workers, {self.spawn_failures} spawn failures")
        return result

    async def _ramp(self,
                    tg: asyncio.TaskGroup,
                    target_concurrency: int,
                    ramp_interval: float,
                    duration_s: float,
                    started: float,
                    path: str,
                    buffer: SharedResultBuffer) -> None:
        loop = asyncio.get_running_loop()
        for index in range(target_concurrency):
            offset = index * ramp_interval
            if offset >= duration_s:
                logging.debug(f"Worker {index} for {path} would start at {offset:.3f}s, past the {duration_s}s deadline")
                break
            delay = started + offset - loop.time()
            if delay > 0:
                try:
                    await asyncio.wait_for(self._stop.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    pass
            if self._stop.is_set():
                break
            self._spawn(tg, index, path, buffer)

    def _spawn(self, tg: asyncio.TaskGroup, index: int, path: str, buffer: SharedResultBuffer) -> None:
        try:
            worker = self.worker_factory(path, buffer)
            tg.create_task(worker.run(), name=f"worker-{index}-{path}")
        except Exception as e:
            ## the run continues with the workers already spawned
            self.spawn_failures += 1
            logging.error(f"Failed to spawn worker {index} for {path}: {e}")
            return
        self.workers.append(worker)
