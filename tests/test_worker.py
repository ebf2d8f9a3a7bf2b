import asyncio
import itertools

import httpx
import pytest
from rampload.metrics import LoadTestMetrics
from rampload.result_buffer import SharedResultBuffer
from rampload.worker import MAX_ITERATIONS, RequestWorker, WorkerState


def test_worker_defaults():
    """Test the per worker defaults used for load traffic"""
    worker = RequestWorker(client=None, path="/", buffer=SharedResultBuffer())
    assert worker.max_iterations == MAX_ITERATIONS == 1000
    assert worker.request_timeout_ms == 10_000
    assert worker.max_jitter_ms == 100.0
    assert worker.state == WorkerState.CREATED
    assert "state=created" in repr(worker)


@pytest.mark.asyncio
async def test_worker_stops_at_iteration_cap(make_client):
    """Test that a worker never issues more than max_iterations requests"""
    client = make_client(lambda request: httpx.Response(200))
    buffer = SharedResultBuffer()
    worker = RequestWorker(client, "/", buffer, max_iterations=5, max_jitter_ms=0)

    issued = await worker.run()

    assert issued == 5
    assert worker.state == WorkerState.STOPPED
    assert buffer.total_requests == 5
    assert buffer.successful_requests == 5
    assert len(buffer.response_times) == 5


@pytest.mark.asyncio
async def test_worker_classifies_status_codes(make_client):
    """Test 2xx/3xx count as success and 4xx/5xx as failure, all with a sample"""
    statuses = itertools.cycle([200, 302, 404, 500])
    client = make_client(lambda request: httpx.Response(next(statuses)))
    buffer = SharedResultBuffer()
    worker = RequestWorker(client, "/", buffer, max_iterations=4, max_jitter_ms=0)

    await worker.run()

    assert buffer.total_requests == 4
    assert buffer.successful_requests == 2
    assert buffer.failed_requests == 2
    assert len(buffer.response_times) == 4


@pytest.mark.asyncio
async def test_worker_failures_have_no_sample(make_client):
    """Test that connection errors count as failures without a response time"""
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(handler)
    buffer = SharedResultBuffer()
    worker = RequestWorker(client, "/", buffer, max_iterations=3, max_jitter_ms=0)

    await worker.run()

    assert buffer.total_requests == 3
    assert buffer.failed_requests == 3
    assert buffer.successful_requests == 0
    assert buffer.response_times == []


@pytest.mark.asyncio
async def test_worker_timeouts_count_as_failures(make_client):
    """Test that per request timeouts are recorded, not raised"""
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(0.3)
        return httpx.Response(200)

    client = make_client(handler)
    buffer = SharedResultBuffer()
    worker = RequestWorker(client, "/", buffer, max_iterations=2, request_timeout_ms=20, max_jitter_ms=0)

    await worker.run()

    assert buffer.total_requests == 2
    assert buffer.failed_requests == 2
    assert buffer.response_times == []


@pytest.mark.asyncio
async def test_stop_lets_in_flight_request_finish(make_client):
    """Test that stop is cooperative and the in-flight request is still recorded"""
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(0.1)
        return httpx.Response(200)

    client = make_client(handler)
    buffer = SharedResultBuffer()
    worker = RequestWorker(client, "/", buffer, max_jitter_ms=0)
    task = asyncio.create_task(worker.run())

    await asyncio.sleep(0.03)  # first request is in flight
    assert worker.state == WorkerState.RUNNING
    worker.stop()
    assert worker.state == WorkerState.STOP_REQUESTED
    assert buffer.total_requests == 0

    issued = await task

    assert issued == 1
    assert worker.state == WorkerState.STOPPED
    assert buffer.total_requests == 1
    assert buffer.successful_requests == 1
    assert len(buffer.response_times) == 1
    assert buffer.response_times[0] >= 100 * 0.9


@pytest.mark.asyncio
async def test_stop_before_run_issues_nothing(make_client):
    """Test that a worker stopped before it was scheduled never sends a request"""
    client = make_client(lambda request: httpx.Response(200))
    buffer = SharedResultBuffer()
    worker = RequestWorker(client, "/", buffer)
    worker.stop()

    assert await worker.run() == 0
    assert worker.state == WorkerState.STOPPED
    assert buffer.total_requests == 0


@pytest.mark.asyncio
async def test_stop_after_stopped_is_noop(make_client):
    """Test that stopping a finished worker does not move it back"""
    client = make_client(lambda request: httpx.Response(200))
    worker = RequestWorker(client, "/", SharedResultBuffer(), max_iterations=1, max_jitter_ms=0)
    await worker.run()
    worker.stop()
    assert worker.state == WorkerState.STOPPED


@pytest.mark.asyncio
async def test_worker_records_metrics(make_client):
    """Test prometheus counters follow the buffer"""
    statuses = itertools.cycle([200, 500])
    client = make_client(lambda request: httpx.Response(next(statuses)))
    metrics = LoadTestMetrics()
    worker = RequestWorker(client, "/", SharedResultBuffer(), max_iterations=4, max_jitter_ms=0,
                           metrics=metrics, label="Homepage")

    await worker.run()

    assert metrics.sample("load_requests_total", "Homepage") == 4
    assert metrics.sample("load_request_failures_total", "Homepage") == 2
    assert metrics.sample("load_response_time_ms_count", "Homepage") == 4
    assert metrics.sample("load_active_workers", "Homepage") == 0


@pytest.mark.asyncio
async def test_concurrent_workers_share_buffer(make_client):
    """Test many workers writing one buffer keep the counters consistent"""
    statuses = itertools.cycle([200, 200, 503])
    client = make_client(lambda request: httpx.Response(next(statuses)))
    buffer = SharedResultBuffer()
    workers = [RequestWorker(client, "/", buffer, max_iterations=6, max_jitter_ms=5) for _ in range(5)]

    await asyncio.gather(*(w.run() for w in workers))

    assert buffer.total_requests == 30
    assert buffer.total_requests == buffer.successful_requests + buffer.failed_requests
    assert buffer.failed_requests == 10
