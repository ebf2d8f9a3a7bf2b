from prometheus_client import Counter, Histogram, Gauge, generate_latest, CollectorRegistry, disable_created_metrics

disable_created_metrics()

class LoadTestMetrics:

    def __init__(self):
        self.registry = CollectorRegistry()
        self.requests = Counter(
            'load_requests_total',
            'Total number of requests issued by load test workers',
            ['scenario'],
            registry=self.registry
        )
        self.failures = Counter(
            'load_request_failures_total',
            'Requests that timed out, failed to connect or returned a non 2xx/3xx status',
            ['scenario'],
            registry=self.registry
        )
        self.histogram = Histogram(
            'load_response_time_ms',
            'Response time of load test requests in milliseconds',
            ['scenario'],
            buckets=(1, 5, 10, 25, 50, 100, 200, 500, 1000, 2500, 5000, 10000),
            registry=self.registry
        )
        self.active_workers = Gauge(
            'load_active_workers',
            'Workers currently running',
            ['scenario'],
            registry=self.registry
        )

    def record_request(self, scenario: str) -> None:
        self.requests.labels(scenario=scenario).inc()

    def record_failure(self, scenario: str) -> None:
        self.failures.labels(scenario=scenario).inc()

    def record_latency(self,
                       scenario: str,
                       latency_ms: float) -> None:
        self.histogram.labels(scenario=scenario).observe(latency_ms)

    def worker_started(self, scenario: str) -> None:
        self.active_workers.labels(scenario=scenario).inc()

    def worker_stopped(self, scenario: str) -> None:
        self.active_workers.labels(scenario=scenario).dec()

    def sample(self, name: str, scenario: str) -> float | None:
        return self.registry.get_sample_value(name, {"scenario": scenario})

    def generate_latest_metrics(self) -> bytes:
        return generate_latest(self.registry)
