from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict

import numpy as np

from rampload.result_buffer import SharedResultBuffer

@dataclass(frozen=True)
class LoadTestResult:
    total_requests: int
    successful_requests: int
    failed_requests: int
    avg_response_time: float | None  ## ms, None when no request produced a sample
    min_response_time: float | None
    max_response_time: float | None
    requests_per_second: float
    error_rate: float
    duration: float  ## seconds

    @classmethod
    def empty(cls) -> "LoadTestResult":
        return cls(total_requests=0, successful_requests=0, failed_requests=0,
                   avg_response_time=None, min_response_time=None, max_response_time=None,
                   requests_per_second=0.0, error_rate=0.0, duration=0.0)

    @property
    def has_samples(self) -> bool:
        return self.avg_response_time is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalRequests": self.total_requests,
            "successfulRequests": self.successful_requests,
            "failedRequests": self.failed_requests,
            "avgResponseTime": self.avg_response_time,
            "minResponseTime": self.min_response_time,
            "maxResponseTime": self.max_response_time,
            "requestsPerSecond": self.requests_per_second,
            "errorRate": self.error_rate,
            "duration": self.duration,
        }


def summarize(buffer: SharedResultBuffer) -> LoadTestResult:
    """Reduce a finished buffer. Samples are not assumed to be in chronological order."""
    samples = np.asarray(buffer.response_times, dtype=np.float64)
    if samples.size:
        avg, low, high = float(samples.mean()), float(samples.min()), float(samples.max())
    else:
        avg = low = high = None
    duration = buffer.elapsed_s
    total = buffer.total_requests
    return LoadTestResult(
        total_requests=total,
        successful_requests=buffer.successful_requests,
        failed_requests=buffer.failed_requests,
        avg_response_time=avg,
        min_response_time=low,
        max_response_time=high,
        requests_per_second=total / duration if duration > 0 else 0.0,
        error_rate=buffer.failed_requests / total if total else 0.0,
        duration=duration,
    )
