from __future__ import annotations
import time
from dataclasses import dataclass, field
from typing import List

@dataclass
class SharedResultBuffer:
    """Counters and samples for a single scenario run.

    Written by every worker of that run. All mutations happen between await points
    on one event loop, so no lock is taken here. Code that records from real threads
    must wrap these calls in a lock.
    """
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    response_times: List[float] = field(default_factory=list)  ## ms, completion order
    start_time: float = field(default_factory=time.perf_counter)
    end_time: float | None = None

    def record_response(self, elapsed_ms: float, status_code: int) -> bool:
        self.total_requests += 1
        self.response_times.append(elapsed_ms)
        if 200 <= status_code < 400:
            self.successful_requests += 1
            return True
        self.failed_requests += 1
        return False

    def record_failure(self) -> None:
        ## timeouts and connection errors have no sample
        self.total_requests += 1
        self.failed_requests += 1

    def finish(self) -> None:
        if self.end_time is None:
            self.end_time = time.perf_counter()

    @property
    def elapsed_s(self) -> float:
        end = self.end_time if self.end_time is not None else time.perf_counter()
        return max(end - self.start_time, 0.0)

    def __repr__(self) -> str:
        return (f"SharedResultBuffer(total={self.total_requests}, ok={self.successful_requests}, "
                f"failed={self.failed_requests}, samples={len(self.response_times)}, finished={self.end_time is not None})")
