from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Iterable, List, Literal

from pydantic import BaseModel, ConfigDict, Field

from rampload.aggregator import LoadTestResult
from rampload.http_client import PageSpeedResult

Severity = Literal["warning", "info"]

class ThresholdSet(BaseModel):
    """Limits a run is judged against. Frozen for the duration of a run."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    response_time_ms: float = Field(default=200, gt=0)
    throughput_rps: float = Field(default=100, ge=0)
    error_rate: float = Field(default=0.01, ge=0, le=1)
    memory_leak_mb: float = Field(default=50, ge=0)
    """Heap growth limit, no check in this package reads it, callers with their own measurements do."""
    bundle_size_bytes: int = Field(default=1_000_000, ge=0)
    page_load_ms: float = Field(default=3000, gt=0)
    first_contentful_paint_ms: float = Field(default=1500, gt=0)
    largest_contentful_paint_ms: float = Field(default=2500, gt=0)
    cumulative_layout_shift: float = Field(default=0.1, ge=0)
    first_input_delay_ms: float = Field(default=100, gt=0)


@dataclass(frozen=True)
class Recommendation:
    type: str
    severity: Severity
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"type": self.type, "severity": self.severity, "message": self.message}


def evaluate(result: LoadTestResult,
             thresholds: ThresholdSet,
             name: str | None = None) -> List[Recommendation]:
    """Check each limit on its own, a breach never hides another one."""
    subject = name or "Scenario"
    recommendations: List[Recommendation] = []

    if not result.has_samples:
        recommendations.append(Recommendation(
            type="performance",
            severity="info",
            message=f"{subject} produced no response time samples ({result.total_requests} requests, all failed before a response)"))
    elif result.avg_response_time > thresholds.response_time_ms:
        recommendations.append(Recommendation(
            type="performance",
            severity="warning",
            message=f"{subject} response time ({result.avg_response_time:.0f}ms) exceeds threshold ({thresholds.response_time_ms:.0f}ms)"))

    if result.requests_per_second < thresholds.throughput_rps:
        recommendations.append(Recommendation(
            type="performance",
            severity="warning",
            message=f"{subject} throughput ({result.requests_per_second:.2f} req/s) is below threshold ({thresholds.throughput_rps:.2f} req/s)"))

    if result.error_rate > thresholds.error_rate:
        recommendations.append(Recommendation(
            type="performance",
            severity="warning",
            message=f"{subject} error rate ({result.error_rate * 100:.2f}%) exceeds threshold ({thresholds.error_rate * 100:.2f}%)"))
    return recommendations


def evaluate_page_speed(page: PageSpeedResult,
                        thresholds: ThresholdSet,
                        name: str) -> List[Recommendation]:
    if page.total_load_time > thresholds.page_load_ms:
        return [Recommendation(
            type="pageSpeed",
            severity="warning",
            message=f"{name} load time ({page.total_load_time:.0f}ms) exceeds threshold ({thresholds.page_load_ms:.0f}ms)")]
    return []


_ACTIONS: Dict[str, List[str]] = {
    "bundle": ["Optimize bundle size using code splitting and tree shaking",
               "Analyze bundle composition with a bundle analyzer"],
    "performance": ["Optimize database queries and API response times",
                    "Implement caching strategies (Redis, CDN)"],
    "pageSpeed": ["Optimize images and serve them in modern formats",
                  "Implement lazy loading for non-critical content"],
    ## reached only through Recommendation(type="memory") built by the caller
    "memory": ["Review component lifecycle for memory leaks",
               "Release listeners, timers and caches when components unmount"],
}

def action_items(recommendations: Iterable[Recommendation]) -> List[str]:
    actions: List[str] = []
    for rec in recommendations:
        for action in _ACTIONS.get(rec.type, []):
            if action not in actions:
                actions.append(action)
    return actions
