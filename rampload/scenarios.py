from __future__ import annotations
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List

from pydantic import BaseModel, ConfigDict, Field

from rampload.aggregator import LoadTestResult
from rampload.http_client import AsyncHTTPClient
from rampload.metrics import LoadTestMetrics
from rampload.ramp_controller import RampController
from rampload.thresholds import Recommendation, ThresholdSet, evaluate

class Scenario(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    path: str = Field(min_length=1)
    weight: int = Field(ge=0)  ## percent of the total concurrency, weights need not sum to 100

    def concurrency_share(self, total_concurrency: int) -> int:
        return math.ceil(total_concurrency * self.weight / 100)


DEFAULT_SCENARIOS: List[Scenario] = [
    Scenario(name="Homepage", path="/", weight=40),
    Scenario(name="Dashboard", path="/dashboard", weight=30),
    Scenario(name="Login", path="/login", weight=20),
    Scenario(name="API Health", path="/api/health", weight=10),
]


@dataclass(frozen=True)
class ScenarioFailure:
    name: str
    error: str

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.error}


@dataclass
class ScenarioReport:
    results: Dict[str, LoadTestResult | ScenarioFailure] = field(default_factory=dict)
    recommendations: List[Recommendation] = field(default_factory=list)

    @property
    def failures(self) -> Dict[str, ScenarioFailure]:
        return {name: r for name, r in self.results.items() if isinstance(r, ScenarioFailure)}

    def to_dict(self) -> Dict[str, Any]:
        return {name: result.to_dict() for name, result in self.results.items()}


ControllerFactory = Callable[[Scenario], RampController]

def describe_error(e: BaseException) -> str:
    """Message of the underlying failure, task group wrappers are flattened."""
    if isinstance(e, BaseExceptionGroup):
        return "; ".join(describe_error(inner) for inner in e.exceptions)
    return str(e) or type(e).__name__

class ScenarioRunner:
    """Drives one ramp -> aggregate -> evaluate cycle per scenario.

    Anything a scenario raises is turned into a ScenarioFailure so sibling
    scenarios still run.
    """
    def __init__(self,
                 client: AsyncHTTPClient,
                 controller_factory: ControllerFactory | None = None,
                 thresholds: ThresholdSet | None = None,
                 metrics: LoadTestMetrics | None = None):
        self.client = client
        self.metrics = metrics
        self.thresholds = thresholds or ThresholdSet()
        self.controller_factory = controller_factory or self._default_controller

    def _default_controller(self, scenario: Scenario) -> RampController:
        return RampController(self.client, metrics=self.metrics, label=scenario.name)

    async def run_scenario(self,
                           scenario: Scenario,
                           total_concurrency: int,
                           duration_s: float,
                           ramp_up_s: float) -> LoadTestResult | ScenarioFailure:
        concurrency = scenario.concurrency_share(total_concurrency)
        logging.info(f"Testing {scenario.name} ({scenario.path}) with {concurrency} users")
        try:
            controller = self.controller_factory(scenario)
            return await controller.run(concurrency, duration_s, ramp_up_s, scenario.path)
        except Exception as e:
            logging.error(f"Load test failed for {scenario.name}: {describe_error(e)}", exc_info=True)
            return ScenarioFailure(name=scenario.name, error=describe_error(e))

    async def run_all(self,
                      scenarios: Iterable[Scenario],
                      total_concurrency: int,
                      duration_s: float,
                      ramp_up_s: float) -> ScenarioReport:
        report = ScenarioReport()
        for scenario in scenarios:
            result = await self.run_scenario(scenario, total_concurrency, duration_s, ramp_up_s)
            report.results[scenario.name] = result
            if isinstance(result, ScenarioFailure):
                continue
            if scenario.concurrency_share(total_concurrency) == 0:
                logging.info(f"{scenario.name} is switched off, no thresholds checked")
                continue
            logging.info(f"{scenario.name}: {result.total_requests} requests, "
                         f"avg {result.avg_response_time if result.avg_response_time is not None else float('nan'):.1f} ms, "
                         f"{result.requests_per_second:.2f} req/s, error rate {result.error_rate * 100:.2f}%")
            report.recommendations.extend(evaluate(result, self.thresholds, name=scenario.name))
        return report
