from __future__ import annotations
import os
from dataclasses import dataclass, replace
from typing import List, Mapping

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from rampload.probes import DEFAULT_ENDPOINTS, DEFAULT_PAGES, EndpointSpec, PageSpec
from rampload.scenarios import DEFAULT_SCENARIOS, Scenario
from rampload.thresholds import ThresholdSet
from rampload.utilities import env_bool, env_number, yamlUtilities

DEFAULT_BASE_URL = "http://localhost:7001"

@dataclass(frozen=True)
class LoadTestSettings:
    base_url: str = DEFAULT_BASE_URL
    concurrent_users: int = 50
    duration_s: float = 60.0
    ramp_up_s: float = 10.0
    log_dir: str = "./logs"
    debug: bool = False
    plan_path: str | None = None

    def __post_init__(self):
        if self.concurrent_users < 0:
            raise ValueError(f"concurrent_users must be >= 0, got {self.concurrent_users}")
        if self.duration_s < 0 or self.ramp_up_s < 0:
            raise ValueError(f"duration and ramp up must be >= 0, got {self.duration_s}s / {self.ramp_up_s}s")

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "LoadTestSettings":
        if env is None:
            load_dotenv()
            env = os.environ
        return cls(
            base_url=env.get("PERFORMANCE_TEST_URL") or DEFAULT_BASE_URL,
            concurrent_users=env_number(env, "CONCURRENT_USERS", 50, int),
            duration_s=env_number(env, "TEST_DURATION", 60.0),
            ramp_up_s=env_number(env, "RAMP_UP_SECONDS", 10.0),
            log_dir=env.get("LOG_DIRECTORY") or "./logs",
            debug=env_bool(env, "DEBUG_MODE"),
            plan_path=env.get("LOAD_PLAN_PATH") or None,
        )

    def override(self, **changes) -> "LoadTestSettings":
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


class LoadTestPlan(BaseModel):
    model_config = ConfigDict(extra="forbid")

    scenarios: List[Scenario] = Field(default_factory=lambda: list(DEFAULT_SCENARIOS))
    thresholds: ThresholdSet = Field(default_factory=ThresholdSet)
    pages: List[PageSpec] = Field(default_factory=lambda: list(DEFAULT_PAGES))
    endpoints: List[EndpointSpec] = Field(default_factory=lambda: list(DEFAULT_ENDPOINTS))


def load_plan(path: str | None) -> LoadTestPlan:
    if not path:
        return LoadTestPlan()
    return LoadTestPlan.model_validate(yamlUtilities.load_yaml(path))
