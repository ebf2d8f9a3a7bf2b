import argparse
import asyncio
import json
import logging
import os
import platform
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List

from rampload.config import LoadTestPlan, LoadTestSettings, load_plan
from rampload.http_client import AsyncHTTPClient
from rampload.metrics import LoadTestMetrics
from rampload.probes import ServerUnavailable, benchmark_endpoints, check_server_health, measure_pages
from rampload.scenarios import ScenarioRunner
from rampload.thresholds import Recommendation, action_items
from rampload.utilities import format_bytes

def setup_logging(settings: LoadTestSettings) -> None:
    os.makedirs(settings.log_dir, exist_ok=True)
    logging.basicConfig(filename=os.path.join(settings.log_dir, "rampload.log"),
        level=logging.DEBUG if settings.debug else logging.INFO,
        format='%(asctime)s %(levelname)s %(message)s',
        filemode='a')

async def run_suite(settings: LoadTestSettings,
                    plan: LoadTestPlan,
                    client: AsyncHTTPClient | None = None,
                    metrics: LoadTestMetrics | None = None) -> Dict[str, Any]:
    """Health check, ramped scenarios, page timings and endpoint benchmarks against one target.

    Returns a JSON ready document, rendering it is left to the caller.
    A failed health check raises ServerUnavailable, everything after it is per item.
    """
    owns_client = client is None
    client = client or AsyncHTTPClient(settings.base_url)
    logging.info(f"Target: {settings.base_url}, users: {settings.concurrent_users}, "
                 f"duration: {settings.duration_s}s, ramp up: {settings.ramp_up_s}s")
    try:
        await check_server_health(client)

        runner = ScenarioRunner(client, thresholds=plan.thresholds, metrics=metrics)
        report = await runner.run_all(plan.scenarios,
                                      settings.concurrent_users,
                                      settings.duration_s,
                                      settings.ramp_up_s)
        recommendations: List[Recommendation] = list(report.recommendations)

        pages, page_recommendations = await measure_pages(client, plan.pages, plan.thresholds)
        recommendations.extend(page_recommendations)
        api = await benchmark_endpoints(client, plan.endpoints)
    finally:
        if owns_client:
            await client.aclose()

    for rec in recommendations:
        log = logging.warning if rec.severity == "warning" else logging.info
        log(f"[{rec.type}] {rec.message}")
    total_bytes = sum(p.get("contentSize", 0) for p in pages.values())
    logging.info(f"Suite finished: {len(report.results)} scenarios ({len(report.failures)} failed), "
                 f"{len(recommendations)} recommendations, {format_bytes(total_bytes)} of page content")

    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "loadTesting": report.to_dict(),
        "pageSpeed": pages,
        "apiPerformance": api,
        "recommendations": [rec.to_dict() for rec in recommendations],
        "actionItems": action_items(recommendations),
        "metadata": {
            "testDuration": settings.duration_s,
            "rampUpTime": settings.ramp_up_s,
            "concurrentUsers": settings.concurrent_users,
            "baseUrl": settings.base_url,
            "thresholds": plan.thresholds.model_dump(),
            "pythonVersion": platform.python_version(),
            "platform": sys.platform,
        },
    }

def parse_args(argv: List[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ramped HTTP load test against a target service")
    parser.add_argument("--url", help="Target base url (PERFORMANCE_TEST_URL)")
    parser.add_argument("--users", type=int, help="Total concurrent users (CONCURRENT_USERS)")
    parser.add_argument("--duration", type=float, help="Test duration per scenario in seconds (TEST_DURATION)")
    parser.add_argument("--ramp-up", type=float, help="Ramp up window in seconds (RAMP_UP_SECONDS)")
    parser.add_argument("--plan", help="YAML load plan with scenarios, thresholds, pages and endpoints (LOAD_PLAN_PATH)")
    return parser.parse_args(argv)

def main(argv: List[str] | None = None) -> int:
    args = parse_args(argv)
    settings = LoadTestSettings.from_env().override(base_url=args.url,
                                                    concurrent_users=args.users,
                                                    duration_s=args.duration,
                                                    ramp_up_s=args.ramp_up,
                                                    plan_path=args.plan)
    setup_logging(settings)
    plan = load_plan(settings.plan_path)
    metrics = LoadTestMetrics()
    try:
        document = asyncio.run(run_suite(settings, plan, metrics=metrics))
    except ServerUnavailable as e:
        logging.error(f"Aborting, target not reachable: {e}")
        print(f"Target {settings.base_url} is not reachable: {e}", file=sys.stderr)
        return 1
    with open(os.path.join(settings.log_dir, "rampload_metrics.prom"), "wb") as f:
        f.write(metrics.generate_latest_metrics())
    print(json.dumps(document, indent=2))
    return 0

if __name__ == "__main__":
    sys.exit(main())
