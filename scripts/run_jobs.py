"""
Run one of the background jobs once, outside the API process.

Usage:
    python scripts/run_jobs.py warmup [--limit N]
    python scripts/run_jobs.py alerts
    python scripts/run_jobs.py evaluate
"""

import argparse
import asyncio
import json
import logging
import os
import sys

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.logging import setup_logging
from jobs.alerts import run_alert_checks
from jobs.evaluation import evaluate_forecasts
from jobs.warmup import warmup_forecasts

setup_logging()
logger = logging.getLogger(__name__)


async def run(job: str, limit: int = None) -> dict:
    if job == "warmup":
        return await warmup_forecasts(limit=limit)
    if job == "alerts":
        return await run_alert_checks()
    return await evaluate_forecasts()


def main():
    parser = argparse.ArgumentParser(description="Run a TrendArc background job once")
    parser.add_argument("job", choices=["warmup", "alerts", "evaluate"])
    parser.add_argument("--limit", type=int, default=None, help="Warmup batch size")
    args = parser.parse_args()

    logger.info(f"Running {args.job} job")
    result = asyncio.run(run(args.job, args.limit))
    print(json.dumps(result, indent=2, default=str))

    if not result.get("success", False):
        sys.exit(1)


if __name__ == "__main__":
    main()
