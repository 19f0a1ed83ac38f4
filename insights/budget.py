"""
Daily and monthly caps on generated insights.
"""

import logging
from typing import Dict

logger = logging.getLogger(__name__)

DAILY_LIMIT = 200
MONTHLY_LIMIT = 6000
COST_PER_INSIGHT = 0.0014  # USD


class InsightBudget:
    """In-process usage counters. Reset them from scheduled jobs."""

    def __init__(self, daily_limit: int = DAILY_LIMIT, monthly_limit: int = MONTHLY_LIMIT):
        self.daily_limit = daily_limit
        self.monthly_limit = monthly_limit
        self.daily_used = 0
        self.monthly_used = 0

    def can_generate(self) -> bool:
        if self.daily_used >= self.daily_limit:
            logger.info(f"Daily insight limit reached: {self.daily_used}/{self.daily_limit}")
            return False
        if self.monthly_used >= self.monthly_limit:
            logger.info(f"Monthly insight limit reached: {self.monthly_used}/{self.monthly_limit}")
            return False
        return True

    def record(self) -> None:
        self.daily_used += 1
        self.monthly_used += 1
        logger.info(
            f"Generated insight. Daily: {self.daily_used}/{self.daily_limit}, "
            f"Monthly: {self.monthly_used}/{self.monthly_limit}"
        )

    def reset_daily(self) -> None:
        self.daily_used = 0
        logger.info("Daily insight counter reset")

    def reset_monthly(self) -> None:
        self.monthly_used = 0
        logger.info("Monthly insight counter reset")

    def status(self) -> Dict:
        return {
            "daily_used": self.daily_used,
            "daily_limit": self.daily_limit,
            "daily_remaining": self.daily_limit - self.daily_used,
            "monthly_used": self.monthly_used,
            "monthly_limit": self.monthly_limit,
            "monthly_remaining": self.monthly_limit - self.monthly_used,
            "estimated_cost": f"${self.monthly_used * COST_PER_INSIGHT:.2f}",
        }


budget = InsightBudget()
