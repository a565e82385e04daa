# usage_limits.py: per-plan caps on report generation and saved scripts

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from dateutil.relativedelta import relativedelta

from errors import LimitExceededError
from storage.models import utcnow
from storage.repositories import ScriptStore, UsageStore

logger = logging.getLogger(__name__)

PAID_PLANS = ("professional", "enterprise")


@dataclass(frozen=True)
class UsageInfo:
    current: int
    limit: Optional[int]        # None = unlimited

    @property
    def is_unlimited(self) -> bool:
        return self.limit is None

    @property
    def remaining(self) -> Optional[int]:
        return None if self.limit is None else max(0, self.limit - self.current)

    @property
    def has_reached_limit(self) -> bool:
        return self.limit is not None and self.current >= self.limit

    @property
    def percent_used(self) -> Optional[int]:
        if not self.limit:
            return None
        return round(self.current / self.limit * 100)


def month_start(now: datetime) -> datetime:
    return now + relativedelta(day=1, hour=0, minute=0, second=0, microsecond=0)


class UsageLimits:
    def __init__(self, usage: UsageStore, scripts: ScriptStore,
                 free_monthly_reports: int = 10, free_scripts: int = 5):
        self.usage = usage
        self.scripts = scripts
        self.free_monthly_reports = free_monthly_reports
        self.free_scripts = free_scripts

    def _is_paid(self) -> bool:
        return self.usage.plan_tier() in PAID_PLANS

    def report_limit(self) -> Optional[int]:
        return None if self._is_paid() else self.free_monthly_reports

    def script_limit(self) -> Optional[int]:
        return None if self._is_paid() else self.free_scripts

    def report_usage(self, now: Optional[datetime] = None) -> UsageInfo:
        since = month_start(now or utcnow())
        return UsageInfo(current=self.usage.count_generations_since(since), limit=self.report_limit())

    def script_usage(self) -> UsageInfo:
        return UsageInfo(current=self.scripts.count_titles(), limit=self.script_limit())

    def ensure_can_generate(self, now: Optional[datetime] = None) -> UsageInfo:
        info = self.report_usage(now)
        if info.has_reached_limit:
            logger.info("Report limit reached (%s/%s)", info.current, info.limit)
            raise LimitExceededError(
                f"Monthly report generation limit reached ({info.current}/{info.limit}).",
                "Please upgrade to generate more reports.",
            )
        return info

    def record_generation(self, file_name: str, size_bytes: int,
                          template_id: Optional[int] = None, duration_ms: Optional[int] = None) -> None:
        self.usage.insert_generation(
            file_name=file_name,
            file_size_kb=max(1, round(size_bytes / 1024)) if size_bytes else 0,
            template_id=template_id,
            duration_ms=duration_ms,
        )
