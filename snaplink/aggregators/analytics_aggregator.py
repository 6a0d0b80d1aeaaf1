"""Windowed analytics: zero-filled daily series and categorical breakdowns."""

import calendar
import time
from collections import Counter
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import date, datetime, time as dt_time, timedelta, timezone
from zoneinfo import ZoneInfo

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from snaplink.core.clock import utcnow
from snaplink.core.config import get_settings
from snaplink.core.observability import record_analytics_query
from snaplink.models.visit import Visit
from snaplink.schemas.analytics import AnalyticsReport, CategoryCount, TimeseriesPoint
from snaplink.services.registry import MappingRegistry, get_mapping_registry

settings = get_settings()
logger = structlog.get_logger()

DEFAULT_FILTER = "default"


@dataclass(frozen=True)
class Window:
    """Calendar-day window: ``bucket_count + 1`` days starting at ``start``."""

    time_filter: str
    start: date
    bucket_count: int

    @property
    def end(self) -> date:
        """Last day of the window (inclusive)."""
        return self.start + timedelta(days=self.bucket_count)

    def days(self) -> list[date]:
        return [self.start + timedelta(days=i) for i in range(self.bucket_count + 1)]


def shift_months(day: date, months: int) -> date:
    """Move a date by whole calendar months, clamping to the month's last day."""
    month_index = day.year * 12 + (day.month - 1) + months
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def resolve_window(time_filter: str | None, today: date) -> Window:
    """Map a time filter name onto its window.

    Unknown or missing filters fall back to the last 30 days.
    """
    if time_filter == "day":
        return Window("day", today, 1)
    if time_filter == "week":
        return Window("week", today - timedelta(days=7), 7)
    if time_filter == "month":
        return Window("month", shift_months(today, -1), 30)
    if time_filter == "year":
        return Window("year", shift_months(today, -12), 365)
    return Window(DEFAULT_FILTER, today - timedelta(days=30), 30)


def rank_labels(labels: Iterable[str | None]) -> list[CategoryCount]:
    """Tally non-null labels, most frequent first.

    Ties keep the order in which labels were first seen.
    """
    counts = Counter(label for label in labels if label is not None)
    return [CategoryCount(label=label, count=count) for label, count in counts.most_common()]


class AnalyticsAggregator:
    """Builds analytics reports from raw visit rows.

    The window is aligned to calendar days in ``timezone_name``; visits are
    bucketed by their local date. Reads see whatever was committed when the
    query ran.

    Usage:
        aggregator = AnalyticsAggregator()
        report = await aggregator.query(session, "abc12", owner_id, "week")
    """

    def __init__(
        self,
        registry: MappingRegistry | None = None,
        timezone_name: str | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize the aggregator.

        Args:
            registry: Used for the ownership check.
            timezone_name: Zone whose calendar days form the buckets.
            clock: Returns the current naive UTC time.
        """
        self._registry = registry or get_mapping_registry()
        self._zone = ZoneInfo(timezone_name or settings.analytics_timezone)
        self._clock = clock

    def today(self) -> date:
        """Current calendar date in the analytics timezone."""
        return self._to_local(self._clock()).date()

    def _to_local(self, moment: datetime) -> datetime:
        return moment.replace(tzinfo=timezone.utc).astimezone(self._zone)

    def _to_utc(self, day: date) -> datetime:
        """Naive UTC instant of local midnight on ``day``."""
        local_midnight = datetime.combine(day, dt_time.min, tzinfo=self._zone)
        return local_midnight.astimezone(timezone.utc).replace(tzinfo=None)

    async def query(
        self,
        session: AsyncSession,
        slug: str,
        owner_id: str,
        time_filter: str | None = None,
    ) -> AnalyticsReport:
        """Aggregate a mapping's visits over the requested window.

        Raises NotFoundError unless an active mapping with ``slug`` is owned
        by ``owner_id``.
        """
        start_time_metric = time.perf_counter()

        mapping = await self._registry.get_owned(session, slug, owner_id)
        window = resolve_window(time_filter, self.today())

        result = await session.execute(
            select(Visit.occurred_at, Visit.browser, Visit.device, Visit.os)
            .where(Visit.mapping_id == mapping.id)
            .where(Visit.occurred_at >= self._to_utc(window.start))
            .where(Visit.occurred_at < self._to_utc(window.end + timedelta(days=1)))
            # Same-instant visits share no defined order; their ties are arbitrary
            .order_by(Visit.occurred_at, Visit.id)
        )
        rows = result.all()

        visits_by_day = dict.fromkeys(window.days(), 0)
        for row in rows:
            visit_day = self._to_local(row.occurred_at).date()
            if visit_day in visits_by_day:
                visits_by_day[visit_day] += 1

        report = AnalyticsReport(
            slug=mapping.slug,
            original_url=mapping.original_url,
            total_visits=mapping.total_visits,
            time_filter=window.time_filter,
            start_date=window.start,
            end_date=window.end,
            visit_data=[
                TimeseriesPoint(date=day, count=count)
                for day, count in visits_by_day.items()
            ],
            browser_stats=rank_labels(row.browser for row in rows),
            device_stats=rank_labels(row.device for row in rows),
            os_stats=rank_labels(row.os for row in rows),
        )

        duration = time.perf_counter() - start_time_metric
        record_analytics_query(window.time_filter, duration)
        logger.debug(
            "Analytics fetched",
            slug=slug,
            time_filter=window.time_filter,
            visits=len(rows),
            duration_ms=round(duration * 1000, 2),
        )
        return report


# Global aggregator instance
_aggregator: AnalyticsAggregator | None = None


def get_analytics_aggregator() -> AnalyticsAggregator:
    """Get the global analytics aggregator instance."""
    global _aggregator
    if _aggregator is None:
        _aggregator = AnalyticsAggregator()
    return _aggregator
