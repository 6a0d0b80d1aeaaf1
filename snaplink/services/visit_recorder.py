"""Visit recording: counter increment plus one visit row per redirect."""

import asyncio
import time
from collections.abc import Callable
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from snaplink.core.clock import utcnow
from snaplink.core.config import get_settings
from snaplink.core.database import async_session_factory
from snaplink.core.observability import record_visit, set_visits_in_flight
from snaplink.models.mapping import Mapping
from snaplink.models.visit import Visit
from snaplink.services.user_agent import UserAgentParser, get_user_agent_parser

settings = get_settings()
logger = structlog.get_logger()


class VisitRecorder:
    """Records redirects without ever delaying or failing them.

    ``dispatch`` schedules ``record`` as a detached task and returns at once;
    the redirect handler never awaits it. Each task runs in its own session,
    is bounded by ``timeout`` seconds, and logs and swallows every error. A
    mapping that disappeared (deleted or renamed) between the redirect and
    the recording is dropped.

    Usage:
        recorder = VisitRecorder()
        recorder.dispatch("abc12", request.headers.get("User-Agent"))
        # ... at shutdown ...
        await recorder.drain()
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        parser: UserAgentParser | None = None,
        timeout: float | None = None,
        timezone_name: str | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize the recorder.

        Args:
            session_factory: Source of sessions. Defaults to the application's factory.
            parser: User-Agent parser.
            timeout: Seconds a single recording may take.
            timezone_name: Zone used for the decomposed day/hour fields.
            clock: Returns the current naive UTC time.
        """
        self._session_factory = session_factory or async_session_factory
        self._parser = parser or get_user_agent_parser()
        self._timeout = timeout or settings.visit_record_timeout
        self._zone = ZoneInfo(timezone_name or settings.analytics_timezone)
        self._clock = clock
        self._tasks: set[asyncio.Task] = set()
        self._recorded = 0
        self._dropped = 0
        self._failed = 0

    def dispatch(self, slug: str, raw_user_agent: str | None = None) -> asyncio.Task:
        """Schedule a visit recording in the background.

        The returned task is tracked until it finishes; callers may ignore it.
        """
        task = asyncio.create_task(self.record(slug, raw_user_agent))
        self._tasks.add(task)
        set_visits_in_flight(len(self._tasks))
        task.add_done_callback(self._forget)
        return task

    def _forget(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        set_visits_in_flight(len(self._tasks))

    async def drain(self) -> None:
        """Wait for every in-flight recording to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def record(self, slug: str, raw_user_agent: str | None = None) -> bool:
        """Record one visit; never raises.

        Returns:
            True if the visit was stored, False if it was dropped or failed.
        """
        start_time = time.perf_counter()
        try:
            stored = await asyncio.wait_for(
                self._record(slug, raw_user_agent),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            self._failed += 1
            record_visit("failed")
            logger.warning("Visit recording timed out", slug=slug, timeout=self._timeout)
            return False
        except Exception as e:
            self._failed += 1
            record_visit("failed")
            logger.error("Failed to record visit", slug=slug, error=str(e))
            return False

        duration = time.perf_counter() - start_time
        if stored:
            self._recorded += 1
            record_visit("recorded", duration)
            logger.debug(
                "Visit recorded",
                slug=slug,
                duration_ms=round(duration * 1000, 2),
            )
        else:
            self._dropped += 1
            record_visit("dropped", duration)
        return stored

    async def _record(self, slug: str, raw_user_agent: str | None) -> bool:
        async with self._session_factory() as session:
            try:
                result = await session.execute(
                    select(Mapping.id).where(
                        Mapping.slug == slug,
                        Mapping.is_deleted == False,  # noqa: E712
                    )
                )
                mapping_id = result.scalar_one_or_none()
                if mapping_id is None:
                    logger.info("Visit dropped - link not found", slug=slug)
                    return False

                # Storage-side increment, safe under concurrent visits
                await session.execute(
                    update(Mapping)
                    .where(Mapping.id == mapping_id)
                    .values(total_visits=Mapping.total_visits + 1)
                )

                client = self._parser.parse(raw_user_agent)
                occurred_at = self._clock()
                local = occurred_at.replace(tzinfo=timezone.utc).astimezone(self._zone)
                session.add(Visit(
                    mapping_id=mapping_id,
                    occurred_at=occurred_at,
                    year=local.year,
                    month=local.month,
                    day=local.day,
                    hour=local.hour,
                    browser=client.browser,
                    device=client.device,
                    os=client.os,
                ))
                await session.commit()
                return True
            except Exception:
                await session.rollback()
                raise

    @property
    def stats(self) -> dict:
        """Get recorder statistics."""
        return {
            "recorded": self._recorded,
            "dropped": self._dropped,
            "failed": self._failed,
            "in_flight": len(self._tasks),
        }


# Global recorder instance
_recorder: VisitRecorder | None = None


def get_visit_recorder() -> VisitRecorder:
    """Get the global visit recorder instance."""
    global _recorder
    if _recorder is None:
        _recorder = VisitRecorder()
    return _recorder


async def stop_visit_recorder() -> None:
    """Let pending recordings finish before shutdown."""
    if _recorder is not None:
        await _recorder.drain()
