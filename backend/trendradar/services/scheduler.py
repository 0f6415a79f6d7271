"""
Scheduler Service

Runs the stale scrape job sweep on an interval.

Single-leader election via Postgres advisory locks:
- Only the instance that acquires the lock executes the tick
- Other instances silently skip
- Controlled by SCHEDULER_ENABLED env (default: true)
"""
from __future__ import annotations

import logging
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from trendradar.settings import get_settings

logger = logging.getLogger("scheduler")

# Advisory lock key (arbitrary int64)
LOCK_STALE_JOB_SWEEP = 910_001


class SchedulerService:
    """Periodic maintenance for the scrape pipeline.

    Uses Postgres pg_try_advisory_lock on each tick so that only
    one backend instance (the leader) sweeps while others skip.
    """

    _instance: "SchedulerService | None" = None

    def __init__(self):
        self.scheduler = AsyncIOScheduler()
        self._session_factory: async_sessionmaker | None = None
        self._running = False

    @classmethod
    def get_instance(cls) -> "SchedulerService":
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def configure(self, database_url: str):
        engine = create_async_engine(database_url, echo=False)
        self._session_factory = async_sessionmaker(engine, expire_on_commit=False)

    def _get_session(self) -> AsyncSession:
        if not self._session_factory:
            self.configure(get_settings().async_database_url)
        return self._session_factory()

    @staticmethod
    def _uses_advisory_locks(session: AsyncSession) -> bool:
        return session.get_bind().dialect.name == "postgresql"

    async def _try_advisory_lock(self, session: AsyncSession, lock_key: int) -> bool:
        """Non-blocking session-level advisory lock. True if this instance is leader for the tick."""
        if not self._uses_advisory_locks(session):
            return True
        result = await session.execute(text(f"SELECT pg_try_advisory_lock({lock_key})"))
        return bool(result.scalar())

    async def _release_advisory_lock(self, session: AsyncSession, lock_key: int):
        if self._uses_advisory_locks(session):
            await session.execute(text(f"SELECT pg_advisory_unlock({lock_key})"))

    def start(self):
        """Start the scheduler (respects SCHEDULER_ENABLED env)."""
        settings = get_settings()
        if not settings.scheduler_enabled:
            logger.info("Scheduler DISABLED by SCHEDULER_ENABLED=false, skipping start")
            return
        if self._running:
            return

        self.scheduler.add_job(
            self._run_stale_job_sweep,
            IntervalTrigger(minutes=settings.sweep_interval_minutes),
            id="stale_job_sweep",
            name="Fail scrape jobs without callback",
            replace_existing=True,
        )

        self.scheduler.start()
        self._running = True
        logger.info(f"Scheduler started (sweep every {settings.sweep_interval_minutes}m)")

    def stop(self):
        if not self._running:
            return
        self.scheduler.shutdown(wait=False)
        self._running = False
        logger.info("Scheduler stopped")

    def is_running(self) -> bool:
        return self._running

    async def _run_stale_job_sweep(self) -> dict[str, Any] | None:
        """Protected by advisory lock, only one instance executes per tick."""
        from trendradar.services.stale_jobs import run_sweep

        async with self._get_session() as session:
            if not await self._try_advisory_lock(session, LOCK_STALE_JOB_SWEEP):
                logger.debug("[sweep] Advisory lock not acquired, another instance is leader")
                return None
            try:
                return await run_sweep(session)
            except Exception as e:
                logger.error(f"[sweep] Tick failed: {e}", exc_info=True)
                await session.rollback()
                return None
            finally:
                await self._release_advisory_lock(session, LOCK_STALE_JOB_SWEEP)
                await session.commit()

    def get_jobs(self) -> list[dict]:
        return [
            {
                "id": job.id,
                "name": job.name,
                "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
                "trigger": str(job.trigger),
            }
            for job in self.scheduler.get_jobs()
        ]


scheduler_service = SchedulerService.get_instance()
