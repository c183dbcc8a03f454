"""
Daily team routines.

Runs scheduled broadcasts (morning briefing, end-of-day summary) with
APScheduler and appends a digest of the answers to PROJECT_STATUS.md, so the
next prompt of every agent sees what the team reported.
"""

import asyncio
import os
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import pytz
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from dotenv import load_dotenv

from logger import get_logger
from .router import TeamRouter
from .store import PROJECT_STATUS

load_dotenv()

logger = get_logger()

DEFAULT_TIMEZONE = "Europe/Istanbul"


def resolve_timezone(name: Optional[str] = None):
    """pytz timezone for ``name`` (or USER_TIMEZONE), falling back to the default."""
    name = name or os.getenv("USER_TIMEZONE", DEFAULT_TIMEZONE)
    try:
        return pytz.timezone(name)
    except pytz.exceptions.UnknownTimeZoneError:
        logger.warning(f"Unknown timezone '{name}', falling back to {DEFAULT_TIMEZONE}")
        return pytz.timezone(DEFAULT_TIMEZONE)


@dataclass(frozen=True)
class Routine:
    """A message broadcast to the team on a cron schedule."""
    id: str
    cron: str
    message: str
    title: str


DEFAULT_ROUTINES = (
    Routine(
        id="morning_briefing",
        cron="0 9 * * *",
        message="Good morning team. Review the overnight progress and share your top priority for today.",
        title="Morning briefing",
    ),
    Routine(
        id="end_of_day",
        cron="0 18 * * *",
        message="End of day. Summarize what you achieved today and what is next.",
        title="End-of-day summary",
    ),
)


def format_digest(routine: Routine, responses: Dict[str, str]) -> str:
    lines = [f"**{routine.title}**"]
    for name, response in responses.items():
        lines.append(f"- @{name}: {response}")
    return "\n".join(lines)


class TeamRoutine:
    """
    Scheduler for the team's recurring broadcasts.

    Features:
    - Cron triggers in the user's timezone
    - Missed runs coalesced, one instance per routine at a time
    - Digest of every run appended to PROJECT_STATUS.md
    """

    def __init__(
        self,
        router: TeamRouter,
        routines: Sequence[Routine] = DEFAULT_ROUTINES,
        timezone: Optional[str] = None
    ):
        self.router = router
        self.routines: Dict[str, Routine] = {routine.id: routine for routine in routines}
        self.timezone = resolve_timezone(timezone)
        self.scheduler = BackgroundScheduler(
            job_defaults={
                "coalesce": True,  # Combine multiple missed runs into one
                "max_instances": 1
            },
            timezone=self.timezone
        )

    async def run_routine(self, routine_id: str) -> Dict[str, str]:
        """Broadcast one routine now and record the digest."""
        routine = self.routines[routine_id]
        logger.info(f"Running team routine: {routine.id}")

        responses = await self.router.broadcast(routine.message)

        if not self.router.store.append(PROJECT_STATUS, format_digest(routine, responses)):
            logger.warning(f"Routine digest not recorded: {routine.id}")

        return responses

    def _run_job(self, routine_id: str) -> None:
        # APScheduler runs jobs in worker threads without an event loop.
        asyncio.run(self.run_routine(routine_id))

    def start(self) -> None:
        for routine in self.routines.values():
            self.scheduler.add_job(
                self._run_job,
                trigger=CronTrigger.from_crontab(routine.cron, timezone=self.timezone),
                args=[routine.id],
                id=routine.id,
                name=routine.title,
                replace_existing=True
            )

        self.scheduler.start()
        logger.info(
            "Team routines scheduled",
            extra={"metadata": {"routines": list(self.routines)}}
        )

    def shutdown(self, wait: bool = True) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
            logger.info("Team routines stopped")

    def list_jobs(self) -> List[Dict[str, Optional[str]]]:
        jobs = []
        for job in self.scheduler.get_jobs():
            next_run = getattr(job, "next_run_time", None)
            jobs.append({
                "id": job.id,
                "name": job.name,
                "next_run": next_run.isoformat() if next_run else None
            })
        return jobs
