"""
Deadlines Background Jobs

1. Sweep: switch off listings whose application deadline has passed
2. Reminders: warn students about unfinished applications closing soon

Both jobs open their own sessions, are idempotent and can be triggered
manually through the scheduler registry.
"""

import logging
from typing import Any

from apscheduler.triggers.interval import IntervalTrigger

from apply4me.core.config import settings
from apply4me.core.scheduler import register_job
from apply4me.modules.deadlines import service

logger = logging.getLogger(__name__)

JOB_ID_MARK_EXPIRED = "deadlines_mark_expired"
JOB_ID_SEND_REMINDERS = "deadlines_send_reminders"


async def mark_expired_listings_job() -> dict[str, int]:
    logger.info("Starting job: mark expired listings inactive")
    result = await service.mark_expired_items_inactive()
    logger.info(f"Job completed: mark expired listings inactive - {result}")
    return result


async def send_deadline_reminders_job() -> dict[str, Any]:
    logger.info("Starting job: send deadline reminders")
    result = await service.send_deadline_reminders()
    logger.info(
        f"Job completed: send deadline reminders - processed {result['processed']}, "
        f"succeeded {result['succeeded']}, failed {result['failed']}"
    )
    return result


def register_deadline_jobs() -> None:
    """Register the deadline jobs. Called once during application startup."""
    register_job(
        JOB_ID_MARK_EXPIRED,
        mark_expired_listings_job,
        IntervalTrigger(hours=settings.deadline_sweep_interval_hours),
    )
    register_job(
        JOB_ID_SEND_REMINDERS,
        send_deadline_reminders_job,
        IntervalTrigger(hours=settings.deadline_reminder_interval_hours),
    )
    logger.info(f"Registered deadline jobs: {JOB_ID_MARK_EXPIRED}, {JOB_ID_SEND_REMINDERS}")
