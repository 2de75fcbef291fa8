"""
ARQ Background Worker for Async Jobs
Handles activity log writes and the scheduled email automation runs
"""

import asyncio
import logging
import os

from arq.cron import cron

from .dependencies import get_resolver_cache
from .domain.email.service import EmailAutomationService
from .domain.events.resolver import EventResolver
from .email_service import get_transport
from .record_store import get_record_store
from .redis_client import get_redis_settings
from .services.activity_service import ActivityService

logger = logging.getLogger(__name__)


def _email_service() -> EmailAutomationService:
    store = get_record_store()
    return EmailAutomationService(store, get_transport(), EventResolver(store, cache=get_resolver_cache()))


async def log_activity_task(ctx, payload: dict):
    """Persist one activity entry submitted by the API process"""
    service = ActivityService(get_record_store())
    entry = await asyncio.to_thread(service.write_entry, payload)
    return {"record_id": entry.record_id}


async def email_automation_task(ctx):
    """
    Hourly cron job for threshold-based email automation.
    Templates only fire in their configured local trigger hour and the
    email log dedups repeat sends.
    """
    logger.info(f"🚀 ARQ Worker: Starting email automation (job {ctx.get('job_id', 'unknown')})")
    report = await asyncio.to_thread(_email_service().process_email_automation)
    logger.info(f"✅ Email automation finished: sent={report.sent} failed={report.failed} skipped={report.skipped}")
    return report.to_dict()


async def schulsong_release_email_task(ctx):
    """Hourly cron job notifying teachers and parents about released schulsongs"""
    logger.info("🚀 ARQ Worker: Checking schulsong releases")
    report = await asyncio.to_thread(_email_service().process_schulsong_release_emails)
    if report.sent:
        logger.info(f"🎵 Schulsong release emails sent: {report.sent}")
    return report.to_dict()


class WorkerSettings:
    """ARQ Worker Settings"""

    functions = [
        log_activity_task,
        email_automation_task,
        schulsong_release_email_task,
    ]
    redis_settings = get_redis_settings()

    max_jobs = int(os.getenv("ARQ_MAX_JOBS", "10"))
    job_timeout = int(os.getenv("ARQ_JOB_TIMEOUT", "900"))
    keep_result = int(os.getenv("ARQ_KEEP_RESULT", "3600"))

    health_check_interval = 60

    max_tries = 1

    cron_jobs = [
        cron(email_automation_task, minute=0),
        cron(schulsong_release_email_task, minute=15),
    ]

    logger.info(f"🔧 ARQ Worker configured: max_jobs={max_jobs}, timeout={job_timeout}s")
