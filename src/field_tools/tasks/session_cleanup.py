"""Session cleanup jobs"""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from field_tools.config.settings import get_settings
from field_tools.repositories.session_store import SessionStore

logger = logging.getLogger(__name__)


def register_session_cleanup(
    scheduler: AsyncIOScheduler,
    store: SessionStore,
    name: str,
    interval_seconds: int,
):
    """
    Register a repeating sweep for one session store

    Args:
        scheduler: Scheduler instance
        store: Session store to sweep
        name: Job label (also used as job id)
        interval_seconds: Sweep interval
    """

    async def cleanup_callback():
        """Sweep callback; failures stay inside the job"""
        try:
            count = await store.clean_expired()
            if count > 0:
                logger.info(f"{name}: removed {count} expired sessions")
        except Exception as e:
            logger.error(f"{name} cleanup error: {e}")

    scheduler.add_job(
        cleanup_callback,
        "interval",
        seconds=interval_seconds,
        id=f"{name}_cleanup",
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )
    logger.info(f"{name} cleanup registered (every {interval_seconds}s)")


def register_whatsapp_cleanup(scheduler: AsyncIOScheduler, store: SessionStore):
    register_session_cleanup(
        scheduler, store, "whatsapp_sessions", get_settings().whatsapp_cleanup_interval_seconds
    )


def register_ussd_cleanup(scheduler: AsyncIOScheduler, store: SessionStore):
    register_session_cleanup(
        scheduler, store, "ussd_sessions", get_settings().ussd_cleanup_interval_seconds
    )
