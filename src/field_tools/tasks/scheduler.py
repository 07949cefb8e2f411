"""Task scheduler"""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from field_tools.core.timezone import get_timezone
from field_tools.repositories.ussd_session_repository import InMemoryUSSDSessionStore, USSDSessionStore
from field_tools.repositories.whatsapp_session_repository import WhatsAppSessionRepository
from field_tools.tasks.session_cleanup import register_ussd_cleanup, register_whatsapp_cleanup

logger = logging.getLogger(__name__)


def create_scheduler(
    ussd_store: USSDSessionStore,
    whatsapp_repo: WhatsAppSessionRepository,
) -> AsyncIOScheduler:
    """
    Build the scheduler with all periodic jobs registered

    Args:
        ussd_store: USSD session store
        whatsapp_repo: WhatsApp session repository

    Returns:
        Scheduler (not started)
    """
    scheduler = AsyncIOScheduler(timezone=get_timezone())

    register_whatsapp_cleanup(scheduler, whatsapp_repo)

    # Redis expires USSD keys on its own
    if isinstance(ussd_store, InMemoryUSSDSessionStore):
        register_ussd_cleanup(scheduler, ussd_store)

    logger.info("All scheduled jobs registered")
    return scheduler
