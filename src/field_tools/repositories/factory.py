"""Session store factory"""

import logging

from field_tools.config.settings import Settings
from field_tools.repositories.ussd_session_repository import (
    InMemoryUSSDSessionStore,
    RedisUSSDSessionStore,
    USSDSessionStore,
)
from field_tools.repositories.whatsapp_session_repository import (
    InMemoryWhatsAppSessionRepository,
    PostgresWhatsAppSessionRepository,
    WhatsAppSessionRepository,
)

logger = logging.getLogger(__name__)


def create_ussd_session_store(settings: Settings) -> USSDSessionStore:
    """
    Create the USSD session store selected by configuration

    Args:
        settings: Application settings

    Returns:
        Redis store when configured with a URL, otherwise the in-memory fallback
    """
    if settings.ussd_session_backend == "redis":
        if settings.redis_url:
            logger.info("USSD sessions: Redis")
            return RedisUSSDSessionStore.from_url(settings.redis_url, settings.ussd_session_ttl_seconds)
        logger.warning("USSD session backend is redis but REDIS_URL is empty, using in-memory store")

    logger.info("USSD sessions: in-memory")
    return InMemoryUSSDSessionStore(settings.ussd_session_ttl_seconds)


def create_whatsapp_session_repository(settings: Settings) -> WhatsAppSessionRepository:
    """Create the WhatsApp session repository selected by configuration"""
    if settings.whatsapp_session_backend == "postgres":
        logger.info("WhatsApp sessions: PostgreSQL")
        return PostgresWhatsAppSessionRepository()

    logger.info("WhatsApp sessions: in-memory")
    return InMemoryWhatsAppSessionRepository()
