"""FastAPI application"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import FastAPI

from field_tools import __version__
from field_tools.config.settings import Settings, get_settings
from field_tools.core.database import check_and_init_database, close_pool
from field_tools.repositories import (
    AuditLogRepository,
    CaseRepository,
    OfficerRepository,
    PersonRepository,
    QueryLogRepository,
    RedisUSSDSessionStore,
    USSDSessionStore,
    VehicleRepository,
    WantedPersonRepository,
    WhatsAppSessionRepository,
    create_ussd_session_store,
    create_whatsapp_session_repository,
)
from field_tools.services import (
    Authenticator,
    CountryConfigService,
    FieldCheckService,
    RateLimiter,
    USSDService,
    WhapiClient,
    WhatsAppService,
)
from field_tools.tasks.scheduler import create_scheduler
from field_tools.web.routes import router

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything the routes need, wired once per process"""

    ussd_store: USSDSessionStore
    whatsapp_repo: WhatsAppSessionRepository
    ussd: USSDService
    whatsapp: WhatsAppService
    country_config: CountryConfigService


def build_services(settings: Settings) -> Services:
    """
    Wire repositories and services for production

    Args:
        settings: Application settings

    Returns:
        Services container
    """
    ussd_store = create_ussd_session_store(settings)
    whatsapp_repo = create_whatsapp_session_repository(settings)

    officer_repo = OfficerRepository()
    query_log_repo = QueryLogRepository()
    audit_repo = AuditLogRepository()

    authenticator = Authenticator(officer_repo, audit_repo)
    rate_limiter = RateLimiter(query_log_repo, officer_repo)
    field_check = FieldCheckService(
        rate_limiter,
        PersonRepository(),
        WantedPersonRepository(),
        CaseRepository(),
        VehicleRepository(),
        query_log_repo,
        audit_repo,
    )
    country_config = CountryConfigService(settings)

    return Services(
        ussd_store=ussd_store,
        whatsapp_repo=whatsapp_repo,
        ussd=USSDService(ussd_store, authenticator, rate_limiter, field_check, country_config),
        whatsapp=WhatsAppService(
            whatsapp_repo, authenticator, rate_limiter, field_check, WhapiClient(settings), settings
        ),
        country_config=country_config,
    )


def create_app(services: Services | None = None) -> FastAPI:
    """
    Create the application

    Args:
        services: Pre-wired services; when given, startup skips the
            database check and the scheduler

    Returns:
        FastAPI app
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if services is not None:
            yield
            return

        settings = get_settings()
        logger.info("Starting CRMS field tools")

        await check_and_init_database()
        wired = build_services(settings)
        app.state.services = wired

        scheduler = create_scheduler(wired.ussd_store, wired.whatsapp_repo)
        scheduler.start()
        logger.info(f"Listening on {settings.host}:{settings.port}")

        try:
            yield
        finally:
            logger.info("Shutting down")
            scheduler.shutdown(wait=False)
            if isinstance(wired.ussd_store, RedisUSSDSessionStore):
                await wired.ussd_store.close()
            await close_pool()

    app = FastAPI(title="CRMS Field Tools", version=__version__, lifespan=lifespan)
    if services is not None:
        app.state.services = services
    app.include_router(router)
    return app
