"""Gateway webhook routes"""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from field_tools.core.errors import StorageError
from field_tools.repositories import InMemoryUSSDSessionStore
from field_tools.utils.formatter import end

logger = logging.getLogger(__name__)

router = APIRouter()


# ==================== USSD ====================

@router.post("/api/ussd/callback", response_class=PlainTextResponse)
async def ussd_callback(request: Request) -> PlainTextResponse:
    """Gateway callback; always 200 with CON/END text"""
    services = request.app.state.services
    try:
        form = await request.form()
    except Exception as e:
        logger.warning(f"Unreadable USSD callback body: {e}")
        return PlainTextResponse(end("Invalid request"))

    response = await services.ussd.handle_request(
        form.get("sessionId"),
        form.get("phoneNumber"),
        form.get("text", ""),
    )
    return PlainTextResponse(response)


# ==================== WhatsApp ====================

@router.post("/api/whatsapp")
async def whatsapp_webhook(request: Request) -> JSONResponse:
    """Webhook delivery; replies are pushed through the messaging API"""
    services = request.app.state.services
    try:
        body = await request.json()
    except ValueError:
        logger.warning("WhatsApp webhook with invalid JSON")
        return JSONResponse({"status": "ok"})

    await services.whatsapp.handle_webhook(body)
    return JSONResponse({"status": "ok"})


# ==================== Health ====================

@router.get("/health")
async def health(request: Request) -> JSONResponse:
    services = request.app.state.services

    try:
        whatsapp_sessions = await services.whatsapp_repo.get_active_session_count()
    except StorageError as e:
        logger.error(f"Health check could not count WhatsApp sessions: {e}")
        whatsapp_sessions = None

    ussd_sessions = len(services.ussd_store) if isinstance(services.ussd_store, InMemoryUSSDSessionStore) else None

    return JSONResponse(
        {
            "status": "ok" if whatsapp_sessions is not None else "degraded",
            "ussd_shortcode": services.country_config.get_ussd_shortcode(),
            "ussd_gateways": services.country_config.get_ussd_gateways(),
            "active_sessions": {"ussd": ussd_sessions, "whatsapp": whatsapp_sessions},
        }
    )
