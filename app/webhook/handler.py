"""
Webhook Handler Module

This module defines the FastAPI endpoints Meta talks to:
- GET /webhook: subscription handshake
- POST /webhook: event delivery

Design Decisions:
- Verify the signature on the raw body before any parsing
- Acknowledge with 200 once the signature passes, whatever happens next,
  so Meta does not redeliver because of our own handler errors
- Dispatch in a background task after the response is sent
"""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, HTTPException, Query, Request, status
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from app.config import Settings
from app.logging_config import get_logger
from app.models import InboundEvent
from app.webhook.processor import EventRouter
from app.webhook.security import SIGNATURE_HEADER, verify_signature, verify_subscription

logger = get_logger(__name__)

ACKNOWLEDGMENT = "EVENT_RECEIVED"

router = APIRouter(prefix="/webhook", tags=["webhook"])


def _remote_addr(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@router.get("", response_class=PlainTextResponse)
async def verify_webhook(
    request: Request,
    mode: Optional[str] = Query(default=None, alias="hub.mode"),
    token: Optional[str] = Query(default=None, alias="hub.verify_token"),
    challenge: Optional[str] = Query(default=None, alias="hub.challenge")
) -> PlainTextResponse:
    """
    Webhook subscription handshake.

    Meta calls this once when the webhook is configured and expects the
    challenge echoed back verbatim.
    """
    settings: Settings = request.app.state.settings

    logger.info("Webhook verification attempt", mode=mode, remote_addr=_remote_addr(request))

    echoed = verify_subscription(mode, token, challenge, settings.verify_token)
    if echoed is None:
        logger.warning("Webhook verification failed", mode=mode)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Webhook verification failed"
        )

    logger.info("Webhook verified successfully")
    return PlainTextResponse(echoed, status_code=status.HTTP_200_OK)


@router.post("", response_class=PlainTextResponse)
async def receive_webhook(
    request: Request,
    background_tasks: BackgroundTasks
) -> PlainTextResponse:
    """
    Webhook event delivery.

    Returns 403 on a missing or bad signature. Any correctly signed
    delivery is acknowledged with 200, including ones we cannot decode
    or do not handle.
    """
    settings: Settings = request.app.state.settings
    event_router: EventRouter = request.app.state.event_router

    # Read raw body for signature verification
    raw_body = await request.body()

    if not verify_signature(raw_body, request.headers.get(SIGNATURE_HEADER), settings.app_secret):
        logger.warning("Invalid webhook signature", remote_addr=_remote_addr(request))
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid webhook signature"
        )

    try:
        event = InboundEvent.model_validate_json(raw_body)
    except ValidationError as e:
        logger.error(
            "Undecodable webhook payload, acknowledging without dispatch",
            error_count=e.error_count(),
            error=str(e)[:500]
        )
        return PlainTextResponse(ACKNOWLEDGMENT, status_code=status.HTTP_200_OK)

    logger.info(
        "Webhook event received",
        object=event.object,
        entries=len(event.entries),
        remote_addr=_remote_addr(request)
    )

    background_tasks.add_task(_dispatch_with_error_handling, event_router, event)

    return PlainTextResponse(ACKNOWLEDGMENT, status_code=status.HTTP_200_OK)


async def _dispatch_with_error_handling(event_router: EventRouter, event: InboundEvent) -> None:
    """
    Run the router in the background.

    The router isolates handler errors itself; this only guards against
    a bug in the walk.
    """
    try:
        await event_router.dispatch(event)
    except Exception as e:
        logger.error(
            "Webhook dispatch failed",
            object=event.object,
            error=str(e),
            error_type=type(e).__name__
        )
        # Don't re-raise - the delivery has already been acknowledged
