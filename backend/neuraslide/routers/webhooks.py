"""
Instagram webhook endpoints. Unauthenticated; deliveries are checked by
signature when an app secret is configured.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import PlainTextResponse

from neuraslide.infrastructure.exceptions import ValidationError
from neuraslide.infrastructure.responses import success_response
from neuraslide.services.webhook_service import WebhookService, get_webhook_service

router = APIRouter()


@router.get("")
async def verify_webhook(
    mode: Optional[str] = Query(None, alias="hub.mode"),
    token: Optional[str] = Query(None, alias="hub.verify_token"),
    challenge: Optional[str] = Query(None, alias="hub.challenge"),
    service: WebhookService = Depends(get_webhook_service),
):
    """Subscription handshake: echo the challenge back as plain text."""
    return PlainTextResponse(service.verify_subscription(mode, token, challenge))


@router.post("")
async def receive_webhook(request: Request, service: WebhookService = Depends(get_webhook_service)):
    body = await request.body()
    service.check_signature(body, request.headers.get("X-Hub-Signature-256"))
    try:
        payload = await request.json()
    except ValueError:
        raise ValidationError(["Request body must be valid JSON"])
    if not isinstance(payload, dict):
        raise ValidationError(["Request body must be a JSON object"])

    summary = await service.handle_event(payload)
    return success_response("Webhook processed successfully", summary)
