from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse

from models.schemas import MessageIn, Platform, ReviewIn
from settings import SETTINGS

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

_MESSAGE_PLATFORMS = {"instagram": Platform.INSTAGRAM, "whatsapp": Platform.WHATSAPP}


def _verify_token_for(platform: Platform) -> str:
    if platform == Platform.INSTAGRAM:
        return SETTINGS.instagram_verify_token
    return SETTINGS.whatsapp_verify_token


def _message_platform(name: str) -> Platform:
    platform = _MESSAGE_PLATFORMS.get(name.lower())
    if platform is None:
        raise HTTPException(status_code=404, detail=f"unknown channel {name}")
    return platform


@router.get("/{channel}", response_class=PlainTextResponse)
async def verify_subscription(
    channel: str,
    mode: str = Query("", alias="hub.mode"),
    verify_token: str = Query("", alias="hub.verify_token"),
    challenge: str = Query("", alias="hub.challenge"),
):
    platform = _message_platform(channel)
    if mode != "subscribe":
        return PlainTextResponse("Bad Request", status_code=400)
    expected = _verify_token_for(platform)
    if expected and verify_token != expected:
        logger.warning("webhook_verification_rejected", extra={"platform": platform.value})
        return PlainTextResponse("Forbidden", status_code=401)
    return PlainTextResponse(challenge, status_code=200)


@router.post("/google-reviews")
async def google_review_webhook(payload: ReviewIn, request: Request, background_tasks: BackgroundTasks):
    review = request.app.state.issuer.issue_review(payload)
    background_tasks.add_task(request.app.state.pipeline.handle, review)
    request.state.correlation_id = review.correlation_id
    logger.info("review_accepted", extra={"correlation_id": review.correlation_id, "review_id": review.review_id})
    return {"accepted": True, "correlation_id": review.correlation_id}


@router.post("/{channel}")
async def message_webhook(channel: str, payload: MessageIn, request: Request, background_tasks: BackgroundTasks):
    platform = _message_platform(channel)
    message = request.app.state.issuer.issue_message(platform, payload)
    background_tasks.add_task(request.app.state.pipeline.handle, message)
    request.state.correlation_id = message.correlation_id
    logger.info("message_accepted", extra={"correlation_id": message.correlation_id, "platform": platform.value})
    return {"accepted": True, "correlation_id": message.correlation_id}
