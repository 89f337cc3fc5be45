from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List

import httpx
from celery import Celery
from pydantic import ValidationError

from models.schemas import ReviewIn
from pipeline.correlation import CorrelationIssuer
from pipeline.orchestrator import DispatchPipeline
from settings import SETTINGS

logger = logging.getLogger(__name__)

celery_app = Celery("auto_reply_dispatch")
if SETTINGS.redis_url:
    celery_app.conf.broker_url = SETTINGS.redis_url
    celery_app.conf.result_backend = SETTINGS.redis_url
celery_app.conf.beat_schedule = {
    "poll-google-reviews": {
        "task": "tasks.review_poller.poll_reviews",
        "schedule": float(SETTINGS.review_poll_interval_seconds),
    }
}

STAR_RATINGS = {"ONE": 1, "TWO": 2, "THREE": 3, "FOUR": 4, "FIVE": 5}
REVIEW_PAGE_SIZE = 50
MAX_REVIEW_PAGES = 20


def parse_review(item: Dict[str, Any]) -> ReviewIn | None:
    """Turn one Business Profile review resource into intake shape.

    Reviews that already carry a reply are skipped, as are items that do not
    map to a valid review.
    """
    if item.get("reviewReply"):
        return None
    rating = STAR_RATINGS.get(str(item.get("starRating") or "").upper())
    review_id = str(item.get("reviewId") or "")
    if rating is None or not review_id:
        return None
    payload: Dict[str, Any] = {
        "review_id": review_id,
        "rating": rating,
        "author": str((item.get("reviewer") or {}).get("displayName") or ""),
        "text": str(item.get("comment") or ""),
    }
    if item.get("createTime"):
        payload["received_at"] = item["createTime"]
    try:
        return ReviewIn(**payload)
    except ValidationError as exc:
        logger.warning("review_unparseable", extra={"review_id": review_id, "error": str(exc)})
        return None


class ReviewPoller:
    def __init__(
        self,
        pipeline: DispatchPipeline | None = None,
        issuer: CorrelationIssuer | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.pipeline = pipeline or DispatchPipeline()
        self.issuer = issuer or CorrelationIssuer()
        self.transport = transport

    def reviews_url(self) -> str:
        return (
            f"{SETTINGS.gbp_api_base_url}/accounts/{SETTINGS.gbp_account_id}"
            f"/locations/{SETTINGS.gbp_location_id}/reviews"
        )

    async def fetch_reviews(self) -> List[Dict[str, Any]]:
        headers = {"Authorization": f"Bearer {SETTINGS.gbp_access_token}"} if SETTINGS.gbp_access_token else {}
        reviews: List[Dict[str, Any]] = []
        params: Dict[str, Any] = {"orderBy": "updateTime desc", "pageSize": REVIEW_PAGE_SIZE}
        async with httpx.AsyncClient(timeout=SETTINGS.alert_timeout_seconds * 2, transport=self.transport) as client:
            for _ in range(MAX_REVIEW_PAGES):
                resp = await client.get(self.reviews_url(), headers=headers, params=params)
                resp.raise_for_status()
                body = resp.json()
                reviews.extend(body.get("reviews") or [])
                token = body.get("nextPageToken")
                if not token:
                    break
                params = {**params, "pageToken": token}
            else:
                logger.warning("review_poll_page_limit", extra={"pages": MAX_REVIEW_PAGES})
        return reviews

    async def run_once(self) -> dict:
        items = await self.fetch_reviews()
        processed: List[dict] = []
        skipped = 0
        for item in items:
            payload = parse_review(item)
            if payload is None or self.pipeline.store.find_review_by_review_id(payload.review_id) is not None:
                skipped += 1
                continue
            review = self.issuer.issue_review(payload)
            await self.pipeline.handle(review)
            processed.append(
                {
                    "review_id": review.review_id,
                    "correlation_id": review.correlation_id,
                    "rating": review.rating,
                    "outcome": review.outcome.value if review.outcome else None,
                }
            )
        logger.info("review_poll_completed", extra={"fetched": len(items), "processed": len(processed), "skipped": skipped})
        return {"fetched": len(items), "skipped": skipped, "processed": processed}


@celery_app.task(name="tasks.review_poller.poll_reviews")
def poll_reviews() -> dict:
    poller = ReviewPoller()
    return asyncio.run(poller.run_once())
