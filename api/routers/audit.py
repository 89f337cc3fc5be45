from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from api.middleware.auth import require_role


router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("/messages/{correlation_id}")
async def get_message_record(correlation_id: str, request: Request, _role: str = Depends(require_role("ADMIN"))):
    row = request.app.state.pipeline.store.get_message(correlation_id)
    if row is None:
        raise HTTPException(status_code=404, detail="message not found")
    request.state.correlation_id = correlation_id
    return {"ok": True, "message": row}


@router.get("/reviews/{correlation_id}")
async def get_review_record(correlation_id: str, request: Request, _role: str = Depends(require_role("ADMIN"))):
    row = request.app.state.pipeline.store.get_review(correlation_id)
    if row is None:
        raise HTTPException(status_code=404, detail="review not found")
    request.state.correlation_id = correlation_id
    return {"ok": True, "review": row}


@router.get("/errors")
async def list_error_records(
    request: Request,
    correlation_id: Optional[str] = Query(None),
    _role: str = Depends(require_role("ADMIN")),
):
    rows = request.app.state.pipeline.store.list_errors(correlation_id)
    return {"ok": True, "count": len(rows), "errors": rows}


@router.get("/summary")
async def audit_summary(request: Request, _role: str = Depends(require_role("ADMIN"))):
    return {"ok": True, "counts": request.app.state.pipeline.store.counts()}
