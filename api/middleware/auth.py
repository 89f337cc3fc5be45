from __future__ import annotations

import logging

from fastapi import HTTPException, Request

from settings import SETTINGS

logger = logging.getLogger(__name__)


def get_role_from_request(request: Request) -> str:
    # Operators reach the audit views through an internal gateway that sets X-Role.
    return request.headers.get("X-Role", "ANONYMOUS").strip().upper()


def _token_ok(request: Request) -> bool:
    if not SETTINGS.admin_api_token:
        return True
    header = request.headers.get("Authorization", "")
    return header == f"Bearer {SETTINGS.admin_api_token}"


def require_role(*allowed_roles: str):
    allowed = {r.upper() for r in allowed_roles}

    async def _dependency(request: Request) -> str:
        role = get_role_from_request(request)
        if (allowed and role not in allowed) or not _token_ok(request):
            logger.warning("audit_access_denied", extra={"role": role, "path": request.url.path})
            raise HTTPException(status_code=403, detail="forbidden")
        return role

    return _dependency
