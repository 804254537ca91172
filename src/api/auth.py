"""
Authentication dependency for FastAPI endpoints.

Identity arrives from the LMS gateway in the ``X-User-Id``,
``X-User-Role`` and ``X-Tenant-Id`` headers. When ``auth_enabled`` is
``False`` (local / dev), a missing identity falls back to the dev user
so that the API remains usable without the gateway.

Usage::

    from api.auth import UserContext, get_user_context

    @router.get("/example")
    async def example(ctx: UserContext = Depends(get_user_context)):
        print(ctx.user_id, ctx.role)
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import HTTPException, Request

from mentor.models import UserRole
from mentor.settings import get_settings


@dataclass
class UserContext:
    """Resolved user identity for the current request."""

    user_id: str
    role: UserRole
    tenant_id: str | None = None
    source: str = "header"  # "header" | "dev"


def _parse_role(value: str) -> UserRole:
    try:
        return UserRole(value.strip().lower())
    except ValueError:
        raise HTTPException(status_code=401, detail=f"Unknown role: {value}")


async def get_user_context(request: Request) -> UserContext:
    """FastAPI dependency: resolve the user from the identity headers."""
    settings = get_settings()
    user_id = request.headers.get("x-user-id")

    if user_id:
        role = request.headers.get("x-user-role")
        if not role:
            raise HTTPException(status_code=401, detail="Missing X-User-Role header")
        return UserContext(
            user_id=user_id,
            role=_parse_role(role),
            tenant_id=request.headers.get("x-tenant-id") or None,
        )

    if settings.auth_enabled:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")

    # Dev fallback (auth_enabled=False)
    return UserContext(
        user_id=settings.dev_user_id,
        role=_parse_role(settings.dev_user_role),
        tenant_id=settings.dev_tenant_id or None,
        source="dev",
    )
