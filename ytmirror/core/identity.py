"""Identity supplied by the session layer in front of this service."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Header, HTTPException, status


@dataclass(slots=True, frozen=True)
class UserContext:
    """Authenticated caller: tenant id plus an optional YouTube OAuth access token."""

    user_id: str
    access_token: str | None = None


async def get_user_context(
    x_user_id: str | None = Header(None, alias="X-User-Id"),
    x_youtube_access_token: str | None = Header(None, alias="X-YouTube-Access-Token"),
) -> UserContext:
    """FastAPI dependency that requires an authenticated user id."""

    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    token = (x_youtube_access_token or "").strip() or None
    return UserContext(user_id=user_id, access_token=token)
