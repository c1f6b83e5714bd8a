from typing import Optional

import httpx
from fastapi import Depends, Header, Request, status

from shared.utils import AppException, settings

from app.exceptions import Unauthenticated, ProfileNotFound, Forbidden
from app.helpers import profile_for
from app.models import UserRole


def get_database(request: Request):
    return request.app.mongodb


def get_client(request: Request):
    return request.app.mongodb_client


async def get_current_user(request: Request, authorization: Optional[str] = Header(None)) -> dict:
    """Resolve the caller through the auth service; returns the token claims."""
    if not authorization:
        raise Unauthenticated()

    headers = {"Authorization": authorization}
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        headers["X-Request-ID"] = request_id

    async with httpx.AsyncClient() as client:
        try:
            response = await client.get(f"{settings.AUTH_SERVICE_URL}/verify", headers=headers)
            response.raise_for_status()
            data = response.json()
        except httpx.RequestError:
            raise AppException(status.HTTP_503_SERVICE_UNAVAILABLE, "Auth service unavailable")
        except httpx.HTTPStatusError:
            raise Unauthenticated("Invalid authentication credentials")

    if not data.get("success") or not data.get("data", {}).get("sub"):
        raise Unauthenticated("Invalid token")

    request.state.user_id = data["data"]["sub"]
    return data["data"]


async def get_current_profile(user: dict = Depends(get_current_user), db=Depends(get_database)) -> dict:
    profile = await profile_for(db, user["sub"])
    if not profile:
        raise ProfileNotFound()
    return profile


async def require_admin(profile: dict = Depends(get_current_profile)) -> dict:
    if profile.get("role") != UserRole.ADMIN.value:
        raise Forbidden("Only admins can perform this action")
    return profile
