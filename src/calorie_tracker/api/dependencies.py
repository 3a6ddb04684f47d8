"""Request dependencies shared by the API routers."""

from __future__ import annotations

import secrets
from typing import TYPE_CHECKING

from fastapi import Depends, Header, HTTPException, Request, status

if TYPE_CHECKING:
    from calorie_tracker.containers import AppContainer


def _get_api_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.api_token


async def require_user(
    x_user_id: str | None = Header(default=None),
    x_api_token: str | None = Header(default=None),
    api_token: str = Depends(_get_api_token),
) -> str:
    """Return the caller's user id once the API token checks out."""
    if (
        not x_user_id
        or not x_api_token
        or not secrets.compare_digest(x_api_token, api_token)
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized"
        )
    return x_user_id
