"""Bearer-token guard for protected routes.

Authentication is disabled when no ``API_TOKEN`` is configured (demo mode).
"""

from __future__ import annotations

import secrets
from typing import Optional

from fastapi import Depends, Header, Request

from errors import AuthError
from settings import Settings


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def _check_token(settings: Settings, authorization: Optional[str]) -> None:
    if settings.api_token is None:
        return
    if not authorization:
        raise AuthError("Authentication credentials were not provided")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not secrets.compare_digest(
        token.strip().encode(), settings.api_token.encode()
    ):
        raise AuthError("Invalid authentication credentials")


def require_credentials(
    authorization: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_app_settings),
) -> None:
    _check_token(settings, authorization)


def require_credentials_in_multi_user_mode(
    authorization: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_app_settings),
) -> None:
    if settings.multi_user_mode:
        _check_token(settings, authorization)


def optional_credentials(
    authorization: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_app_settings),
) -> None:
    """Reject a presented credential that is wrong; absence is fine."""
    if authorization is not None:
        _check_token(settings, authorization)
