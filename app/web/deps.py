from __future__ import annotations

import secrets
from typing import Annotated

from fastapi import Form, HTTPException, Request

CSRF_TOKEN_KEY = "csrf_token"
VIEW_ID_KEY = "view_id"


def ensure_csrf_token(request: Request) -> str:
    token = request.session.get(CSRF_TOKEN_KEY)
    if not isinstance(token, str) or not token:
        token = secrets.token_urlsafe(32)
        request.session[CSRF_TOKEN_KEY] = token
    return token


def validate_csrf_token(request: Request, csrf_token: str) -> None:
    expected = request.session.get(CSRF_TOKEN_KEY)
    if not isinstance(expected, str) or not secrets.compare_digest(expected, csrf_token):
        raise HTTPException(status_code=400, detail="Invalid CSRF token")


def csrf_protect(
    request: Request,
    csrf_token: Annotated[str, Form()],
) -> None:
    validate_csrf_token(request, csrf_token)


def ensure_view_id(request: Request) -> str:
    """Identify the browser's history screen; the id only lives in the session cookie."""
    view_id = request.session.get(VIEW_ID_KEY)
    if not isinstance(view_id, str) or not view_id:
        view_id = secrets.token_urlsafe(16)
        request.session[VIEW_ID_KEY] = view_id
    return view_id
