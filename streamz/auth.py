# streamz/auth.py
from __future__ import annotations

import secrets

from fastapi import Depends, Request

from streamz.config import Settings
from streamz.deps import get_settings
from streamz.errors import Unauthorized


def require_admin(request: Request, settings: Settings = Depends(get_settings)) -> None:
    """Reject the request unless it carries ``Authorization: Bearer <admin_token>``."""
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    expected = settings.admin_token
    if (
        not expected
        or scheme.lower() != "bearer"
        or not secrets.compare_digest(token.strip().encode(), expected.encode())
    ):
        raise Unauthorized("Admin token required")
