"""
Admin Token Verification

Admin routes (vector upsert / delete / clear) are protected by a single
static bearer token configured as ``admin_token``.
"""

from __future__ import annotations

import secrets
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from ..config import settings


# ---------------------------------------------------------------------
# Security Scheme
# ---------------------------------------------------------------------

security = HTTPBearer(auto_error=False)


# ---------------------------------------------------------------------
# Public Authentication Dependency
# ---------------------------------------------------------------------

def require_admin_token(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> None:
    """
    Reject the request unless it carries ``Authorization: Bearer <admin_token>``.

    Raises
    ------
    HTTPException(401) for a missing or wrong token.
    HTTPException(500) when no admin token is configured.
    """
    expected = settings.admin_token.get_secret_value()
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Admin token configuration error.",
        )

    if creds is None or not secrets.compare_digest(
        creds.credentials.encode("utf-8"),
        expected.encode("utf-8"),
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
