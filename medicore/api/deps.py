# FILE: medicore/api/deps.py
from __future__ import annotations

from typing import Optional

from fastapi import Header, HTTPException
from jose import JWTError, jwt

from medicore.core.config import settings
from medicore.db.session import get_db  # noqa: F401  (re-exported for routes)


# =========================================================
# AUTH HELPERS
# =========================================================
def _extract_bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return None


def _decode_token(raw_token: str) -> dict:
    try:
        return jwt.decode(raw_token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG])
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")


def current_actor(
    authorization: Optional[str] = Header(None),
    x_user_id: Optional[str] = Header(None),
) -> str:
    """
    Who is acting, for audit fields only (never enforced).

    Bearer token ``sub`` claim, else the X-User-Id header, else DEFAULT_ACTOR.
    A bearer token that is present but invalid is still rejected.
    """
    raw = _extract_bearer(authorization)
    if raw:
        sub = _decode_token(raw).get("sub")
        if sub:
            return str(sub)

    if x_user_id and x_user_id.strip():
        return x_user_id.strip()

    return settings.DEFAULT_ACTOR
