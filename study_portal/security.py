"""
Admin token checks.

The portal never holds the backend's signing secret, so tokens are only
inspected, not verified. The backend rejects forged tokens on every call.
"""
import time
from typing import Any, Dict, Optional

from jose import jwt, JWTError


def read_claims(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode the JWT payload without checking the signature.

    Returns None for anything that is not a well-formed three-part token.
    """
    if not token or token.count(".") != 2:
        return None
    try:
        return jwt.get_unverified_claims(token)
    except JWTError:
        return None


def is_token_expired(token: str, now: Optional[float] = None) -> bool:
    """
    True when the token is malformed or its `exp` claim is in the past.
    A token without `exp` never expires on our side.
    """
    claims = read_claims(token)
    if claims is None:
        return True

    exp = claims.get("exp")
    if exp is None:
        return False
    try:
        return float(exp) <= (time.time() if now is None else now)
    except (TypeError, ValueError):
        return True


def token_subject(token: str) -> Optional[str]:
    """Admin username carried in `sub`, for log lines."""
    claims = read_claims(token) or {}
    sub = claims.get("sub")
    return str(sub) if sub is not None else None
