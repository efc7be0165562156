# insegnami/routers/deps.py
"""Request dependencies shared by every router."""
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..core.exceptions import Unauthenticated
from ..core.permissions import Action, authorize
from ..core.security import Claims, decode_session_token

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Claims:
    """Claims carried by the bearer session token; the token is never re-checked against the DB."""
    if credentials is None or not credentials.credentials:
        raise Unauthenticated("Missing session token")
    return decode_session_token(credentials.credentials)


def require(action: Action):
    """Dependency factory: authenticate, then check ``action`` against the policy."""

    async def dependency(claims: Claims = Depends(get_current_claims)) -> Claims:
        authorize(claims, action)
        return claims

    return dependency
