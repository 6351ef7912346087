"""FastAPI dependencies: get_requester, require_admin.

Requesters authenticate with the bearer token issued by the Identity
Provider (HS256, claims: sub = account id, handle = payment handle).
Usage in any protected router:

    @router.post("/mint/payment-requests")
    async def issue(requester: Annotated[Requester, Depends(get_requester)]):
        ...
"""

import hmac
from typing import Annotated

from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from config.settings import settings
from src.cm_common.errors import ForbiddenError, UnauthenticatedError
from src.cm_mint.domain.models import Requester

# auto_error=False so a missing header surfaces as our own 401 envelope
bearer_scheme = HTTPBearer(auto_error=False)


def decode_identity_token(token: str) -> Requester:
    """Verify the token signature and expiry, return the Requester it names.

    Raises:
        UnauthenticatedError: bad signature, expired, or missing claims.
    """
    try:
        payload = jwt.decode(
            token,
            settings.IDENTITY_JWT_SECRET,
            algorithms=[settings.IDENTITY_JWT_ALGORITHM],
        )
    except JWTError:
        raise UnauthenticatedError("Invalid or expired token") from None

    account_id = payload.get("sub")
    handle = payload.get("handle")
    if not account_id or not handle:
        raise UnauthenticatedError("Token is missing account claims")
    return Requester(account_id=str(account_id), handle=str(handle))


async def get_requester(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> Requester:
    if credentials is None:
        raise UnauthenticatedError("Bearer token required")
    return decode_identity_token(credentials.credentials)


async def require_admin(
    x_admin_token: Annotated[str | None, Header()] = None,
) -> None:
    """Guard for operator endpoints (retry, abandon, scheduler pass)."""
    if not x_admin_token or not hmac.compare_digest(
        x_admin_token.encode(), settings.ADMIN_API_TOKEN.encode()
    ):
        raise ForbiddenError("Admin token required")
