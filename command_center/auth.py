from __future__ import annotations

import hmac
import logging

from fastapi import Header

from command_center import repositories
from command_center.errors import AuthenticationError, ForbiddenError
from command_center.services import security
from command_center.settings import get_settings

logger = logging.getLogger(__name__)


async def require_principal(
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> str:
    if not authorization:
        raise AuthenticationError("Missing token")
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Invalid token")
    account_id = security.verify_token(token.strip())
    if not await repositories.get_account(account_id):
        logger.info("Token for unknown account %s rejected", account_id)
        raise AuthenticationError("Invalid token")
    return account_id


async def require_admin(
    x_admin_token: str | None = Header(default=None, alias="X-Admin-Token"),
) -> None:
    settings = get_settings()
    if not settings.admin_token:
        raise ForbiddenError("Administrative access is disabled")
    if not x_admin_token or not hmac.compare_digest(x_admin_token, settings.admin_token):
        raise ForbiddenError("Invalid admin token")
