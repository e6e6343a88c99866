from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from command_center import repositories
from command_center.errors import AuthenticationError, ConflictError, InvalidInputError
from command_center.services import security

logger = logging.getLogger(__name__)


def _public_account(account: dict) -> dict:
    return {"id": account["id"], "username": account["username"]}


async def register(username: str, password: str) -> dict:
    username = (username or "").strip()
    if not username or not password:
        raise InvalidInputError("Missing fields")
    if await repositories.get_account_by_username(username):
        raise ConflictError("User exists")
    try:
        account = await repositories.create_account(username, security.hash_password(password))
    except IntegrityError:
        raise ConflictError("User exists") from None
    logger.info("Registered account %s", account["id"])
    return {"token": security.issue_token(account["id"]), "user": _public_account(account)}


async def login(username: str, password: str) -> dict:
    account = await repositories.get_account_by_username((username or "").strip())
    if not account or not security.verify_password(password or "", account["password_hash"]):
        logger.info("Rejected login for %r", username)
        raise AuthenticationError("Invalid credentials")
    return {"token": security.issue_token(account["id"]), "user": _public_account(account)}


async def get_profile(account_id: str) -> dict:
    account = await repositories.get_account(account_id)
    if not account:
        raise AuthenticationError("Unknown account")
    return _public_account(account)


async def search_users(query: str | None) -> dict:
    query = (query or "").strip()
    if not query:
        return {"data": []}
    return {"data": await repositories.search_accounts(query, limit=10)}
