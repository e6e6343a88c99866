from __future__ import annotations

import base64
import hashlib
import os

from cryptography.exceptions import InvalidKey
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from command_center.errors import AuthenticationError
from command_center.settings import get_settings

HASH_SCHEME = "pbkdf2_sha256"


def _fernet() -> Fernet:
    settings = get_settings()
    digest = hashlib.sha256(settings.token_secret.encode("utf-8")).digest()
    key = base64.urlsafe_b64encode(digest)
    return Fernet(key)


def issue_token(account_id: str) -> str:
    return _fernet().encrypt(account_id.encode("utf-8")).decode("utf-8")


def verify_token(token: str) -> str:
    settings = get_settings()
    try:
        value = _fernet().decrypt(token.encode("utf-8"), ttl=settings.token_ttl_seconds)
    except InvalidToken as exc:
        raise AuthenticationError("Invalid token") from exc
    return value.decode("utf-8")


def _kdf(salt: bytes, iterations: int) -> PBKDF2HMAC:
    return PBKDF2HMAC(algorithm=hashes.SHA256(), length=32, salt=salt, iterations=iterations)


def hash_password(password: str) -> str:
    iterations = get_settings().password_hash_iterations
    salt = os.urandom(16)
    derived = _kdf(salt, iterations).derive(password.encode("utf-8"))
    return "$".join(
        [
            HASH_SCHEME,
            str(iterations),
            base64.b64encode(salt).decode("ascii"),
            base64.b64encode(derived).decode("ascii"),
        ]
    )


def verify_password(password: str, stored_hash: str) -> bool:
    try:
        scheme, iterations, salt_b64, hash_b64 = stored_hash.split("$")
    except ValueError:
        return False
    if scheme != HASH_SCHEME:
        return False
    try:
        _kdf(base64.b64decode(salt_b64), int(iterations)).verify(
            password.encode("utf-8"), base64.b64decode(hash_b64)
        )
    except (InvalidKey, ValueError):
        return False
    return True
