from __future__ import annotations

import pytest

from command_center.errors import AuthenticationError, ConflictError, InvalidInputError
from command_center.services import accounts, security


class TestPasswords:
    @pytest.mark.asyncio
    async def test_hash_and_verify(self, db):
        stored = security.hash_password("s3cret")
        assert stored.startswith("pbkdf2_sha256$1000$")
        assert security.verify_password("s3cret", stored)
        assert not security.verify_password("wrong", stored)

    @pytest.mark.asyncio
    async def test_salts_differ(self, db):
        assert security.hash_password("same") != security.hash_password("same")

    @pytest.mark.asyncio
    async def test_malformed_hash(self, db):
        assert not security.verify_password("x", "not-a-hash")
        assert not security.verify_password("x", "md5$1$a$b")


class TestTokens:
    @pytest.mark.asyncio
    async def test_round_trip(self, db):
        token = security.issue_token("abc")
        assert security.verify_token(token) == "abc"

    @pytest.mark.asyncio
    async def test_garbage_token(self, db):
        with pytest.raises(AuthenticationError):
            security.verify_token("garbage")


class TestAccounts:
    @pytest.mark.asyncio
    async def test_register_and_login(self, db):
        registered = await accounts.register("dana", "pw")
        assert registered["user"]["username"] == "dana"
        logged_in = await accounts.login("dana", "pw")
        assert logged_in["user"]["id"] == registered["user"]["id"]
        assert security.verify_token(logged_in["token"]) == registered["user"]["id"]

    @pytest.mark.asyncio
    async def test_duplicate_username(self, alice):
        with pytest.raises(ConflictError):
            await accounts.register("alice", "other")

    @pytest.mark.asyncio
    async def test_missing_fields(self, db):
        with pytest.raises(InvalidInputError):
            await accounts.register("  ", "pw")

    @pytest.mark.asyncio
    async def test_bad_credentials(self, alice):
        with pytest.raises(AuthenticationError):
            await accounts.login("alice", "nope")
        with pytest.raises(AuthenticationError):
            await accounts.login("nobody", "nope")

    @pytest.mark.asyncio
    async def test_search_users(self, alice, bob):
        result = await accounts.search_users("ALI")
        assert [item["username"] for item in result["data"]] == ["alice"]
        assert (await accounts.search_users(""))["data"] == []
