"""Tests for the credential store."""

import pytest
from sqlalchemy import select

from learnhub.auth.service import (
    INVALID_CREDENTIALS,
    authenticate_user,
    create_user,
    get_user_by_email,
    get_user_by_id,
    update_user,
)
from learnhub.db.models import UserStats
from learnhub.errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from tests.conftest import TEST_PASSWORD


class TestCreateUser:
    async def test_email_is_lowercased(self, db_session):
        user = await create_user(db_session, "  Anna@Example.COM ", TEST_PASSWORD, "Anna")
        assert user.email == "anna@example.com"
        assert user.password_hash.startswith("$argon2id$")
        assert user.password_hash != TEST_PASSWORD

    async def test_creates_zeroed_stats_row(self, db_session):
        user = await create_user(db_session, "anna@example.com", TEST_PASSWORD, "Anna")
        stats = (
            await db_session.execute(select(UserStats).where(UserStats.user_id == user.id))
        ).scalar_one()
        assert stats.total_points == 0
        assert stats.level == 1
        assert stats.badges == []
        assert stats.current_streak == 0

    async def test_duplicate_email_conflicts_and_keeps_original(self, db_session):
        original = await create_user(db_session, "anna@example.com", TEST_PASSWORD, "Anna")
        original_hash = original.password_hash

        with pytest.raises(ConflictError, match="already registered"):
            await create_user(db_session, "ANNA@example.com", "Different1", "Impostor")

        stored = await get_user_by_email(db_session, "anna@example.com")
        assert stored is not None
        assert stored.password_hash == original_hash
        assert stored.name == "Anna"

    async def test_empty_fields_rejected(self, db_session):
        with pytest.raises(ValidationError) as exc_info:
            await create_user(db_session, "", "", " ")
        fields = [e["field"] for e in exc_info.value.errors]
        assert fields == ["email", "password", "name"]


class TestLookups:
    async def test_get_by_email_case_insensitive(self, db_session):
        user = await create_user(db_session, "anna@example.com", TEST_PASSWORD, "Anna")
        found = await get_user_by_email(db_session, "ANNA@EXAMPLE.COM")
        assert found is not None
        assert found.id == user.id

    async def test_get_by_id_missing(self, db_session):
        assert await get_user_by_id(db_session, 999) is None


class TestAuthenticate:
    async def test_valid_credentials(self, db_session):
        user = await create_user(db_session, "anna@example.com", TEST_PASSWORD, "Anna")
        authenticated = await authenticate_user(db_session, "Anna@Example.com", TEST_PASSWORD)
        assert authenticated.id == user.id

    async def test_wrong_password_and_unknown_email_look_the_same(self, db_session):
        await create_user(db_session, "anna@example.com", TEST_PASSWORD, "Anna")

        with pytest.raises(AuthenticationError) as wrong_password:
            await authenticate_user(db_session, "anna@example.com", "Wr0ngPassword")
        with pytest.raises(AuthenticationError) as unknown_email:
            await authenticate_user(db_session, "nobody@example.com", TEST_PASSWORD)

        assert wrong_password.value.message == INVALID_CREDENTIALS
        assert unknown_email.value.message == INVALID_CREDENTIALS


class TestUpdateUser:
    async def test_update_name(self, db_session):
        user = await create_user(db_session, "anna@example.com", TEST_PASSWORD, "Anna")
        updated = await update_user(db_session, user.id, name="  Anna Nováková ")
        assert updated.name == "Anna Nováková"

    async def test_missing_user(self, db_session):
        with pytest.raises(NotFoundError):
            await update_user(db_session, 12345, name="Anna")

    async def test_invalid_name(self, db_session):
        user = await create_user(db_session, "anna@example.com", TEST_PASSWORD, "Anna")
        with pytest.raises(ValidationError) as exc_info:
            await update_user(db_session, user.id, name="A1")
        assert exc_info.value.errors[0]["field"] == "name"
