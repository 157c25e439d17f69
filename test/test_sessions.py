"""
Tests for SessionManager

Login, validation against the live session row, expiry, revocation and the
legacy credential upgrade.
"""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from conftest import DEFAULT_PASSWORD
from pgdash.exceptions import InvalidCredentialsError, InvalidInputError, StoreUnavailableError
from pgdash.models import PasswordScheme, User, UserSession
from pgdash.services.session_service import SessionManager, SessionToken
from pgdash.services.user_service import UserDirectory


async def count_sessions(db, user_id: int) -> int:
    return await db.scalar(select(func.count()).select_from(UserSession).where(UserSession.user_id == user_id))


class TestSessionToken:
    def test_encode_parse(self):
        token = SessionToken(user_id=42, session_id="abc_DEF-123")
        assert token.encode() == "42:abc_DEF-123"
        assert SessionToken.parse("42:abc_DEF-123") == token

    @pytest.mark.parametrize(
        "raw",
        [
            None,
            "",
            "42",
            "42:",
            ":abc",
            "abc:def",
            "-1:abc",
            "4 2:abc",
            "42:abc:def",
            "1.5:abc",
            "\u00b2:abc",
            "\u0663:abc",
            "9223372036854775808:abc",
            "9" * 30 + ":abc",
        ],
    )
    def test_malformed_tokens_parse_to_none(self, raw):
        assert SessionToken.parse(raw) is None

    def test_largest_user_id_still_parses(self):
        assert SessionToken.parse(f"{2**63 - 1}:abc").user_id == 2**63 - 1


class TestLogin:
    @pytest.mark.asyncio
    async def test_login_issues_persisted_session(self, db, sessions, client_user, clock):
        result = await sessions.login("carlos@padaria.test", DEFAULT_PASSWORD)

        assert result.user.id == client_user.id
        assert result.user.role_name == "CLIENTE"
        assert result.user.is_superuser is False
        assert result.user.tenant.slug == "padaria-sao-joao"
        assert result.token.user_id == client_user.id
        assert len(result.token.session_id) >= 32
        assert result.expires_at == clock.now() + sessions.ttl

        row = await db.get(UserSession, result.token.session_id)
        assert row is not None
        assert row.user_id == client_user.id
        assert row.revoked_at is None

    @pytest.mark.asyncio
    async def test_login_is_case_insensitive_on_email(self, sessions, client_user):
        result = await sessions.login("  CARLOS@Padaria.TEST ", DEFAULT_PASSWORD)
        assert result.user.id == client_user.id

    @pytest.mark.asyncio
    async def test_wrong_password_and_unknown_email_fail_identically(self, sessions, client_user):
        with pytest.raises(InvalidCredentialsError) as wrong_password:
            await sessions.login("carlos@padaria.test", "not-the-password")
        with pytest.raises(InvalidCredentialsError) as unknown_email:
            await sessions.login("nobody@padaria.test", DEFAULT_PASSWORD)

        assert type(wrong_password.value) is type(unknown_email.value)
        assert wrong_password.value.message == unknown_email.value.message == "Invalid credentials"
        assert wrong_password.value.status_code == unknown_email.value.status_code == 401
        assert wrong_password.value.details == unknown_email.value.details == {}

    @pytest.mark.asyncio
    async def test_unknown_email_still_spends_hashing_work(self, db, clock, client_user):
        credentials = AsyncMock()
        manager = SessionManager(db, credentials=credentials, clock=clock)

        with pytest.raises(InvalidCredentialsError):
            await manager.login("nobody@padaria.test", DEFAULT_PASSWORD)

        credentials.dummy_verify_async.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_overlong_password_for_known_email_spends_hashing_work(self, sessions, client_user):
        credentials = sessions.credentials
        with patch.object(credentials, "dummy_verify", wraps=credentials.dummy_verify) as dummy:
            with pytest.raises(InvalidCredentialsError):
                await sessions.login("carlos@padaria.test", "p" * 100)
        dummy.assert_called_once()

    @pytest.mark.asyncio
    async def test_missing_fields_rejected(self, sessions):
        with pytest.raises(InvalidInputError):
            await sessions.login("", DEFAULT_PASSWORD)
        with pytest.raises(InvalidInputError):
            await sessions.login("carlos@padaria.test", "")

    @pytest.mark.asyncio
    async def test_two_logins_give_two_distinct_sessions(self, db, sessions, client_user):
        first = await sessions.login("carlos@padaria.test", DEFAULT_PASSWORD)
        second = await sessions.login("carlos@padaria.test", DEFAULT_PASSWORD)

        assert first.token.session_id != second.token.session_id
        assert await count_sessions(db, client_user.id) == 2
        assert await sessions.validate(first.token.encode()) is not None
        assert await sessions.validate(second.token.encode()) is not None

    @pytest.mark.asyncio
    async def test_login_fails_when_session_cannot_be_stored(self, db, sessions, client_user, monkeypatch):
        user_id = client_user.id
        monkeypatch.setattr(db, "commit", AsyncMock(side_effect=OperationalError("COMMIT", {}, Exception("gone"))))

        with pytest.raises(StoreUnavailableError):
            await sessions.login("carlos@padaria.test", DEFAULT_PASSWORD)

        monkeypatch.undo()
        assert await count_sessions(db, user_id) == 0

    @pytest.mark.asyncio
    async def test_legacy_plaintext_credential_upgraded_on_login(self, db, sessions, seeded):
        legacy = User(
            name="Old Timer",
            email="old@pgdash.test",
            password_hash="legacy-secret",
            password_scheme=PasswordScheme.legacy_plaintext.value,
            role_id=seeded["CLIENTE"].id,
        )
        db.add(legacy)
        await db.commit()

        await sessions.login("old@pgdash.test", "legacy-secret")

        refreshed = await db.scalar(
            select(User).where(User.id == legacy.id).execution_options(populate_existing=True)
        )
        assert refreshed.password_scheme == PasswordScheme.bcrypt.value
        assert refreshed.password_hash != "legacy-secret"
        assert sessions.credentials.verify("legacy-secret", refreshed.password_hash)

        # Converted once; the bcrypt hash now serves future logins
        await sessions.login("old@pgdash.test", "legacy-secret")
        with pytest.raises(InvalidCredentialsError):
            await sessions.login("old@pgdash.test", refreshed.password_hash)


class TestValidate:
    @pytest.mark.asyncio
    async def test_valid_token_resolves_principal(self, sessions, client_user, tenant):
        result = await sessions.login("carlos@padaria.test", DEFAULT_PASSWORD)
        principal = await sessions.validate(result.token.encode())

        assert principal.id == client_user.id
        assert principal.email == "carlos@padaria.test"
        assert principal.tenant_id == tenant.id
        assert principal.session_id == result.token.session_id

    @pytest.mark.asyncio
    async def test_expired_session_is_rejected(self, sessions, client_user, clock):
        result = await sessions.login("carlos@padaria.test", DEFAULT_PASSWORD)

        clock.advance(days=6, hours=23)
        assert await sessions.validate(result.token.encode()) is not None

        clock.advance(hours=1)
        assert await sessions.validate(result.token.encode()) is None

        clock.advance(days=30)
        assert await sessions.validate(result.token.encode()) is None

    @pytest.mark.asyncio
    async def test_expired_session_never_resurrected(self, sessions, client_user, clock):
        result = await sessions.login("carlos@padaria.test", DEFAULT_PASSWORD)
        clock.advance(days=8)
        assert await sessions.validate(result.token.encode()) is None

        # Revoked sessions stay dead whatever the clock says
        await sessions.revoke(result.token.encode())
        clock.advance(days=-8)
        assert await sessions.validate(result.token.encode()) is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", ["", "garbage", "1:", ":x", "1:2:3"])
    async def test_malformed_token_returns_none(self, sessions, raw):
        assert await sessions.validate(raw) is None

    @pytest.mark.asyncio
    async def test_out_of_range_user_id_is_anonymous(self, sessions, client_user):
        assert await sessions.validate("9" * 30 + ":abc") is None
        assert await sessions.validate(f"{2**63}:abc") is None

    @pytest.mark.asyncio
    async def test_unknown_session_id_for_existing_user(self, sessions, client_user):
        """A user match without a live session row is not a session"""
        forged = SessionToken(user_id=client_user.id, session_id="made-up-session-id").encode()
        assert await sessions.validate(forged) is None

    @pytest.mark.asyncio
    async def test_session_bound_to_its_user(self, sessions, client_user, admin_user):
        result = await sessions.login("carlos@padaria.test", DEFAULT_PASSWORD)
        swapped = SessionToken(user_id=admin_user.id, session_id=result.token.session_id).encode()
        assert await sessions.validate(swapped) is None

    @pytest.mark.asyncio
    async def test_deleted_user_invalidates_token(self, db, sessions, credentials, client_user, admin_user):
        result = await sessions.login("carlos@padaria.test", DEFAULT_PASSWORD)
        await UserDirectory(db, credentials=credentials).delete_user(client_user.id, acting_user_id=admin_user.id)
        assert await sessions.validate(result.token.encode()) is None


class TestRevoke:
    @pytest.mark.asyncio
    async def test_revoke_invalidates_and_is_idempotent(self, sessions, client_user):
        result = await sessions.login("carlos@padaria.test", DEFAULT_PASSWORD)
        raw = result.token.encode()

        assert await sessions.revoke(raw) is True
        assert await sessions.validate(raw) is None
        assert await sessions.revoke(raw) is False
        assert await sessions.revoke("not-a-token") is False

    @pytest.mark.asyncio
    async def test_revoke_leaves_other_sessions_alone(self, sessions, client_user):
        first = await sessions.login("carlos@padaria.test", DEFAULT_PASSWORD)
        second = await sessions.login("carlos@padaria.test", DEFAULT_PASSWORD)

        await sessions.revoke(first.token.encode())

        assert await sessions.validate(first.token.encode()) is None
        assert await sessions.validate(second.token.encode()) is not None

    @pytest.mark.asyncio
    async def test_revoke_all_and_list_active(self, sessions, client_user, clock):
        first = await sessions.login("carlos@padaria.test", DEFAULT_PASSWORD)
        clock.advance(minutes=5)
        second = await sessions.login("carlos@padaria.test", DEFAULT_PASSWORD)

        active = await sessions.list_active_sessions(client_user.id)
        assert [s.id for s in active] == [second.token.session_id, first.token.session_id]

        assert await sessions.revoke_all_for_user(client_user.id) == 2
        assert await sessions.list_active_sessions(client_user.id) == []
        assert await sessions.validate(first.token.encode()) is None
        assert await sessions.validate(second.token.encode()) is None
