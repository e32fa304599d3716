"""Unit tests for AuthenticationService.

Runs the signup, login, refresh, logout and password reset flows against
in-memory credential store and revocation ledger fakes.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

import jwt
import pytest

from authcore.config import get_settings
from authcore.errors import (
    InvalidCredentials,
    InvalidOrExpiredToken,
    PasswordMismatch,
    ResetTokenExpired,
    ResetTokenNotFound,
    TokenRevoked,
    UserAlreadyExists,
    UserNotFound,
)
from authcore.models.auth import SignupRequest
from authcore.models.user import PasswordResetToken, User


def _registration(email="a@b.com", password="P1", confirm=None, display_name="Alice"):
    return SignupRequest(
        email=email,
        password=password,
        confirm_password=confirm if confirm is not None else password,
        display_name=display_name,
    )


def _decode(token: str) -> dict:
    settings = get_settings()
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])


def _expired_refresh_token(user_id, jti="expired-jti") -> str:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "type": "refresh",
        "jti": jti,
        "iat": now - timedelta(days=8),
        "exp": now - timedelta(days=1),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


# ---------------------------------------------------------------------------
# signup
# ---------------------------------------------------------------------------

class TestSignup:
    """Tests for AuthenticationService.signup."""

    async def test_returns_pair_bound_to_new_user(self, auth_service, store):
        pair = await auth_service.signup(_registration())

        user = await store.find_by_email("a@b.com")
        assert user is not None
        claims = _decode(pair.access_token)
        assert claims["sub"] == str(user.id)
        assert claims["email"] == "a@b.com"
        assert claims["roles"] == ["ROLE_USER"]
        assert _decode(pair.refresh_token)["sub"] == str(user.id)

    async def test_stores_hashed_password(self, auth_service, store, hasher):
        await auth_service.signup(_registration(password="secret-pw"))

        user = await store.find_by_email("a@b.com")
        assert user.password_hash != "secret-pw"
        assert hasher.verify("secret-pw", user.password_hash) is True

    async def test_password_mismatch(self, auth_service, store):
        with pytest.raises(PasswordMismatch):
            await auth_service.signup(_registration(password="P1", confirm="P2"))

        assert store.users == {}

    async def test_password_mismatch_checked_before_email(self, auth_service):
        await auth_service.signup(_registration())

        with pytest.raises(PasswordMismatch):
            await auth_service.signup(_registration(password="P1", confirm="other"))

    async def test_existing_email_leaves_store_unchanged(self, auth_service, store):
        await auth_service.signup(_registration())
        before = dict(store.users)

        with pytest.raises(UserAlreadyExists, match="a@b.com"):
            await auth_service.signup(_registration(display_name="Impostor"))

        assert store.users == before

    async def test_email_is_case_sensitive_as_stored(self, auth_service, store):
        await auth_service.signup(_registration(email="a@b.com"))
        await auth_service.signup(_registration(email="A@b.com"))

        assert len(store.users) == 2


# ---------------------------------------------------------------------------
# login
# ---------------------------------------------------------------------------

class TestLogin:
    """Tests for AuthenticationService.login."""

    async def test_correct_credentials(self, auth_service, store):
        await auth_service.signup(_registration(password="P1"))

        pair = await auth_service.login("a@b.com", "P1")

        user = await store.find_by_email("a@b.com")
        assert _decode(pair.access_token)["sub"] == str(user.id)
        assert pair.token_type == "bearer"

    async def test_wrong_password(self, auth_service):
        await auth_service.signup(_registration(password="P1"))

        with pytest.raises(InvalidCredentials):
            await auth_service.login("a@b.com", "wrong")

    async def test_unknown_email_same_message_as_wrong_password(self, auth_service):
        await auth_service.signup(_registration(password="P1"))

        with pytest.raises(InvalidCredentials) as unknown:
            await auth_service.login("ghost@b.com", "P1")
        with pytest.raises(InvalidCredentials) as wrong:
            await auth_service.login("a@b.com", "wrong")

        assert unknown.value.message == wrong.value.message


# ---------------------------------------------------------------------------
# refresh / logout
# ---------------------------------------------------------------------------

class TestRefresh:
    """Tests for AuthenticationService.refresh."""

    async def test_rotates_both_tokens(self, auth_service, ledger):
        pair = await auth_service.signup(_registration())

        new_pair = await auth_service.refresh(pair.refresh_token)

        assert new_pair.refresh_token != pair.refresh_token
        assert new_pair.access_token != pair.access_token
        old_jti = _decode(pair.refresh_token)["jti"]
        assert old_jti in ledger.revoked
        assert _decode(new_pair.refresh_token)["jti"] not in ledger.revoked

    async def test_revocation_ttl_matches_remaining_lifetime(self, auth_service, ledger):
        pair = await auth_service.signup(_registration())

        await auth_service.refresh(pair.refresh_token)

        ttl = ledger.revoked[_decode(pair.refresh_token)["jti"]]
        lifetime = get_settings().refresh_token_expire_days * 86400
        assert lifetime - 60 < ttl <= lifetime

    async def test_second_use_of_rotated_token_is_revoked(self, auth_service):
        pair = await auth_service.signup(_registration())
        await auth_service.refresh(pair.refresh_token)

        with pytest.raises(TokenRevoked):
            await auth_service.refresh(pair.refresh_token)

    async def test_concurrent_refresh_only_one_wins(self, auth_service):
        pair = await auth_service.signup(_registration())

        results = await asyncio.gather(
            auth_service.refresh(pair.refresh_token),
            auth_service.refresh(pair.refresh_token),
            return_exceptions=True,
        )

        successes = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, Exception)]
        assert len(successes) == 1
        assert len(failures) == 1
        assert isinstance(failures[0], TokenRevoked)

    async def test_expired_token_reports_expiry_even_if_revoked(self, auth_service, ledger, store):
        await auth_service.signup(_registration())
        user = await store.find_by_email("a@b.com")
        token = _expired_refresh_token(user.id, jti="stale")
        ledger.revoked["stale"] = 60

        with pytest.raises(InvalidOrExpiredToken, match="expired"):
            await auth_service.refresh(token)

    async def test_garbage_token(self, auth_service):
        with pytest.raises(InvalidOrExpiredToken):
            await auth_service.refresh("not.a.jwt")

    async def test_access_token_is_not_a_refresh_token(self, auth_service):
        pair = await auth_service.signup(_registration())

        with pytest.raises(InvalidOrExpiredToken):
            await auth_service.refresh(pair.access_token)

    async def test_token_for_missing_user(self, auth_service, codec, ledger):
        now = datetime.now(timezone.utc)
        ghost = User(
            id=uuid4(),
            email="ghost@b.com",
            display_name="Ghost",
            password_hash="x",
            created_at=now,
            updated_at=now,
        )
        token = codec.create_refresh_token(ghost)

        with pytest.raises(InvalidOrExpiredToken):
            await auth_service.refresh(token)
        assert ledger.revoked == {}


class TestLogout:
    """Tests for AuthenticationService.logout."""

    async def test_logout_revokes_refresh_token(self, auth_service):
        pair = await auth_service.signup(_registration())

        await auth_service.logout(pair.refresh_token)

        with pytest.raises(TokenRevoked):
            await auth_service.refresh(pair.refresh_token)

    async def test_double_logout(self, auth_service):
        pair = await auth_service.signup(_registration())
        await auth_service.logout(pair.refresh_token)

        with pytest.raises(TokenRevoked):
            await auth_service.logout(pair.refresh_token)


# ---------------------------------------------------------------------------
# password reset
# ---------------------------------------------------------------------------

class TestRequestPasswordReset:
    """Tests for AuthenticationService.request_password_reset."""

    async def test_issues_and_delivers_token(self, auth_service, store, email_service):
        await auth_service.signup(_registration())
        user = await store.find_by_email("a@b.com")

        confirmation = await auth_service.request_password_reset("a@b.com")

        assert confirmation.user_id == user.id
        assert confirmation.email_sent is True
        assert store.reset_tokens[user.id].token == confirmation.token
        email_service.send_password_reset_email.assert_awaited_once()
        sent_token, sent_user = email_service.send_password_reset_email.call_args[0]
        assert sent_token == confirmation.token
        assert sent_user.id == user.id

    async def test_unknown_email(self, auth_service, store):
        with pytest.raises(UserNotFound):
            await auth_service.request_password_reset("ghost@b.com")

        assert store.reset_tokens == {}

    async def test_second_request_replaces_first(self, auth_service, store):
        await auth_service.signup(_registration())

        first = await auth_service.request_password_reset("a@b.com")
        second = await auth_service.request_password_reset("a@b.com")

        assert first.token != second.token
        assert len(store.reset_tokens) == 1
        with pytest.raises(ResetTokenNotFound):
            await auth_service.confirm_password_reset(first.token, "P2")

    async def test_delivery_failure_keeps_token(self, auth_service, store, email_service):
        await auth_service.signup(_registration())
        email_service.send_password_reset_email.return_value = False

        confirmation = await auth_service.request_password_reset("a@b.com")

        assert confirmation.email_sent is False
        assert await store.find_reset_token_by_token(confirmation.token) is not None


class TestConfirmPasswordReset:
    """Tests for AuthenticationService.confirm_password_reset."""

    async def test_sets_new_password_and_logs_in(self, auth_service, store, hasher):
        await auth_service.signup(_registration(password="P1"))
        confirmation = await auth_service.request_password_reset("a@b.com")

        pair = await auth_service.confirm_password_reset(confirmation.token, "P2")

        user = await store.find_by_email("a@b.com")
        assert _decode(pair.access_token)["sub"] == str(user.id)
        assert hasher.verify("P2", user.password_hash) is True
        with pytest.raises(InvalidCredentials):
            await auth_service.login("a@b.com", "P1")

    async def test_token_is_single_use(self, auth_service):
        await auth_service.signup(_registration())
        confirmation = await auth_service.request_password_reset("a@b.com")
        await auth_service.confirm_password_reset(confirmation.token, "P2")

        with pytest.raises(ResetTokenNotFound):
            await auth_service.confirm_password_reset(confirmation.token, "P3")

    async def test_unknown_token(self, auth_service):
        with pytest.raises(ResetTokenNotFound):
            await auth_service.confirm_password_reset("no-such-token", "P2")

    async def test_expired_token(self, auth_service, store):
        await auth_service.signup(_registration(password="P1"))
        user = await store.find_by_email("a@b.com")
        past = datetime.now(timezone.utc) - timedelta(hours=2)
        await store.save_reset_token(
            PasswordResetToken(
                token="stale-token",
                user_id=user.id,
                created_at=past,
                expires_at=past + timedelta(hours=1),
            )
        )

        with pytest.raises(ResetTokenExpired):
            await auth_service.confirm_password_reset("stale-token", "P2")

        # Fails closed and is gone afterwards; the old password still works
        assert store.reset_tokens == {}
        await auth_service.login("a@b.com", "P1")


# ---------------------------------------------------------------------------
# user lookup
# ---------------------------------------------------------------------------

class TestUserLookup:
    """Tests for get_user and authenticate_access_token."""

    async def test_get_user_hides_password_hash(self, auth_service, store):
        await auth_service.signup(_registration())
        user = await store.find_by_email("a@b.com")

        info = await auth_service.get_user(user.id)

        assert info.id == user.id
        assert "password_hash" not in info.model_dump()

    async def test_get_user_unknown(self, auth_service):
        with pytest.raises(UserNotFound):
            await auth_service.get_user(uuid4())

    async def test_authenticate_access_token(self, auth_service):
        pair = await auth_service.signup(_registration())

        user = await auth_service.authenticate_access_token(pair.access_token)

        assert user.email == "a@b.com"
        assert isinstance(user.id, UUID)

    async def test_refresh_token_rejected_as_access_token(self, auth_service):
        pair = await auth_service.signup(_registration())

        with pytest.raises(InvalidOrExpiredToken):
            await auth_service.authenticate_access_token(pair.refresh_token)


# ---------------------------------------------------------------------------
# end-to-end scenario
# ---------------------------------------------------------------------------

async def test_signup_login_reset_scenario(auth_service):
    pair = await auth_service.signup(_registration(email="a@b.com", password="P1"))
    assert _decode(pair.access_token)["email"] == "a@b.com"

    with pytest.raises(InvalidCredentials):
        await auth_service.login("a@b.com", "wrong")

    t1 = (await auth_service.request_password_reset("a@b.com")).token
    t2 = (await auth_service.request_password_reset("a@b.com")).token
    assert t1 != t2

    with pytest.raises(ResetTokenNotFound):
        await auth_service.confirm_password_reset(t1, "P2")

    new_pair = await auth_service.confirm_password_reset(t2, "P2")
    assert _decode(new_pair.access_token)["email"] == "a@b.com"

    with pytest.raises(ResetTokenNotFound):
        await auth_service.confirm_password_reset(t2, "P3")
