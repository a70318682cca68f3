"""
Tests for JWT authentication and the token blacklist.

WHY: Staff, doctors and patients share one signing key, so the actor
claim is what keeps a patient token from opening doctor endpoints.
These tests cover:
1. Password hashing and verification (including accounts without a password)
2. Actor tokens carry the right id claim
3. Expired, tampered and malformed tokens are rejected
4. Logout blacklisting and its TTL
"""

import time
from datetime import datetime, timedelta

import pytest
from jose import jwt

from app.core.auth import (
    ACTOR_DOCTOR,
    ACTOR_PATIENT,
    ACTOR_USER,
    blacklist_token,
    create_access_token,
    create_actor_token,
    hash_password,
    is_token_blacklisted,
    verify_password,
    verify_token,
)
from app.core.config import settings
from app.core.exceptions import TokenExpiredError, TokenInvalidError


class TestPasswordHashing:
    """Test password hashing and verification."""

    def test_hash_is_salted(self):
        hashed_once = hash_password("Clinic@2024")
        hashed_twice = hash_password("Clinic@2024")

        assert hashed_once != "Clinic@2024"
        assert hashed_once != hashed_twice
        assert len(hashed_once) == 60

    def test_verify_password(self):
        hashed = hash_password("Clinic@2024")

        assert verify_password("Clinic@2024", hashed) is True
        assert verify_password("clinic@2024", hashed) is False

    def test_verify_password_without_stored_hash(self):
        """Patients registered at the front desk may have no password."""
        assert verify_password("Anything1!", None) is False
        assert verify_password("Anything1!", "") is False


class TestActorTokens:
    """Test token creation for the three kinds of actor."""

    @pytest.mark.parametrize(
        "actor,claim",
        [
            (ACTOR_USER, "user_id"),
            (ACTOR_DOCTOR, "doctor_id"),
            (ACTOR_PATIENT, "patient_id"),
        ],
    )
    def test_actor_token_carries_id_claim(self, actor, claim):
        token = create_actor_token(actor, 42)

        payload = verify_token(token)
        assert payload["actor"] == actor
        assert payload[claim] == 42

    def test_staff_token_carries_role(self):
        token = create_actor_token(ACTOR_USER, 1, role="admin")

        assert verify_token(token)["role"] == "admin"

    def test_unknown_actor_rejected(self):
        with pytest.raises(ValueError):
            create_actor_token("receptionist", 1)

    def test_standard_claims_and_lifetime(self):
        token = create_access_token({"user_id": 1})
        decoded = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])

        assert {"exp", "iat", "nbf"} <= decoded.keys()
        expected_exp = datetime.utcnow() + timedelta(minutes=settings.JWT_EXPIRATION_MINUTES)
        actual_exp = datetime.utcfromtimestamp(decoded["exp"])
        assert abs((expected_exp - actual_exp).total_seconds()) < 10

    def test_token_never_contains_password(self):
        decoded = verify_token(create_actor_token(ACTOR_PATIENT, 3))

        assert "password" not in decoded
        assert "hashed_password" not in decoded


class TestTokenVerification:
    """Test rejection of bad tokens."""

    def test_expired_token(self):
        token = create_access_token({"user_id": 1}, expires_delta=timedelta(seconds=-1))

        with pytest.raises(TokenExpiredError) as exc_info:
            verify_token(token)
        assert "expired" in str(exc_info.value).lower()

    def test_wrong_secret(self):
        token = jwt.encode({"user_id": 1}, "wrong-secret", algorithm=settings.JWT_ALGORITHM)

        with pytest.raises(TokenInvalidError):
            verify_token(token)

    def test_wrong_algorithm(self):
        token = jwt.encode({"user_id": 1}, settings.JWT_SECRET, algorithm="HS512")

        with pytest.raises(TokenInvalidError):
            verify_token(token)

    def test_malformed(self):
        with pytest.raises(TokenInvalidError):
            verify_token("not.a.valid.jwt.token")

    def test_role_escalation_by_tampering(self):
        token = create_actor_token(ACTOR_USER, 1, role="staff")
        decoded = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_signature": False},
        )
        decoded["role"] = "super_admin"
        tampered = jwt.encode(decoded, "attacker-secret", algorithm="HS256")

        with pytest.raises(TokenInvalidError):
            verify_token(tampered)


class TestTokenBlacklist:
    """Test logout blacklisting against the in-process Redis fake."""

    @pytest.mark.asyncio
    async def test_blacklisted_after_logout(self):
        token = create_actor_token(ACTOR_DOCTOR, 5)

        assert await is_token_blacklisted(token) is False
        await blacklist_token(token, 5)
        assert await is_token_blacklisted(token) is True

    @pytest.mark.asyncio
    async def test_ttl_follows_remaining_token_lifetime(self, fake_redis):
        token = create_access_token({"user_id": 1}, expires_delta=timedelta(minutes=10))

        await blacklist_token(token, 1)

        ttl = fake_redis.expiry[f"blacklist:token:{token}"] - time.time()
        assert 500 < ttl <= 600

    @pytest.mark.asyncio
    async def test_unparseable_token_uses_default_lifetime(self, fake_redis):
        await blacklist_token("garbage-token", 1)

        ttl = fake_redis.expiry["blacklist:token:garbage-token"] - time.time()
        assert ttl > settings.JWT_EXPIRATION_MINUTES * 60 - 10

    @pytest.mark.asyncio
    async def test_explicit_ttl(self, fake_redis):
        await blacklist_token("short-lived", 1, ttl_seconds=1)

        assert await is_token_blacklisted("short-lived") is True
        assert fake_redis.expiry["blacklist:token:short-lived"] - time.time() <= 1
