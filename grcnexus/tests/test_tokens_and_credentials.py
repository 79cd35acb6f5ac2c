"""Session tokens, password digests and sealed API keys."""

from __future__ import annotations

from datetime import timedelta

import pytest
from jose import jwt

from grcnexus.security.credentials import (
    UNCHANGED_SENTINEL,
    CredentialError,
    PasswordHash,
    SealedSecret,
    SecretCipher,
    mask_api_key,
)
from grcnexus.security.permissions import Role
from grcnexus.security.tokens import TokenError, TokenService
from grcnexus.utils.time import utc_now


@pytest.fixture
def tokens() -> TokenService:
    return TokenService(secret="unit-test-secret", issuer="grcnexus", expires_hours=24)


def test_token_round_trip_returns_identical_claims(tokens):
    claims = tokens.build_claims(
        user_id="u-1",
        tenant_id="8f14e45f-ceea-467a-9b7c-1d2e3f4a5b6c",
        email="a@x.io",
        role=Role.RISK_MANAGER,
        is_super_admin=False,
    )
    assert tokens.validate(tokens.encode(claims)) == claims


def test_super_admin_claims_carry_no_tenant(tokens):
    claims = tokens.build_claims(
        user_id="root", tenant_id=None, email="root@x.io", role="super_admin", is_super_admin=True
    )
    decoded = tokens.validate(tokens.encode(claims))
    assert decoded.tenant_id is None
    assert decoded.role is Role.SUPER_ADMIN


def test_expired_token_is_rejected(tokens):
    claims = tokens.build_claims(
        user_id="u-1", tenant_id=None, email="a@x.io", role="regular_user", is_super_admin=False,
        now=utc_now() - timedelta(hours=25),
    )
    with pytest.raises(TokenError) as excinfo:
        tokens.validate(tokens.encode(claims))
    assert excinfo.value.kind == "expired"


def test_token_signed_with_another_secret_is_rejected(tokens):
    other = TokenService(secret="someone-else", issuer="grcnexus")
    token = other.encode(
        other.build_claims(user_id="u", tenant_id=None, email="e", role="regular_user", is_super_admin=False)
    )
    with pytest.raises(TokenError) as excinfo:
        tokens.validate(token)
    assert excinfo.value.kind == "invalid"


def test_token_with_unknown_claim_or_role_is_malformed(tokens):
    now = int(utc_now().timestamp())
    base = {
        "user_id": "u", "tenant_id": None, "email": "e", "role": "regular_user",
        "is_super_admin": False, "iss": "grcnexus", "iat": now, "exp": now + 60,
    }
    extra = jwt.encode({**base, "admin": True}, "unit-test-secret", algorithm="HS256")
    bad_role = jwt.encode({**base, "role": "god"}, "unit-test-secret", algorithm="HS256")

    for token in (extra, bad_role):
        with pytest.raises(TokenError) as excinfo:
            tokens.validate(token)
        assert excinfo.value.kind == "malformed"


def test_password_hash_verifies_only_the_original():
    digest = PasswordHash.write("password123", rounds=4)
    assert digest.verify("password123")
    assert not digest.verify("password124")
    assert not digest.verify("")
    assert "password123" not in repr(digest)


@pytest.mark.parametrize(
    ("key", "masked"),
    [
        ("", ""),
        ("short", "****"),
        ("12345678", "****"),
        ("AIzaSyD-abcdefghijkl-XYZ9", "AIza...XYZ9"),
    ],
)
def test_mask_api_key(key, masked):
    assert mask_api_key(key) == masked


def test_sealed_secret_is_opaque_and_recognises_its_mask():
    cipher = SecretCipher("unit-test-key")
    sealed = SealedSecret.seal("sk-or-v1-0123456789abcdef", cipher)

    assert sealed.decrypt_for_use(cipher) == "sk-or-v1-0123456789abcdef"
    assert sealed.masked(cipher) == "sk-o...cdef"
    assert sealed.is_unchanged_by("sk-o...cdef", cipher)
    assert sealed.is_unchanged_by(UNCHANGED_SENTINEL, cipher)
    assert not sealed.is_unchanged_by("sk-or-v1-fresh-key-000000", cipher)
    assert "sk-or" not in repr(sealed)


def test_sealed_secret_under_a_different_key_cannot_be_opened():
    sealed = SealedSecret.seal("secret-api-key-value", SecretCipher("key-one"))
    with pytest.raises(CredentialError):
        sealed.decrypt_for_use(SecretCipher("key-two"))
