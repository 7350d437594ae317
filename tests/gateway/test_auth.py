"""Tests for JWT credential verification."""

from datetime import timedelta

import jwt
import pytest

from mnemos.errors import AuthError
from mnemos.gateway.auth import CredentialVerifier, JWTCredentialVerifier, issue_token

SECRET = "test-secret"


@pytest.fixture
def verifier():
    return JWTCredentialVerifier(secret=SECRET)


@pytest.mark.asyncio
async def test_valid_token(verifier):
    token = issue_token("alice", SECRET, additional_claims={"name": "Alice"})

    identity = await verifier.verify(token)

    assert identity.user_id == "alice"
    assert identity.claims["name"] == "Alice"


@pytest.mark.asyncio
async def test_expired_token(verifier):
    token = issue_token("alice", SECRET, expires_delta=timedelta(seconds=-10))

    with pytest.raises(AuthError) as exc_info:
        await verifier.verify(token)
    assert exc_info.value.reason == "token expired"


@pytest.mark.asyncio
async def test_wrong_signature(verifier):
    token = issue_token("alice", "another-secret")

    with pytest.raises(AuthError, match="invalid token"):
        await verifier.verify(token)


@pytest.mark.asyncio
@pytest.mark.parametrize("credential", [None, ""])
async def test_missing_credential(verifier, credential):
    with pytest.raises(AuthError, match="missing credential"):
        await verifier.verify(credential)


@pytest.mark.asyncio
async def test_garbage_token(verifier):
    with pytest.raises(AuthError, match="invalid token"):
        await verifier.verify("not-a-jwt")


@pytest.mark.asyncio
async def test_token_without_expiry_rejected(verifier):
    token = jwt.encode({"sub": "alice"}, SECRET, algorithm="HS256")

    with pytest.raises(AuthError, match="invalid token"):
        await verifier.verify(token)


@pytest.mark.asyncio
async def test_token_without_subject_rejected(verifier):
    token = jwt.encode({"exp": 9999999999}, SECRET, algorithm="HS256")

    with pytest.raises(AuthError):
        await verifier.verify(token)


def test_protocol_and_empty_secret(verifier):
    assert isinstance(verifier, CredentialVerifier)
    with pytest.raises(ValueError):
        JWTCredentialVerifier(secret="")
