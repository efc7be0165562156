import uuid
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from insegnami.core.config import settings
from insegnami.core.exceptions import Unauthenticated
from insegnami.core.security import (
    Claims, decode_session_token, generate_token, hash_password, issue_session_token, verify_password
)
from insegnami.models import Role


@pytest.fixture
def claims():
    return Claims(
        user_id=uuid.uuid4(),
        email="docente@example.com",
        role=Role.TEACHER,
        tenant_id=uuid.uuid4(),
        tenant_name="Scuola Media",
        permissions={"allow": ["lesson:delete"]},
    )


def test_password_hashing():
    hashed = hash_password("correct horse")
    assert hashed != "correct horse"
    assert verify_password("correct horse", hashed)
    assert not verify_password("wrong horse", hashed)
    assert not verify_password("anything", None)
    assert not verify_password("anything", "not-a-bcrypt-hash")


def test_generated_tokens_are_unique():
    assert generate_token() != generate_token()
    assert len(generate_token()) == 64


def test_session_token_round_trip(claims):
    decoded = decode_session_token(issue_session_token(claims))
    assert decoded == claims
    assert decoded.permissions == {"allow": ["lesson:delete"]}


def test_session_token_uses_camel_case_claims(claims):
    payload = jwt.decode(issue_session_token(claims), settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    assert payload["userId"] == str(claims.user_id)
    assert payload["tenantId"] == str(claims.tenant_id)
    assert payload["role"] == "TEACHER"
    assert payload["sub"] == str(claims.user_id)


def test_expired_session_is_rejected(claims):
    token = issue_session_token(claims, max_age_seconds=-60)
    with pytest.raises(Unauthenticated, match="expired"):
        decode_session_token(token)


def test_foreign_signature_is_rejected(claims):
    payload = claims.model_dump(mode="json", by_alias=True)
    payload["exp"] = int((datetime.now(timezone.utc) + timedelta(hours=1)).timestamp())
    token = jwt.encode(payload, "some-other-secret-of-sufficient-length-for-hs256", algorithm="HS256")
    with pytest.raises(Unauthenticated):
        decode_session_token(token)


def test_tampered_token_is_rejected(claims):
    token = issue_session_token(claims)
    with pytest.raises(Unauthenticated):
        decode_session_token(token[:-4] + "abcd")


def test_payload_missing_claims_is_rejected():
    exp = int((datetime.now(timezone.utc) + timedelta(hours=1)).timestamp())
    token = jwt.encode({"sub": str(uuid.uuid4()), "exp": exp}, settings.jwt_secret_key, algorithm="HS256")
    with pytest.raises(Unauthenticated, match="payload"):
        decode_session_token(token)
