from datetime import datetime, timedelta

from jose import jwt

from admin_audit.config import settings
from admin_audit.core.security import (
    create_access_token,
    decode_access_token,
    get_password_hash,
    verify_password,
)


def test_access_token_rejects_non_access_typ():
    token = jwt.encode(
        {"sub": "1", "typ": "refresh", "exp": datetime.utcnow() + timedelta(minutes=5)},
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
    )
    assert decode_access_token(token) is None


def test_access_token_round_trip():
    token = create_access_token({"sub": "7", "role": "admin"})
    payload = decode_access_token(token)
    assert payload is not None
    assert payload["sub"] == "7"
    assert payload["role"] == "admin"
    assert payload["typ"] == "access"


def test_tampered_and_expired_tokens_are_rejected():
    token = create_access_token({"sub": "7"})
    assert decode_access_token(token[:-2] + ("aa" if token[-2:] != "aa" else "bb")) is None

    expired = create_access_token({"sub": "7"}, expires_delta=timedelta(seconds=-1))
    assert decode_access_token(expired) is None


def test_password_hash_round_trip():
    hashed = get_password_hash("s3cret-pass")
    assert hashed != "s3cret-pass"
    assert verify_password("s3cret-pass", hashed)
    assert not verify_password("wrong-pass", hashed)
