"""Unit tests for bearer token verification."""

from datetime import timedelta
from uuid import uuid4

import pytest
from jose import jwt

from keystone.config import settings
from keystone.core.auth.backend import create_access_token, decode_token


pytestmark = pytest.mark.unit


class TestDecodeToken:
    """Tests for decode_token."""

    def test_valid_token(self) -> None:
        actor_id = uuid4()

        token_data = decode_token(create_access_token(actor_id))

        assert token_data is not None
        assert token_data.actor_id == actor_id
        assert token_data.type == "access"

    def test_expired_token(self) -> None:
        token = create_access_token(uuid4(), expires_delta=timedelta(seconds=-1))

        assert decode_token(token) is None

    def test_wrong_signature(self) -> None:
        token = jwt.encode({"sub": str(uuid4()), "exp": 9999999999}, "another-secret", algorithm="HS256")

        assert decode_token(token) is None

    def test_subject_must_be_uuid(self) -> None:
        token = jwt.encode(
            {"sub": "not-a-uuid", "exp": 9999999999},
            settings.secret_key,
            algorithm=settings.jwt_algorithm,
        )

        assert decode_token(token) is None

    def test_garbage(self) -> None:
        assert decode_token("not.a.token") is None

    def test_refresh_token_is_not_an_identity(self) -> None:
        token = jwt.encode(
            {"sub": str(uuid4()), "exp": 9999999999, "type": "refresh"},
            settings.secret_key,
            algorithm=settings.jwt_algorithm,
        )

        assert decode_token(token) is None

    def test_missing_subject(self) -> None:
        token = jwt.encode({"exp": 9999999999}, settings.secret_key, algorithm=settings.jwt_algorithm)

        assert decode_token(token) is None
