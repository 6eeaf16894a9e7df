# tests/v1/test_jwt_validation.py
"""Tests for bearer token validation edge cases."""

import pytest
from fastapi import status
from jose import jwt

from shoptalk.core.security import InvalidTokenError, create_access_token, decode_subject
from shoptalk.core.settings import settings

UNREAD = "/api/v1/messages/unread/count"


class TestJWTValidationEdgeCases:
    """Requests with unusable credentials never reach the messaging service."""

    def test_jwt_without_bearer_prefix(self, client):
        response = client.get(UNREAD, headers={"Authorization": "InvalidToken123"})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_jwt_with_empty_token(self, client):
        response = client.get(UNREAD, headers={"Authorization": "Bearer "})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_jwt_with_malformed_token(self, client):
        response = client.get(UNREAD, headers={"Authorization": "Bearer not.a.valid.jwt"})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_jwt_with_wrong_algorithm(self, client, test_user):
        token = jwt.encode({"sub": test_user.id}, settings.secret_key, algorithm="HS512")
        response = client.get(UNREAD, headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_valid_token(self, client, test_user):
        token = create_access_token(test_user.id)
        response = client.get(UNREAD, headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == status.HTTP_200_OK


def test_decode_subject_round_trip():
    assert decode_subject(create_access_token("barber-ben", {"role": "barber"})) == "barber-ben"


@pytest.mark.parametrize("claims", [{}, {"sub": ""}, {"sub": 42}])
def test_decode_subject_rejects_missing_subject(claims):
    token = jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)
    with pytest.raises(InvalidTokenError):
        decode_subject(token)
