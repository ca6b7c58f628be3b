"""Tests for JWT claim and header extraction."""

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa

from keyless.core.errors import KeylessError, KeylessErrorType
from keyless.crypto.jwt_claims import (
    get_iss_aud_and_uid_val,
    jwt_header_json,
    parse_jwt_header,
    verify_jwt_with_jwk,
)
from keyless.jwks.models import MoveJWK
from conftest import AUDIENCE, ISSUER, KID, SUBJECT


class TestClaims:
    """Tests for unverified claim extraction."""

    def test_extracts_identity(self, id_token: str) -> None:
        claims = get_iss_aud_and_uid_val(id_token)
        assert (claims.iss, claims.aud, claims.uid_key, claims.uid_val) == (
            ISSUER,
            AUDIENCE,
            "sub",
            SUBJECT,
        )

    def test_custom_uid_key(self, id_token: str) -> None:
        assert get_iss_aud_and_uid_val(id_token, "email").uid_val == "alice@example.com"

    @pytest.mark.parametrize(
        "claims",
        [
            {"aud": AUDIENCE, "sub": SUBJECT},
            {"iss": ISSUER, "sub": SUBJECT},
            {"iss": ISSUER, "aud": [AUDIENCE, "other"], "sub": SUBJECT},
            {"iss": ISSUER, "aud": AUDIENCE},
        ],
    )
    def test_missing_claims(self, claims: dict) -> None:
        token = jwt.encode(claims, "secret-key-of-sufficient-length!", algorithm="HS256")
        with pytest.raises(KeylessError) as exc_info:
            get_iss_aud_and_uid_val(token)
        assert exc_info.value.error_type == KeylessErrorType.JWT_PARSING_ERROR

    def test_garbage_token(self) -> None:
        with pytest.raises(KeylessError) as exc_info:
            get_iss_aud_and_uid_val("not-a-jwt")
        assert exc_info.value.error_type == KeylessErrorType.JWT_PARSING_ERROR


class TestHeader:
    """Tests for JWT header handling."""

    def test_header_json(self, id_token: str) -> None:
        header = parse_jwt_header(jwt_header_json(id_token))
        assert header.kid == KID
        assert header.alg == "RS256"

    def test_header_without_kid(self) -> None:
        with pytest.raises(KeylessError) as exc_info:
            parse_jwt_header('{"alg":"RS256"}')
        assert exc_info.value.error_type == KeylessErrorType.JWT_PARSING_ERROR

    def test_header_not_json(self) -> None:
        with pytest.raises(KeylessError):
            parse_jwt_header("{")


class TestVerifyWithJwk:
    """Tests for RS256 verification against an issuer JWK."""

    def test_valid_signature(self, id_token: str, issuer_jwk: MoveJWK) -> None:
        payload = verify_jwt_with_jwk(id_token, issuer_jwk, audience=AUDIENCE)
        assert payload["sub"] == SUBJECT

    def test_expired_token_still_verifies(
        self, issuer_private_key: rsa.RSAPrivateKey, issuer_jwk: MoveJWK
    ) -> None:
        token = jwt.encode(
            {"iss": ISSUER, "aud": AUDIENCE, "sub": SUBJECT, "exp": 1},
            issuer_private_key,
            algorithm="RS256",
        )
        assert verify_jwt_with_jwk(token, issuer_jwk)["exp"] == 1

    def test_wrong_key(self, id_token: str) -> None:
        other = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        jwk = MoveJWK.from_rsa_public_key(other.public_key(), KID)
        with pytest.raises(KeylessError) as exc_info:
            verify_jwt_with_jwk(id_token, jwk)
        assert exc_info.value.error_type == KeylessErrorType.INVALID_JWT_SIG

    def test_wrong_audience(self, id_token: str, issuer_jwk: MoveJWK) -> None:
        with pytest.raises(KeylessError):
            verify_jwt_with_jwk(id_token, issuer_jwk, audience="someone-else")
