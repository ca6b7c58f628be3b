"""JWT claim and header extraction using PyJWT."""

import json
from typing import Any

import jwt
from jwt.algorithms import RSAAlgorithm
from jwt.types import Options
from pydantic import BaseModel, ConfigDict, ValidationError

from keyless.core.errors import KeylessError, KeylessErrorType
from keyless.jwks.models import MoveJWK, base64url_decode

DEFAULT_UID_KEY = "sub"


class IdentityClaims(BaseModel):
    """The claims an identity commitment is computed from."""

    iss: str
    aud: str
    uid_key: str
    uid_val: str


class JwtHeader(BaseModel):
    """Decoded JOSE header of a JWT."""

    model_config = ConfigDict(extra="allow")

    kid: str
    alg: str = ""
    typ: str | None = None


def decode_unverified_claims(token: str) -> dict[str, Any]:
    """Decode a JWT payload without checking its signature."""
    try:
        return jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError as e:
        raise KeylessError(
            KeylessErrorType.JWT_PARSING_ERROR,
            details=f"Failed to parse JWT - {e}",
            inner_error=e,
        ) from e


def get_iss_aud_and_uid_val(token: str, uid_key: str = DEFAULT_UID_KEY) -> IdentityClaims:
    """Extract issuer, audience and the user identifier named by ``uid_key``."""
    payload = decode_unverified_claims(token)
    if not isinstance(payload.get("iss"), str):
        raise KeylessError(
            KeylessErrorType.JWT_PARSING_ERROR,
            details="JWT is missing 'iss' in the payload",
        )
    if not isinstance(payload.get("aud"), str):
        raise KeylessError(
            KeylessErrorType.JWT_PARSING_ERROR,
            details="JWT is missing 'aud' in the payload or 'aud' is an array of values",
        )
    uid_val = payload.get(uid_key)
    if not isinstance(uid_val, str):
        raise KeylessError(
            KeylessErrorType.JWT_PARSING_ERROR,
            details=f"JWT is missing the string claim {uid_key!r}",
        )
    return IdentityClaims(
        iss=payload["iss"], aud=payload["aud"], uid_key=uid_key, uid_val=uid_val
    )


def jwt_header_json(token: str) -> str:
    """Return the JWT's header segment decoded to its JSON text."""
    segment = token.split(".", 1)[0]
    try:
        return base64url_decode(segment).decode("utf-8")
    except (ValueError, UnicodeDecodeError) as e:
        raise KeylessError(
            KeylessErrorType.JWT_PARSING_ERROR,
            details="JWT header is not valid base64url UTF-8",
            inner_error=e,
        ) from e


def parse_jwt_header(header_json: str) -> JwtHeader:
    """Parse a JWT header JSON string; ``kid`` is required."""
    try:
        return JwtHeader.model_validate(json.loads(header_json))
    except (json.JSONDecodeError, ValidationError) as e:
        raise KeylessError(
            KeylessErrorType.JWT_PARSING_ERROR,
            details="Failed to parse JWT header",
            inner_error=e,
        ) from e


def verify_jwt_with_jwk(
    token: str, jwk: MoveJWK, audience: str | None = None
) -> dict[str, Any]:
    """Verify the JWT's RS256 signature against an issuer JWK.

    Expiry is not enforced: keyless signatures outlive the JWT they were
    derived from.
    """
    public_key = RSAAlgorithm.from_jwk(jwk.to_jwk_dict())
    opts: Options = {"verify_exp": False}
    if audience is None:
        opts["verify_aud"] = False
    try:
        return jwt.decode(
            token,
            public_key,
            algorithms=["RS256"],
            audience=audience,
            options=opts,
        )
    except jwt.PyJWTError as e:
        raise KeylessError(
            KeylessErrorType.INVALID_JWT_SIG,
            details=f"JWT with kid {jwk.kid!r} failed verification",
            inner_error=e,
        ) from e
