"""Fetch an OIDC issuer's signing keys from its well-known endpoints."""

import logging

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from keyless.core.errors import KeylessError, KeylessErrorType
from keyless.jwks.models import SUPPORTED_JWK_ALG, JWKSResponse, MoveJWK

_logger = logging.getLogger(__name__)

WELL_KNOWN_PATH = "/.well-known/openid-configuration"


class OpenIdConfiguration(BaseModel):
    """The subset of the discovery document needed to locate the JWKS."""

    model_config = ConfigDict(extra="allow")

    issuer: str = ""
    jwks_uri: str


async def fetch_issuer_jwks(issuer: str, client: httpx.AsyncClient) -> list[MoveJWK]:
    """Resolve ``jwks_uri`` via discovery and return the issuer's RS256 keys."""
    discovery_url = issuer.rstrip("/") + WELL_KNOWN_PATH
    try:
        response = await client.get(discovery_url)
        response.raise_for_status()
        discovery = OpenIdConfiguration.model_validate(response.json())
        response = await client.get(discovery.jwks_uri)
        response.raise_for_status()
        jwks = JWKSResponse.model_validate(response.json())
    except (httpx.HTTPError, ValueError, ValidationError) as e:
        _logger.warning("JWKS fetch for %s failed: %s", issuer, e)
        raise KeylessError(
            KeylessErrorType.JWK_FETCH_FAILED,
            details=f"Could not fetch JWKS for issuer {issuer}",
            inner_error=e,
        ) from e
    keys = [
        MoveJWK.from_jwk_entry(entry)
        for entry in jwks.keys
        if entry.kty == "RSA" and entry.alg == SUPPORTED_JWK_ALG
    ]
    _logger.debug("Fetched %d RS256 keys for %s", len(keys), issuer)
    return keys
