"""Resolution of keyless configuration and issuer JWKs from chain state."""

import asyncio
import logging
from typing import Any, Self

import httpx
from pydantic import ValidationError

from keyless.chain.cache import AsyncTTLCache
from keyless.chain.reader import FullnodeResourceReader, ResourceReader
from keyless.chain.resources import (
    CONFIGURATION_RESOURCE,
    FEDERATED_JWKS_RESOURCE,
    PATCHED_JWKS_RESOURCE,
    ROOT_ADDRESS,
    VERIFICATION_KEY_RESOURCE,
    Groth16VerificationKeyResource,
    JwksResource,
    KeylessConfigurationResource,
)
from keyless.core.bcs import BcsError
from keyless.core.errors import KeylessError, KeylessErrorType
from keyless.core.settings import KeylessSettings
from keyless.crypto.keys import AccountAddress, KeylessAnyPublicKey
from keyless.jwks.models import MoveJWK
from keyless.verify.configuration import KeylessConfiguration

_logger = logging.getLogger(__name__)

# Failures of the transport or of decoding the payload it returned
_LOOKUP_ERRORS = (httpx.HTTPError, KeyError, ValueError, ValidationError, BcsError)


class KeylessStateResolver:
    """Fetches and caches keyless configuration and JWK sets for one network."""

    def __init__(
        self,
        reader: ResourceReader,
        *,
        network: str,
        cache: AsyncTTLCache | None = None,
        root_address: str = ROOT_ADDRESS,
    ) -> None:
        self._reader = reader
        self._network = network
        self._cache = cache or AsyncTTLCache()
        self._root_address = root_address

    @classmethod
    def from_settings(
        cls, settings: KeylessSettings, client: httpx.AsyncClient | None = None
    ) -> Self:
        return cls(
            FullnodeResourceReader.from_settings(settings, client=client),
            network=settings.network,
            cache=AsyncTTLCache(
                ttl_seconds=settings.cache_ttl_seconds,
                max_entries=settings.cache_max_entries,
            ),
            root_address=settings.root_address,
        )

    async def _read(
        self, address: str, resource_type: str, error_type: KeylessErrorType
    ) -> dict[str, Any]:
        try:
            return await self._reader.get_account_resource(address, resource_type)
        except _LOOKUP_ERRORS as e:
            raise KeylessError(
                error_type,
                details=f"Failed to read {resource_type} at {address}",
                inner_error=e,
            ) from e

    async def _load_config(self) -> KeylessConfiguration:
        config_data, vk_data = await asyncio.gather(
            self._read(
                self._root_address,
                CONFIGURATION_RESOURCE,
                KeylessErrorType.FULL_NODE_CONFIG_LOOKUP_ERROR,
            ),
            self._read(
                self._root_address,
                VERIFICATION_KEY_RESOURCE,
                KeylessErrorType.FULL_NODE_VERIFICATION_KEY_LOOKUP_ERROR,
            ),
        )
        try:
            config = KeylessConfigurationResource.model_validate(config_data)
        except ValidationError as e:
            raise KeylessError(
                KeylessErrorType.FULL_NODE_CONFIG_LOOKUP_ERROR,
                details="Malformed keyless configuration resource",
                inner_error=e,
            ) from e
        try:
            vk = Groth16VerificationKeyResource.model_validate(vk_data)
            return KeylessConfiguration.from_resources(vk, config)
        except ValueError as e:
            raise KeylessError(
                KeylessErrorType.FULL_NODE_VERIFICATION_KEY_LOOKUP_ERROR,
                details="Malformed Groth16 verification key resource",
                inner_error=e,
            ) from e

    async def get_keyless_config(self) -> KeylessConfiguration:
        """Current verification key and circuit limits, cached per network."""
        key = f"keyless-configuration-{self._network}"
        try:
            return await self._cache.get_or_fetch(key, self._load_config)
        except KeylessError:
            raise
        except Exception as e:
            raise KeylessError(KeylessErrorType.FULL_NODE_OTHER, inner_error=e) from e

    async def _load_jwks(self, jwk_address: AccountAddress | None) -> dict[str, list[MoveJWK]]:
        if jwk_address is None:
            address, resource_type = self._root_address, PATCHED_JWKS_RESOURCE
        else:
            address, resource_type = str(jwk_address), FEDERATED_JWKS_RESOURCE
        data = await self._read(
            address, resource_type, KeylessErrorType.FULL_NODE_JWKS_LOOKUP_ERROR
        )
        try:
            return JwksResource.model_validate(data).by_issuer()
        except _LOOKUP_ERRORS as e:
            raise KeylessError(
                KeylessErrorType.FULL_NODE_JWKS_LOOKUP_ERROR,
                details=f"Malformed {resource_type} at {address}",
                inner_error=e,
            ) from e

    async def get_jwks(
        self, jwk_address: AccountAddress | None = None
    ) -> dict[str, list[MoveJWK]]:
        """JWKs by issuer from PatchedJWKs, or FederatedJWKs at ``jwk_address``."""
        scope = str(jwk_address) if jwk_address is not None else self._root_address
        key = f"keyless-jwks-{self._network}-{scope}"
        return await self._cache.get_or_fetch(key, lambda: self._load_jwks(jwk_address))

    async def fetch_jwk(self, public_key: KeylessAnyPublicKey, kid: str) -> MoveJWK:
        """Find the JWK with ``kid`` among the JWKs of the key's issuer."""
        jwks = await self.get_jwks(public_key.jwk_address)
        iss = public_key.keyless_public_key.iss
        issuer_jwks = jwks.get(iss)
        if issuer_jwks is None:
            raise KeylessError(
                KeylessErrorType.INVALID_JWT_ISS_NOT_RECOGNIZED,
                details=f"JWKs for issuer {iss} not found",
            )
        for jwk in issuer_jwks:
            if jwk.kid == kid:
                return jwk
        raise KeylessError(
            KeylessErrorType.INVALID_JWT_JWK_NOT_FOUND,
            details=f"JWK with kid {kid!r} for issuer {iss!r} not found",
        )
