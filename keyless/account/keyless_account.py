"""Keyless accounts: an ephemeral key pair certified by a zero-knowledge proof."""

import asyncio
import logging
from collections.abc import Awaitable
from typing import Any, Self

from keyless.chain.resolver import KeylessStateResolver
from keyless.core.bcs import BcsSerializable, Deserializer, Serializer
from keyless.core.errors import KeylessError, KeylessErrorType
from keyless.crypto.ephemeral import EphemeralKeyPair
from keyless.crypto.groth16 import Groth16VerificationKey
from keyless.crypto.jwt_claims import (
    DEFAULT_UID_KEY,
    get_iss_aud_and_uid_val,
    jwt_header_json,
    parse_jwt_header,
)
from keyless.crypto.keys import (
    PEPPER_LENGTH,
    AccountAddress,
    FederatedKeylessPublicKey,
    KeylessAnyPublicKey,
    KeylessPublicKey,
)
from keyless.crypto.signature import KeylessSignature, ZeroKnowledgeSig
from keyless.jwks.models import MoveJWK
from keyless.verify.configuration import KeylessConfiguration
from keyless.verify.verifier import KeylessVerifier

_logger = logging.getLogger(__name__)

VERIFICATION_KEY_HASH_LENGTH = 32

ProofOrFetch = ZeroKnowledgeSig | Awaitable[ZeroKnowledgeSig]


def _serialize_verification_key_hash(serializer: Serializer, value: bytes) -> None:
    serializer.serialize_fixed_bytes(value)


def _deserialize_verification_key_hash(deserializer: Deserializer) -> bytes:
    return deserializer.deserialize_fixed_bytes(VERIFICATION_KEY_HASH_LENGTH)


class AbstractKeylessAccount(BcsSerializable):
    """Shared signing and validity logic of keyless and federated accounts.

    The proof may be supplied directly or as an awaitable that resolves to
    it; ``wait_for_proof_fetch`` awaits a pending proof at most once.
    """

    public_key: KeylessAnyPublicKey

    def __init__(
        self,
        public_key: KeylessAnyPublicKey,
        ephemeral_key_pair: EphemeralKeyPair,
        *,
        uid_key: str,
        uid_val: str,
        aud: str,
        pepper: bytes,
        jwt: str,
        proof: ProofOrFetch,
        address: AccountAddress | None = None,
        verification_key_hash: bytes | None = None,
    ) -> None:
        if len(pepper) != PEPPER_LENGTH:
            msg = f"Pepper must be {PEPPER_LENGTH} bytes, got {len(pepper)}"
            raise ValueError(msg)
        if (
            verification_key_hash is not None
            and len(verification_key_hash) != VERIFICATION_KEY_HASH_LENGTH
        ):
            msg = f"Verification key hash must be {VERIFICATION_KEY_HASH_LENGTH} bytes"
            raise ValueError(msg)
        self.public_key = public_key
        self.ephemeral_key_pair = ephemeral_key_pair
        self.uid_key = uid_key
        self.uid_val = uid_val
        self.aud = aud
        self.pepper = pepper
        self.jwt = jwt
        self.verification_key_hash = verification_key_hash
        self.account_address = (
            address if address is not None else public_key.account_address()
        )
        self.proof: ZeroKnowledgeSig | None = None
        self._proof_fetch: Awaitable[ZeroKnowledgeSig] | None = None
        if isinstance(proof, ZeroKnowledgeSig):
            self.proof = proof
        else:
            self._proof_fetch = proof

    def is_expired(self, now: float | None = None) -> bool:
        return self.ephemeral_key_pair.is_expired(now)

    async def wait_for_proof_fetch(self) -> None:
        """Await a pending proof; a failed fetch leaves ``proof`` unset."""
        if self._proof_fetch is None:
            return
        fetch = asyncio.ensure_future(self._proof_fetch)
        self._proof_fetch = fetch
        try:
            self.proof = await fetch
        except Exception as e:
            _logger.warning("Proof fetch failed: %s", e)
            raise KeylessError(
                KeylessErrorType.ASYNC_PROOF_FETCH_FAILED, inner_error=e
            ) from e
        self._proof_fetch = None

    def sign(self, message: bytes, now: float | None = None) -> KeylessSignature:
        """Sign ``message`` with the ephemeral key and attach the proof."""
        if self.is_expired(now):
            raise KeylessError(
                KeylessErrorType.EPHEMERAL_KEY_PAIR_EXPIRED,
                details=f"Expired at {self.ephemeral_key_pair.expiry_date_secs}",
            )
        if self.proof is None:
            raise KeylessError(
                KeylessErrorType.PROOF_NOT_FOUND,
                details="Await check_keyless_account_validity() before signing",
            )
        return KeylessSignature(
            ephemeral_certificate=self.proof,
            jwt_header=jwt_header_json(self.jwt),
            expiry_date_secs=self.ephemeral_key_pair.expiry_date_secs,
            ephemeral_public_key=self.ephemeral_key_pair.public_key,
            ephemeral_signature=self.ephemeral_key_pair.sign(message, now=now),
        )

    def verify_signature(
        self,
        message: bytes,
        signature: KeylessSignature,
        jwk: MoveJWK,
        config: KeylessConfiguration,
        now: float | None = None,
    ) -> bool:
        return self.public_key.verify_signature(
            message, signature, jwk, config, now=now
        )

    async def verify_signature_async(
        self,
        verifier: KeylessVerifier,
        message: bytes,
        signature: KeylessSignature,
        *,
        throw_error_with_reason: bool = False,
    ) -> bool:
        """Verify against the configuration and JWK the verifier resolves."""
        return await verifier.resolve_and_verify(
            public_key=self.public_key,
            message=message,
            signature=signature,
            throw_error_with_reason=throw_error_with_reason,
        )

    async def check_keyless_account_validity(
        self, resolver: KeylessStateResolver, now: float | None = None
    ) -> None:
        """Raise unless the account can still produce accepted signatures.

        Checks the ephemeral expiry, the proof, the pinned verification key
        (when one was recorded) and that the JWT's ``kid`` is still published.
        """
        if self.is_expired(now):
            raise KeylessError(KeylessErrorType.EPHEMERAL_KEY_PAIR_EXPIRED)
        await self.wait_for_proof_fetch()
        if self.proof is None:
            raise KeylessError(KeylessErrorType.ASYNC_PROOF_FETCH_FAILED)
        header = parse_jwt_header(jwt_header_json(self.jwt))
        if self.verification_key_hash is not None:
            config = await resolver.get_keyless_config()
            if config.verification_key.hash() != self.verification_key_hash:
                raise KeylessError(
                    KeylessErrorType.INVALID_PROOF_VERIFICATION_KEY_NOT_FOUND
                )
        else:
            _logger.warning(
                "Verification key hash not set; the proof may be invalid "
                "if the verification key has rotated"
            )
        await resolver.fetch_jwk(self.public_key, header.kid)

    def serialize(self, serializer: Serializer) -> None:
        if self.proof is None:
            raise KeylessError(
                KeylessErrorType.PROOF_NOT_FOUND,
                details="Cannot serialize an account whose proof is pending",
            )
        self.account_address.serialize(serializer)
        serializer.serialize_str(self.jwt)
        serializer.serialize_str(self.uid_key)
        serializer.serialize_fixed_bytes(self.pepper)
        self.ephemeral_key_pair.serialize(serializer)
        self.proof.serialize(serializer)
        serializer.serialize_option(
            self.verification_key_hash, _serialize_verification_key_hash
        )

    @staticmethod
    def _deserialize_common(deserializer: Deserializer) -> dict[str, Any]:
        return {
            "address": AccountAddress.deserialize(deserializer),
            "jwt": deserializer.deserialize_str(),
            "uid_key": deserializer.deserialize_str(),
            "pepper": deserializer.deserialize_fixed_bytes(PEPPER_LENGTH),
            "ephemeral_key_pair": EphemeralKeyPair.deserialize(deserializer),
            "proof": ZeroKnowledgeSig.deserialize(deserializer),
            "verification_key_hash": deserializer.deserialize_option(
                _deserialize_verification_key_hash
            ),
        }


class KeylessAccount(AbstractKeylessAccount):
    """A keyless account whose issuer JWKs are published at 0x1."""

    public_key: KeylessPublicKey

    @classmethod
    def create(
        cls,
        *,
        jwt: str,
        ephemeral_key_pair: EphemeralKeyPair,
        pepper: bytes,
        proof: ProofOrFetch,
        uid_key: str = DEFAULT_UID_KEY,
        address: AccountAddress | None = None,
        verification_key: Groth16VerificationKey | None = None,
        verification_key_hash: bytes | None = None,
    ) -> Self:
        """Derive the public key from the JWT's claims and the pepper."""
        claims = get_iss_aud_and_uid_val(jwt, uid_key=uid_key)
        if verification_key is not None:
            verification_key_hash = verification_key.hash()
        return cls(
            KeylessPublicKey.create(
                claims.iss, uid_key, claims.uid_val, claims.aud, pepper
            ),
            ephemeral_key_pair,
            uid_key=uid_key,
            uid_val=claims.uid_val,
            aud=claims.aud,
            pepper=pepper,
            jwt=jwt,
            proof=proof,
            address=address,
            verification_key_hash=verification_key_hash,
        )

    @classmethod
    def deserialize(cls, deserializer: Deserializer) -> Self:
        return cls.create(**cls._deserialize_common(deserializer))


class FederatedKeylessAccount(AbstractKeylessAccount):
    """A keyless account whose issuer JWKs live at ``jwk_address``."""

    public_key: FederatedKeylessPublicKey

    @classmethod
    def create(
        cls,
        *,
        jwt: str,
        ephemeral_key_pair: EphemeralKeyPair,
        pepper: bytes,
        proof: ProofOrFetch,
        jwk_address: AccountAddress | str,
        uid_key: str = DEFAULT_UID_KEY,
        address: AccountAddress | None = None,
        verification_key: Groth16VerificationKey | None = None,
        verification_key_hash: bytes | None = None,
    ) -> Self:
        if isinstance(jwk_address, str):
            jwk_address = AccountAddress.from_str(jwk_address)
        claims = get_iss_aud_and_uid_val(jwt, uid_key=uid_key)
        if verification_key is not None:
            verification_key_hash = verification_key.hash()
        return cls(
            FederatedKeylessPublicKey.create(
                claims.iss, uid_key, claims.uid_val, claims.aud, pepper, jwk_address
            ),
            ephemeral_key_pair,
            uid_key=uid_key,
            uid_val=claims.uid_val,
            aud=claims.aud,
            pepper=pepper,
            jwt=jwt,
            proof=proof,
            address=address,
            verification_key_hash=verification_key_hash,
        )

    @property
    def jwk_address(self) -> AccountAddress:
        return self.public_key.jwk_address

    def serialize(self, serializer: Serializer) -> None:
        super().serialize(serializer)
        self.jwk_address.serialize(serializer)

    @classmethod
    def deserialize(cls, deserializer: Deserializer) -> Self:
        fields = cls._deserialize_common(deserializer)
        return cls.create(
            jwk_address=AccountAddress.deserialize(deserializer), **fields
        )
