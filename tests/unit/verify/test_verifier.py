"""Tests for keyless signature verification."""

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from keyless.core.errors import KeylessError, KeylessErrorKind, KeylessErrorType
from keyless.crypto.ephemeral import EphemeralPublicKey
from keyless.crypto.keys import AccountAddress, FederatedKeylessPublicKey, KeylessPublicKey
from keyless.crypto.signature import OpenIdSig
from keyless.jwks.models import MoveJWK
from keyless.verify.configuration import EPK_HORIZON_SECS, KeylessConfiguration
from keyless.verify.verifier import (
    verify_keyless_signature,
    verify_keyless_signature_with_jwk_and_config,
)
from conftest import EXPIRY_DATE_SECS, NOW, PEPPER, KeylessFixture, SignKeyless


def _verify(fixture: KeylessFixture, now: float = NOW) -> None:
    verify_keyless_signature_with_jwk_and_config(
        public_key=fixture.public_key,
        message=fixture.message,
        signature=fixture.signature,
        jwk=fixture.jwk,
        config=fixture.config,
        now=now,
    )


def _error_type(fixture: KeylessFixture, now: float = NOW) -> KeylessErrorType:
    with pytest.raises(KeylessError) as exc_info:
        _verify(fixture, now=now)
    return exc_info.value.error_type


def _with_training_wheels(
    config: KeylessConfiguration, key: Ed25519PrivateKey
) -> KeylessConfiguration:
    raw = key.public_key().public_bytes(
        encoding=serialization.Encoding.Raw, format=serialization.PublicFormat.Raw
    )
    return config.model_copy(
        update={"training_wheels_pubkey": EphemeralPublicKey(key=raw)}
    )


def _flip_bit(data: bytes, index: int = 0) -> bytes:
    return data[:index] + bytes([data[index] ^ 0x01]) + data[index + 1 :]


class TestValidSignatures:
    """Signatures that must verify."""

    def test_valid_signature(self, keyless_fixture: KeylessFixture) -> None:
        _verify(keyless_fixture)
        assert verify_keyless_signature(
            public_key=keyless_fixture.public_key,
            message=keyless_fixture.message,
            signature=keyless_fixture.signature,
            jwk=keyless_fixture.jwk,
            config=keyless_fixture.config,
            now=NOW,
        )

    def test_public_key_method(self, keyless_fixture: KeylessFixture) -> None:
        assert keyless_fixture.public_key.verify_signature(
            keyless_fixture.message,
            keyless_fixture.signature,
            keyless_fixture.jwk,
            keyless_fixture.config,
            now=NOW,
        )

    def test_default_clock(self, keyless_fixture: KeylessFixture) -> None:
        verify_keyless_signature_with_jwk_and_config(
            public_key=keyless_fixture.public_key,
            message=keyless_fixture.message,
            signature=keyless_fixture.signature,
            jwk=keyless_fixture.jwk,
            config=keyless_fixture.config,
        )

    def test_expiry_equal_to_now(self, keyless_fixture: KeylessFixture) -> None:
        _verify(keyless_fixture, now=EXPIRY_DATE_SECS)

    def test_horizon_equal_to_maximum(self, sign_keyless: SignKeyless) -> None:
        _verify(sign_keyless(exp_horizon_secs=EPK_HORIZON_SECS))

    def test_extra_field_and_override_aud(self, sign_keyless: SignKeyless) -> None:
        _verify(
            sign_keyless(
                extra_field='"family_name":"Doe",', override_aud_val="recovery-aud"
            )
        )

    def test_federated_public_key(
        self, sign_keyless: SignKeyless, keyless_public_key: KeylessPublicKey
    ) -> None:
        federated = FederatedKeylessPublicKey(
            jwk_address=AccountAddress.from_str("0xfed"),
            keyless_public_key=keyless_public_key,
        )
        fixture = sign_keyless(public_key=federated)
        _verify(fixture)
        assert federated.verify_signature(
            fixture.message, fixture.signature, fixture.jwk, fixture.config, now=NOW
        )

    def test_training_wheels_signature(
        self,
        sign_keyless: SignKeyless,
        keyless_config: KeylessConfiguration,
        training_wheels_key: Ed25519PrivateKey,
    ) -> None:
        config = _with_training_wheels(keyless_config, training_wheels_key)
        _verify(sign_keyless(config=config, training_wheels_key=training_wheels_key))


class TestRejections:
    """Each check rejects with its own error type."""

    def test_not_a_keyless_signature(self, keyless_fixture: KeylessFixture) -> None:
        fixture = keyless_fixture._replace(signature=b"not a signature")
        assert _error_type(fixture) == KeylessErrorType.SIGNATURE_TYPE_INVALID

    def test_open_id_certificate(self, keyless_fixture: KeylessFixture) -> None:
        certificate = OpenIdSig(
            jwt_sig=b"sig",
            jwt_payload_json="{}",
            uid_key="sub",
            epk_blinder=bytes(31),
            pepper=PEPPER,
        )
        signature = keyless_fixture.signature.model_copy(
            update={"ephemeral_certificate": certificate}
        )
        fixture = keyless_fixture._replace(signature=signature)
        assert _error_type(fixture) == KeylessErrorType.SIGNATURE_TYPE_INVALID

    def test_expired(self, keyless_fixture: KeylessFixture) -> None:
        with pytest.raises(KeylessError) as exc_info:
            _verify(keyless_fixture, now=EXPIRY_DATE_SECS + 1)
        assert exc_info.value.error_type == KeylessErrorType.SIGNATURE_EXPIRED
        assert exc_info.value.kind == KeylessErrorKind.TEMPORAL

    def test_horizon_above_maximum(self, sign_keyless: SignKeyless) -> None:
        fixture = sign_keyless(exp_horizon_secs=EPK_HORIZON_SECS + 1)
        assert _error_type(fixture) == KeylessErrorType.MAX_EXPIRY_HORIZON_EXCEEDED

    def test_horizon_against_configured_maximum(
        self, sign_keyless: SignKeyless, keyless_config: KeylessConfiguration
    ) -> None:
        config = keyless_config.model_copy(update={"max_exp_horizon_secs": 3600})
        fixture = sign_keyless(config=config)
        assert _error_type(fixture) == KeylessErrorType.MAX_EXPIRY_HORIZON_EXCEEDED

    def test_other_message(self, keyless_fixture: KeylessFixture) -> None:
        fixture = keyless_fixture._replace(message=b"a different message")
        assert (
            _error_type(fixture)
            == KeylessErrorType.EPHEMERAL_SIGNATURE_VERIFICATION_FAILED
        )

    def test_expiry_checked_before_ephemeral_signature(
        self, keyless_fixture: KeylessFixture
    ) -> None:
        fixture = keyless_fixture._replace(message=b"a different message")
        assert (
            _error_type(fixture, now=EXPIRY_DATE_SECS + 1)
            == KeylessErrorType.SIGNATURE_EXPIRED
        )

    def test_other_jwk(self, keyless_fixture: KeylessFixture) -> None:
        other = keyless_fixture.jwk.model_copy(
            update={"n": keyless_fixture.jwk.n[:-4] + "AAAA"}
        )
        fixture = keyless_fixture._replace(jwk=other)
        assert _error_type(fixture) == KeylessErrorType.PROOF_VERIFICATION_FAILED

    def test_other_identity(self, keyless_fixture: KeylessFixture) -> None:
        other = KeylessPublicKey(
            iss=keyless_fixture.public_key.iss,
            id_commitment=_flip_bit(keyless_fixture.public_key.id_commitment),
        )
        fixture = keyless_fixture._replace(public_key=other)
        assert _error_type(fixture) == KeylessErrorType.PROOF_VERIFICATION_FAILED

    def test_other_expiry(self, keyless_fixture: KeylessFixture) -> None:
        signature = keyless_fixture.signature.model_copy(
            update={"expiry_date_secs": keyless_fixture.signature.expiry_date_secs ^ 1}
        )
        fixture = keyless_fixture._replace(signature=signature)
        assert _error_type(fixture) == KeylessErrorType.PROOF_VERIFICATION_FAILED

    def test_other_issuer(self, keyless_fixture: KeylessFixture) -> None:
        iss = keyless_fixture.public_key.iss
        other = keyless_fixture.public_key.model_copy(
            update={"iss": chr(ord(iss[0]) ^ 1) + iss[1:]}
        )
        fixture = keyless_fixture._replace(public_key=other)
        assert _error_type(fixture) == KeylessErrorType.PROOF_VERIFICATION_FAILED

    def test_tampered_extra_field(self, sign_keyless: SignKeyless) -> None:
        fixture = sign_keyless(extra_field='"family_name":"Doe",')
        certificate = fixture.signature.ephemeral_certificate.model_copy(
            update={"extra_field": '"family_name":"Roe",'}
        )
        signature = fixture.signature.model_copy(
            update={"ephemeral_certificate": certificate}
        )
        assert (
            _error_type(fixture._replace(signature=signature))
            == KeylessErrorType.PROOF_VERIFICATION_FAILED
        )

    @pytest.mark.parametrize("field", ["a", "b", "c"])
    def test_proof_bit_flip(self, keyless_fixture: KeylessFixture, field: str) -> None:
        certificate = keyless_fixture.signature.ephemeral_certificate
        groth16 = certificate.proof.proof
        flipped = groth16.model_copy(update={field: _flip_bit(getattr(groth16, field))})
        certificate = certificate.model_copy(
            update={"proof": certificate.proof.model_copy(update={"proof": flipped})}
        )
        signature = keyless_fixture.signature.model_copy(
            update={"ephemeral_certificate": certificate}
        )
        fixture = keyless_fixture._replace(signature=signature)
        assert _error_type(fixture) == KeylessErrorType.PROOF_VERIFICATION_FAILED

    def test_oversized_public_input(self, keyless_fixture: KeylessFixture) -> None:
        config = keyless_fixture.config.model_copy(update={"max_iss_val_bytes": 4})
        fixture = keyless_fixture._replace(config=config)
        assert _error_type(fixture) == KeylessErrorType.PUBLIC_INPUT_TOO_LONG

    def test_training_wheels_signature_missing(
        self,
        keyless_fixture: KeylessFixture,
        training_wheels_key: Ed25519PrivateKey,
    ) -> None:
        config = _with_training_wheels(keyless_fixture.config, training_wheels_key)
        fixture = keyless_fixture._replace(config=config)
        assert (
            _error_type(fixture) == KeylessErrorType.TRAINING_WHEELS_SIGNATURE_MISSING
        )

    def test_training_wheels_signature_from_other_key(
        self,
        sign_keyless: SignKeyless,
        keyless_config: KeylessConfiguration,
        training_wheels_key: Ed25519PrivateKey,
    ) -> None:
        config = _with_training_wheels(keyless_config, training_wheels_key)
        fixture = sign_keyless(
            config=config, training_wheels_key=Ed25519PrivateKey.generate()
        )
        assert (
            _error_type(fixture)
            == KeylessErrorType.TRAINING_WHEELS_SIGNATURE_VERIFICATION_FAILED
        )

    def test_bool_form_fails_closed(self, keyless_fixture: KeylessFixture) -> None:
        assert not verify_keyless_signature(
            public_key=keyless_fixture.public_key,
            message=b"a different message",
            signature=keyless_fixture.signature,
            jwk=keyless_fixture.jwk,
            config=keyless_fixture.config,
            now=NOW,
        )

    def test_unsupported_jwk_algorithm(self, keyless_fixture: KeylessFixture) -> None:
        jwk: MoveJWK = keyless_fixture.jwk.model_copy(update={"alg": "RS512"})
        fixture = keyless_fixture._replace(jwk=jwk)
        assert _error_type(fixture) == KeylessErrorType.JWK_ALGORITHM_UNSUPPORTED
