"""Keyless failure taxonomy shared by every verification stage."""

from enum import StrEnum
from typing import NamedTuple


class KeylessErrorKind(StrEnum):
    """Coarse failure class used to decide how a caller reacts."""

    FORMAT = "format"
    TEMPORAL = "temporal"
    CRYPTOGRAPHIC = "cryptographic"
    LOOKUP = "lookup"
    INVALID_STATE = "invalid_state"
    UNKNOWN = "unknown"


class KeylessErrorTip(StrEnum):
    """Suggested remediation shown alongside an error."""

    REAUTHENTICATE = "Re-authenticate to continue using the keyless account."
    REAUTHENTICATE_UNSURE = (
        "Try re-authenticating. If the error persists the on-chain state may "
        "be inconsistent with the identity provider."
    )
    UPDATE_REQUEST_PARAMS = "Update the invalid request parameters and re-authenticate."
    SERVER_ERROR = "Try again later. The inner error carries the full node response."
    REINSTANTIATE = "Rebuild the account from a fresh JWT and pepper."
    CALL_PRECHECK = "Call check_keyless_account_validity() before signing."
    UNKNOWN = "Unexpected failure. Inspect the inner error for context."


class KeylessErrorType(StrEnum):
    """Every concrete reason a keyless operation can fail."""

    SIGNATURE_TYPE_INVALID = "SIGNATURE_TYPE_INVALID"
    SIGNATURE_EXPIRED = "SIGNATURE_EXPIRED"
    MAX_EXPIRY_HORIZON_EXCEEDED = "MAX_EXPIRY_HORIZON_EXCEEDED"
    EPHEMERAL_SIGNATURE_VERIFICATION_FAILED = "EPHEMERAL_SIGNATURE_VERIFICATION_FAILED"
    PROOF_VERIFICATION_FAILED = "PROOF_VERIFICATION_FAILED"
    TRAINING_WHEELS_SIGNATURE_MISSING = "TRAINING_WHEELS_SIGNATURE_MISSING"
    TRAINING_WHEELS_SIGNATURE_VERIFICATION_FAILED = (
        "TRAINING_WHEELS_SIGNATURE_VERIFICATION_FAILED"
    )
    EPHEMERAL_KEY_PAIR_EXPIRED = "EPHEMERAL_KEY_PAIR_EXPIRED"
    PROOF_NOT_FOUND = "PROOF_NOT_FOUND"
    ASYNC_PROOF_FETCH_FAILED = "ASYNC_PROOF_FETCH_FAILED"
    INVALID_PROOF_VERIFICATION_KEY_NOT_FOUND = (
        "INVALID_PROOF_VERIFICATION_KEY_NOT_FOUND"
    )
    PUBLIC_INPUT_TOO_LONG = "PUBLIC_INPUT_TOO_LONG"
    JWK_ALGORITHM_UNSUPPORTED = "JWK_ALGORITHM_UNSUPPORTED"
    JWT_PARSING_ERROR = "JWT_PARSING_ERROR"
    INVALID_JWT_SIG = "INVALID_JWT_SIG"
    INVALID_JWT_ISS_NOT_RECOGNIZED = "INVALID_JWT_ISS_NOT_RECOGNIZED"
    INVALID_JWT_JWK_NOT_FOUND = "INVALID_JWT_JWK_NOT_FOUND"
    JWK_FETCH_FAILED = "JWK_FETCH_FAILED"
    FULL_NODE_CONFIG_LOOKUP_ERROR = "FULL_NODE_CONFIG_LOOKUP_ERROR"
    FULL_NODE_VERIFICATION_KEY_LOOKUP_ERROR = "FULL_NODE_VERIFICATION_KEY_LOOKUP_ERROR"
    FULL_NODE_JWKS_LOOKUP_ERROR = "FULL_NODE_JWKS_LOOKUP_ERROR"
    FULL_NODE_OTHER = "FULL_NODE_OTHER"
    UNKNOWN = "UNKNOWN"


class _ErrorInfo(NamedTuple):
    """Static description of one error type."""

    message: str
    kind: KeylessErrorKind
    tip: KeylessErrorTip
    retryable: bool = False


_T = KeylessErrorType
_K = KeylessErrorKind
_TIP = KeylessErrorTip

_ERROR_INFO: dict[KeylessErrorType, _ErrorInfo] = {
    _T.SIGNATURE_TYPE_INVALID: _ErrorInfo(
        "The signature is not a valid zero-knowledge keyless signature.",
        _K.FORMAT,
        _TIP.REINSTANTIATE,
    ),
    _T.SIGNATURE_EXPIRED: _ErrorInfo(
        "The ephemeral key pair used to sign the message has expired.",
        _K.TEMPORAL,
        _TIP.REAUTHENTICATE,
    ),
    _T.MAX_EXPIRY_HORIZON_EXCEEDED: _ErrorInfo(
        "The expiry horizon on the signature exceeds the maximum allowed value.",
        _K.TEMPORAL,
        _TIP.REAUTHENTICATE,
    ),
    _T.EPHEMERAL_SIGNATURE_VERIFICATION_FAILED: _ErrorInfo(
        "Failed to verify the ephemeral signature with the ephemeral public key.",
        _K.CRYPTOGRAPHIC,
        _TIP.REAUTHENTICATE,
    ),
    _T.PROOF_VERIFICATION_FAILED: _ErrorInfo(
        "The proof verification failed.",
        _K.CRYPTOGRAPHIC,
        _TIP.REAUTHENTICATE,
    ),
    _T.TRAINING_WHEELS_SIGNATURE_MISSING: _ErrorInfo(
        "The training wheels signature is missing but is required by the "
        "keyless configuration.",
        _K.CRYPTOGRAPHIC,
        _TIP.REAUTHENTICATE,
    ),
    _T.TRAINING_WHEELS_SIGNATURE_VERIFICATION_FAILED: _ErrorInfo(
        "Failed to verify the training wheels signature with the training "
        "wheels public key.",
        _K.CRYPTOGRAPHIC,
        _TIP.REAUTHENTICATE,
    ),
    _T.EPHEMERAL_KEY_PAIR_EXPIRED: _ErrorInfo(
        "The ephemeral key pair has expired.",
        _K.TEMPORAL,
        _TIP.REAUTHENTICATE,
    ),
    _T.PROOF_NOT_FOUND: _ErrorInfo(
        "The required proof could not be found.",
        _K.INVALID_STATE,
        _TIP.CALL_PRECHECK,
    ),
    _T.ASYNC_PROOF_FETCH_FAILED: _ErrorInfo(
        "The required proof failed to fetch.",
        _K.INVALID_STATE,
        _TIP.REAUTHENTICATE_UNSURE,
    ),
    _T.INVALID_PROOF_VERIFICATION_KEY_NOT_FOUND: _ErrorInfo(
        "The verification key used to authenticate was updated.",
        _K.TEMPORAL,
        _TIP.REAUTHENTICATE,
    ),
    _T.PUBLIC_INPUT_TOO_LONG: _ErrorInfo(
        "A public input exceeds the size the circuit accepts.",
        _K.FORMAT,
        _TIP.UPDATE_REQUEST_PARAMS,
    ),
    _T.JWK_ALGORITHM_UNSUPPORTED: _ErrorInfo(
        "The JWK uses an algorithm other than RS256.",
        _K.FORMAT,
        _TIP.REAUTHENTICATE_UNSURE,
    ),
    _T.JWT_PARSING_ERROR: _ErrorInfo(
        "Error when parsing the JWT.",
        _K.FORMAT,
        _TIP.REINSTANTIATE,
    ),
    _T.INVALID_JWT_SIG: _ErrorInfo(
        "The JWK was found, but the JWT failed verification.",
        _K.CRYPTOGRAPHIC,
        _TIP.REAUTHENTICATE_UNSURE,
    ),
    _T.INVALID_JWT_ISS_NOT_RECOGNIZED: _ErrorInfo(
        "The JWT issuer is not recognized.",
        _K.LOOKUP,
        _TIP.UPDATE_REQUEST_PARAMS,
    ),
    _T.INVALID_JWT_JWK_NOT_FOUND: _ErrorInfo(
        "The JWK required to verify the JWT could not be found. "
        "The JWK may have been rotated out.",
        _K.LOOKUP,
        _TIP.REAUTHENTICATE,
    ),
    _T.JWK_FETCH_FAILED: _ErrorInfo(
        "Failed to fetch the issuer JWKS.",
        _K.LOOKUP,
        _TIP.SERVER_ERROR,
        retryable=True,
    ),
    _T.FULL_NODE_CONFIG_LOOKUP_ERROR: _ErrorInfo(
        "Error when looking up the on-chain keyless configuration.",
        _K.LOOKUP,
        _TIP.SERVER_ERROR,
        retryable=True,
    ),
    _T.FULL_NODE_VERIFICATION_KEY_LOOKUP_ERROR: _ErrorInfo(
        "Error when looking up the on-chain verification key.",
        _K.LOOKUP,
        _TIP.SERVER_ERROR,
        retryable=True,
    ),
    _T.FULL_NODE_JWKS_LOOKUP_ERROR: _ErrorInfo(
        "Error when looking up the on-chain JWKS.",
        _K.LOOKUP,
        _TIP.SERVER_ERROR,
        retryable=True,
    ),
    _T.FULL_NODE_OTHER: _ErrorInfo(
        "Unknown error from the full node.",
        _K.LOOKUP,
        _TIP.SERVER_ERROR,
        retryable=True,
    ),
    _T.UNKNOWN: _ErrorInfo(
        "An unknown error has occurred.",
        _K.UNKNOWN,
        _TIP.UNKNOWN,
    ),
}


class KeylessError(Exception):
    """A classified keyless failure with optional details and cause."""

    def __init__(
        self,
        error_type: KeylessErrorType,
        *,
        details: str | None = None,
        inner_error: BaseException | None = None,
    ) -> None:
        info = _ERROR_INFO[error_type]
        self.error_type = error_type
        self.kind = info.kind
        self.tip = info.tip
        self.retryable = info.retryable
        self.details = details
        self.inner_error = inner_error
        super().__init__(
            self.construct_message(info.message, info.tip, details, inner_error)
        )

    @staticmethod
    def construct_message(
        message: str,
        tip: KeylessErrorTip,
        details: str | None = None,
        inner_error: BaseException | None = None,
    ) -> str:
        """Render the multi-line message carried by the exception."""
        lines = [f"Message: {message}"]
        if details:
            lines.append(f"Details: {details}")
        if inner_error is not None:
            lines.append(f"Error: {inner_error}")
        lines.append(f"Tip: {tip}")
        return "\n".join(lines)


def error_info(error_type: KeylessErrorType) -> tuple[str, KeylessErrorKind]:
    """Return the default message and kind for an error type."""
    info = _ERROR_INFO[error_type]
    return info.message, info.kind
