"""Custom exceptions for the privacy pool SDK."""

from enum import Enum
from typing import Optional


class PrivacyPoolException(Exception):
    """Base exception for all privacy pool errors."""
    pass


# Cryptography Errors
class CryptoError(PrivacyPoolException):
    """Base exception for cryptographic errors."""
    pass


class InvalidCommitmentError(CryptoError):
    """Raised when a commitment's hashes do not match its preimage."""
    pass


class InvalidSecretError(CryptoError):
    """Raised when secret material is not a valid field element."""
    pass


# Proof Errors
class ErrorCode(str, Enum):
    """Failure categories carried by ProofError."""
    ARTIFACTS_UNAVAILABLE = "ARTIFACTS_UNAVAILABLE"
    INVALID_VERIFICATION_KEY = "INVALID_VERIFICATION_KEY"
    INVALID_WITNESS = "INVALID_WITNESS"
    PROOF_GENERATION_FAILED = "PROOF_GENERATION_FAILED"
    VERIFICATION_FAILED = "VERIFICATION_FAILED"


class ProofError(PrivacyPoolException):
    """
    Single error type surfaced by every proof operation.

    The original failure is kept as ``cause`` and chained as ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.PROOF_GENERATION_FAILED,
        circuit: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.code = code
        self.circuit = circuit
        self.cause = cause

    def __str__(self) -> str:
        base = super().__str__()
        if self.cause is not None:
            return f"[{self.code.value}] {base}: {self.cause}"
        return f"[{self.code.value}] {base}"


# Account Errors
class AccountError(PrivacyPoolException):
    """Raised when an account operation references unknown state."""
    pass


# Collaborator Errors
class ArtifactError(PrivacyPoolException):
    """Raised by artifact providers when circuit files cannot be loaded."""
    pass


class BackendError(PrivacyPoolException):
    """Raised by proving backends when the prover fails."""
    pass


# Configuration Errors
class ConfigurationError(PrivacyPoolException):
    """Raised when settings are inconsistent."""
    pass
