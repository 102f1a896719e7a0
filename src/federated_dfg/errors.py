"""Error taxonomy for a protocol run. Every error here is fatal to the run."""

from __future__ import annotations

from typing import Optional


class FederatedDFGError(RuntimeError):
    """Base class for all protocol errors."""

    def __init__(self, message: str, phase: Optional[str] = None) -> None:
        super().__init__(message)
        self.phase = phase


class ReconciliationError(FederatedDFGError):
    """Raised when pair identifiers are malformed or the PSI exchange is inconsistent."""


class HEError(FederatedDFGError):
    """Base class for homomorphic encryption failures."""


class KeyMismatch(HEError):
    """Raised when ciphertexts or keys from different key pairs are combined."""


class InvalidKey(KeyMismatch):
    """Raised when a key is malformed or does not belong to the ciphertext."""


class NoiseBudgetExceeded(HEError):
    """Raised when BFV parameters cannot carry one addition with a usable noise budget."""


class PlaintextOverflow(HEError):
    """Raised when a plaintext lies outside the range the backend can add safely."""


class LengthMismatch(FederatedDFGError):
    """Raised when a vector does not match the length of the PairIndex."""


class ProtocolStateError(FederatedDFGError):
    """Raised when a protocol step is invoked out of order."""


class ProtocolAborted(FederatedDFGError):
    """Raised by the orchestrator when a run fails; names the failed phase."""

    def __init__(self, phase: str, cause: BaseException) -> None:
        super().__init__(f"Protocol aborted during phase '{phase}': {cause}", phase=phase)
        self.cause = cause
