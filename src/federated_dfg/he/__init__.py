from federated_dfg.config import HEParameters, ProtocolConfig

from .base import Ciphertext, HEBackend, KeyPair, PublicKey, SecretKey
from .trivial import TrivialBackend


def create_backend(config: ProtocolConfig) -> HEBackend:
    """Select the backend once per run from the ``secure`` flag."""
    if config.secure:
        # Imported lazily so the trivial backend works without the native SEAL build.
        from .bfv import BFVBackend

        return BFVBackend(config.he, workers=config.workers)
    return TrivialBackend(config.he, workers=config.workers)


__all__ = [
    "Ciphertext",
    "HEBackend",
    "HEParameters",
    "KeyPair",
    "PublicKey",
    "SecretKey",
    "TrivialBackend",
    "create_backend",
]
