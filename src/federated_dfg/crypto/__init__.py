from .blinding import (
    BLINDED_BYTES,
    BlindingKey,
    blind,
    fingerprint,
    generate_blinding_key,
    hash_to_element,
)

__all__ = [
    "BLINDED_BYTES",
    "BlindingKey",
    "blind",
    "fingerprint",
    "generate_blinding_key",
    "hash_to_element",
]
