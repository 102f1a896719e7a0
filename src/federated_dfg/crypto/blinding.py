"""
Commutative blinding on Curve25519 for Diffie-Hellman based PSI.

X25519 maps a secret scalar and a u-coordinate to the u-coordinate of the
scalar multiple. Because scalar multiplication commutes, blinding an element
first with key a and then with key b yields the same bytes as the reverse
order, which lets two parties compare doubly-blinded identifiers.
"""

from dataclasses import dataclass

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey, X25519PublicKey

BLINDED_BYTES = 32
HASH_DOMAIN = b"federated-dfg/psi/v1"


@dataclass
class BlindingKey:
    """Per-run secret blinding scalar. Never leaves the party that created it."""
    private_key: X25519PrivateKey


def generate_blinding_key() -> BlindingKey:
    return BlindingKey(private_key=X25519PrivateKey.generate())


def hash_to_element(data: bytes, domain: bytes = HASH_DOMAIN) -> bytes:
    """Hash arbitrary bytes to a canonical 32-byte u-coordinate."""
    digest = hashes.Hash(hashes.SHA256())
    digest.update(len(domain).to_bytes(2, "big") + domain)
    digest.update(data)
    element = bytearray(digest.finalize())
    element[31] &= 0x7F  # RFC 7748 ignores the top bit; clear it so encodings are canonical
    return bytes(element)


def blind(key: BlindingKey, element: bytes) -> bytes:
    """
    Raise an element to the blinding scalar.

    Raises ValueError for malformed input or when the element lies in a
    small-order subgroup (the shared value would be all zeros).
    """
    if len(element) != BLINDED_BYTES:
        raise ValueError(f"Blinding input must be {BLINDED_BYTES} bytes, got {len(element)}")
    peer = X25519PublicKey.from_public_bytes(element)
    return key.private_key.exchange(peer)


def fingerprint(data: bytes, length: int = 16) -> str:
    """Short SHA-256 hex fingerprint, used to tag key material."""
    digest = hashes.Hash(hashes.SHA256())
    digest.update(data)
    return digest.finalize()[:length].hex()
