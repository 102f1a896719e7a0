"""Fast, non-confidential backend used to validate protocol shape and timing."""

from __future__ import annotations

import secrets
from typing import Any

from federated_dfg.errors import InvalidKey
from federated_dfg.he.base import Ciphertext, HEBackend, KeyPair, PublicKey, SecretKey

KEY_ID_BYTES = 16
VALUE_BYTES = 8


class TrivialBackend(HEBackend):
    """
    Stores plaintext integers inside Ciphertext envelopes.

    Key ids are still random per run, so KeyMismatch/InvalidKey behave exactly
    as with the secure backend. Provides no confidentiality.
    """

    name = "trivial"

    def generate_keys(self) -> KeyPair:
        key_id = secrets.token_hex(KEY_ID_BYTES)
        return KeyPair(
            public_key=PublicKey(self.name, key_id, handle=key_id),
            secret_key=SecretKey(self.name, key_id, handle=key_id),
        )

    def _encrypt(self, plaintext: int, public_key: PublicKey) -> Any:
        return plaintext

    def _add(self, p1: Any, p2: Any) -> Any:
        return p1 + p2

    def _decrypt(self, payload: Any, secret_key: SecretKey) -> int:
        return int(payload)

    def export_public_key(self, public_key: PublicKey) -> bytes:
        self._check_key(public_key, PublicKey)
        return bytes.fromhex(public_key.key_id)

    def load_public_key(self, data: bytes) -> PublicKey:
        if len(data) != KEY_ID_BYTES:
            raise InvalidKey(f"Trivial public key must be {KEY_ID_BYTES} bytes, got {len(data)}")
        key_id = data.hex()
        return PublicKey(self.name, key_id, handle=key_id)

    def ciphertext_to_bytes(self, ciphertext: Ciphertext) -> bytes:
        return int(ciphertext.payload).to_bytes(VALUE_BYTES, "big")

    def ciphertext_from_bytes(self, data: bytes, public_key: PublicKey) -> Ciphertext:
        self._check_key(public_key, PublicKey)
        return Ciphertext(self.name, public_key.key_id, int.from_bytes(data, "big"))
