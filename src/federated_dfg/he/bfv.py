"""BFV backend built on Pyfhel (Microsoft SEAL)."""

from __future__ import annotations

from typing import Any

import numpy as np

try:
    from Pyfhel import PyCtxt, Pyfhel
except ImportError as exc:  # pragma: no cover - dependency guard
    raise ImportError(
        "The secure backend needs 'Pyfhel'. Install project requirements first, e.g. "
        "`python3 -m pip install -e .[bfv]`.",
    ) from exc

from federated_dfg.crypto import fingerprint
from federated_dfg.errors import InvalidKey, NoiseBudgetExceeded
from federated_dfg.he.base import Ciphertext, HEBackend, KeyPair, PublicKey, SecretKey
from federated_dfg.utils import get_logger

logger = get_logger("he.bfv")

LENGTH_PREFIX_BYTES = 4

# What SEAL exceptions become once Cython translates them.
NATIVE_ERRORS = (RuntimeError, TypeError, ValueError, IndexError, OSError, MemoryError)


def _pack(*parts: bytes) -> bytes:
    return b"".join(len(part).to_bytes(LENGTH_PREFIX_BYTES, "big") + part for part in parts)


def _unpack(data: bytes) -> list[bytes]:
    parts: list[bytes] = []
    offset = 0
    while offset < len(data):
        if offset + LENGTH_PREFIX_BYTES > len(data):
            raise InvalidKey("Truncated public key encoding")
        size = int.from_bytes(data[offset : offset + LENGTH_PREFIX_BYTES], "big")
        offset += LENGTH_PREFIX_BYTES
        if offset + size > len(data):
            raise InvalidKey("Truncated public key encoding")
        parts.append(data[offset : offset + size])
        offset += size
    return parts


class BFVBackend(HEBackend):
    """
    Batching BFV with one frequency per ciphertext (slot 0).

    The decrypting party keeps the full Pyfhel context as its secret key; the
    public key is a separate context rebuilt from the serialized parameters and
    public key only, so the contributing party never holds secret material.
    """

    name = "bfv"

    def generate_keys(self) -> KeyPair:
        he = Pyfhel()
        he.contextGen(
            scheme="bfv",
            n=self.params.poly_modulus_degree,
            t_bits=self.params.plain_modulus_bits,
            sec=self.params.security_level,
        )
        he.keyGen()
        context_bytes = he.to_bytes_context()
        public_bytes = he.to_bytes_public_key()
        key_id = fingerprint(context_bytes + public_bytes)
        public_key = PublicKey(self.name, key_id, handle=self._public_context(context_bytes, public_bytes))
        secret_key = SecretKey(self.name, key_id, handle=he)
        self._probe_noise_budget(public_key, secret_key)
        logger.info(
            "Generated BFV keys %s (n=%d, t=%d, sec=%d)",
            key_id,
            self.params.poly_modulus_degree,
            he.t,
            self.params.security_level,
        )
        return KeyPair(public_key=public_key, secret_key=secret_key)

    def _probe_noise_budget(self, public_key: PublicKey, secret_key: SecretKey) -> None:
        """Check that one encryption plus one addition keeps the noise budget above the minimum."""
        largest = self.max_plaintext - 1
        probe = self._add(self._encrypt(largest, public_key), self._encrypt(largest, public_key))
        budget = secret_key.handle.noise_level(probe)
        if budget < self.params.min_noise_budget_bits:
            raise NoiseBudgetExceeded(
                f"BFV parameters leave {budget} bits of noise budget after one addition; "
                f"at least {self.params.min_noise_budget_bits} required"
            )
        if self._decrypt(probe, secret_key) != 2 * largest:
            raise NoiseBudgetExceeded("BFV parameters cannot represent the sum of two maximal plaintexts")
        logger.debug("Noise budget after one addition: %d bits", budget)

    @staticmethod
    def _public_context(context_bytes: bytes, public_bytes: bytes) -> Pyfhel:
        he = Pyfhel()
        he.from_bytes_context(context_bytes)
        he.from_bytes_public_key(public_bytes)
        return he

    def _encrypt(self, plaintext: int, public_key: PublicKey) -> Any:
        return public_key.handle.encryptInt(np.array([plaintext], dtype=np.int64))

    def _add(self, p1: Any, p2: Any) -> Any:
        return p1 + p2

    def _decrypt(self, payload: Any, secret_key: SecretKey) -> int:
        he: Pyfhel = secret_key.handle
        if he.noise_level(payload) <= 0:
            raise NoiseBudgetExceeded("Ciphertext noise budget exhausted; decryption would be unreliable")
        return int(he.decryptInt(payload)[0])

    def export_public_key(self, public_key: PublicKey) -> bytes:
        self._check_key(public_key, PublicKey)
        he: Pyfhel = public_key.handle
        return _pack(he.to_bytes_context(), he.to_bytes_public_key())

    def load_public_key(self, data: bytes) -> PublicKey:
        parts = _unpack(data)
        if len(parts) != 2:
            raise InvalidKey(f"BFV public key must carry context and key, got {len(parts)} parts")
        context_bytes, public_bytes = parts
        try:
            handle = self._public_context(context_bytes, public_bytes)
        except NATIVE_ERRORS as exc:
            raise InvalidKey(f"Malformed BFV public key: {exc}") from exc
        return PublicKey(self.name, fingerprint(context_bytes + public_bytes), handle=handle)

    def ciphertext_to_bytes(self, ciphertext: Ciphertext) -> bytes:
        return ciphertext.payload.to_bytes()

    def ciphertext_from_bytes(self, data: bytes, public_key: PublicKey) -> Ciphertext:
        self._check_key(public_key, PublicKey)
        try:
            payload = PyCtxt(pyfhel=public_key.handle, bytestring=data)
        except NATIVE_ERRORS as exc:
            raise InvalidKey(f"Malformed BFV ciphertext for key {public_key.key_id}: {exc}") from exc
        return Ciphertext(self.name, public_key.key_id, payload)
