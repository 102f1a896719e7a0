"""Capability interface shared by every homomorphic encryption backend."""

from __future__ import annotations

from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, List, Sequence, TypeVar

from federated_dfg.config import HEParameters
from federated_dfg.errors import InvalidKey, KeyMismatch, LengthMismatch, PlaintextOverflow

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class PublicKey:
    """Public encryption material, safe to hand to the contributing party."""
    backend: str
    key_id: str
    handle: Any


@dataclass(frozen=True)
class SecretKey:
    """Secret decryption material, owned by the decrypting party only."""
    backend: str
    key_id: str
    handle: Any


@dataclass(frozen=True)
class KeyPair:
    public_key: PublicKey
    secret_key: SecretKey


@dataclass(frozen=True)
class Ciphertext:
    """One encrypted slot, tagged with the key it was produced under."""
    backend: str
    key_id: str
    payload: Any


class HEBackend(ABC):
    """
    Additively homomorphic encryption over non-negative integers.

    Subclasses implement the four scheme operations; key/ciphertext bookkeeping,
    plaintext bounds and slot-wise vector helpers live here so every backend
    fails the same way on the same misuse.
    """

    name: str = "abstract"

    def __init__(self, params: HEParameters | None = None, workers: int = 1) -> None:
        self.params = params or HEParameters()
        self.workers = workers

    @property
    def max_plaintext(self) -> int:
        return self.params.max_plaintext

    # Scheme operations -----------------------------------------------------

    @abstractmethod
    def generate_keys(self) -> KeyPair:
        ...

    def encrypt(self, plaintext: int, public_key: PublicKey) -> Ciphertext:
        self._check_key(public_key, PublicKey)
        self._check_plaintext(plaintext)
        return Ciphertext(self.name, public_key.key_id, self._encrypt(int(plaintext), public_key))

    def add(self, c1: Ciphertext, c2: Ciphertext) -> Ciphertext:
        for ct in (c1, c2):
            if not isinstance(ct, Ciphertext) or ct.backend != self.name:
                raise KeyMismatch(f"Ciphertext was not produced by the {self.name} backend")
        if c1.key_id != c2.key_id:
            raise KeyMismatch(f"Cannot add ciphertexts under keys {c1.key_id} and {c2.key_id}")
        return Ciphertext(self.name, c1.key_id, self._add(c1.payload, c2.payload))

    def decrypt(self, ciphertext: Ciphertext, secret_key: SecretKey) -> int:
        self._check_key(secret_key, SecretKey)
        if not isinstance(ciphertext, Ciphertext) or ciphertext.backend != self.name:
            raise InvalidKey(f"Ciphertext was not produced by the {self.name} backend")
        if ciphertext.key_id != secret_key.key_id:
            raise InvalidKey(
                f"Secret key {secret_key.key_id} does not match ciphertext key {ciphertext.key_id}"
            )
        return self._decrypt(ciphertext.payload, secret_key)

    @abstractmethod
    def _encrypt(self, plaintext: int, public_key: PublicKey) -> Any:
        ...

    @abstractmethod
    def _add(self, p1: Any, p2: Any) -> Any:
        ...

    @abstractmethod
    def _decrypt(self, payload: Any, secret_key: SecretKey) -> int:
        ...

    # Wire format -----------------------------------------------------------

    @abstractmethod
    def export_public_key(self, public_key: PublicKey) -> bytes:
        ...

    @abstractmethod
    def load_public_key(self, data: bytes) -> PublicKey:
        ...

    @abstractmethod
    def ciphertext_to_bytes(self, ciphertext: Ciphertext) -> bytes:
        ...

    @abstractmethod
    def ciphertext_from_bytes(self, data: bytes, public_key: PublicKey) -> Ciphertext:
        ...

    # Slot-wise helpers -----------------------------------------------------

    def encrypt_vector(self, vector: Sequence[int], public_key: PublicKey) -> List[Ciphertext]:
        return self._map_slots(lambda value: self.encrypt(value, public_key), vector)

    def add_vectors(self, left: Sequence[Ciphertext], right: Sequence[Ciphertext]) -> List[Ciphertext]:
        if len(left) != len(right):
            raise LengthMismatch(f"Ciphertext vectors differ in length ({len(left)} != {len(right)})")
        return self._map_slots(lambda pair: self.add(pair[0], pair[1]), list(zip(left, right)))

    def decrypt_vector(self, vector: Sequence[Ciphertext], secret_key: SecretKey) -> List[int]:
        return self._map_slots(lambda ct: self.decrypt(ct, secret_key), vector)

    def _map_slots(self, fn: Callable[[T], R], items: Sequence[T]) -> List[R]:
        """Apply fn per slot; results keep slot order regardless of completion order."""
        if self.workers <= 1 or len(items) <= 1:
            return [fn(item) for item in items]
        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            return list(pool.map(fn, items))

    # Validation ------------------------------------------------------------

    def _check_key(self, key: Any, expected: type) -> None:
        if not isinstance(key, expected):
            raise InvalidKey(f"Expected {expected.__name__}, got {type(key).__name__}")
        if key.backend != self.name:
            raise InvalidKey(f"Key belongs to backend '{key.backend}', not '{self.name}'")
        if key.handle is None:
            raise InvalidKey(f"{expected.__name__} {key.key_id} carries no key material")

    def _check_plaintext(self, plaintext: int) -> None:
        if isinstance(plaintext, bool) or not isinstance(plaintext, int):
            raise PlaintextOverflow(f"Plaintext must be an integer, got {type(plaintext).__name__}")
        if plaintext < 0 or plaintext >= self.max_plaintext:
            raise PlaintextOverflow(
                f"Plaintext {plaintext} outside [0, {self.max_plaintext}) for "
                f"{self.params.plain_modulus_bits}-bit plaintext modulus"
            )
