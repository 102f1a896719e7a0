import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

SUPPORTED_POLY_DEGREES = (4096, 8192, 16384, 32768)
SUPPORTED_SECURITY_LEVELS = (128, 192, 256)


def _flag(data: Mapping[str, Any], key: str, default: bool) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise ValueError(f"{key} must be true or false, got {value!r}")
    return value


class DecryptingRole(str, Enum):
    """Which of the two input tables belongs to the secret-key holder."""

    A = "a"
    B = "b"


@dataclass
class HEParameters:
    """
    Scheme parameters for the BFV backend.

    The trivial backend only reads ``plain_modulus_bits`` so that both backends
    enforce the same plaintext bound.

    Attributes:
        poly_modulus_degree: Ring dimension n.
        plain_modulus_bits: Bit size of the batching plaintext modulus t.
        security_level: Classical security level used to pick the coefficient modulus.
        min_noise_budget_bits: Minimum invariant noise budget left after one addition.
    """

    poly_modulus_degree: int = 4096
    plain_modulus_bits: int = 32
    security_level: int = 128
    min_noise_budget_bits: int = 10

    def __post_init__(self) -> None:
        if self.poly_modulus_degree not in SUPPORTED_POLY_DEGREES:
            raise ValueError(
                f"poly_modulus_degree must be one of {SUPPORTED_POLY_DEGREES}, got {self.poly_modulus_degree}"
            )
        if not 17 <= self.plain_modulus_bits <= 60:
            raise ValueError("plain_modulus_bits must satisfy 17 <= bits <= 60")
        if self.security_level not in SUPPORTED_SECURITY_LEVELS:
            raise ValueError(f"security_level must be one of {SUPPORTED_SECURITY_LEVELS}")
        if self.min_noise_budget_bits <= 0:
            raise ValueError("min_noise_budget_bits must be positive")

    @property
    def max_plaintext(self) -> int:
        """Exclusive upper bound on encrypted values; two of them never wrap modulo t."""
        return 2 ** (self.plain_modulus_bits - 3)

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "HEParameters":
        if not data:
            return cls()
        base = cls()
        kwargs: Dict[str, int] = {}
        for key, value in data.items():
            if not hasattr(base, key):
                raise ValueError(f"Unknown HE parameter '{key}'")
            kwargs[key] = int(value)
        return cls(**kwargs)


@dataclass
class ProtocolConfig:
    """Run-level configuration, fixed once before INIT."""

    secure: bool = False
    use_psi: bool = True
    decrypting_party: DecryptingRole = DecryptingRole.A
    share_result: bool = True
    workers: int = 1
    split_markers: bool = False
    he: HEParameters = field(default_factory=HEParameters)

    def __post_init__(self) -> None:
        if self.workers <= 0:
            raise ValueError("workers must be positive")

    @classmethod
    def from_file(cls, path: Path) -> "ProtocolConfig":
        try:
            data = json.loads(Path(path).read_text())
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid protocol config JSON at {path}: {exc}") from exc
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ProtocolConfig":
        known = {"secure", "use_psi", "decrypting_party", "share_result", "workers", "split_markers", "he"}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown protocol config keys {sorted(unknown)}")
        try:
            decrypting_party = DecryptingRole(str(data.get("decrypting_party", "a")).lower())
        except ValueError as exc:
            raise ValueError(f"decrypting_party must be 'a' or 'b', got {data.get('decrypting_party')!r}") from exc
        return cls(
            secure=_flag(data, "secure", False),
            use_psi=_flag(data, "use_psi", True),
            decrypting_party=decrypting_party,
            share_result=_flag(data, "share_result", True),
            workers=int(data.get("workers", 1)),
            split_markers=_flag(data, "split_markers", False),
            he=HEParameters.from_mapping(data.get("he")),
        )

    def with_overrides(
        self,
        secure: Optional[bool] = None,
        use_psi: Optional[bool] = None,
        split_markers: Optional[bool] = None,
    ) -> "ProtocolConfig":
        """Return a copy with CLI flags applied on top of file values."""
        return ProtocolConfig(
            secure=self.secure if secure is None else secure,
            use_psi=self.use_psi if use_psi is None else use_psi,
            decrypting_party=self.decrypting_party,
            share_result=self.share_result,
            workers=self.workers,
            split_markers=self.split_markers if split_markers is None else split_markers,
            he=self.he,
        )
