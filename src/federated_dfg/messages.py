"""
Wire messages exchanged between the two roles.

Every message serializes to JSON; byte fields travel as base64 strings. These
types are the entire contract when the roles run as separate processes.
"""

from __future__ import annotations

import base64
import json
from dataclasses import asdict, dataclass, field
from typing import Any, ClassVar, Dict, List, Tuple, Type, TypeVar

Pair = Tuple[str, str]
M = TypeVar("M", bound="Message")

_REGISTRY: Dict[str, Type["Message"]] = {}


def _b64(items: List[bytes]) -> List[str]:
    return [base64.b64encode(item).decode("ascii") for item in items]


def _unb64(items: List[str]) -> List[bytes]:
    return [base64.b64decode(item) for item in items]


@dataclass
class Message:
    """Base class; subclasses list their byte-list fields in ``binary_fields``."""

    party_id: str
    kind: ClassVar[str] = "message"
    binary_fields: ClassVar[Tuple[str, ...]] = ()

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        _REGISTRY[cls.kind] = cls

    def to_dict(self) -> Dict[str, Any]:
        body = asdict(self)
        for name in self.binary_fields:
            value = body[name]
            body[name] = base64.b64encode(value).decode("ascii") if isinstance(value, bytes) else _b64(value)
        return {"kind": self.kind, "body": body}

    def to_bytes(self) -> bytes:
        return json.dumps(self.to_dict(), sort_keys=True).encode("utf-8")

    @classmethod
    def _from_body(cls: Type[M], body: Dict[str, Any]) -> M:
        for name in cls.binary_fields:
            value = body[name]
            body[name] = base64.b64decode(value) if isinstance(value, str) else _unb64(value)
        return cls(**body)

    @staticmethod
    def from_bytes(data: bytes) -> "Message":
        try:
            envelope = json.loads(data.decode("utf-8"))
            cls = _REGISTRY[envelope["kind"]]
            return cls._from_body(dict(envelope["body"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"Malformed protocol message: {exc}") from exc


@dataclass
class PairSetMessage(Message):
    """Clear-mode reconciliation: the sender's pair set, without counts."""

    pairs: List[Pair] = field(default_factory=list)
    kind: ClassVar[str] = "pair_set"

    @classmethod
    def _from_body(cls, body: Dict[str, Any]) -> "PairSetMessage":
        return cls(party_id=body["party_id"], pairs=[(str(s), str(t)) for s, t in body["pairs"]])


@dataclass
class PSIRequest(Message):
    """Initiator's singly-blinded pair tokens."""

    tokens: List[bytes] = field(default_factory=list)
    kind: ClassVar[str] = "psi_request"
    binary_fields: ClassVar[Tuple[str, ...]] = ("tokens",)


@dataclass
class PSIResponse(Message):
    """Initiator tokens re-blinded in request order, plus the responder's own tokens."""

    reblinded: List[bytes] = field(default_factory=list)
    tokens: List[bytes] = field(default_factory=list)
    kind: ClassVar[str] = "psi_response"
    binary_fields: ClassVar[Tuple[str, ...]] = ("reblinded", "tokens")


@dataclass
class PSIFinalize(Message):
    """Responder tokens re-blinded in response order."""

    reblinded: List[bytes] = field(default_factory=list)
    kind: ClassVar[str] = "psi_finalize"
    binary_fields: ClassVar[Tuple[str, ...]] = ("reblinded",)


@dataclass
class PublicKeyMessage(Message):
    backend: str = ""
    key_id: str = ""
    key: bytes = b""
    kind: ClassVar[str] = "public_key"
    binary_fields: ClassVar[Tuple[str, ...]] = ("key",)


@dataclass
class CiphertextVectorMessage(Message):
    """Encrypted PlaintextVector of the contributing party, aligned to the agreed index."""

    backend: str = ""
    key_id: str = ""
    index_digest: str = ""
    ciphertexts: List[bytes] = field(default_factory=list)
    kind: ClassVar[str] = "ciphertext_vector"
    binary_fields: ClassVar[Tuple[str, ...]] = ("ciphertexts",)


@dataclass
class ResultMessage(Message):
    """Decrypted global totals, aligned to the agreed index."""

    index_digest: str = ""
    totals: List[int] = field(default_factory=list)
    kind: ClassVar[str] = "result"


@dataclass
class LabelDisclosureMessage(Message):
    """Labels for slots only the sender can name; sent after decryption in PSI mode."""

    index_digest: str = ""
    labels: List[Tuple[int, str, str]] = field(default_factory=list)
    kind: ClassVar[str] = "label_disclosure"

    @classmethod
    def _from_body(cls, body: Dict[str, Any]) -> "LabelDisclosureMessage":
        labels = [(int(pos), str(src), str(tgt)) for pos, src, tgt in body["labels"]]
        return cls(party_id=body["party_id"], index_digest=body["index_digest"], labels=labels)
