"""
The two protocol roles.

Each role holds only what it is permitted to know. The decrypting party owns
the key pair; the contributing party only ever receives the public key, and
has no attribute that could hold a secret key. Every step checks the role's
current phase, so nothing proceeds on a partial index or a missing key.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Mapping, Optional, Tuple

from federated_dfg.dfg import DirectlyFollowsGraph, assemble_dfg
from federated_dfg.errors import KeyMismatch, LengthMismatch, ProtocolStateError, ReconciliationError
from federated_dfg.he import Ciphertext, HEBackend, KeyPair, PublicKey
from federated_dfg.messages import (
    CiphertextVectorMessage,
    LabelDisclosureMessage,
    PairSetMessage,
    PSIFinalize,
    PSIRequest,
    PSIResponse,
    PublicKeyMessage,
    ResultMessage,
)
from federated_dfg.psi import ClearReconciliation, Pair, PairIndex, PSIInitiator, PSIResponder, validate_table
from federated_dfg.utils import get_logger

logger = get_logger("protocol")


class ProtocolPhase(str, Enum):
    INIT = "init"
    RECONCILED = "reconciled"
    KEYS_ESTABLISHED = "keys_established"
    LOCAL_ENCRYPTED = "local_encrypted"
    EXCHANGED = "exchanged"
    AGGREGATED = "aggregated"
    DECRYPTED = "decrypted"


@dataclass(frozen=True)
class GlobalFrequencyTable:
    """Decrypted totals aligned to one party's view of the PairIndex."""

    index: PairIndex
    totals: Tuple[int, ...]

    def __post_init__(self) -> None:
        if len(self.totals) != len(self.index):
            raise LengthMismatch(f"{len(self.totals)} totals for an index of {len(self.index)} slots")

    def get(self, pair: Pair, default: int = 0) -> int:
        try:
            return self.totals[self.index.position(pair)]
        except ReconciliationError:
            return default

    def as_dict(self) -> Dict[Pair, int]:
        """Totals for every position this view can name."""
        return {pair: self.totals[pos] for pos, pair in sorted(self.index.labels.items())}

    def with_index(self, index: PairIndex) -> "GlobalFrequencyTable":
        return GlobalFrequencyTable(index, self.totals)


class _Party:
    def __init__(self, party_id: str, table: Mapping[Pair, int], backend: HEBackend, use_psi: bool) -> None:
        self.party_id = party_id
        self.table: Dict[Pair, int] = validate_table(table)
        self.backend = backend
        self.use_psi = use_psi
        self.phase = ProtocolPhase.INIT
        self.index: Optional[PairIndex] = None
        self.public_key: Optional[PublicKey] = None
        self.ciphertexts: Optional[List[Ciphertext]] = None
        self._clear = None if use_psi else ClearReconciliation(party_id, self.table.keys())

    def _require(self, *phases: ProtocolPhase) -> None:
        if self.phase not in phases:
            expected = ", ".join(p.value for p in phases)
            raise ProtocolStateError(
                f"{self.party_id} is in phase '{self.phase.value}', expected one of: {expected}",
                phase=self.phase.value,
            )

    def _advance(self, phase: ProtocolPhase) -> None:
        logger.debug("%s: %s -> %s", self.party_id, self.phase.value, phase.value)
        self.phase = phase

    def _require_psi(self, enabled: bool) -> None:
        if self.use_psi != enabled:
            mode = "PSI" if enabled else "clear"
            raise ProtocolStateError(f"{self.party_id} is not configured for {mode} reconciliation")

    def _check_digest(self, digest: str) -> None:
        if self.index is None or digest != self.index.digest:
            raise ReconciliationError(f"{self.party_id} received data for a different PairIndex")

    # Clear reconciliation (both roles) -------------------------------------

    def offer_pairs(self) -> PairSetMessage:
        self._require(ProtocolPhase.INIT)
        self._require_psi(False)
        return self._clear.offer()

    def complete_clear(self, peer: PairSetMessage) -> PairIndex:
        self._require(ProtocolPhase.INIT)
        self._require_psi(False)
        self.index = self._clear.complete(peer)
        self._advance(ProtocolPhase.RECONCILED)
        return self.index

    # Encryption ------------------------------------------------------------

    def plaintext_vector(self) -> List[int]:
        if self.index is None:
            raise ProtocolStateError(f"{self.party_id} has no PairIndex yet", phase=self.phase.value)
        return self.index.align(self.table)

    def encrypt_local(self) -> List[Ciphertext]:
        self._require(ProtocolPhase.KEYS_ESTABLISHED)
        vector = self.plaintext_vector()
        self.ciphertexts = self.backend.encrypt_vector(vector, self.public_key)
        if len(self.ciphertexts) != len(self.index):
            raise LengthMismatch(f"{len(self.ciphertexts)} ciphertexts for {len(self.index)} slots")
        self._advance(ProtocolPhase.LOCAL_ENCRYPTED)
        return self.ciphertexts


class DecryptingParty(_Party):
    """Holds the key pair, aggregates and decrypts. Initiates PSI."""

    def __init__(self, party_id: str, table: Mapping[Pair, int], backend: HEBackend, use_psi: bool) -> None:
        super().__init__(party_id, table, backend, use_psi)
        self._psi = PSIInitiator(party_id, self.table.keys()) if use_psi else None
        self._key_pair: Optional[KeyPair] = None
        self._received: Optional[List[Ciphertext]] = None
        self.aggregated: Optional[List[Ciphertext]] = None
        self.global_table: Optional[GlobalFrequencyTable] = None

    @property
    def blind_operations(self) -> int:
        return self._psi.blind_operations if self._psi else 0

    def psi_request(self) -> PSIRequest:
        self._require(ProtocolPhase.INIT)
        self._require_psi(True)
        return self._psi.request()

    def psi_finalize(self, response: PSIResponse) -> PSIFinalize:
        self._require(ProtocolPhase.INIT)
        self._require_psi(True)
        finalize, self.index = self._psi.finalize(response)
        self._advance(ProtocolPhase.RECONCILED)
        return finalize

    def establish_keys(self) -> PublicKeyMessage:
        self._require(ProtocolPhase.RECONCILED)
        self._key_pair = self.backend.generate_keys()
        self.public_key = self._key_pair.public_key
        self._advance(ProtocolPhase.KEYS_ESTABLISHED)
        return PublicKeyMessage(
            party_id=self.party_id,
            backend=self.backend.name,
            key_id=self.public_key.key_id,
            key=self.backend.export_public_key(self.public_key),
        )

    def receive_ciphertexts(self, message: CiphertextVectorMessage) -> None:
        self._require(ProtocolPhase.LOCAL_ENCRYPTED)
        if message.backend != self.backend.name:
            raise KeyMismatch(f"Ciphertexts from backend '{message.backend}', expected '{self.backend.name}'")
        if message.key_id != self.public_key.key_id:
            raise KeyMismatch(
                f"Ciphertexts encrypted under key {message.key_id}, current run uses {self.public_key.key_id}"
            )
        self._check_digest(message.index_digest)
        if len(message.ciphertexts) != len(self.index):
            raise LengthMismatch(f"Received {len(message.ciphertexts)} ciphertexts for {len(self.index)} slots")
        self._received = [self.backend.ciphertext_from_bytes(data, self.public_key) for data in message.ciphertexts]
        self._advance(ProtocolPhase.EXCHANGED)

    def aggregate(self) -> List[Ciphertext]:
        self._require(ProtocolPhase.EXCHANGED)
        self.aggregated = self.backend.add_vectors(self.ciphertexts, self._received)
        self._advance(ProtocolPhase.AGGREGATED)
        return self.aggregated

    def decrypt(self) -> GlobalFrequencyTable:
        self._require(ProtocolPhase.AGGREGATED)
        totals = self.backend.decrypt_vector(self.aggregated, self._key_pair.secret_key)
        self.global_table = GlobalFrequencyTable(self.index, tuple(totals))
        self._advance(ProtocolPhase.DECRYPTED)
        return self.global_table

    def result_message(self) -> ResultMessage:
        self._require(ProtocolPhase.DECRYPTED)
        return ResultMessage(
            party_id=self.party_id,
            index_digest=self.index.digest,
            totals=list(self.global_table.totals),
        )

    def receive_labels(self, message: LabelDisclosureMessage) -> None:
        self._require(ProtocolPhase.DECRYPTED)
        self._check_digest(message.index_digest)
        extra = {pos: (source, target) for pos, source, target in message.labels}
        self.index = self.index.with_labels(extra)
        self.global_table = self.global_table.with_index(self.index)

    def assemble(self, split_markers: bool = False) -> DirectlyFollowsGraph:
        self._require(ProtocolPhase.DECRYPTED)
        return assemble_dfg(self.index.labelled_pairs(), self.global_table.totals, split_markers=split_markers)


class ContributingParty(_Party):
    """Encrypts under the peer's public key and sends its vector. Answers PSI."""

    def __init__(self, party_id: str, table: Mapping[Pair, int], backend: HEBackend, use_psi: bool) -> None:
        super().__init__(party_id, table, backend, use_psi)
        self._psi = PSIResponder(party_id, self.table.keys()) if use_psi else None
        self.result: Optional[GlobalFrequencyTable] = None

    @property
    def blind_operations(self) -> int:
        return self._psi.blind_operations if self._psi else 0

    def psi_respond(self, request: PSIRequest) -> PSIResponse:
        self._require(ProtocolPhase.INIT)
        self._require_psi(True)
        return self._psi.respond(request)

    def psi_complete(self, finalize: PSIFinalize) -> PairIndex:
        self._require(ProtocolPhase.INIT)
        self._require_psi(True)
        self.index = self._psi.complete(finalize)
        self._advance(ProtocolPhase.RECONCILED)
        return self.index

    def receive_public_key(self, message: PublicKeyMessage) -> None:
        self._require(ProtocolPhase.RECONCILED)
        if message.backend != self.backend.name:
            raise KeyMismatch(f"Public key for backend '{message.backend}', expected '{self.backend.name}'")
        public_key = self.backend.load_public_key(message.key)
        if public_key.key_id != message.key_id:
            raise KeyMismatch(f"Public key fingerprint {public_key.key_id} does not match announced {message.key_id}")
        self.public_key = public_key
        self._advance(ProtocolPhase.KEYS_ESTABLISHED)

    def ciphertext_message(self) -> CiphertextVectorMessage:
        self._require(ProtocolPhase.LOCAL_ENCRYPTED)
        message = CiphertextVectorMessage(
            party_id=self.party_id,
            backend=self.backend.name,
            key_id=self.public_key.key_id,
            index_digest=self.index.digest,
            ciphertexts=[self.backend.ciphertext_to_bytes(ct) for ct in self.ciphertexts],
        )
        self._advance(ProtocolPhase.EXCHANGED)
        return message

    def receive_result(self, message: ResultMessage) -> GlobalFrequencyTable:
        self._require(ProtocolPhase.EXCHANGED)
        self._check_digest(message.index_digest)
        self.result = GlobalFrequencyTable(self.index, tuple(int(v) for v in message.totals))
        self._advance(ProtocolPhase.DECRYPTED)
        return self.result

    def exclusive_positions(self) -> List[int]:
        """Positions this party can name but the decrypting party cannot."""
        if self.index is None:
            raise ProtocolStateError(f"{self.party_id} has no PairIndex yet", phase=self.phase.value)
        if not self.use_psi:
            return []
        peer_keys = self._psi.peer_keys
        return sorted(pos for pos in self.index.labels if self.index.keys[pos] not in peer_keys)

    def disclose_labels(self) -> LabelDisclosureMessage:
        """Release labels of exclusive slots once aggregation is out of this party's hands."""
        self._require(ProtocolPhase.EXCHANGED, ProtocolPhase.DECRYPTED)
        labels = [(pos, *self.index.labels[pos]) for pos in self.exclusive_positions()]
        return LabelDisclosureMessage(party_id=self.party_id, index_digest=self.index.digest, labels=labels)
