"""
Edge reconciliation: agreeing on a PairIndex that covers the union of both pair sets.

Two modes:

* clear: pair sets are exchanged as-is and unioned. This reveals which pairs
  each organization observed (not their counts) and is a deliberate privacy
  downgrade.
* DH-PSI: pair identifiers are hashed and blinded with per-run X25519 scalars.
  Both parties learn the doubly-blinded token of every pair in the union, so
  they can sort slots identically, but a pair held only by the peer stays an
  opaque token.
"""

from __future__ import annotations

import secrets
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from federated_dfg.crypto import BlindingKey, blind, generate_blinding_key, hash_to_element
from federated_dfg.errors import ReconciliationError
from federated_dfg.messages import PairSetMessage, PSIFinalize, PSIRequest, PSIResponse
from federated_dfg.psi.index import Pair, PairIndex, encode_pair, validate_pairs
from federated_dfg.utils import get_logger

logger = get_logger("psi")


def _build_index(own: Dict[str, Pair], peer_keys: Iterable[str]) -> PairIndex:
    keys = tuple(sorted(set(own) | set(peer_keys)))
    positions = {key: pos for pos, key in enumerate(keys)}
    return PairIndex(keys, {positions[key]: pair for key, pair in own.items()})


class ClearReconciliation:
    """Clear-mode reconciliation for one party."""

    def __init__(self, party_id: str, pairs: Iterable[Pair]) -> None:
        self.party_id = party_id
        self.pairs = sorted(set(validate_pairs(pairs)))

    def offer(self) -> PairSetMessage:
        return PairSetMessage(party_id=self.party_id, pairs=list(self.pairs))

    def complete(self, peer: PairSetMessage) -> PairIndex:
        peer_pairs = validate_pairs(peer.pairs)
        known = {encode_pair(pair): pair for pair in list(self.pairs) + peer_pairs}
        logger.info(
            "Clear reconciliation at %s: %d local, %d peer, %d union pairs",
            self.party_id,
            len(self.pairs),
            len(set(peer_pairs)),
            len(known),
        )
        return _build_index(known, ())


class _PSIParty:
    def __init__(self, party_id: str, pairs: Iterable[Pair], key: Optional[BlindingKey] = None) -> None:
        self.party_id = party_id
        self._pairs: List[Pair] = list(set(validate_pairs(pairs)))
        secrets.SystemRandom().shuffle(self._pairs)
        self._key = key or generate_blinding_key()
        self.blind_operations = 0

    def _blind(self, element: bytes) -> bytes:
        self.blind_operations += 1
        try:
            return blind(self._key, element)
        except ValueError as exc:
            raise ReconciliationError(f"Blinding failed at {self.party_id}: {exc}") from exc

    def _own_tokens(self) -> List[bytes]:
        return [self._blind(hash_to_element(encode_pair(pair).encode("utf-8"))) for pair in self._pairs]

    def _map_own(self, reblinded: Sequence[bytes]) -> Dict[str, Pair]:
        if len(reblinded) != len(self._pairs):
            raise ReconciliationError(
                f"Expected {len(self._pairs)} re-blinded tokens for {self.party_id}, got {len(reblinded)}"
            )
        own = {token.hex(): pair for token, pair in zip(reblinded, self._pairs)}
        if len(own) != len(self._pairs):
            raise ReconciliationError(f"Token collision among {self.party_id}'s own pairs")
        return own


class PSIInitiator(_PSIParty):
    """Party that opens the DH-PSI exchange (the decrypting party)."""

    def __init__(self, party_id: str, pairs: Iterable[Pair], key: Optional[BlindingKey] = None) -> None:
        super().__init__(party_id, pairs, key)
        self._requested = False

    def request(self) -> PSIRequest:
        self._requested = True
        return PSIRequest(party_id=self.party_id, tokens=self._own_tokens())

    def finalize(self, response: PSIResponse) -> Tuple[PSIFinalize, PairIndex]:
        if not self._requested:
            raise ReconciliationError("PSI response received before a request was sent")
        own = self._map_own(response.reblinded)
        peer_double = [self._blind(token) for token in response.tokens]
        index = _build_index(own, (token.hex() for token in peer_double))
        logger.info(
            "PSI at %s: %d local, %d peer, %d shared, %d union slots",
            self.party_id,
            len(own),
            len(peer_double),
            len(own) + len(set(token.hex() for token in peer_double)) - len(index),
            len(index),
        )
        return PSIFinalize(party_id=self.party_id, reblinded=peer_double), index


class PSIResponder(_PSIParty):
    """Party that answers the DH-PSI exchange (the contributing party)."""

    def __init__(self, party_id: str, pairs: Iterable[Pair], key: Optional[BlindingKey] = None) -> None:
        super().__init__(party_id, pairs, key)
        self._peer_double: Optional[List[str]] = None

    def respond(self, request: PSIRequest) -> PSIResponse:
        reblinded = [self._blind(token) for token in request.tokens]
        self._peer_double = [token.hex() for token in reblinded]
        return PSIResponse(party_id=self.party_id, reblinded=reblinded, tokens=self._own_tokens())

    @property
    def peer_keys(self) -> frozenset:
        """Slot keys of the initiator's pairs, known once a request has been answered."""
        if self._peer_double is None:
            raise ReconciliationError("No PSI request has been answered yet")
        return frozenset(self._peer_double)

    def complete(self, finalize: PSIFinalize) -> PairIndex:
        if self._peer_double is None:
            raise ReconciliationError("PSI finalize received before responding to a request")
        own = self._map_own(finalize.reblinded)
        index = _build_index(own, self._peer_double)
        logger.info("PSI at %s: %d local, %d union slots", self.party_id, len(own), len(index))
        return index


def reconcile(
    pairs_a: Iterable[Pair],
    pairs_b: Iterable[Pair],
    use_psi: bool,
    party_a: str = "a",
    party_b: str = "b",
) -> Tuple[PairIndex, PairIndex]:
    """Run both sides of reconciliation in-process; A initiates."""
    if not use_psi:
        side_a = ClearReconciliation(party_a, pairs_a)
        side_b = ClearReconciliation(party_b, pairs_b)
        offer_a, offer_b = side_a.offer(), side_b.offer()
        return side_a.complete(offer_b), side_b.complete(offer_a)
    initiator = PSIInitiator(party_a, pairs_a)
    responder = PSIResponder(party_b, pairs_b)
    response = responder.respond(initiator.request())
    finalize, index_a = initiator.finalize(response)
    return index_a, responder.complete(finalize)
