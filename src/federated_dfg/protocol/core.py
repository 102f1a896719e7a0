"""In-process orchestration of one secure two-party DFG aggregation run."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, Mapping, Optional, Tuple, TypeVar

from federated_dfg.config import DecryptingRole, ProtocolConfig
from federated_dfg.dfg import DirectlyFollowsGraph
from federated_dfg.errors import FederatedDFGError, ProtocolAborted, ReconciliationError
from federated_dfg.he import HEBackend, create_backend
from federated_dfg.messages import Message
from federated_dfg.protocol.parties import ContributingParty, DecryptingParty, GlobalFrequencyTable, ProtocolPhase
from federated_dfg.psi import Pair
from federated_dfg.utils import InMemoryMetrics, Timer, get_logger, log_phase

logger = get_logger("protocol.core")

M = TypeVar("M", bound=Message)

PARTY_A = "a"
PARTY_B = "b"


@dataclass
class ProtocolRun:
    """Everything one run hands back to the caller."""

    dfg: DirectlyFollowsGraph
    global_table: GlobalFrequencyTable
    shared_result: Optional[GlobalFrequencyTable]
    decrypting_party: str
    timings: Dict[str, float] = field(default_factory=dict)
    operations: Dict[str, int] = field(default_factory=dict)
    metrics: InMemoryMetrics = field(default_factory=InMemoryMetrics)


class SecureDFGProtocol:
    """
    Simulates both roles and drives them through
    INIT -> RECONCILED -> KEYS_ESTABLISHED -> LOCAL_ENCRYPTED -> EXCHANGED
    -> AGGREGATED -> DECRYPTED.

    Messages pass through their byte encoding, as they would between processes.
    A run keeps no state after it returns; any failure aborts it with the
    phase that failed and no DFG.
    """

    def __init__(self, config: Optional[ProtocolConfig] = None, backend: Optional[HEBackend] = None) -> None:
        self.config = config or ProtocolConfig()
        self.backend = backend or create_backend(self.config)
        if not self.config.use_psi:
            logger.warning(
                "PSI disabled: pair sets are exchanged in the clear and each party learns "
                "which directly-follows pairs the other observed"
            )

    def run(self, table_a: Mapping[Pair, int], table_b: Mapping[Pair, int]) -> ProtocolRun:
        metrics = InMemoryMetrics()
        use_psi = self.config.use_psi

        tables = {PARTY_A: table_a, PARTY_B: table_b}
        decrypting_id, contributing_id = split_roles(self.config)
        decrypting_table, contributing_table = tables[decrypting_id], tables[contributing_id]

        logger.info(
            "Starting run: backend=%s psi=%s decrypting=%s (%d pairs) contributing=%s (%d pairs)",
            self.backend.name,
            use_psi,
            decrypting_id,
            len(decrypting_table),
            contributing_id,
            len(contributing_table),
        )

        with self._phase(metrics, ProtocolPhase.INIT):
            holder = DecryptingParty(decrypting_id, decrypting_table, self.backend, use_psi)
            peer = ContributingParty(contributing_id, contributing_table, self.backend, use_psi)

        with self._phase(metrics, ProtocolPhase.RECONCILED):
            if use_psi:
                response = peer.psi_respond(self._send(metrics, holder.psi_request()))
                finalize = holder.psi_finalize(self._send(metrics, response))
                peer.psi_complete(self._send(metrics, finalize))
            else:
                offer_holder, offer_peer = holder.offer_pairs(), peer.offer_pairs()
                holder.complete_clear(self._send(metrics, offer_peer))
                peer.complete_clear(self._send(metrics, offer_holder))
            if holder.index.digest != peer.index.digest:
                raise ReconciliationError("Parties disagree on the PairIndex")
            slots = len(holder.index)
            logger.info("Agreed on %d slots (%d unknown to %s)", slots, len(holder.index.unknown_positions()), decrypting_id)

        with self._phase(metrics, ProtocolPhase.KEYS_ESTABLISHED):
            peer.receive_public_key(self._send(metrics, holder.establish_keys()))

        with self._phase(metrics, ProtocolPhase.LOCAL_ENCRYPTED):
            holder.encrypt_local()
            peer.encrypt_local()
            metrics.emit_counter("he_encryptions", 2 * slots)

        with self._phase(metrics, ProtocolPhase.EXCHANGED):
            holder.receive_ciphertexts(self._send(metrics, peer.ciphertext_message()))

        with self._phase(metrics, ProtocolPhase.AGGREGATED):
            holder.aggregate()
            metrics.emit_counter("he_additions", slots)

        with self._phase(metrics, ProtocolPhase.DECRYPTED):
            holder.decrypt()
            metrics.emit_counter("he_decryptions", slots)
            shared = None
            if self.config.share_result:
                shared = peer.receive_result(self._send(metrics, holder.result_message()))
            if use_psi:
                holder.receive_labels(self._send(metrics, peer.disclose_labels()))
            dfg = holder.assemble(split_markers=self.config.split_markers)

        metrics.emit_counter("psi_blindings", holder.blind_operations + peer.blind_operations)
        timings = metrics.timer_by_label("phase_seconds", "phase")
        operations = metrics.counter_totals()
        logger.info(
            "Run finished: %d activities, %d edges, %.3fs total",
            len(dfg.activities),
            len(dfg.directly_follows_relations),
            sum(timings.values()),
        )
        return ProtocolRun(
            dfg=dfg,
            global_table=holder.global_table,
            shared_result=shared,
            decrypting_party=decrypting_id,
            timings=timings,
            operations=operations,
            metrics=metrics,
        )

    @staticmethod
    def _send(metrics: InMemoryMetrics, message: M) -> M:
        """Pass a message through its wire encoding."""
        data = message.to_bytes()
        metrics.emit_counter("messages_sent", 1, kind=message.kind)
        metrics.emit_counter("bytes_sent", len(data), kind=message.kind)
        return Message.from_bytes(data)

    @staticmethod
    @contextmanager
    def _phase(metrics: InMemoryMetrics, phase: ProtocolPhase) -> Iterator[None]:
        with log_phase(phase.value):
            try:
                with Timer(metrics, "phase_seconds", phase=phase.value) as timer:
                    yield
            except (FederatedDFGError, ValueError) as exc:
                logger.error("Run aborted while reaching phase '%s': %s", phase.value, exc)
                raise ProtocolAborted(phase.value, exc) from exc
            logger.info("Reached phase '%s' in %.3fs", phase.value, timer.elapsed)


def run_protocol(
    table_a: Mapping[Pair, int],
    table_b: Mapping[Pair, int],
    secure: bool = False,
    use_psi: bool = True,
    config: Optional[ProtocolConfig] = None,
) -> ProtocolRun:
    """Convenience entry point: one run with the given flags."""
    base = config or ProtocolConfig()
    return SecureDFGProtocol(base.with_overrides(secure=secure, use_psi=use_psi)).run(table_a, table_b)


def plaintext_reference(table_a: Mapping[Pair, int], table_b: Mapping[Pair, int]) -> Dict[Pair, int]:
    """Unencrypted sum of two tables, the ground truth a secure run must reproduce."""
    totals: Dict[Pair, int] = dict(table_a)
    for pair, count in table_b.items():
        totals[pair] = totals.get(pair, 0) + count
    return totals


def split_roles(config: ProtocolConfig) -> Tuple[str, str]:
    """(decrypting, contributing) party ids for a config."""
    if config.decrypting_party == DecryptingRole.A:
        return PARTY_A, PARTY_B
    return PARTY_B, PARTY_A
