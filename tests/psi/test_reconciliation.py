import pytest

from federated_dfg.errors import LengthMismatch, ReconciliationError
from federated_dfg.messages import PSIResponse
from federated_dfg.psi import PairIndex, PSIInitiator, PSIResponder, reconcile, validate_table

PAIRS_A = [("a", "b"), ("b", "c"), ("shared", "x")]
PAIRS_B = [("a", "b"), ("c", "d"), ("shared", "x")]


@pytest.mark.parametrize("use_psi", [True, False])
def test_views_agree_on_slot_order(use_psi: bool) -> None:
    index_a, index_b = reconcile(PAIRS_A, PAIRS_B, use_psi=use_psi)
    assert index_a.keys == index_b.keys
    assert index_a.digest == index_b.digest
    assert len(index_a) == 4  # union, each pair exactly once


def test_clear_mode_labels_everything_in_sorted_order() -> None:
    index_a, _ = reconcile(list(reversed(PAIRS_A)), PAIRS_B, use_psi=False)
    assert index_a.unknown_positions() == []
    assert index_a.labelled_pairs() == sorted(set(PAIRS_A) | set(PAIRS_B))


def test_psi_hides_peer_only_pairs() -> None:
    index_a, index_b = reconcile(PAIRS_A, PAIRS_B, use_psi=True)
    assert set(index_a.labels.values()) == set(PAIRS_A)
    assert set(index_b.labels.values()) == set(PAIRS_B)
    assert len(index_a.unknown_positions()) == 1
    # the shared pairs land on the same slot in both views
    for pair in [("a", "b"), ("shared", "x")]:
        assert index_a.position(pair) == index_b.position(pair)
    with pytest.raises(LengthMismatch):
        index_a.labelled_pairs()


@pytest.mark.parametrize("use_psi", [True, False])
def test_empty_side_degenerates_to_other_set(use_psi: bool) -> None:
    index_a, index_b = reconcile([], [("x", "y")], use_psi=use_psi)
    assert len(index_a) == len(index_b) == 1
    assert index_b.labelled_pairs() == [("x", "y")]
    empty_a, empty_b = reconcile([], [], use_psi=use_psi)
    assert len(empty_a) == len(empty_b) == 0


def test_submission_order_does_not_matter() -> None:
    first, _ = reconcile(PAIRS_A, PAIRS_B, use_psi=False)
    second, _ = reconcile(list(reversed(PAIRS_A)), list(reversed(PAIRS_B)), use_psi=False)
    assert first.keys == second.keys


@pytest.mark.parametrize("bad", [("a",), ("a", ""), ("a", 3), "ab", ("a", "b", "c")])
def test_malformed_pairs_rejected(bad: object) -> None:
    with pytest.raises(ReconciliationError):
        reconcile([bad], [], use_psi=True)


def test_negative_counts_rejected() -> None:
    with pytest.raises(ReconciliationError):
        validate_table({("a", "b"): -1})
    with pytest.raises(ReconciliationError):
        validate_table({("a", "b"): 1.5})


def test_psi_out_of_order_and_tampered_messages() -> None:
    initiator = PSIInitiator("a", PAIRS_A)
    responder = PSIResponder("b", PAIRS_B)
    with pytest.raises(ReconciliationError):
        initiator.finalize(PSIResponse(party_id="b"))
    with pytest.raises(ReconciliationError):
        _ = responder.peer_keys
    response = responder.respond(initiator.request())
    truncated = PSIResponse(party_id="b", reblinded=response.reblinded[:-1], tokens=response.tokens)
    with pytest.raises(ReconciliationError):
        initiator.finalize(truncated)
    tampered = PSIResponse(party_id="b", reblinded=response.reblinded, tokens=[b"\x01" * 5])
    with pytest.raises(ReconciliationError):
        initiator.finalize(tampered)


def test_blind_operations_are_counted() -> None:
    initiator = PSIInitiator("a", PAIRS_A)
    responder = PSIResponder("b", PAIRS_B)
    finalize, _ = initiator.finalize(responder.respond(initiator.request()))
    responder.complete(finalize)
    assert initiator.blind_operations == len(PAIRS_A) + len(PAIRS_B)
    assert responder.blind_operations == len(PAIRS_A) + len(PAIRS_B)


def test_pair_index_invariants() -> None:
    with pytest.raises(ReconciliationError):
        PairIndex(("k1", "k1"))
    with pytest.raises(ReconciliationError):
        PairIndex(("k1",), {3: ("a", "b")})
    index = PairIndex(("k1", "k2"), {0: ("a", "b")})
    assert index.align({("a", "b"): 7}) == [7, 0]
    assert index.label(1) is None
    with pytest.raises(ReconciliationError):
        index.align({("x", "y"): 1})
    full = index.with_labels({1: ("c", "d")})
    assert full.labelled_pairs() == [("a", "b"), ("c", "d")]
    with pytest.raises(ReconciliationError):
        full.with_labels({0: ("z", "z")})
