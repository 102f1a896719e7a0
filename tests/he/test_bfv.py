import random

import pytest

pytest.importorskip("Pyfhel")

from federated_dfg.config import HEParameters, ProtocolConfig  # noqa: E402
from federated_dfg.errors import InvalidKey, KeyMismatch, NoiseBudgetExceeded, PlaintextOverflow  # noqa: E402
from federated_dfg.he import TrivialBackend, create_backend  # noqa: E402
from federated_dfg.he import bfv  # noqa: E402
from federated_dfg.he.bfv import BFVBackend  # noqa: E402
from federated_dfg.protocol import SecureDFGProtocol, plaintext_reference, run_protocol  # noqa: E402

SMALL_RING = HEParameters(poly_modulus_degree=4096, plain_modulus_bits=20)


@pytest.fixture(scope="module")
def backend() -> BFVBackend:
    return BFVBackend(SMALL_RING)


@pytest.fixture(scope="module")
def keys(backend: BFVBackend):
    return backend.generate_keys()


def test_create_backend_selects_bfv() -> None:
    assert isinstance(create_backend(ProtocolConfig(secure=True)), BFVBackend)


def test_matches_trivial_backend(backend: BFVBackend, keys) -> None:
    trivial = TrivialBackend(backend.params)
    trivial_keys = trivial.generate_keys()
    values = [(0, 0), (3, 4), (backend.max_plaintext - 1, backend.max_plaintext - 1)]
    for left, right in values:
        secure = backend.decrypt(
            backend.add(backend.encrypt(left, keys.public_key), backend.encrypt(right, keys.public_key)),
            keys.secret_key,
        )
        plain = trivial.decrypt(
            trivial.add(trivial.encrypt(left, trivial_keys.public_key), trivial.encrypt(right, trivial_keys.public_key)),
            trivial_keys.secret_key,
        )
        assert secure == plain == left + right


def test_public_key_travels_without_secret(backend: BFVBackend, keys) -> None:
    public = backend.load_public_key(backend.export_public_key(keys.public_key))
    assert public.key_id == keys.public_key.key_id
    data = backend.ciphertext_to_bytes(backend.encrypt(9, public))
    ct = backend.ciphertext_from_bytes(data, keys.public_key)
    assert backend.decrypt(ct, keys.secret_key) == 9


def test_mismatched_keys(backend: BFVBackend, keys) -> None:
    other = backend.generate_keys()
    with pytest.raises(KeyMismatch):
        backend.add(backend.encrypt(1, keys.public_key), backend.encrypt(1, other.public_key))
    with pytest.raises(InvalidKey):
        backend.decrypt(backend.encrypt(1, keys.public_key), other.secret_key)
    with pytest.raises(InvalidKey):
        backend.load_public_key(b"\x00\x00\x00\x05abc")


def test_overflow_bound(backend: BFVBackend, keys) -> None:
    with pytest.raises(PlaintextOverflow):
        backend.encrypt(backend.max_plaintext, keys.public_key)


def test_noise_probe_rejects_unusable_parameters() -> None:
    # the smallest ring has a ~109-bit ciphertext modulus, far below this requirement
    backend = BFVBackend(HEParameters(poly_modulus_degree=4096, plain_modulus_bits=20, min_noise_budget_bits=200))
    with pytest.raises(NoiseBudgetExceeded):
        backend.generate_keys()


def test_malformed_ciphertext_bytes_raise_invalid_key(
    backend: BFVBackend, keys, monkeypatch: pytest.MonkeyPatch
) -> None:
    def broken(**kwargs):
        raise RuntimeError("loaded SEALHeader is invalid")

    monkeypatch.setattr(bfv, "PyCtxt", broken)
    with pytest.raises(InvalidKey):
        backend.ciphertext_from_bytes(b"\x00" * 16, keys.public_key)


def _random_tables(seed: int):
    rng = random.Random(seed)
    table_a = {(rng.choice("abcde"), rng.choice("abcde")): rng.randint(0, 40) for _ in range(10)}
    table_b = {(rng.choice("cdefg"), rng.choice("cdefg")): rng.randint(0, 40) for _ in range(10)}
    return table_a, table_b


@pytest.mark.parametrize("use_psi", [True, False])
@pytest.mark.parametrize("workers", [1, 2])
def test_secure_run_matches_plaintext_and_trivial(use_psi: bool, workers: int) -> None:
    cases = [({("a", "b"): 3, ("b", "c"): 2}, {("a", "b"): 1, ("c", "d"): 4}), _random_tables(11)]
    for table_a, table_b in cases:
        config = ProtocolConfig(secure=True, use_psi=use_psi, workers=workers, he=SMALL_RING)
        secure = SecureDFGProtocol(config).run(table_a, table_b)
        assert secure.global_table.as_dict() == plaintext_reference(table_a, table_b)

        trivial = run_protocol(table_a, table_b, secure=False, use_psi=use_psi, config=config)
        assert secure.global_table.as_dict() == trivial.global_table.as_dict()
        if not use_psi:
            # clear mode orders slots identically across runs; PSI re-blinds every run
            assert secure.global_table.totals == trivial.global_table.totals
        assert secure.dfg.to_dict() == trivial.dfg.to_dict()


def test_secure_worked_example_dfg() -> None:
    config = ProtocolConfig(secure=True, he=SMALL_RING)
    run = SecureDFGProtocol(config).run({("a", "b"): 3, ("b", "c"): 2}, {("a", "b"): 1, ("c", "d"): 4})
    assert run.dfg.edges == {("a", "b"): 4, ("b", "c"): 2, ("c", "d"): 4}
    assert run.shared_result is not None
    assert run.shared_result.totals == run.global_table.totals
    assert run.operations["he_encryptions"] == 6
