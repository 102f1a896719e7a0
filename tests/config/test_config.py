import json
from pathlib import Path

import pytest

from federated_dfg.config import (
    CONFIG_ENV_VAR,
    DecryptingRole,
    HEParameters,
    ProtocolConfig,
    load_protocol_config,
    resolve_config_path,
)


def test_protocol_defaults_and_validation() -> None:
    config = ProtocolConfig.from_dict(
        {"secure": True, "decrypting_party": "B", "he": {"poly_modulus_degree": 8192}}
    )
    assert config.secure is True
    assert config.use_psi is True  # default
    assert config.decrypting_party == DecryptingRole.B
    assert config.he.poly_modulus_degree == 8192
    assert config.he.plain_modulus_bits == 32  # default


def test_unknown_keys_are_rejected() -> None:
    with pytest.raises(ValueError):
        ProtocolConfig.from_dict({"threshold": 2})
    with pytest.raises(ValueError):
        ProtocolConfig.from_dict({"he": {"scheme": "ckks"}})


def test_invalid_values_fail() -> None:
    with pytest.raises(ValueError):
        ProtocolConfig.from_dict({"decrypting_party": "c"})
    with pytest.raises(ValueError):
        ProtocolConfig.from_dict({"workers": 0})
    with pytest.raises(ValueError):
        HEParameters(poly_modulus_degree=1000)
    with pytest.raises(ValueError):
        HEParameters(plain_modulus_bits=8)
    with pytest.raises(ValueError):
        HEParameters(security_level=100)


def test_max_plaintext_leaves_room_for_one_addition() -> None:
    params = HEParameters(plain_modulus_bits=20)
    assert params.max_plaintext == 2**17
    # t >= 2**19, so the sum of two bounded values stays below t / 2
    assert 2 * (params.max_plaintext - 1) < 2**18


def test_with_overrides_only_touches_given_flags() -> None:
    base = ProtocolConfig(secure=True, use_psi=False, workers=3)
    assert base.with_overrides().secure is True
    updated = base.with_overrides(secure=False, use_psi=None)
    assert updated.secure is False
    assert updated.use_psi is False
    assert updated.workers == 3


def test_load_from_env_and_explicit_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    cfg_path = tmp_path / "protocol.json"
    cfg_path.write_text(json.dumps({"use_psi": False, "share_result": False}))
    monkeypatch.setenv(CONFIG_ENV_VAR, str(cfg_path))
    config, path = load_protocol_config()
    assert path == cfg_path.resolve()
    assert config.use_psi is False
    assert config.share_result is False

    explicit = tmp_path / "other.json"
    explicit.write_text(json.dumps({"workers": 2}))
    config, path = load_protocol_config(explicit)
    assert path == explicit.resolve()
    assert config.workers == 2


def test_defaults_without_config(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    assert resolve_config_path() is None
    config, path = load_protocol_config()
    assert path is None
    assert config == ProtocolConfig()


def test_missing_or_invalid_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_protocol_config(tmp_path / "absent.json")
    broken = tmp_path / "broken.json"
    broken.write_text("{not json")
    with pytest.raises(ValueError):
        load_protocol_config(broken)


@pytest.mark.parametrize("key", ["secure", "use_psi", "share_result", "split_markers"])
def test_flags_must_be_json_booleans(key: str) -> None:
    with pytest.raises(ValueError):
        ProtocolConfig.from_dict({key: "false"})
    with pytest.raises(ValueError):
        ProtocolConfig.from_dict({key: 1})
    assert getattr(ProtocolConfig.from_dict({key: False}), key) is False


def test_split_markers_override() -> None:
    config = ProtocolConfig.from_dict({"split_markers": True})
    assert config.split_markers is True
    assert config.with_overrides(secure=True).split_markers is True
    assert config.with_overrides(split_markers=False).split_markers is False
