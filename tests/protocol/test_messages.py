import pytest

from federated_dfg.messages import (
    CiphertextVectorMessage,
    LabelDisclosureMessage,
    Message,
    PairSetMessage,
    PSIResponse,
    PublicKeyMessage,
    ResultMessage,
)


def test_messages_survive_wire_encoding() -> None:
    messages = [
        PairSetMessage(party_id="a", pairs=[("a", "b"), ("b", "c")]),
        PSIResponse(party_id="b", reblinded=[b"\x00" * 32], tokens=[b"\xff" * 32, b"\x01" * 32]),
        PublicKeyMessage(party_id="a", backend="trivial", key_id="ab" * 16, key=b"\x10\x20"),
        CiphertextVectorMessage(party_id="b", backend="bfv", key_id="k", index_digest="d", ciphertexts=[b"ct"]),
        ResultMessage(party_id="a", index_digest="d", totals=[4, 0, 2]),
        LabelDisclosureMessage(party_id="b", index_digest="d", labels=[(2, "c", "d")]),
    ]
    for message in messages:
        decoded = Message.from_bytes(message.to_bytes())
        assert type(decoded) is type(message)
        assert decoded == message


def test_bytes_travel_as_base64() -> None:
    body = PublicKeyMessage(party_id="a", backend="trivial", key_id="k", key=b"\x00\x01").to_dict()
    assert body["kind"] == "public_key"
    assert body["body"]["key"] == "AAE="


@pytest.mark.parametrize(
    "data",
    [b"not json", b'{"kind": "unknown", "body": {}}', b'{"kind": "result"}', b'{"kind": "result", "body": {"x": 1}}'],
)
def test_malformed_messages_rejected(data: bytes) -> None:
    with pytest.raises(ValueError):
        Message.from_bytes(data)
