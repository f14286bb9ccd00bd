from __future__ import annotations

import math

import pytest
from bitcoinutils.keys import PrivateKey

from ordrun.bitcoin.envelope import MAX_CHUNK, build_envelope, build_envelope_script, chunk
from ordrun.bitcoin.inscription import InscriptionRequest
from ordrun.bitcoin.transaction import OutputType, classify

PUBKEY_X = "a" * 64

# pubkey, OP_CHECKSIG, OP_0, OP_IF, ord, OP_1, OP_1, content type, OP_0 ... OP_ENDIF
_FIXED_ITEMS = 10


def _request(content: bytes, content_type: str = "text/plain") -> InscriptionRequest:
    return InscriptionRequest(content_type, content, "tb1qunused")


class TestChunking:
    def test_small_data_single_chunk(self):
        assert chunk(b"hello", 520) == [b"hello"]

    def test_exact_boundary(self):
        data = b"x" * 520
        chunks = chunk(data, 520)
        assert len(chunks) == 1
        assert chunks[0] == data

    def test_multi_chunk(self):
        chunks = chunk(b"x" * 1100, 520)
        assert [len(c) for c in chunks] == [520, 520, 60]

    def test_empty(self):
        assert chunk(b"") == []


class TestEnvelopeScript:
    def test_layout(self):
        script = build_envelope_script(PUBKEY_X, _request(b"Hello", "text/plain"))
        assert script.script == [
            PUBKEY_X,
            "OP_CHECKSIG",
            "OP_0",
            "OP_IF",
            b"ord".hex(),
            "OP_1",
            "OP_1",
            b"text/plain".hex(),
            "OP_0",
            b"Hello".hex(),
            "OP_ENDIF",
        ]

    @pytest.mark.parametrize("length", [0, 1, 519, 520, 521, 1040, 1500, 4000])
    def test_chunk_count(self, length):
        script = build_envelope_script(PUBKEY_X, _request(b"\x07" * length))
        pushes = script.script[_FIXED_ITEMS - 1 : -1]
        assert len(pushes) == math.ceil(length / MAX_CHUNK)
        assert all(len(bytes.fromhex(p)) <= MAX_CHUNK for p in pushes)
        assert b"".join(bytes.fromhex(p) for p in pushes) == b"\x07" * length

    def test_empty_content_has_no_content_push(self):
        script = build_envelope_script(PUBKEY_X, _request(b""))
        assert script.script[-2:] == ["OP_0", "OP_ENDIF"]

    def test_deterministic(self):
        request = _request(b"x" * 1200, "application/octet-stream")
        first = build_envelope_script(PUBKEY_X, request).to_bytes()
        second = build_envelope_script(PUBKEY_X, request).to_bytes()
        assert first == second


class TestEnvelopeAddress:
    def test_address_is_taproot(self, internal_key, hello_request):
        envelope = build_envelope(internal_key.get_public_key(), hello_request)
        assert classify(envelope.address_str) is OutputType.P2TR

    def test_same_inputs_same_address(self, internal_key, hello_request):
        pub = internal_key.get_public_key()
        assert build_envelope(pub, hello_request).address_str == build_envelope(pub, hello_request).address_str

    def test_different_key_different_address(self, internal_key, hello_request):
        other = PrivateKey(secret_exponent=0xD1FF).get_public_key()
        mine = build_envelope(internal_key.get_public_key(), hello_request)
        assert build_envelope(other, hello_request).address_str != mine.address_str

    def test_leaf_commits_to_internal_key(self, internal_key, hello_request):
        pub = internal_key.get_public_key()
        envelope = build_envelope(pub, hello_request)
        assert envelope.script.script[0] == pub.to_x_only_hex()

    def test_witness_items(self, internal_key, hello_request):
        envelope = build_envelope(internal_key.get_public_key(), hello_request)
        items = envelope.witness_items("ff" * 64)
        assert items == ["ff" * 64, envelope.script.to_hex(), envelope.control_block.to_hex()]
