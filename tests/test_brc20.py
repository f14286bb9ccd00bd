from __future__ import annotations

import json

import pytest

from ordrun.brc20 import (
    CONTENT_TYPE,
    deploy_payload,
    mint_payload,
    payload_json,
    to_request,
    transfer_payload,
)


class TestPayloads:
    def test_deploy(self):
        payload = deploy_payload("ordi", 21_000_000, 1000)
        assert payload_json(payload) == '{"p":"brc-20","op":"deploy","tick":"ordi","max":"21000000","lim":"1000"}'

    def test_deploy_without_limit(self):
        assert "lim" not in deploy_payload("ordi", "21000000")

    def test_mint(self):
        assert mint_payload("ordi", "1000") == {"p": "brc-20", "op": "mint", "tick": "ordi", "amt": "1000"}

    def test_transfer_decimal(self):
        assert transfer_payload("sats", "0.5")["amt"] == "0.5"

    def test_five_byte_tick(self):
        assert mint_payload("pizza", 1)["tick"] == "pizza"

    @pytest.mark.parametrize("tick", ["abc", "abcdef", ""])
    def test_bad_tick(self, tick):
        with pytest.raises(ValueError, match="tick"):
            mint_payload(tick, 1)

    @pytest.mark.parametrize("amount", ["0", "-5", "1e5", "abc", "1.", 0])
    def test_bad_amount(self, amount):
        with pytest.raises(ValueError, match="amt"):
            mint_payload("ordi", amount)


class TestRequest:
    def test_to_request(self, recipient_address):
        request = to_request(mint_payload("ordi", 1000), recipient_address)
        assert request.content_type == CONTENT_TYPE
        assert request.recipient_address == recipient_address
        assert json.loads(request.content) == {"p": "brc-20", "op": "mint", "tick": "ordi", "amt": "1000"}
        assert b" " not in request.content
