"""
Shared fixtures: deterministic testnet keys/addresses and an in-memory
indexer that records broadcasts and serves them back as chain transactions.
"""

from __future__ import annotations

import pytest
from bitcoinutils.keys import PrivateKey
from bitcoinutils.transactions import Transaction

from ordrun.api.mempool import ChainOutput, ChainTransaction, TxStatus, Utxo
from ordrun.bitcoin.inscription import InscriptionConfig, InscriptionRequest
from ordrun.bitcoin.transaction import configure_network
from ordrun.errors import BroadcastError, ChainLookupError


class FakeIndexer:
    """Chain indexer double; broadcast transactions become fetchable by txid."""

    def __init__(self, utxos=None, confirmed: bool = True):
        self.utxos = list(utxos or [])
        self.confirmed = confirmed
        self.broadcasts: list[str] = []
        self.outputs: dict[str, list[ChainOutput]] = {}
        self.fail_broadcast_calls: set[int] = set()
        self.status_failures = 0
        self.status_calls = 0
        self._broadcast_calls = 0

    def get_utxos(self, address):
        return list(self.utxos)

    def broadcast(self, tx_hex):
        call = self._broadcast_calls
        self._broadcast_calls += 1
        if call in self.fail_broadcast_calls:
            raise BroadcastError(400, "sendrawtransaction RPC error: rejected")
        self.broadcasts.append(tx_hex)
        tx = Transaction.from_raw(tx_hex)
        txid = tx.get_txid()
        self.outputs[txid] = [
            ChainOutput(scriptpubkey=out.script_pubkey.to_hex(), value=out.amount)
            for out in tx.outputs
        ]
        return txid

    def get_transaction(self, txid):
        if txid not in self.outputs:
            raise ChainLookupError(404, "Transaction not found")
        return ChainTransaction(txid=txid, status=TxStatus(self.confirmed), outputs=self.outputs[txid])

    def get_transaction_status(self, txid):
        self.status_calls += 1
        if self.status_failures:
            self.status_failures -= 1
            raise ChainLookupError(503, "Service Unavailable")
        return TxStatus(self.confirmed)


@pytest.fixture(autouse=True)
def testnet():
    configure_network("testnet")


@pytest.fixture
def sender_key():
    return PrivateKey(secret_exponent=0x5E11DE5)


@pytest.fixture
def sender_address(sender_key):
    return sender_key.get_public_key().get_segwit_address().to_string()


@pytest.fixture
def taproot_sender_address(sender_key):
    return sender_key.get_public_key().get_taproot_address().to_string()


@pytest.fixture
def internal_key():
    return PrivateKey(secret_exponent=0x1A7E5EED)


@pytest.fixture
def recipient_address():
    return PrivateKey(secret_exponent=0xBEEF).get_public_key().get_segwit_address().to_string()


@pytest.fixture
def change_address():
    return PrivateKey(secret_exponent=0xC4A6E).get_public_key().get_segwit_address().to_string()


@pytest.fixture
def hello_request(recipient_address):
    return InscriptionRequest("text/plain;charset=utf-8", b"hello world", recipient_address)


@pytest.fixture
def make_config(sender_address, change_address):
    def _make(requests, fee_rate=5, sender=None, change=None):
        return InscriptionConfig(
            network="testnet",
            sender_address=sender or sender_address,
            change_address=change or change_address,
            fee_rate=fee_rate,
            requests=requests,
        )
    return _make


@pytest.fixture
def funding_utxo():
    return Utxo(txid="ab" * 32, vout=0, value=100_000, confirmed=True)


@pytest.fixture
def make_indexer():
    return FakeIndexer
