"""
mempool.space (Esplora) REST API client.

Endpoints:
  GET  /address/{address}/utxo     - spendable outputs of an address
  GET  /tx/{txid}                  - transaction with outputs and status
  GET  /tx/{txid}/status           - confirmation status
  POST /tx                         - broadcast raw transaction hex (text/plain)

Any non-2xx response, or a transport failure, raises: BroadcastError for
POST /tx, ChainLookupError for the lookups.  Nothing is retried here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import requests

from ..errors import BroadcastError, ChainLookupError

logger = logging.getLogger(__name__)


@dataclass
class TxStatus:
    confirmed: bool
    block_height: int | None = None
    block_hash: str | None = None
    block_time: int | None = None

    @classmethod
    def from_dict(cls, d: dict) -> "TxStatus":
        return cls(
            confirmed=bool(d.get("confirmed", False)),
            block_height=d.get("block_height"),
            block_hash=d.get("block_hash"),
            block_time=d.get("block_time"),
        )


@dataclass
class Utxo:
    txid: str
    vout: int
    value: int             # satoshis
    confirmed: bool = False

    @classmethod
    def from_dict(cls, d: dict) -> "Utxo":
        return cls(
            txid=d["txid"],
            vout=int(d["vout"]),
            value=int(d["value"]),
            confirmed=bool(d.get("status", {}).get("confirmed", False)),
        )


@dataclass
class ChainOutput:
    scriptpubkey: str      # hex
    value: int
    address: str = ""

    @classmethod
    def from_dict(cls, d: dict) -> "ChainOutput":
        return cls(
            scriptpubkey=d.get("scriptpubkey", ""),
            value=int(d.get("value", 0)),
            address=d.get("scriptpubkey_address", ""),
        )


@dataclass
class ChainTransaction:
    txid: str
    status: TxStatus
    outputs: list[ChainOutput] = field(default_factory=list)

    @classmethod
    def from_dict(cls, d: dict) -> "ChainTransaction":
        return cls(
            txid=d.get("txid", ""),
            status=TxStatus.from_dict(d.get("status", {})),
            outputs=[ChainOutput.from_dict(v) for v in d.get("vout", [])],
        )


class MempoolClient:
    """HTTP client for a mempool.space-compatible indexer."""

    BASE_URL = "https://mempool.space/api"

    def __init__(self, base_url: str = BASE_URL, timeout: int = 30):
        self.base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._session = requests.Session()
        self._session.headers.update({"Accept": "application/json"})

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _get(self, path: str) -> Any:
        url = f"{self.base_url}{path}"
        try:
            resp = self._session.get(url, timeout=self._timeout)
        except requests.RequestException as exc:
            raise ChainLookupError(0, f"GET {path} failed: {exc}") from exc
        if not resp.ok:
            raise ChainLookupError(resp.status_code, resp.text)
        try:
            return resp.json()
        except ValueError as exc:
            raise ChainLookupError(resp.status_code, f"GET {path} returned non-JSON: {resp.text[:200]}") from exc

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get_utxos(self, address: str) -> list[Utxo]:
        """Returns every unspent output of `address`, confirmed or not."""
        utxos = [Utxo.from_dict(u) for u in self._get(f"/address/{address}/utxo")]
        logger.debug("%s has %d utxos", address, len(utxos))
        return utxos

    def get_transaction(self, txid: str) -> ChainTransaction:
        """Returns a transaction's outputs and confirmation status."""
        return ChainTransaction.from_dict(self._get(f"/tx/{txid}"))

    def get_transaction_status(self, txid: str) -> TxStatus:
        """Returns the confirmation status of a transaction."""
        return TxStatus.from_dict(self._get(f"/tx/{txid}/status"))

    def broadcast(self, tx_hex: str) -> str:
        """
        Broadcast a signed raw transaction.

        Args:
            tx_hex: Signed transaction in hexadecimal format.

        Returns:
            The txid reported by the indexer.
        """
        url = f"{self.base_url}/tx"
        try:
            resp = self._session.post(
                url,
                data=tx_hex,
                headers={"Content-Type": "text/plain"},
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise BroadcastError(0, f"POST /tx failed: {exc}") from exc
        if not resp.ok:
            raise BroadcastError(resp.status_code, resp.text)
        return resp.text.strip()
