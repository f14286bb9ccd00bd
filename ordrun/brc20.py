"""
BRC-20 payloads.

BRC-20 operations are compact JSON documents inscribed as plain text:

    {"p":"brc-20","op":"deploy","tick":"ordi","max":"21000000","lim":"1000"}
    {"p":"brc-20","op":"mint","tick":"ordi","amt":"1000"}
    {"p":"brc-20","op":"transfer","tick":"ordi","amt":"100"}
"""

from __future__ import annotations

import json
import re

from .bitcoin.inscription import InscriptionRequest

CONTENT_TYPE = "text/plain;charset=utf-8"

_AMOUNT_RE = re.compile(r"^\d+(\.\d+)?$")


def _check_tick(tick: str) -> str:
    if len(tick.encode()) not in (4, 5):
        raise ValueError(f"BRC-20 tick must be 4 or 5 bytes, got {tick!r}")
    return tick


def _check_amount(name: str, value) -> str:
    text = str(value)
    if not _AMOUNT_RE.match(text) or float(text) <= 0:
        raise ValueError(f"BRC-20 {name} must be a positive decimal, got {value!r}")
    return text


def payload_json(payload: dict) -> str:
    """Compact JSON, as indexers expect it."""
    return json.dumps(payload, separators=(",", ":"))


def deploy_payload(tick: str, max_supply, limit=None) -> dict:
    payload = {
        "p": "brc-20",
        "op": "deploy",
        "tick": _check_tick(tick),
        "max": _check_amount("max", max_supply),
    }
    if limit is not None:
        payload["lim"] = _check_amount("lim", limit)
    return payload


def mint_payload(tick: str, amount) -> dict:
    return {"p": "brc-20", "op": "mint", "tick": _check_tick(tick), "amt": _check_amount("amt", amount)}


def transfer_payload(tick: str, amount) -> dict:
    return {"p": "brc-20", "op": "transfer", "tick": _check_tick(tick), "amt": _check_amount("amt", amount)}


def to_request(payload: dict, recipient_address: str) -> InscriptionRequest:
    """Wrap a BRC-20 payload into an inscription request."""
    return InscriptionRequest(
        content_type=CONTENT_TYPE,
        content=payload_json(payload).encode("utf-8"),
        recipient_address=recipient_address,
    )
