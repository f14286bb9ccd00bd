"""
Fee and size estimation for commit/reveal pairs.

Fees are fixed in two phases.  Each reveal is measured first: a placeholder
reveal is built and signed for real, so its virtual size is exact, and the
commit output that funds it is sized to cover that fee plus the dust floor.
The commit is then sized from per-type constants, first without a change
output to check feasibility, then with one to decide whether change is
worth keeping.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from bitcoinutils.keys import PrivateKey
from bitcoinutils.transactions import Transaction, TxInput, TxOutput, TxWitnessInput

from ..errors import InsufficientBalanceError
from .envelope import build_envelope
from .transaction import DUST_FLOOR, OutputType, address_to_script_pubkey

if TYPE_CHECKING:
    from .inscription import InscriptionRequest

# Version, locktime, input/output counts and segwit marker (vbytes)
COMMIT_BASE_VBYTES = 10

# Any non-null outpoint; an all-zero txid would serialize as a coinbase input
_PLACEHOLDER_TXID = "01" * 32


def measure_reveal_vsize(internal_key: PrivateKey, request: InscriptionRequest) -> int:
    """Virtual size of a signed reveal for `request`, measured on a placeholder spend."""
    public_key = internal_key.get_public_key()
    envelope = build_envelope(public_key, request)

    tx = Transaction(
        [TxInput(_PLACEHOLDER_TXID, 0)],
        [TxOutput(DUST_FLOOR, address_to_script_pubkey(request.recipient_address))],
        has_segwit=True,
    )
    sig = internal_key.sign_taproot_input(
        tx,
        0,
        [envelope.script_pubkey()],
        [DUST_FLOOR + 100],
        script_path=True,
        tapleaf_script=envelope.script,
        tweak=False,
    )
    tx.witnesses.append(TxWitnessInput(envelope.witness_items(sig)))
    return tx.get_vsize()


def reveal_value_for_vsize(vsize: int, fee_rate: int) -> int:
    """Commit output value needed to pay a reveal of `vsize` vbytes and a dust output."""
    return math.ceil(vsize * fee_rate) + DUST_FLOOR


def estimate_reveal_value(
    internal_key: PrivateKey,
    request: InscriptionRequest,
    fee_rate: int,
) -> int:
    """
    Value the commit output for `request` must carry.

    Returns ceil(vsize * fee_rate) + DUST_FLOOR; the reveal pays DUST_FLOOR to
    the recipient and the rest is its fee.
    """
    return reveal_value_for_vsize(measure_reveal_vsize(internal_key, request), fee_rate)


def commit_vbytes(
    sender_type: OutputType,
    num_inputs: int,
    num_reveals: int,
    with_change: bool = False,
) -> int:
    """Estimated commit size: base + sender inputs + P2TR reveal outputs [+ change]."""
    size = (
        COMMIT_BASE_VBYTES
        + sender_type.input_vbytes * num_inputs
        + OutputType.P2TR.output_vbytes * num_reveals
    )
    if with_change:
        # Change is sized as the sender's own output type
        size += sender_type.output_vbytes
    return size


def estimate_change(
    sender_type: OutputType,
    num_inputs: int,
    num_reveals: int,
    total: int,
    spend: int,
    fee_rate: int,
) -> int:
    """
    Change left for the commit transaction, or 0 if it is not worth an output.

    Args:
        sender_type: Output type of the funding address.
        num_inputs:  Number of funding UTXOs.
        num_reveals: Number of reveal outputs.
        total:       Sum of the funding UTXO values.
        spend:       Sum of the reveal output values.
        fee_rate:    Fee rate in sat/vByte.

    Raises:
        InsufficientBalanceError: if the funds cannot pay `fee_rate` even for
            the commit without a change output.
    """
    size = commit_vbytes(sender_type, num_inputs, num_reveals)
    size_with_change = commit_vbytes(sender_type, num_inputs, num_reveals, with_change=True)

    left = total - spend
    if left // size < fee_rate:
        raise InsufficientBalanceError(needed=spend + size * fee_rate, available=total)

    change = left - size_with_change * fee_rate
    return change if change > DUST_FLOOR else 0
