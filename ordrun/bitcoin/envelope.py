"""
Ordinals inscription envelope.

The envelope is a tapscript leaf that carries the inscription behind an
OP_FALSE OP_IF guard, so the data is published in the reveal witness but
never executed:

    <internal_pubkey_x> OP_CHECKSIG
    OP_FALSE OP_IF
        <"ord">
        OP_1
        OP_1
        <content_type_bytes>
        OP_0
        <content_chunk_1>
        [<content_chunk_2> ...]
    OP_ENDIF

The OP_CHECKSIG at the top is what actually validates the spend.

The commit output pays to P2TR(internal_key, [envelope_leaf]).  The same
address is derived again when the reveal is built, so the script must be
byte-for-byte reproducible from (internal key, request).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from bitcoinutils.keys import P2trAddress, PublicKey
from bitcoinutils.script import Script
from bitcoinutils.utils import ControlBlock

if TYPE_CHECKING:
    from .inscription import InscriptionRequest

# Maximum bytes per script push (consensus limit)
MAX_CHUNK = 520

ORD_TAG = b"ord"


@dataclass(frozen=True)
class InscriptionEnvelope:
    """An envelope leaf together with the taproot output committing to it."""
    script: Script
    address: P2trAddress
    control_block: ControlBlock

    @property
    def address_str(self) -> str:
        return self.address.to_string()

    def script_pubkey(self) -> Script:
        return self.address.to_script_pub_key()

    def witness_items(self, signature: str) -> list[str]:
        """Script-path witness stack: [signature, leaf script, control block]."""
        return [signature, self.script.to_hex(), self.control_block.to_hex()]


def chunk(data: bytes, size: int = MAX_CHUNK) -> list[bytes]:
    """Split data into at-most-`size`-byte chunks."""
    return [data[i : i + size] for i in range(0, len(data), size)]


def build_envelope_script(internal_pubkey_hex: str, request: InscriptionRequest) -> Script:
    """
    Build the inscription tapscript leaf.

    The internal pubkey is the x-only (32-byte) representation as hex.
    Empty content is allowed and produces no content pushes.
    """
    items: list[str] = [
        internal_pubkey_hex,
        "OP_CHECKSIG",
        "OP_0",    # OP_FALSE, the IF branch never executes
        "OP_IF",
        ORD_TAG.hex(),
        "OP_1",
        "OP_1",
        request.content_type.encode().hex(),
        "OP_0",
    ]
    items.extend(piece.hex() for piece in chunk(request.content))
    items.append("OP_ENDIF")

    return Script(items)


def build_envelope(public_key: PublicKey, request: InscriptionRequest) -> InscriptionEnvelope:
    """Derive the envelope leaf, its single-leaf taproot address and control block."""
    script = build_envelope_script(public_key.to_x_only_hex(), request)
    address = public_key.get_taproot_address([[script]])
    # Single-leaf tree: empty merkle path, parity taken from the tweaked key
    control_block = ControlBlock(
        public_key,
        scripts=[[script]],
        index=0,
        is_odd=address.is_odd(),
    )
    return InscriptionEnvelope(script=script, address=address, control_block=control_block)
