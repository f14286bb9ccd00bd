"""
Independent signature verification for signed inputs.

Signatures are produced by python-bitcoinutils; they are checked here with
libsecp256k1 (via coincurve) against the key the spent output commits to,
so a signer that silently produces a malformed or wrong-key signature is
caught before anything is broadcast.
"""

from __future__ import annotations

from bitcoinutils.constants import SIGHASH_ALL
from bitcoinutils.keys import P2trAddress, P2wpkhAddress, PublicKey
from bitcoinutils.script import Script
from bitcoinutils.transactions import Transaction
from coincurve import PublicKey as CurvePublicKey
from coincurve import PublicKeyXOnly

from ..errors import SignatureError
from .transaction import OutputType

_SCHNORR_SIG_LEN = 64


def verify_ecdsa(pubkey: bytes, digest: bytes, der_signature: bytes) -> bool:
    """Verify a DER-encoded ECDSA signature over a precomputed 32-byte digest."""
    try:
        return CurvePublicKey(pubkey).verify(der_signature, digest, hasher=None)
    except (ValueError, TypeError):
        return False


def verify_schnorr(xonly_pubkey: bytes, digest: bytes, signature: bytes) -> bool:
    """Verify a BIP-340 Schnorr signature over a 32-byte digest."""
    try:
        return PublicKeyXOnly(xonly_pubkey).verify(signature, digest)
    except (ValueError, TypeError):
        return False


def _witness_stack(tx: Transaction, index: int) -> list[str]:
    if index >= len(tx.witnesses):
        raise SignatureError(f"Input {index} has no witness")
    return list(tx.witnesses[index].stack)


def verify_p2wpkh_input(tx: Transaction, index: int, address: str, amount: int) -> None:
    """Check a P2WPKH witness: the pubkey must hash to `address` and sign the BIP143 digest."""
    stack = _witness_stack(tx, index)
    if len(stack) != 2:
        raise SignatureError(f"Input {index}: expected [signature, pubkey] witness")
    sig_hex, pubkey_hex = stack

    try:
        pubkey = PublicKey(pubkey_hex)
    except Exception as exc:
        raise SignatureError(f"Input {index}: invalid witness public key") from exc

    expected = P2wpkhAddress(address=address).to_witness_program()
    if pubkey.get_segwit_address().to_witness_program() != expected:
        raise SignatureError(f"Input {index}: witness key does not match {address}")

    sig = bytes.fromhex(sig_hex)
    if not sig or sig[-1] != SIGHASH_ALL:
        raise SignatureError(f"Input {index}: expected a SIGHASH_ALL signature")

    script_code = pubkey.get_address().to_script_pub_key()
    digest = tx.get_transaction_segwit_digest(index, script_code, amount)
    if not verify_ecdsa(bytes.fromhex(pubkey_hex), digest, sig[:-1]):
        raise SignatureError(f"Input {index}: ECDSA signature does not verify")


def verify_p2tr_key_path_input(
    tx: Transaction,
    index: int,
    address: str,
    script_pubkeys: list[Script],
    amounts: list[int],
) -> None:
    """Check a taproot key-path witness against the output key of `address`."""
    stack = _witness_stack(tx, index)
    if len(stack) != 1:
        raise SignatureError(f"Input {index}: expected a single key-path signature")

    sig = bytes.fromhex(stack[0])
    if len(sig) != _SCHNORR_SIG_LEN:
        raise SignatureError(f"Input {index}: unexpected signature length {len(sig)}")

    output_key = bytes.fromhex(P2trAddress(address=address).to_witness_program())
    digest = tx.get_transaction_taproot_digest(index, script_pubkeys, amounts, 0)
    if not verify_schnorr(output_key, digest, sig):
        raise SignatureError(f"Input {index}: Schnorr signature does not verify")


def verify_script_path_input(
    tx: Transaction,
    index: int,
    internal_pubkey_hex: str,
    leaf_script: Script,
    script_pubkeys: list[Script],
    amounts: list[int],
) -> None:
    """Check a tapscript-path witness signed by the (untweaked) internal key."""
    stack = _witness_stack(tx, index)
    if len(stack) != 3:
        raise SignatureError(
            f"Input {index}: expected [signature, script, control block] witness"
        )
    if stack[1] != leaf_script.to_hex():
        raise SignatureError(f"Input {index}: witness script is not the envelope leaf")

    sig = bytes.fromhex(stack[0])
    if len(sig) != _SCHNORR_SIG_LEN:
        raise SignatureError(f"Input {index}: unexpected signature length {len(sig)}")

    digest = tx.get_transaction_taproot_digest(index, script_pubkeys, amounts, 1, leaf_script)
    if not verify_schnorr(bytes.fromhex(internal_pubkey_hex), digest, sig):
        raise SignatureError(f"Input {index}: tapscript signature does not verify")


def verify_sender_input(
    tx: Transaction,
    index: int,
    sender_type: OutputType,
    address: str,
    script_pubkeys: list[Script],
    amounts: list[int],
) -> None:
    """Verify input `index` with the scheme of the sender's output type."""
    if sender_type is OutputType.P2WPKH:
        verify_p2wpkh_input(tx, index, address, amounts[index])
    elif sender_type is OutputType.P2TR:
        verify_p2tr_key_path_input(tx, index, address, script_pubkeys, amounts)
    else:
        raise SignatureError(f"No verification scheme for {sender_type} inputs")
