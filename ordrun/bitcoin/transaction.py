"""
Bitcoin transaction utilities.

Uses python-bitcoinutils for network setup, address parsing and script
conversion, and classifies addresses into the output types ordrun can
fund from and sign for.
"""

from __future__ import annotations

from enum import Enum

from bitcoinutils.bech32 import decode as bech32_decode
from bitcoinutils.script import Script
from bitcoinutils.setup import setup as btc_setup

from ..errors import ClassificationError

# Minimum non-dust value for a P2TR output (sat)
DUST_FLOOR = 330

# Human-readable parts of Bitcoin segwit addresses
_SEGWIT_HRPS = ("bc", "tb", "bcrt")

NETWORKS = ("mainnet", "testnet", "signet", "regtest")

_NETWORK_HRPS = {"mainnet": "bc", "testnet": "tb", "signet": "tb", "regtest": "bcrt"}


def configure_network(network: str = "mainnet") -> None:
    """Configure python-bitcoinutils for the given network."""
    # signet shares testnet's address and WIF prefixes
    mapping = {"mainnet": "mainnet", "testnet": "testnet", "signet": "testnet", "regtest": "regtest"}
    if network not in mapping:
        raise ValueError(f"Unknown network {network!r}; expected one of {', '.join(NETWORKS)}")
    btc_setup(mapping[network])


# ---------------------------------------------------------------------------
# Output types
# ---------------------------------------------------------------------------

class OutputType(Enum):
    """
    Spendable output types, with the vbyte sizes used by the commit
    estimator and the signature scheme their inputs are verified with.
    """

    #          label          input  output  scheme
    P2WPKH = ("p2wpkh",       67,    31,     "ecdsa")
    P2TR = ("p2tr",           57,    43,     "schnorr")
    UNSUPPORTED = ("unsupported", 0, 0,      "")

    def __init__(self, label: str, input_vbytes: int, output_vbytes: int, scheme: str):
        self.label = label
        self._input_vbytes = input_vbytes
        self._output_vbytes = output_vbytes
        self.scheme = scheme

    @property
    def supported(self) -> bool:
        return self is not OutputType.UNSUPPORTED

    @property
    def input_vbytes(self) -> int:
        if not self.supported:
            raise ClassificationError("Unsupported address type has no input size")
        return self._input_vbytes

    @property
    def output_vbytes(self) -> int:
        if not self.supported:
            raise ClassificationError("Unsupported address type has no output size")
        return self._output_vbytes

    def __str__(self) -> str:
        return self.label


def _decode_segwit(address: str) -> tuple[int, list[int]] | None:
    """Return (witness version, program) for a Bitcoin segwit address, else None."""
    addr = address.strip()
    # bech32 allows all-lowercase or all-uppercase, never a mix
    if addr != addr.lower() and addr != addr.upper():
        return None
    addr = addr.lower()
    sep = addr.rfind("1")
    if sep < 1:
        return None
    hrp = addr[:sep]
    if hrp not in _SEGWIT_HRPS:
        return None
    version, program = bech32_decode(hrp, addr)
    if version is None or program is None:
        return None
    return version, program


def classify(address: str) -> OutputType:
    """
    Classify an address by its segwit version and program length.

    Version 0 with a 20-byte program is P2WPKH, version 1 with a 32-byte
    program is P2TR.  Everything else, including strings that do not decode,
    is UNSUPPORTED.  Never raises.
    """
    try:
        decoded = _decode_segwit(address)
    except Exception:
        return OutputType.UNSUPPORTED
    if decoded is None:
        return OutputType.UNSUPPORTED

    version, program = decoded
    if version == 0 and len(program) == 20:
        return OutputType.P2WPKH
    if version == 1 and len(program) == 32:
        return OutputType.P2TR
    return OutputType.UNSUPPORTED


def require_supported(address: str, role: str = "address", network: str | None = None) -> OutputType:
    """
    Classify `address` and raise ClassificationError if it is unsupported,
    or, when `network` is given, if it belongs to another network.
    """
    output_type = classify(address)
    if not output_type.supported:
        raise ClassificationError(
            f"Unsupported {role} type: {address!r} (expected P2WPKH or P2TR)"
        )
    if network is not None:
        require_network(address, network, role)
    return output_type


def require_network(address: str, network: str, role: str = "address") -> None:
    """
    Raise ClassificationError if segwit `address` is not for `network`.

    Addresses that do not decode as segwit are left to the script
    conversion to reject.
    """
    expected = _NETWORK_HRPS.get(network)
    if expected is None:
        raise ValueError(f"Unknown network {network!r}")
    addr = address.strip().lower()
    if _decode_segwit(address) is None:
        return
    hrp = addr[: addr.rfind("1")]
    if hrp != expected:
        raise ClassificationError(
            f"{role.capitalize()} {address!r} is a {hrp!r} address, not a {network} one"
        )


def address_to_script_pubkey(address: str) -> Script:
    """
    Convert a Bitcoin address to its scriptPubKey.

    Supports P2PKH (1...), P2SH (3...), P2WPKH/P2WSH (bc1q...) and
    P2TR (bc1p...) addresses.  The address must belong to the network
    configured with configure_network().
    """
    from bitcoinutils.keys import (
        P2pkhAddress,
        P2shAddress,
        P2trAddress,
        P2wpkhAddress,
        P2wshAddress,
    )

    addr_str = address.strip()
    decoded = _decode_segwit(addr_str)

    if decoded is not None:
        version, program = decoded
        # P2TR: native segwit v1
        if version == 1:
            return P2trAddress(address=addr_str).to_script_pub_key()
        # P2WPKH / P2WSH: native segwit v0, told apart by program length
        if version == 0 and len(program) == 20:
            return P2wpkhAddress(address=addr_str).to_script_pub_key()
        if version == 0:
            return P2wshAddress(address=addr_str).to_script_pub_key()
        raise ClassificationError(f"Unknown segwit version {version} for {addr_str}")

    # P2SH (3... / 2...)
    if addr_str.startswith(("3", "2")):
        return P2shAddress(address=addr_str).to_script_pub_key()

    # P2PKH (1... / m... / n...)
    return P2pkhAddress(address=addr_str).to_script_pub_key()
