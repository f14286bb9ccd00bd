from .envelope import InscriptionEnvelope, build_envelope, build_envelope_script, chunk
from .fees import commit_vbytes, estimate_change, estimate_reveal_value
from .inscription import (
    CommitDraft,
    InscriptionConfig,
    InscriptionRequest,
    OutPoint,
    RevealPlan,
    build_reveal_transaction,
    build_unsigned_commit,
    plan_reveals,
    sign_and_validate_commit,
    validate_commit_signatures,
)
from .transaction import (
    DUST_FLOOR,
    OutputType,
    address_to_script_pubkey,
    classify,
    configure_network,
    require_network,
    require_supported,
)

__all__ = [
    # envelope
    "InscriptionEnvelope",
    "build_envelope",
    "build_envelope_script",
    "chunk",
    # fees
    "commit_vbytes",
    "estimate_change",
    "estimate_reveal_value",
    # inscription
    "CommitDraft",
    "InscriptionConfig",
    "InscriptionRequest",
    "OutPoint",
    "RevealPlan",
    "build_reveal_transaction",
    "build_unsigned_commit",
    "plan_reveals",
    "sign_and_validate_commit",
    "validate_commit_signatures",
    # transaction utils
    "DUST_FLOOR",
    "OutputType",
    "address_to_script_pubkey",
    "classify",
    "configure_network",
    "require_network",
    "require_supported",
]
