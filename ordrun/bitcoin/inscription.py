"""
Ordinal inscription commit/reveal transactions.

Implements the two-phase commit/reveal pattern used by the Ordinals protocol,
for any number of inscriptions funded by one commit transaction:

  Phase 1: COMMIT
    One transaction spends the sender's UTXOs and pays one P2TR output per
    inscription, each locked to:
        P2TR(internal_key, [envelope_leaf_i])
    plus an optional change output.

  Phase 2: REVEAL
    One transaction per inscription spends commit output i through the
    tapscript path, revealing the envelope in the witness:
        [<schnorr_sig>, <envelope_script>, <control_block>]
    and pays the dust floor to the inscription's recipient.

Every envelope in a batch commits to the same ephemeral internal key.
Whoever holds that key controls every commit output of the batch, and
losing it strands all of them until it is recovered.

Each commit output value is fixed by a RevealPlan before the commit is
built.  The reveal recomputes the envelope address and refuses to spend if
it differs from the plan.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field

from bitcoinutils.keys import PrivateKey
from bitcoinutils.script import Script
from bitcoinutils.transactions import Transaction, TxInput, TxOutput, TxWitnessInput

from ..errors import IntegrityError, NotReadyError, SignatureError
from .envelope import build_envelope
from .fees import estimate_change, estimate_reveal_value
from .transaction import (
    DUST_FLOOR,
    NETWORKS,
    OutputType,
    address_to_script_pubkey,
    require_network,
    require_supported,
)
from .verify import verify_script_path_input, verify_sender_input


@dataclass(frozen=True)
class InscriptionRequest:
    """Holds the data for a single inscription."""
    content_type: str        # MIME type, e.g. "text/plain;charset=utf-8"
    content: bytes           # Raw content bytes
    recipient_address: str   # Where the inscribed sat lands


@dataclass(frozen=True)
class InscriptionConfig:
    network: str
    sender_address: str
    change_address: str
    fee_rate: int                        # sat/vByte
    requests: tuple[InscriptionRequest, ...]

    def __post_init__(self) -> None:
        if self.network not in NETWORKS:
            raise ValueError(f"Unknown network {self.network!r}")
        if isinstance(self.fee_rate, bool) or not isinstance(self.fee_rate, int) or self.fee_rate <= 0:
            raise ValueError(f"fee_rate must be a positive integer, got {self.fee_rate!r}")
        object.__setattr__(self, "requests", tuple(self.requests))
        if not self.requests:
            raise ValueError("At least one inscription request is required")
        require_supported(self.sender_address, "sender address", self.network)
        require_supported(self.change_address, "change address", self.network)
        for request in self.requests:
            require_network(request.recipient_address, self.network, "recipient address")

    @property
    def sender_type(self) -> OutputType:
        return require_supported(self.sender_address, "sender address")


@dataclass(frozen=True)
class OutPoint:
    txid: str
    vout: int


@dataclass(frozen=True)
class RevealPlan:
    """
    What commit output `index` must pay, and how far its reveal has got.

    `required_value` is fixed when the plan is made; the with_* methods
    return a copy with progress attached.
    """
    index: int
    envelope_address: str
    required_value: int
    commit_output: OutPoint | None = None
    reveal_txid: str | None = None

    def with_commit_output(self, outpoint: OutPoint) -> "RevealPlan":
        return dataclasses.replace(self, commit_output=outpoint)

    def with_reveal_txid(self, txid: str) -> "RevealPlan":
        return dataclasses.replace(self, reveal_txid=txid)


@dataclass
class CommitDraft:
    """An unsigned commit transaction plus the prevout data needed to sign it."""
    tx: Transaction
    sender_address: str
    sender_type: OutputType
    input_amounts: list[int]
    input_script_pubkeys: list[Script]
    change_value: int = 0
    reveal_values: list[int] = field(default_factory=list)

    @property
    def total_in(self) -> int:
        return sum(self.input_amounts)

    @property
    def total_out(self) -> int:
        return sum(out.amount for out in self.tx.outputs)

    @property
    def fee(self) -> int:
        return self.total_in - self.total_out


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------

def plan_reveals(config: InscriptionConfig, internal_key: PrivateKey) -> list[RevealPlan]:
    """Derive each envelope address and fix the value its commit output must carry."""
    public_key = internal_key.get_public_key()
    plans = []
    for i, request in enumerate(config.requests):
        envelope = build_envelope(public_key, request)
        plans.append(
            RevealPlan(
                index=i,
                envelope_address=envelope.address_str,
                required_value=estimate_reveal_value(internal_key, request, config.fee_rate),
            )
        )
    return plans


# ---------------------------------------------------------------------------
# Commit
# ---------------------------------------------------------------------------

def build_unsigned_commit(
    config: InscriptionConfig,
    utxos: list,
    plans: list[RevealPlan],
) -> CommitDraft:
    """
    Build the unsigned commit transaction.

    Args:
        config: Inscription config (sender, change address, fee rate).
        utxos:  Funding UTXOs of the sender, all of which are spent.  Each
                needs `txid`, `vout` and `value` attributes.
        plans:  Reveal plans, in request order.

    Returns:
        CommitDraft with one output per plan at its required value, then the
        change output if one is kept.

    Raises:
        InsufficientBalanceError: before any transaction is built, if the
            UTXOs cannot fund the reveal outputs and the commit fee.
    """
    sender_type = config.sender_type
    require_supported(config.change_address, "change address")

    total = sum(int(u.value) for u in utxos)
    spend = sum(plan.required_value for plan in plans)
    change = estimate_change(
        sender_type, len(utxos), len(plans), total, spend, config.fee_rate
    )

    sender_script = address_to_script_pubkey(config.sender_address)
    inputs = [TxInput(u.txid, int(u.vout)) for u in utxos]
    outputs = [
        TxOutput(plan.required_value, address_to_script_pubkey(plan.envelope_address))
        for plan in plans
    ]
    if change > 0:
        outputs.append(TxOutput(change, address_to_script_pubkey(config.change_address)))

    return CommitDraft(
        tx=Transaction(inputs, outputs, has_segwit=True),
        sender_address=config.sender_address,
        sender_type=sender_type,
        input_amounts=[int(u.value) for u in utxos],
        input_script_pubkeys=[sender_script] * len(utxos),
        change_value=change,
        reveal_values=[plan.required_value for plan in plans],
    )


def validate_commit_signatures(draft: CommitDraft, tx: Transaction | None = None) -> None:
    """
    Verify every input of a signed commit against the sender's key.

    Raises:
        SignatureError: if any input is unsigned or its signature fails.
    """
    if tx is None:
        tx = draft.tx
    if len(tx.witnesses) != len(tx.inputs):
        raise SignatureError(
            f"Commit has {len(tx.witnesses)} witnesses for {len(tx.inputs)} inputs"
        )
    for i in range(len(tx.inputs)):
        verify_sender_input(
            tx,
            i,
            draft.sender_type,
            draft.sender_address,
            draft.input_script_pubkeys,
            draft.input_amounts,
        )


def sign_and_validate_commit(draft: CommitDraft, signer: PrivateKey) -> Transaction:
    """
    Sign every commit input with `signer` and re-verify before accepting.

    P2WPKH inputs are signed per BIP143 (scriptCode = P2PKH script of the
    key); P2TR inputs are signed on the key path.

    Returns:
        The signed commit transaction, ready to serialize.

    Raises:
        SignatureError: if signing fails or any signature does not verify.
    """
    tx = draft.tx
    pubkey = signer.get_public_key()
    witnesses = []
    try:
        for i in range(len(tx.inputs)):
            if draft.sender_type is OutputType.P2WPKH:
                signing_script = pubkey.get_address().to_script_pub_key()
                sig = signer.sign_segwit_input(tx, i, signing_script, draft.input_amounts[i])
                witnesses.append(TxWitnessInput([sig, pubkey.to_hex()]))
            else:
                sig = signer.sign_taproot_input(
                    tx, i, draft.input_script_pubkeys, draft.input_amounts
                )
                witnesses.append(TxWitnessInput([sig]))
    except Exception as exc:
        raise SignatureError(f"Signing commit input failed: {exc}") from exc

    tx.witnesses = witnesses
    validate_commit_signatures(draft, tx)
    return tx


# ---------------------------------------------------------------------------
# Reveal
# ---------------------------------------------------------------------------

def build_reveal_transaction(
    config: InscriptionConfig,
    index: int,
    internal_key: PrivateKey,
    plan: RevealPlan,
) -> Transaction:
    """
    Build, sign and verify the reveal for request `index`.

    The input spends `plan.commit_output` (worth `plan.required_value`)
    through the envelope leaf; the single output pays DUST_FLOOR to the
    request's recipient and the difference is the reveal fee.

    Raises:
        NotReadyError:  if the plan has no commit output yet.
        IntegrityError: if the rebuilt envelope address differs from the plan.
        SignatureError: if the tapscript signature does not verify.
    """
    if plan.commit_output is None:
        raise NotReadyError(f"Reveal {index} has no commit output to spend")

    request = config.requests[index]
    public_key = internal_key.get_public_key()
    envelope = build_envelope(public_key, request)

    if envelope.address_str != plan.envelope_address:
        raise IntegrityError(
            f"Reveal {index}: envelope address {envelope.address_str} does not match "
            f"committed address {plan.envelope_address}"
        )

    txin = TxInput(plan.commit_output.txid, plan.commit_output.vout)
    txout = TxOutput(DUST_FLOOR, address_to_script_pubkey(request.recipient_address))
    tx = Transaction([txin], [txout], has_segwit=True)

    spent_scripts = [envelope.script_pubkey()]
    spent_amounts = [plan.required_value]
    try:
        sig = internal_key.sign_taproot_input(
            tx,
            0,
            spent_scripts,
            spent_amounts,
            script_path=True,
            tapleaf_script=envelope.script,
            tweak=False,
        )
    except Exception as exc:
        raise SignatureError(f"Signing reveal {index} failed: {exc}") from exc

    tx.witnesses.append(TxWitnessInput(envelope.witness_items(sig)))

    verify_script_path_input(
        tx,
        0,
        public_key.to_x_only_hex(),
        envelope.script,
        spent_scripts,
        spent_amounts,
    )
    return tx
