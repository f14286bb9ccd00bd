"""
Commit/reveal lifecycle driver.

An InscriptionSession walks one batch of inscriptions through:

    NEW -> COMMIT_BUILT -> COMMIT_SIGNED -> COMMIT_BROADCAST
        -> COMMIT_CONFIRMED -> (one reveal per request) -> COMPLETE

The session owns the ephemeral internal key and the commit txid, which are
the only state a later process needs to finish the batch:

    session = InscriptionSession.resume(config, indexer, wif, commit_txid)
    session.wait_for_confirmation()
    session.reveal_all()

Reveal batch policy: continue-on-error.  A reveal whose signing or broadcast
fails is logged and reported in the returned outcomes; later reveals are
still attempted, and a re-run of reveal_all() retries only the ones without
a txid.  An IntegrityError (commit output does not match the plan) stops the
batch at once.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum

from bitcoinutils.keys import PrivateKey
from bitcoinutils.transactions import Transaction

from .bitcoin.inscription import (
    CommitDraft,
    InscriptionConfig,
    OutPoint,
    RevealPlan,
    build_reveal_transaction,
    build_unsigned_commit,
    plan_reveals,
    sign_and_validate_commit,
)
from .bitcoin.transaction import address_to_script_pubkey, configure_network
from .errors import IndexerError, IntegrityError, NotReadyError, SignatureError

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 60.0


class SessionState(Enum):
    NEW = "new"
    COMMIT_BUILT = "commit_built"
    COMMIT_SIGNED = "commit_signed"
    COMMIT_BROADCAST = "commit_broadcast"
    COMMIT_CONFIRMED = "commit_confirmed"
    COMPLETE = "complete"
    ABORTED = "aborted"


@dataclass
class RevealOutcome:
    index: int
    txid: str | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.txid is not None


class ConfirmationPoll:
    """
    Cancellable poll for a transaction's confirmation.

    wait() blocks, asking the indexer every `interval` seconds, until the
    transaction confirms (True), cancel() is called or `max_wait` seconds
    pass (False).  Lookup failures are logged and polling continues.  With
    the defaults it polls forever.

    `cancelled` lets the owner share one event across polls, so a cancel
    issued before wait() starts is still honoured.
    """

    def __init__(self, indexer, txid: str, interval: float = DEFAULT_POLL_INTERVAL,
                 max_wait: float | None = None, cancelled: threading.Event | None = None):
        self.indexer = indexer
        self.txid = txid
        self.interval = interval
        self.max_wait = max_wait
        self._cancelled = cancelled if cancelled is not None else threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def wait(self) -> bool:
        deadline = None if self.max_wait is None else time.monotonic() + self.max_wait
        while not self.cancelled:
            try:
                status = self.indexer.get_transaction_status(self.txid)
            except IndexerError as exc:
                logger.warning("Status lookup for %s failed: %s", self.txid, exc)
            else:
                logger.info("transaction %s confirmed=%s", self.txid, status.confirmed)
                if status.confirmed:
                    return True

            timeout = self.interval
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    logger.info("Gave up waiting for %s after %ss", self.txid, self.max_wait)
                    return False
                timeout = min(timeout, remaining)
            self._cancelled.wait(timeout)
        return False


class InscriptionSession:
    """Drives one commit transaction and its reveals."""

    def __init__(
        self,
        config: InscriptionConfig,
        indexer,
        internal_key: PrivateKey | None = None,
        commit_txid: str = "",
    ):
        configure_network(config.network)
        self.config = config
        self.indexer = indexer
        self.internal_key = internal_key or PrivateKey()
        self.commit_txid = commit_txid
        self.plans: list[RevealPlan] = plan_reveals(config, self.internal_key)
        self.state = SessionState.COMMIT_BROADCAST if commit_txid else SessionState.NEW
        self.draft: CommitDraft | None = None
        self.signed_commit: Transaction | None = None
        self._wait_cancelled = threading.Event()

    @classmethod
    def resume(
        cls,
        config: InscriptionConfig,
        indexer,
        internal_key_wif: str,
        commit_txid: str,
    ) -> "InscriptionSession":
        """Rebuild a session whose commit transaction was already broadcast."""
        if not commit_txid:
            raise NotReadyError("Cannot resume without a commit txid")
        configure_network(config.network)
        return cls(config, indexer, PrivateKey.from_wif(internal_key_wif), commit_txid)

    @property
    def internal_key_wif(self) -> str:
        """WIF of the ephemeral key; every reveal in the batch needs it."""
        return self.internal_key.to_wif()

    def _require(self, *states: SessionState) -> None:
        if self.state not in states:
            expected = " or ".join(s.value for s in states)
            raise NotReadyError(f"Session is {self.state.value}, expected {expected}")

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    def build_commit(self) -> CommitDraft:
        """Fetch the sender's UTXOs and build the unsigned commit."""
        self._require(SessionState.NEW, SessionState.COMMIT_BUILT)
        utxos = self.indexer.get_utxos(self.config.sender_address)
        logger.info("sender %s: using %d utxos", self.config.sender_address, len(utxos))
        self.draft = build_unsigned_commit(self.config, utxos, self.plans)
        self.state = SessionState.COMMIT_BUILT
        logger.info(
            "commit built: %d reveal outputs, change %d sat, fee %d sat",
            len(self.plans), self.draft.change_value, self.draft.fee,
        )
        return self.draft

    def sign_commit(self, signer: PrivateKey) -> Transaction:
        """Sign and verify the commit; a signature failure aborts the session."""
        self._require(SessionState.COMMIT_BUILT)
        try:
            self.signed_commit = sign_and_validate_commit(self.draft, signer)
        except SignatureError:
            self.state = SessionState.ABORTED
            logger.error("commit signature invalid, session aborted")
            raise
        self.state = SessionState.COMMIT_SIGNED
        return self.signed_commit

    def broadcast_commit(self) -> str:
        """Submit the signed commit and record its txid."""
        self._require(SessionState.COMMIT_SIGNED)
        txid = self.indexer.broadcast(self.signed_commit.serialize())
        self.commit_txid = txid
        self.plans = [
            plan.with_commit_output(OutPoint(txid, plan.index)) for plan in self.plans
        ]
        self.state = SessionState.COMMIT_BROADCAST
        logger.info("commit transaction id: %s", txid)
        return txid

    def wait_for_confirmation(
        self,
        interval: float = DEFAULT_POLL_INTERVAL,
        max_wait: float | None = None,
    ) -> bool:
        """
        Block until the commit confirms; False if cancelled or timed out.

        A cancel_wait() issued before this call makes it return False at
        once.  The cancel is consumed, so a later call waits again.
        """
        if self.state in (SessionState.COMMIT_CONFIRMED, SessionState.COMPLETE):
            return True
        self._require(SessionState.COMMIT_BROADCAST)
        poll = ConfirmationPoll(
            self.indexer, self.commit_txid, interval, max_wait, cancelled=self._wait_cancelled
        )
        confirmed = poll.wait()
        if confirmed:
            self.state = SessionState.COMMIT_CONFIRMED
        else:
            self._wait_cancelled.clear()
        return confirmed

    def cancel_wait(self) -> None:
        """Stop the current or next wait_for_confirmation(), from any thread."""
        self._wait_cancelled.set()

    # ------------------------------------------------------------------
    # Reveal
    # ------------------------------------------------------------------

    def preview_reveals(self, commit_txid: str | None = None) -> list[Transaction]:
        """
        Build every reveal for `commit_txid` without broadcasting.

        Defaults to the txid of the signed (possibly unbroadcast) commit.
        """
        if commit_txid is None:
            if self.signed_commit is None:
                raise NotReadyError("No signed commit transaction to preview reveals for")
            commit_txid = self.signed_commit.get_txid()
        return [
            build_reveal_transaction(
                self.config,
                plan.index,
                self.internal_key,
                plan.with_commit_output(OutPoint(commit_txid, plan.index)),
            )
            for plan in self.plans
        ]

    def _check_commit_outputs(self, chain_tx) -> None:
        if len(chain_tx.outputs) < len(self.plans):
            raise IntegrityError(
                f"Commit {self.commit_txid} has {len(chain_tx.outputs)} outputs, "
                f"expected at least {len(self.plans)}"
            )
        for plan in self.plans:
            output = chain_tx.outputs[plan.index]
            expected_script = address_to_script_pubkey(plan.envelope_address).to_hex()
            if output.scriptpubkey.lower() != expected_script:
                raise IntegrityError(
                    f"Commit output {plan.index} does not pay envelope address "
                    f"{plan.envelope_address}"
                )
            if output.value != plan.required_value:
                raise IntegrityError(
                    f"Commit output {plan.index} carries {output.value} sat, "
                    f"reveal was planned for {plan.required_value} sat"
                )

    def reveal_all(self) -> list[RevealOutcome]:
        """
        Build, sign, verify and broadcast the reveal of every request.

        Returns one RevealOutcome per request, in request order.

        Raises:
            NotReadyError:  if the commit was never broadcast or is not confirmed.
            IntegrityError: if the commit outputs do not match the plans.
        """
        if not self.commit_txid:
            raise NotReadyError("Commit transaction has not been broadcast")
        self._require(SessionState.COMMIT_BROADCAST, SessionState.COMMIT_CONFIRMED,
                      SessionState.COMPLETE)

        chain_tx = self.indexer.get_transaction(self.commit_txid)
        if not chain_tx.status.confirmed:
            raise NotReadyError(f"Commit transaction {self.commit_txid} is not confirmed")
        self.state = SessionState.COMMIT_CONFIRMED
        self._check_commit_outputs(chain_tx)

        outcomes = []
        for i, plan in enumerate(self.plans):
            if plan.reveal_txid:
                outcomes.append(RevealOutcome(plan.index, txid=plan.reveal_txid))
                continue
            plan = plan.with_commit_output(OutPoint(self.commit_txid, plan.index))
            self.plans[i] = plan
            try:
                tx = build_reveal_transaction(self.config, plan.index, self.internal_key, plan)
                txid = self.indexer.broadcast(tx.serialize())
            except (SignatureError, IndexerError) as exc:
                logger.error("reveal %d failed: %s", plan.index, exc)
                outcomes.append(RevealOutcome(plan.index, error=exc))
                continue
            self.plans[i] = plan.with_reveal_txid(txid)
            logger.info("reveal transaction id: %s", txid)
            outcomes.append(RevealOutcome(plan.index, txid=txid))

        if all(plan.reveal_txid for plan in self.plans):
            self.state = SessionState.COMPLETE
        return outcomes

    # ------------------------------------------------------------------
    # Whole lifecycle
    # ------------------------------------------------------------------

    def run(
        self,
        signer: PrivateKey,
        interval: float = DEFAULT_POLL_INTERVAL,
        max_wait: float | None = None,
    ) -> list[RevealOutcome]:
        """
        Build, sign and broadcast the commit, wait for it, then reveal.

        Returns an empty list if waiting was cancelled or timed out; the
        session can then be resumed with internal_key_wif and commit_txid.
        """
        if self.state is SessionState.NEW:
            self.build_commit()
        if self.state is SessionState.COMMIT_BUILT:
            self.sign_commit(signer)
        if self.state is SessionState.COMMIT_SIGNED:
            self.broadcast_commit()
        if not self.wait_for_confirmation(interval, max_wait):
            return []
        return self.reveal_all()
