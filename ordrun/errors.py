"""
Exceptions raised across the commit/reveal pipeline.

Every failure aborts the step that raised it.  The two places that catch
anything are the confirmation poll (lookup failures are logged and polling
continues) and the reveal batch (per-request failures are reported in the
outcome list).
"""

from __future__ import annotations


class InscriptionError(Exception):
    """Base class for all ordrun errors."""


class ClassificationError(InscriptionError):
    """An address is not P2WPKH or P2TR."""


class InsufficientBalanceError(InscriptionError):
    def __init__(self, needed: int, available: int):
        self.needed = needed
        self.available = available
        super().__init__(
            f"Insufficient balance: need at least {needed} sat, have {available} sat"
        )


class IntegrityError(InscriptionError):
    """A rebuilt envelope no longer matches what the commit transaction paid to."""


class SignatureError(InscriptionError):
    """Signing failed, or a signature did not verify against the expected key."""


class NotReadyError(InscriptionError):
    """A lifecycle step was called before the step it depends on completed."""


class IndexerError(InscriptionError):
    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Indexer API error {status_code}: {body}")


class BroadcastError(IndexerError):
    pass


class ChainLookupError(IndexerError):
    pass
