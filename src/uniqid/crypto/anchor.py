"""Blockchain anchoring: stores a commitment root on the ledger and learns its id.

Anchoring is the act of embedding the root of an identity commitment
into a ledger transaction, creating an immutable, timestamped, publicly
verifiable record that the commitment existed at that moment. The
anchoring contract assigns every anchored root a 1-based numeric id.

Outcomes:
1. ANCHORED: confirmed and the id is known.
2. ANCHORED_UNRESOLVED: confirmed, but no id source answered. The root
   IS on the ledger; reporting failure here would contradict the chain.
3. LedgerSubmissionError: nothing landed; safe to retry.
4. AnchorTimeoutError: sent, unconfirmed; re-query before retrying.

Anchoring is not idempotent: the same root anchored twice gets two ids.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from uniqid.crypto.canonical import format_timestamp
from uniqid.crypto.field_hash import require_field_value, to_hex32
from uniqid.errors import LedgerReadError, ZeroRootError
from uniqid.ledger.base import AnchorReceipt, AnchorSubmission, Ledger


logger = logging.getLogger(__name__)

DEFAULT_RECEIPT_TIMEOUT = 300.0

_EXPLORERS = {
    1: "https://etherscan.io",
    11155111: "https://sepolia.etherscan.io",
}


class AnchorStatus(str, enum.Enum):
    ANCHORED = "anchored"
    ANCHORED_UNRESOLVED = "anchored_unresolved"


class IdSource(str, enum.Enum):
    """Where the numeric id came from, in order of preference."""
    RETURN_VALUE = "return_value"
    VIEW_LOOKUP = "view_lookup"
    EVENT_LOG = "event_log"


@dataclass(frozen=True)
class AnchorRecord:
    """A record of a confirmed anchoring transaction."""
    root_hex: str
    status: AnchorStatus
    numeric_id: Optional[int]
    id_source: Optional[IdSource]
    tx_hash: str
    block_number: Optional[int]
    timestamp_utc: str
    explorer_url: Optional[str]

    @property
    def id_resolved(self) -> bool:
        return self.numeric_id is not None


def explorer_tx_url(chain_id: Optional[int], tx_hash: str) -> Optional[str]:
    base = _EXPLORERS.get(chain_id) if chain_id is not None else None
    return f"{base}/tx/{tx_hash}" if base else None


class AnchoringClient:
    """Submits roots to a ledger and resolves the assigned id.

    Usage:
        client = AnchoringClient(ledger, receipt_timeout=300)
        record = client.anchor(root)
        if record.status is AnchorStatus.ANCHORED:
            uniq_id = record.numeric_id
    """

    def __init__(
        self,
        ledger: Ledger,
        receipt_timeout: float = DEFAULT_RECEIPT_TIMEOUT,
        chain_id: Optional[int] = None,
    ) -> None:
        self._ledger = ledger
        self._receipt_timeout = receipt_timeout
        self._chain_id = chain_id

    def anchor(self, root: int, *, now: Optional[datetime] = None) -> AnchorRecord:
        """Anchor *root* and wait for confirmation.

        The record is stamped with *now*, or the wall clock once the
        receipt arrives.

        Raises:
            ZeroRootError: root is zero (rejected before submission).
            FieldRangeError: root is not a field value.
            LedgerSubmissionError: submission failed; nothing changed.
            AnchorTimeoutError: sent but unconfirmed; state unknown.
        """
        root = require_field_value(root)
        if root == 0:
            raise ZeroRootError("Refusing to anchor a zero root")
        root_hex = to_hex32(root)

        submission = self._ledger.submit_anchor(root)
        logger.info("Anchoring root %s in tx %s", root_hex, submission.tx_hash)

        receipt = self._ledger.wait_for_receipt(submission, self._receipt_timeout)
        numeric_id, source = self._resolve_id(root, submission, receipt)

        if numeric_id is None:
            status = AnchorStatus.ANCHORED_UNRESOLVED
            logger.warning(
                "Root %s confirmed in tx %s but its id could not be resolved",
                root_hex, receipt.tx_hash,
            )
        else:
            status = AnchorStatus.ANCHORED
            logger.info("Root %s anchored as id %d (via %s)", root_hex, numeric_id, source.value)

        return AnchorRecord(
            root_hex=root_hex,
            status=status,
            numeric_id=numeric_id,
            id_source=source,
            tx_hash=receipt.tx_hash,
            block_number=receipt.block_number,
            timestamp_utc=format_timestamp(now or datetime.now(timezone.utc)),
            explorer_url=explorer_tx_url(self._chain_id, receipt.tx_hash),
        )

    def find_existing(self, root: int) -> Optional[int]:
        """Latest id for *root*, or None if it was never anchored.

        A pre-check only: concurrent anchors of the same root still race
        to distinct ids.
        """
        numeric_id = self._ledger.root_to_id(require_field_value(root))
        return numeric_id or None

    def _resolve_id(
        self,
        root: int,
        submission: AnchorSubmission,
        receipt: AnchorReceipt,
    ) -> tuple[Optional[int], Optional[IdSource]]:
        if submission.returned_id:
            return submission.returned_id, IdSource.RETURN_VALUE

        try:
            numeric_id = self._ledger.root_to_id(root)
        except LedgerReadError as exc:
            logger.warning("rootToId lookup failed: %s", exc)
        else:
            if numeric_id > 0:
                return numeric_id, IdSource.VIEW_LOOKUP

        try:
            events = self._ledger.anchored_events(receipt)
        except LedgerReadError as exc:
            logger.warning("RootAnchored event scan failed: %s", exc)
            return None, None

        for event in events:
            if event.root == root:
                return event.numeric_id, IdSource.EVENT_LOG
        return None, None
