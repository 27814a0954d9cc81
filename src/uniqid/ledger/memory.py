"""In-process ledger with the same semantics as the anchoring contract.

Used for development, the CLI's offline mode and the test suite. It
mirrors the on-chain rules exactly:

- ids are assigned 1, 2, 3, ... in submission order;
- roots[id] is written once and never mutated (append-only);
- root_to_id[root] is last-writer-wins, so re-anchoring a root moves the
  reverse lookup to the new id while the old id stays verifiable;
- a zero root is rejected;
- every anchor emits RootAnchored(id, root, submitter).

Fault switches (``fail_next_submission``, ``withhold_receipts``,
``expose_return_value``, ``root_lookup_available``, ``id_lookup_available``,
``emit_events``) let callers exercise every anchoring outcome without a
network.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Optional, Sequence

from web3 import Web3

from uniqid.crypto.field_hash import require_field_value
from uniqid.crypto.merkle import fold_proof
from uniqid.crypto.poseidon import PoseidonEngine
from uniqid.errors import (
    AnchorTimeoutError,
    LedgerReadError,
    LedgerSubmissionError,
    ZeroRootError,
)
from uniqid.ledger.base import AnchorReceipt, AnchorSubmission, RootAnchoredEvent


DEFAULT_SUBMITTER = "0x0000000000000000000000000000000000000001"


@dataclass(frozen=True)
class LedgerEntry:
    """One append-only anchor record."""
    numeric_id: int
    root: int
    submitter: str
    tx_hash: str
    block_number: int


class InMemoryLedger:
    """Append-only anchor log plus a last-writer-wins reverse index."""

    def __init__(
        self,
        submitter: str = DEFAULT_SUBMITTER,
        engine: Optional[PoseidonEngine] = None,
    ) -> None:
        self._submitter = submitter
        self._engine = engine
        self._entries: list[LedgerEntry] = []
        self._root_to_id: dict[int, int] = {}
        self._by_tx: dict[str, LedgerEntry] = {}
        self._lock = threading.Lock()

        self.fail_next_submission = False
        self.withhold_receipts = False
        self.expose_return_value = True
        self.root_lookup_available = True
        self.id_lookup_available = True
        self.emit_events = True

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    def submit_anchor(self, root: int) -> AnchorSubmission:
        root = require_field_value(root)
        if root == 0:
            raise ZeroRootError("Ledger rejects a zero root")

        with self._lock:
            if self.fail_next_submission:
                self.fail_next_submission = False
                raise LedgerSubmissionError("Simulated submission failure")

            numeric_id = len(self._entries) + 1
            tx_hash = _tx_hash(numeric_id, root)
            entry = LedgerEntry(
                numeric_id=numeric_id,
                root=root,
                submitter=self._submitter,
                tx_hash=tx_hash,
                block_number=numeric_id,
            )
            self._entries.append(entry)
            self._root_to_id[root] = numeric_id
            self._by_tx[tx_hash] = entry

        return AnchorSubmission(
            tx_hash=tx_hash,
            root=root,
            returned_id=numeric_id if self.expose_return_value else None,
        )

    def wait_for_receipt(self, submission: AnchorSubmission, timeout: float) -> AnchorReceipt:
        if self.withhold_receipts:
            raise AnchorTimeoutError(submission.tx_hash, timeout)
        entry = self._by_tx.get(submission.tx_hash)
        if entry is None:
            raise AnchorTimeoutError(submission.tx_hash, timeout)
        return AnchorReceipt(
            tx_hash=entry.tx_hash,
            block_number=entry.block_number,
            succeeded=True,
            raw=entry,
        )

    def anchored_events(self, receipt: AnchorReceipt) -> list[RootAnchoredEvent]:
        if not self.emit_events:
            return []
        entry = self._by_tx.get(receipt.tx_hash)
        if entry is None:
            return []
        return [RootAnchoredEvent(entry.numeric_id, entry.root, entry.submitter)]

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    def root_to_id(self, root: int) -> int:
        if not self.root_lookup_available:
            raise LedgerReadError("rootToId view unavailable")
        return self._root_to_id.get(root, 0)

    def get_root(self, numeric_id: int) -> int:
        if not self.id_lookup_available:
            raise LedgerReadError("getRoot view unavailable")
        if not 1 <= numeric_id <= len(self._entries):
            return 0
        return self._entries[numeric_id - 1].root

    def verify_user(
        self,
        numeric_id: int,
        leaf: int,
        proof: Sequence[int],
        leaf_index: int = 0,
    ) -> bool:
        """Fold *proof* into *leaf* and compare with the stored root."""
        if not 1 <= numeric_id <= len(self._entries):
            return False
        stored = self._entries[numeric_id - 1].root
        try:
            candidate = fold_proof(leaf, proof, leaf_index, self._engine)
        except ValueError:
            return False
        return candidate == stored

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def entries(self) -> list[LedgerEntry]:
        return list(self._entries)

    @property
    def count(self) -> int:
        return len(self._entries)


def _tx_hash(numeric_id: int, root: int) -> str:
    digest = Web3.keccak(text=f"anchor:{numeric_id}:{root:064x}")
    return "0x" + bytes(digest).hex()
