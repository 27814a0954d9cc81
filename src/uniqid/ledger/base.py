"""Ledger collaborator contract.

The core talks to the ledger only through this surface:

    write:  submit_anchor(root) -> AnchorSubmission
            wait_for_receipt(submission, timeout) -> AnchorReceipt
            anchored_events(receipt) -> [RootAnchoredEvent]
    read:   root_to_id(root), get_root(id),
            verify_user(id, leaf, proof, leaf_index)

Ledger state is an append-only list of roots addressed by 1-based id,
plus a last-writer-wins reverse index root -> latest id.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol, Sequence, runtime_checkable


@dataclass(frozen=True)
class AnchorSubmission:
    """A sent anchoring transaction.

    ``returned_id`` is the anchoring call's return value when the backend
    can observe it. Ethereum transactions cannot return values to an
    off-chain caller, so Web3Ledger leaves it None.
    """
    tx_hash: str
    root: int
    returned_id: Optional[int] = None


@dataclass(frozen=True)
class AnchorReceipt:
    tx_hash: str
    block_number: Optional[int]
    succeeded: bool
    raw: Any = None


@dataclass(frozen=True)
class RootAnchoredEvent:
    """RootAnchored(uniqId, root, submitter)."""
    numeric_id: int
    root: int
    submitter: str


@runtime_checkable
class Ledger(Protocol):

    def submit_anchor(self, root: int) -> AnchorSubmission:
        ...

    def wait_for_receipt(self, submission: AnchorSubmission, timeout: float) -> AnchorReceipt:
        ...

    def anchored_events(self, receipt: AnchorReceipt) -> list[RootAnchoredEvent]:
        ...

    def root_to_id(self, root: int) -> int:
        ...

    def get_root(self, numeric_id: int) -> int:
        """Stored root for *numeric_id*, or 0 when no root was assigned that id."""
        ...

    def verify_user(
        self,
        numeric_id: int,
        leaf: int,
        proof: Sequence[int],
        leaf_index: int = 0,
    ) -> bool:
        ...
