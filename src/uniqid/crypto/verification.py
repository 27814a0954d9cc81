"""Verification client: read-only membership checks against anchored roots.

verify(id, leaf, proof) asks the ledger to fold the proof into the leaf
and compare the result with the root stored under id. The check fails
closed: an unassigned id, a malformed proof or any ledger error is
"not verified", never an exception for the caller.
"""

from __future__ import annotations

import logging
from typing import Sequence

from uniqid.errors import FieldRangeError, LedgerError
from uniqid.ledger.base import Ledger


logger = logging.getLogger(__name__)


class VerificationClient:

    def __init__(self, ledger: Ledger) -> None:
        self._ledger = ledger

    def id_exists(self, numeric_id: int) -> bool:
        """True when the ledger holds a non-zero root under *numeric_id*.

        Raises LedgerError when the ledger cannot be read.
        """
        if numeric_id < 1:
            return False
        return self._ledger.get_root(numeric_id) != 0

    def verify(
        self,
        numeric_id: int,
        leaf: int,
        proof: Sequence[int] = (),
        leaf_index: int = 0,
    ) -> bool:
        try:
            if not self.id_exists(numeric_id):
                return False
            return bool(self._ledger.verify_user(numeric_id, leaf, list(proof), leaf_index))
        except (LedgerError, FieldRangeError) as exc:
            logger.warning("Verification for id %d failed closed: %s", numeric_id, exc)
            return False
