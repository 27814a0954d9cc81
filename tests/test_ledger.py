"""Tests for the in-process ledger's anchoring-contract semantics."""

import pytest

from uniqid.crypto.field_hash import field_hash
from uniqid.crypto.merkle import build_tree
from uniqid.errors import AnchorTimeoutError, LedgerReadError, LedgerSubmissionError, ZeroRootError
from uniqid.ledger import InMemoryLedger, Ledger


ROOT_A = field_hash("root-a")
ROOT_B = field_hash("root-b")


def _anchor(ledger: InMemoryLedger, root: int) -> int:
    submission = ledger.submit_anchor(root)
    ledger.wait_for_receipt(submission, timeout=1)
    assert submission.returned_id is not None
    return submission.returned_id


class TestInMemoryLedger:
    def test_satisfies_protocol(self) -> None:
        assert isinstance(InMemoryLedger(), Ledger)

    def test_ids_start_at_one_and_increase(self) -> None:
        ledger = InMemoryLedger()
        assert ledger.count == 0
        ids = [_anchor(ledger, r) for r in (ROOT_A, ROOT_B, field_hash("c"))]
        assert ids == [1, 2, 3]
        assert ledger.count == 3

    def test_same_root_twice_gets_two_ids(self) -> None:
        ledger = InMemoryLedger()
        first = _anchor(ledger, ROOT_A)
        second = _anchor(ledger, ROOT_A)
        assert (first, second) == (1, 2)
        assert ledger.verify_user(first, ROOT_A, [])
        assert ledger.verify_user(second, ROOT_A, [])

    def test_reverse_index_is_last_writer_wins(self) -> None:
        ledger = InMemoryLedger()
        _anchor(ledger, ROOT_A)
        _anchor(ledger, ROOT_B)
        _anchor(ledger, ROOT_A)
        assert ledger.root_to_id(ROOT_A) == 3
        assert ledger.root_to_id(ROOT_B) == 2
        assert ledger.get_root(1) == ROOT_A

    def test_unknown_root_maps_to_zero(self) -> None:
        assert InMemoryLedger().root_to_id(ROOT_A) == 0

    def test_zero_root_rejected(self) -> None:
        ledger = InMemoryLedger()
        with pytest.raises(ZeroRootError):
            ledger.submit_anchor(0)
        assert ledger.count == 0

    def test_events_emitted(self) -> None:
        ledger = InMemoryLedger(submitter="0xabc")
        receipt = ledger.wait_for_receipt(ledger.submit_anchor(ROOT_A), timeout=1)
        events = ledger.anchored_events(receipt)
        assert len(events) == 1
        assert (events[0].numeric_id, events[0].root, events[0].submitter) == (1, ROOT_A, "0xabc")

    def test_get_root_unassigned_id_is_zero(self) -> None:
        ledger = InMemoryLedger()
        assert ledger.get_root(1) == 0
        _anchor(ledger, ROOT_A)
        assert ledger.get_root(1) == ROOT_A
        assert ledger.get_root(2) == 0

    def test_id_lookup_unavailable(self) -> None:
        ledger = InMemoryLedger()
        ledger.id_lookup_available = False
        with pytest.raises(LedgerReadError):
            ledger.get_root(1)

    def test_entries_are_append_only_log(self) -> None:
        ledger = InMemoryLedger()
        _anchor(ledger, ROOT_A)
        _anchor(ledger, ROOT_A)
        entries = ledger.entries()
        assert [e.numeric_id for e in entries] == [1, 2]
        assert entries[0].tx_hash != entries[1].tx_hash


class TestVerifyUser:
    def test_multi_leaf_proofs(self) -> None:
        leaves = [field_hash(f"holder-{i}") for i in range(5)]
        root, proofs = build_tree(leaves)
        ledger = InMemoryLedger()
        numeric_id = _anchor(ledger, root)
        for p in proofs:
            assert ledger.verify_user(numeric_id, p.leaf, list(p.siblings), p.leaf_index)

    def test_wrong_leaf(self) -> None:
        ledger = InMemoryLedger()
        _anchor(ledger, ROOT_A)
        assert not ledger.verify_user(1, ROOT_B, [])

    def test_out_of_range_id(self) -> None:
        ledger = InMemoryLedger()
        _anchor(ledger, ROOT_A)
        assert not ledger.verify_user(0, ROOT_A, [])
        assert not ledger.verify_user(2, ROOT_A, [])

    def test_malformed_proof(self) -> None:
        ledger = InMemoryLedger()
        _anchor(ledger, ROOT_A)
        assert not ledger.verify_user(1, ROOT_A, [], leaf_index=3)


class TestFaultSwitches:
    def test_submission_failure_changes_nothing(self) -> None:
        ledger = InMemoryLedger()
        ledger.fail_next_submission = True
        with pytest.raises(LedgerSubmissionError) as info:
            ledger.submit_anchor(ROOT_A)
        assert info.value.retryable
        assert ledger.count == 0
        assert _anchor(ledger, ROOT_A) == 1

    def test_withheld_receipt_times_out(self) -> None:
        ledger = InMemoryLedger()
        ledger.withhold_receipts = True
        submission = ledger.submit_anchor(ROOT_A)
        with pytest.raises(AnchorTimeoutError) as info:
            ledger.wait_for_receipt(submission, timeout=2)
        assert info.value.tx_hash == submission.tx_hash
        assert not info.value.retryable
        # The anchor still landed.
        assert ledger.root_to_id(ROOT_A) == 1

    def test_root_lookup_unavailable(self) -> None:
        ledger = InMemoryLedger()
        ledger.root_lookup_available = False
        with pytest.raises(LedgerReadError):
            ledger.root_to_id(ROOT_A)
