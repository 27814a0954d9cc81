"""Ledger backends: the anchoring contract on Ethereum, or an in-process equivalent."""

from uniqid.ledger.base import AnchorReceipt, AnchorSubmission, Ledger, RootAnchoredEvent
from uniqid.ledger.memory import InMemoryLedger

__all__ = [
    "AnchorReceipt",
    "AnchorSubmission",
    "InMemoryLedger",
    "Ledger",
    "RootAnchoredEvent",
]
