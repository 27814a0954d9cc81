"""UNIQ ID: privacy-preserving identity commitments anchored on a public ledger."""

__version__ = "0.4.0"
