"""Passphrase strength policy.

A passphrase must have at least 8 characters and contain an uppercase
letter, a lowercase letter, a digit and one symbol from ``!@#$%^&*``.
Every unmet requirement is reported at once so the holder can fix them
all in a single round trip.
"""

from __future__ import annotations

from dataclasses import dataclass

from uniqid.errors import WeakPassphraseError


SYMBOLS = "!@#$%^&*"


@dataclass(frozen=True)
class PassphrasePolicy:
    min_length: int = 8
    symbols: str = SYMBOLS

    def missing(self, passphrase: str) -> list[str]:
        """Names of every unmet requirement, in a fixed order."""
        missing: list[str] = []
        if len(passphrase) < self.min_length:
            missing.append("length")
        if not any(c.isupper() for c in passphrase):
            missing.append("uppercase")
        if not any(c.islower() for c in passphrase):
            missing.append("lowercase")
        if not any(c.isdigit() for c in passphrase):
            missing.append("digit")
        if not any(c in self.symbols for c in passphrase):
            missing.append("symbol")
        return missing

    def enforce(self, passphrase: str) -> None:
        missing = self.missing(passphrase)
        if missing:
            raise WeakPassphraseError(missing)


DEFAULT_POLICY = PassphrasePolicy()
