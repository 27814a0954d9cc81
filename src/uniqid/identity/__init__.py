"""Holder-facing identity flows: email confirmation, passphrase policy, claims, registration and login."""
