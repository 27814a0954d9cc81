"""Payload signing with the anchoring authority's Ethereum key.

Signatures are EIP-191 ``personal_sign`` signatures over the UTF-8 encoded
canonical payload, so anyone can check them against the authority's public
address with standard message recovery and no private key.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Union

from eth_account import Account
from eth_account.messages import encode_defunct

from uniqid.errors import SignatureError


logger = logging.getLogger(__name__)

Payload = Union[str, bytes]


@dataclass(frozen=True)
class SignedPayload:
    payload: str
    signer: str      # checksummed address
    signature: str   # 0x + 130 hex chars


class PayloadSigner:
    """Signs canonical payloads with a single authority key.

    Usage:
        signer = PayloadSigner.from_key(private_key)
        signed = signer.sign(encode_payload(state))
    """

    def __init__(self, account) -> None:
        self._account = account

    @classmethod
    def from_key(cls, private_key: str) -> PayloadSigner:
        try:
            account = Account.from_key(private_key)
        except Exception:
            # Suppress the chained error so key material never reaches a traceback.
            raise SignatureError("Invalid signing key") from None
        return cls(account)

    @property
    def address(self) -> str:
        return self._account.address

    def sign(self, payload: Payload) -> SignedPayload:
        signed = self._account.sign_message(_message(payload))
        return SignedPayload(
            payload=payload.decode("utf-8") if isinstance(payload, bytes) else payload,
            signer=self._account.address,
            signature="0x" + bytes(signed.signature).hex(),
        )


def recover_signer(payload: Payload, signature: str) -> str:
    """Recover the address that signed *payload*.

    Raises SignatureError when the signature cannot be parsed or recovered.
    """
    try:
        raw = bytes.fromhex(signature[2:] if signature[:2].lower() == "0x" else signature)
    except (ValueError, TypeError, AttributeError) as exc:
        raise SignatureError("Signature is not valid hex") from exc
    if len(raw) != 65:
        raise SignatureError(f"Signature must be 65 bytes, got {len(raw)}")

    try:
        return Account.recover_message(_message(payload), signature=raw)
    except Exception as exc:
        # eth-keys raises its own BadSignature/ValidationError types here.
        logger.debug("Signature recovery failed: %s", type(exc).__name__)
        raise SignatureError("Signature could not be recovered") from exc


def signed_by(payload: Payload, signature: str, expected_signer: str) -> bool:
    """True when *signature* over *payload* recovers to *expected_signer*."""
    try:
        recovered = recover_signer(payload, signature)
    except SignatureError:
        return False
    return recovered.lower() == str(expected_signer).lower()


def _message(payload: Payload):
    if isinstance(payload, bytes):
        return encode_defunct(primitive=payload)
    return encode_defunct(text=payload)
