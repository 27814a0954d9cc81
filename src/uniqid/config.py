"""Runtime settings read from the environment (and a ``.env`` file).

Several variable names are accepted for the ledger settings so existing
deployment files keep working:

    RPC endpoint   SEP_RPC, SEPOLIA_RPC, SEPOLIA_RPC_URL, SEP_RPC_URL
    contract       CONTRACT_ADDR, CONTRACT_ADDRESS
    signing key    DEPLOYER_PRIVATE_KEY, PRIVATE_KEY, DEPLOYER_KEY

Durations (VERIFY_TOKEN_EXPIRY, SESSION_TOKEN_EXPIRY) take plain seconds
or a number with an s/m/h/d suffix, e.g. "30m" or "1h".
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Union

from dotenv import load_dotenv


logger = logging.getLogger(__name__)

RPC_ENV_NAMES = ("SEP_RPC", "SEPOLIA_RPC", "SEPOLIA_RPC_URL", "SEP_RPC_URL")
CONTRACT_ENV_NAMES = ("CONTRACT_ADDR", "CONTRACT_ADDRESS")
KEY_ENV_NAMES = ("DEPLOYER_PRIVATE_KEY", "PRIVATE_KEY", "DEPLOYER_KEY")

DEFAULT_JWT_SECRET = "change-me"
SEPOLIA_CHAIN_ID = 11155111

_DURATION_RE = re.compile(r"^(\d+)\s*([smhd]?)$")
_UNIT_SECONDS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(text: Union[str, int, None], default: int) -> int:
    """Seconds from "45", "45s", "30m", "1h" or "2d"; *default* when empty.

    Raises ValueError for anything else.
    """
    if text is None or str(text).strip() == "":
        return default
    match = _DURATION_RE.match(str(text).strip().lower())
    if not match:
        raise ValueError(f"Unrecognised duration: {text!r}")
    return int(match.group(1)) * _UNIT_SECONDS[match.group(2)]


def _first(env: Mapping[str, str], names: tuple[str, ...]) -> Optional[str]:
    for name in names:
        value = (env.get(name) or "").strip()
        if value:
            return value
    return None


@dataclass(frozen=True)
class Settings:
    rpc_url: Optional[str] = None
    contract_address: Optional[str] = None
    private_key: Optional[str] = None
    chain_id: int = SEPOLIA_CHAIN_ID
    receipt_timeout: float = 300.0
    jwt_secret: str = DEFAULT_JWT_SECRET
    verify_token_ttl: int = 3600
    session_token_ttl: int = 3600
    sendgrid_api_key: Optional[str] = None
    sender_email: Optional[str] = None
    base_url: str = "http://localhost:3000"
    expected_signer: Optional[str] = None

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        dotenv_path: Optional[Path] = None,
    ) -> Settings:
        """Build settings from *env*, or from os.environ after loading ``.env``."""
        if env is None:
            load_dotenv(dotenv_path)
            env = os.environ

        settings = cls(
            rpc_url=_first(env, RPC_ENV_NAMES),
            contract_address=_first(env, CONTRACT_ENV_NAMES),
            private_key=_first(env, KEY_ENV_NAMES),
            chain_id=int(env.get("CHAIN_ID") or SEPOLIA_CHAIN_ID),
            receipt_timeout=float(env.get("RECEIPT_TIMEOUT") or 300.0),
            jwt_secret=env.get("JWT_SECRET") or DEFAULT_JWT_SECRET,
            verify_token_ttl=parse_duration(env.get("VERIFY_TOKEN_EXPIRY"), 3600),
            session_token_ttl=parse_duration(env.get("SESSION_TOKEN_EXPIRY"), 3600),
            sendgrid_api_key=env.get("SENDGRID_API_KEY") or None,
            sender_email=env.get("SENDER_EMAIL") or None,
            base_url=env.get("BASE_URL") or "http://localhost:3000",
            expected_signer=env.get("EXPECTED_SIGNER") or None,
        )
        if settings.jwt_secret == DEFAULT_JWT_SECRET:
            logger.warning("JWT_SECRET is not set; using the insecure default")
        return settings

    @property
    def ledger_configured(self) -> bool:
        return bool(self.rpc_url and self.contract_address and self.private_key)

    @property
    def signer_configured(self) -> bool:
        return bool(self.private_key)

    @property
    def email_configured(self) -> bool:
        return bool(self.sendgrid_api_key and self.sender_email)

    def describe(self) -> dict[str, object]:
        """Presence flags for each setting. Never includes secret values."""
        return {
            "rpc_url": bool(self.rpc_url),
            "contract_address": bool(self.contract_address),
            "private_key": bool(self.private_key),
            "jwt_secret": self.jwt_secret != DEFAULT_JWT_SECRET,
            "sendgrid_api_key": bool(self.sendgrid_api_key),
            "sender_email": bool(self.sender_email),
            "expected_signer": bool(self.expected_signer),
            "chain_id": self.chain_id,
            "base_url": self.base_url,
            "ledger_configured": self.ledger_configured,
            "email_configured": self.email_configured,
        }
