"""Ethereum-backed ledger: the UNIQID anchoring contract via web3.

Unlike a plain self-send anchor, roots go through a contract so that the
chain itself assigns ids and answers membership queries:

    anchorRoot(bytes32 root) returns (uint256)       write, emits RootAnchored
    rootToId(bytes32 root) view returns (uint256)     0 when never anchored
    getRoot(uint256 uniqId) view returns (bytes32)    reverts for unassigned ids
    verifyUser(uint256, bytes32, bytes32[]) view returns (bool)

A contract may also offer the optional positional check

    verifyUserAt(uint256, bytes32, bytes32[], uint256) view returns (bool)

which is only called when the ledger is built with positional_verify=True.

Transactions are signed locally with eth_account and sent raw, so the
RPC endpoint never sees the key.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

import requests
from eth_account import Account
from web3 import HTTPProvider, Web3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception
from web3.logs import DISCARD

from uniqid.crypto.field_hash import to_bytes32
from uniqid.errors import (
    AnchorTimeoutError,
    LedgerNotConfiguredError,
    LedgerReadError,
    LedgerSubmissionError,
    ZeroRootError,
)
from uniqid.ledger.base import AnchorReceipt, AnchorSubmission, RootAnchoredEvent


logger = logging.getLogger(__name__)


def _fn(name: str, inputs: list[tuple[str, str]], outputs: list[str], mutability: str) -> dict:
    return {
        "type": "function",
        "name": name,
        "stateMutability": mutability,
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [{"name": "", "type": t} for t in outputs],
    }


UNIQID_ABI: list[dict[str, Any]] = [
    _fn("anchorRoot", [("root", "bytes32")], ["uint256"], "nonpayable"),
    _fn("rootToId", [("root", "bytes32")], ["uint256"], "view"),
    _fn("getRoot", [("uniqId", "uint256")], ["bytes32"], "view"),
    _fn(
        "verifyUser",
        [("uniqId", "uint256"), ("leaf", "bytes32"), ("proof", "bytes32[]")],
        ["bool"],
        "view",
    ),
    {
        "type": "event",
        "name": "RootAnchored",
        "anonymous": False,
        "inputs": [
            {"name": "uniqId", "type": "uint256", "indexed": True},
            {"name": "root", "type": "bytes32", "indexed": True},
            {"name": "submitter", "type": "address", "indexed": False},
        ],
    },
]

VERIFY_USER_AT_ABI: dict[str, Any] = _fn(
    "verifyUserAt",
    [("uniqId", "uint256"), ("leaf", "bytes32"), ("proof", "bytes32[]"), ("leafIndex", "uint256")],
    ["bool"],
    "view",
)

# Failures that mean "the node did not accept / answer the request".
_RPC_ERRORS = (Web3Exception, ValueError, requests.RequestException)


class Web3Ledger:
    """Ledger backed by a deployed UNIQID contract.

    Usage:
        ledger = Web3Ledger.connect(rpc_url, contract_address, private_key)
        submission = ledger.submit_anchor(root)
        receipt = ledger.wait_for_receipt(submission, timeout=300)
    """

    def __init__(
        self,
        w3: Web3,
        contract_address: str,
        private_key: Optional[str] = None,
        chain_id: Optional[int] = None,
        positional_verify: bool = False,
    ) -> None:
        abi = UNIQID_ABI + [VERIFY_USER_AT_ABI] if positional_verify else UNIQID_ABI
        self._w3 = w3
        self._contract = w3.eth.contract(
            address=Web3.to_checksum_address(contract_address),
            abi=abi,
        )
        self._account = Account.from_key(private_key) if private_key else None
        self._chain_id = chain_id
        self._positional_verify = positional_verify

    @classmethod
    def connect(
        cls,
        rpc_url: Optional[str],
        contract_address: Optional[str],
        private_key: Optional[str] = None,
        chain_id: Optional[int] = None,
        request_timeout: float = 30.0,
        positional_verify: bool = False,
    ) -> Web3Ledger:
        if not rpc_url or not contract_address:
            raise LedgerNotConfiguredError("RPC URL and contract address are required")
        w3 = Web3(HTTPProvider(rpc_url, request_kwargs={"timeout": request_timeout}))
        return cls(
            w3,
            contract_address,
            private_key=private_key,
            chain_id=chain_id,
            positional_verify=positional_verify,
        )

    @property
    def submitter(self) -> Optional[str]:
        return self._account.address if self._account else None

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    def submit_anchor(self, root: int) -> AnchorSubmission:
        if self._account is None:
            raise LedgerNotConfiguredError("No private key configured for anchoring")
        if root == 0:
            raise ZeroRootError("Ledger rejects a zero root")

        try:
            tx_params: dict[str, Any] = {
                "from": self._account.address,
                "nonce": self._w3.eth.get_transaction_count(self._account.address),
            }
            if self._chain_id is not None:
                tx_params["chainId"] = self._chain_id
            tx = self._contract.functions.anchorRoot(to_bytes32(root)).build_transaction(tx_params)
            signed = self._account.sign_transaction(tx)
            tx_hash = self._w3.eth.send_raw_transaction(signed.raw_transaction)
        except _RPC_ERRORS as exc:
            raise LedgerSubmissionError(f"anchorRoot submission failed: {exc}") from exc

        tx_hex = _hex(tx_hash)
        logger.info("Sent anchorRoot tx %s", tx_hex)
        return AnchorSubmission(tx_hash=tx_hex, root=root)

    def wait_for_receipt(self, submission: AnchorSubmission, timeout: float) -> AnchorReceipt:
        try:
            receipt = self._w3.eth.wait_for_transaction_receipt(submission.tx_hash, timeout=timeout)
        except TimeExhausted as exc:
            raise AnchorTimeoutError(submission.tx_hash, timeout) from exc
        except _RPC_ERRORS as exc:
            # The transaction was already broadcast; its fate is unknown.
            raise AnchorTimeoutError(submission.tx_hash, timeout) from exc

        if receipt["status"] != 1:
            raise LedgerSubmissionError(f"anchorRoot transaction {submission.tx_hash} reverted")

        return AnchorReceipt(
            tx_hash=_hex(receipt["transactionHash"]),
            block_number=receipt["blockNumber"],
            succeeded=True,
            raw=receipt,
        )

    def anchored_events(self, receipt: AnchorReceipt) -> list[RootAnchoredEvent]:
        try:
            logs = self._contract.events.RootAnchored().process_receipt(receipt.raw, errors=DISCARD)
        except _RPC_ERRORS as exc:
            raise LedgerReadError(f"Could not decode RootAnchored events: {exc}") from exc
        return [
            RootAnchoredEvent(
                numeric_id=int(log["args"]["uniqId"]),
                root=int.from_bytes(bytes(log["args"]["root"]), "big"),
                submitter=log["args"]["submitter"],
            )
            for log in logs
        ]

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    def root_to_id(self, root: int) -> int:
        return int(self._call("rootToId", to_bytes32(root)))

    def get_root(self, numeric_id: int) -> int:
        """Root stored under *numeric_id*; 0 when the contract reverts (id unassigned)."""
        try:
            raw = self._contract.functions.getRoot(numeric_id).call()
        except ContractLogicError as exc:
            logger.debug("getRoot(%d) reverted: %s", numeric_id, exc)
            return 0
        except _RPC_ERRORS as exc:
            raise LedgerReadError(f"getRoot call failed: {exc}") from exc
        return int.from_bytes(bytes(raw), "big")

    def verify_user(
        self,
        numeric_id: int,
        leaf: int,
        proof: Sequence[int],
        leaf_index: int = 0,
    ) -> bool:
        siblings = [to_bytes32(s) for s in proof]
        if leaf_index and self._positional_verify:
            return bool(self._call("verifyUserAt", numeric_id, to_bytes32(leaf), siblings, leaf_index))
        return bool(self._call("verifyUser", numeric_id, to_bytes32(leaf), siblings))

    def _call(self, name: str, *args: Any) -> Any:
        try:
            return getattr(self._contract.functions, name)(*args).call()
        except _RPC_ERRORS as exc:
            raise LedgerReadError(f"{name} call failed: {exc}") from exc


def _hex(value: Any) -> str:
    if isinstance(value, str):
        return value if value.startswith("0x") else "0x" + value
    return "0x" + bytes(value).hex()
