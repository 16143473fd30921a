import json
import logging
import time
from pathlib import Path
from typing import Any

from eth_account import Account
from eth_account.signers.local import LocalAccount
from hexbytes import HexBytes
from web3 import Web3
from web3.contract import Contract
from web3.middleware import SignAndSendRawMiddlewareBuilder
from web3.types import TxReceipt

from ..exceptions import TransactionFailedError

logger = logging.getLogger(__name__)

ABI_DIR = Path(__file__).parent.parent / "abis"


class ContractUtility:
    """
    Utility for contract interaction and ABI loading on one chain.

    Can be used in two modes:
    1. Full mode: Initialize with RPC URL and secret for signing transactions
    2. Read-only mode: Initialize with RPC URL only for calls and receipts
    """

    def __init__(self, rpc_url: str, secret: str = "", request_timeout: int = 30) -> None:
        """
        Initialize the ContractUtility.

        Args:
            rpc_url: RPC URL for the network (required)
            secret: Private key for signing transactions (optional - read-only without it)
            request_timeout: HTTP timeout for RPC requests in seconds
        """
        if not rpc_url:
            raise ValueError("RPC URL is required")

        self.rpc_url = rpc_url
        self.account: LocalAccount | None = None

        provider = (
            Web3.LegacyWebSocketProvider(self.rpc_url)
            if self.rpc_url.startswith(("ws:", "wss:"))
            else Web3.HTTPProvider(self.rpc_url, request_kwargs={'timeout': request_timeout})
        )
        self.w3 = Web3(provider)

        # Add signing middleware only if secret is provided
        if secret:
            self._add_signing_middleware(secret)

    def _add_signing_middleware(self, secret: str) -> None:
        """
        Add signing middleware to the existing Web3 instance.

        Args:
            secret: Private key for signing transactions
        """
        if not secret:
            raise ValueError("Private key is required for signing transactions")

        account: LocalAccount = Account.from_key(secret)
        self.w3.middleware_onion.add(SignAndSendRawMiddlewareBuilder.build(account))
        self.w3.eth.default_account = account.address
        self.account = account

    @property
    def address(self) -> str:
        if self.account is None:
            raise ValueError("ContractUtility is read-only, no signing account configured")
        return self.account.address

    def get_contract_abi(self, contract_name: str) -> list[dict[str, Any]]:
        """Fetches ABI of the given contract from the packaged abis folder.

        Args:
            contract_name: Name of the contract (without .json extension)

        Returns:
            List of ABI dictionaries for the contract

        Raises:
            FileNotFoundError: If the contract file doesn't exist
            json.JSONDecodeError: If the contract file is invalid JSON
        """
        contract_path: Path = (ABI_DIR / f"{contract_name}.json").resolve()

        with contract_path.open() as file:
            contract_data: dict[str, Any] = json.load(file)

        return contract_data["abi"]

    def get_contract(self, contract_name: str, address: str) -> Contract:
        """Bind the named ABI to an address on this chain."""
        return self.w3.eth.contract(
            address=Web3.to_checksum_address(address),
            abi=self.get_contract_abi(contract_name),
        )

    def wait_for_confirmations(
        self,
        tx_hash: HexBytes | str,
        confirmations: int = 1,
        timeout: int = 120,
        poll_latency: float = 2.0,
    ) -> TxReceipt:
        """
        Wait until a transaction is included and buried under N blocks.

        One confirmation means "included in a block".

        Args:
            tx_hash: Transaction hash to wait for
            confirmations: Number of confirmations required
            timeout: Seconds to wait for inclusion
            poll_latency: Seconds between block-number polls

        Returns:
            The transaction receipt

        Raises:
            TransactionFailedError: If the transaction reverted
        """
        receipt: TxReceipt = self.w3.eth.wait_for_transaction_receipt(
            tx_hash, timeout=timeout, poll_latency=poll_latency
        )

        if (status := receipt.get('status', 0)) != 1:
            raise TransactionFailedError(Web3.to_hex(HexBytes(tx_hash)), status)

        target_block = receipt['blockNumber'] + confirmations - 1
        while self.w3.eth.block_number < target_block:
            logger.debug(f"Waiting for block {target_block} ({confirmations} confirmations)")
            time.sleep(poll_latency)

        return receipt
