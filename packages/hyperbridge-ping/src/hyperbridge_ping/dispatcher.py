"""
Ping dispatch on the source chain.

This module handles fee-token bootstrapping (faucet drip and allowance),
sending the ping and extracting the resulting post request from the
EvmHost's PostRequestEvent.
"""

import logging
from typing import TYPE_CHECKING

from web3 import Web3
from web3.logs import DISCARD
from web3.types import TxReceipt

from .exceptions import UnexpectedEventError
from .models import CrossChainRequest, PingMessage

if TYPE_CHECKING:
    from .chain_context import ChainContext
    from .utils.explorer import ExplorerLinks

logger = logging.getLogger(__name__)

MAX_UINT256 = 2**256 - 1


def parse_post_request(host_contract, receipt: TxReceipt) -> CrossChainRequest:
    """
    Extract the post request from the first EvmHost event in a receipt.

    Args:
        host_contract: EvmHost contract binding used to decode the logs
        receipt: Receipt of the transaction that dispatched the request

    Returns:
        CrossChainRequest anchored at the receipt's block

    Raises:
        UnexpectedEventError: If the receipt holds no host event, or the first
            one is not a PostRequestEvent
    """
    event_names = [entry["name"] for entry in host_contract.abi if entry.get("type") == "event"]
    events = sorted(
        (
            event
            for name in event_names
            for event in getattr(host_contract.events, name)().process_receipt(receipt, errors=DISCARD)
        ),
        key=lambda event: event["logIndex"],
    )
    if not events:
        raise UnexpectedEventError(
            f"No PostRequestEvent in transaction {Web3.to_hex(receipt['transactionHash'])}"
        )

    event = events[0]
    if event['event'] != "PostRequestEvent":
        raise UnexpectedEventError(f"Unexpected event type: {event['event']}")

    return CrossChainRequest.from_event_args(event['args'], height=receipt['blockNumber'])


class PingDispatcher:
    """Sends pings from the source chain's ping module."""

    def __init__(
        self,
        context: "ChainContext",
        explorer: "ExplorerLinks",
        confirmations: int = 1,
    ) -> None:
        """
        Initialize the dispatcher.

        Args:
            context: Chain clients and contract bindings
            explorer: Explorer link formatter
            confirmations: Confirmations to await per transaction
        """
        self.context = context
        self.explorer = explorer
        self.confirmations = confirmations

    @property
    def _w3(self) -> Web3:
        return self.context.source.w3

    async def ensure_fee_balance(self) -> int:
        """
        Make sure the account holds fee tokens, dripping from the faucet if not.

        Returns:
            The fee token balance after bootstrapping
        """
        account = self.context.account_address
        fee_token = self.context.fee_token

        balance: int = fee_token.functions.balanceOf(account).call()
        logger.info(f"FeeToken balance: ${Web3.from_wei(balance, 'ether')}")

        if balance == 0:
            logger.info("Requesting fee tokens from faucet...")
            tx_hash = self.context.token_faucet.functions.drip(fee_token.address).transact()
            self.context.source.wait_for_confirmations(tx_hash, self.confirmations)

            balance = fee_token.functions.balanceOf(account).call()
            logger.info(f"New FeeToken balance: ${Web3.from_wei(balance, 'ether')}")

        return balance

    async def ensure_allowance(self) -> None:
        """Approve the ping module to spend fee tokens if it cannot yet."""
        ping_module = self.context.ping_module.address
        allowance: int = self.context.fee_token.functions.allowance(
            self.context.account_address, ping_module
        ).call()

        if allowance == 0:
            logger.info("Setting allowance...")
            tx_hash = self.context.fee_token.functions.approve(ping_module, MAX_UINT256).transact()
            self.context.source.wait_for_confirmations(tx_hash, self.confirmations)
            logger.info(f"Allowance set for ping module {ping_module}")
        else:
            logger.debug(f"Existing allowance: {allowance}")

    def build_message(self, dest_state_machine: str, timeout: int) -> PingMessage:
        """Ping message addressed to the same module on the destination."""
        return PingMessage(
            dest=dest_state_machine.encode(),
            module=self.context.ping_module.address,
            timeout=timeout,
        )

    async def dispatch_ping(self, message: PingMessage) -> CrossChainRequest:
        """
        Send a ping and return the post request it produced.

        Args:
            message: Ping message to send

        Returns:
            CrossChainRequest parsed from the EvmHost's PostRequestEvent

        Raises:
            UnexpectedEventError: If the receipt holds no PostRequestEvent
        """
        tx_hash = self.context.ping_module.functions.ping(message.as_struct()).transact()
        receipt = self.context.source.wait_for_confirmations(tx_hash, self.confirmations)

        tx_hex = Web3.to_hex(tx_hash)
        logger.info(f"Transaction receipt: {self.explorer.source_tx(tx_hex)}")
        logger.info(f"Block: {receipt['blockNumber']}")

        request = parse_post_request(self.context.source_host, receipt)
        logger.info(f"Post request dispatched: {request} commitment={request.commitment}")
        return request
