#!/usr/bin/env python3
"""Self-relay of finalized requests to the destination handler.

Once Hyperbridge has finalized a request it hands out the calldata for the
destination handler's handlePostRequests. Submitting it ourselves speeds up
delivery; a third-party relayer may still beat us to it, so every failure
here is logged and swallowed.
"""

import logging
from typing import TYPE_CHECKING, Any

from hexbytes import HexBytes
from web3 import Web3
from web3.contract import Contract

from .models import StatusEvent, StatusKind

if TYPE_CHECKING:
    from .utils.contract_utility import ContractUtility
    from .utils.explorer import ExplorerLinks

logger = logging.getLogger(__name__)

HANDLE_POST_REQUESTS = "handlePostRequests"


class SelfRelayer:
    """Submits HyperbridgeFinalized calldata to the destination handler."""

    def __init__(
        self,
        handler: Contract,
        contract_util: "ContractUtility",
        explorer: "ExplorerLinks",
        confirmations: int = 1,
    ) -> None:
        """
        Initialize the SelfRelayer.

        Args:
            handler: Handler contract binding on the destination chain
            contract_util: Signing client for the destination chain
            explorer: Explorer link formatter
            confirmations: Confirmations to await for the relay transaction
        """
        self.handler = handler
        self.contract_util = contract_util
        self.explorer = explorer
        self.confirmations = confirmations

    def decode_calldata(self, calldata: bytes) -> dict[str, Any]:
        """
        Decode handler calldata into handlePostRequests arguments.

        Raises:
            ValueError: If the calldata targets another handler function
        """
        function, args = self.handler.decode_function_input(HexBytes(calldata))
        if function.fn_name != HANDLE_POST_REQUESTS:
            raise ValueError(f"Expected {HANDLE_POST_REQUESTS} calldata, got {function.fn_name}")
        return args

    async def relay(self, event: StatusEvent) -> str | None:
        """
        Submit the delivery carried by a HyperbridgeFinalized event.

        Args:
            event: The HyperbridgeFinalized status event

        Returns:
            Hash of the submitted transaction, or None if self-relay failed
        """
        if event.kind is not StatusKind.HYPERBRIDGE_FINALIZED or not event.calldata:
            logger.warning(f"Ignoring self-relay for {event}: no finalized calldata")
            return None

        try:
            args = self.decode_calldata(event.calldata)
            logger.info(f"Self-relaying {HANDLE_POST_REQUESTS} to handler {self.handler.address}")

            tx_hash = self.handler.functions.handlePostRequests(**args).transact()
            self.contract_util.wait_for_confirmations(tx_hash, self.confirmations)

            tx_hex = Web3.to_hex(tx_hash)
            logger.info(f"Transaction submitted: {self.explorer.dest_tx(tx_hex)}")
            return tx_hex

        except Exception as e:
            logger.error(f"Error self-relaying: {e}")
            return None
