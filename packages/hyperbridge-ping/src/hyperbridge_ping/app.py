"""
Hyperbridge ping application.

This module contains the flow that dispatches one ping from the source chain
and follows it through Hyperbridge to the destination chain, logging an
explorer link for every stage.
"""

import logging
from contextlib import aclosing

from .chain_context import ChainContext
from .config import AppConfig
from .dispatcher import PingDispatcher
from .models import CrossChainRequest, StatusEvent, StatusKind
from .relay_client import HyperbridgeRelayClient, RelayClient
from .self_relayer import SelfRelayer
from .status_tracker import StatusTracker
from .utils.explorer import ExplorerLinks

logger = logging.getLogger(__name__)


class PingApp:
    """
    Dispatches a ping and tracks it to delivery.

    Coordinates the dispatcher, relay client and tracker; chain access goes
    through the injected ChainContext.
    """

    def __init__(
        self,
        config: AppConfig,
        context: ChainContext,
        relay_client: RelayClient | None = None,
    ) -> None:
        """
        Initialize the application.

        Args:
            config: Application configuration
            context: Chain clients and contract bindings
            relay_client: Relay status client (built from config if omitted)
        """
        self.config = config
        self.context = context
        self.explorer = ExplorerLinks.from_config(config)

        self.relay_client = relay_client or HyperbridgeRelayClient(
            hyperbridge=config.hyperbridge,
            source=config.source_chain,
            dest=config.dest_chain,
            tracking=config.tracking,
        )
        self.dispatcher = PingDispatcher(
            context, self.explorer, confirmations=config.tracking.confirmations
        )
        self.self_relayer = SelfRelayer(
            handler=context.handler,
            contract_util=context.dest,
            explorer=self.explorer,
            confirmations=config.tracking.confirmations,
        )
        self.tracker = StatusTracker(
            self.relay_client,
            self_relayer=self.self_relayer,
            self_relay=config.self_relay,
        )

    @classmethod
    def from_env(cls, self_relay: bool = True) -> "PingApp":
        """
        Create a PingApp from environment variables.

        Raises:
            ValueError: If required environment variables are missing
        """
        config = AppConfig.from_env(self_relay=self_relay)
        config.log_config()
        return cls(config, ChainContext.from_config(config))

    def log_status(self, event: StatusEvent) -> None:
        """Log a status event with the explorer link for its transaction."""
        if link := self.explorer.for_status(event):
            logger.info(f"Status {event.kind.value}, Transaction: {link}")
        else:
            logger.info(f"Status {event.kind.value}")

    async def dispatch(self, bootstrap: bool = True) -> CrossChainRequest:
        """Bootstrap fees if asked, then send the ping."""
        block_number = self.context.source.w3.eth.block_number
        logger.info(f"Latest block number: {block_number}")

        if bootstrap:
            await self.dispatcher.ensure_fee_balance()
            await self.dispatcher.ensure_allowance()

        message = self.dispatcher.build_message(
            self.config.dest_chain.state_machine, self.config.tracking.ping_timeout
        )
        return await self.dispatcher.dispatch_ping(message)

    async def track(self, request: CrossChainRequest) -> StatusEvent | None:
        """
        Follow a request until it is delivered or times out.

        Returns:
            The terminal StatusEvent, or None if the stream ended without one
        """
        logger.info("Setting up relay status tracking")

        status = await self.tracker.query_status(request)
        logger.info(f"Request status: {status}")

        async with aclosing(self.tracker.subscribe_status(request)) as stream:
            async for event in stream:
                self.log_status(event)
                if event.kind is StatusKind.DESTINATION_DELIVERED:
                    return event
                if event.kind is StatusKind.TIMEOUT:
                    logger.warning(f"Request {request.commitment} timed out before delivery")
                    return event
        return None

    async def run(self, bootstrap: bool = True) -> StatusEvent | None:
        """Dispatch a ping and track it to a terminal status."""
        try:
            request = await self.dispatch(bootstrap=bootstrap)
            result = await self.track(request)
            if tx_hash := self.tracker.self_relay_hashes.get(request.commitment):
                logger.info(f"Self-relayed delivery: {self.explorer.dest_tx(tx_hash)}")
            return result
        finally:
            await self.relay_client.aclose()
            logger.info(f"Ping flow finished for {self.context.account_address}")
