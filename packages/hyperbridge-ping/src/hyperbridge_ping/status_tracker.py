"""
Delivery status tracking for cross-chain requests.

The tracker turns the relay's raw status reports into an ordered, terminating
sequence of StatusEvents:

    SourceFinalized -> HyperbridgeDelivered -> HyperbridgeFinalized
        -> DestinationDelivered

A Timeout may end the sequence after any non-terminal stage. Transitions are
driven by the relay network; the only thing the tracker does on its own is
the optional self-relay once HyperbridgeFinalized is observed.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import aclosing
from typing import TYPE_CHECKING

from .exceptions import StatusSequenceError
from .models import CrossChainRequest, StatusEvent, StatusKind
from .relay_client import RelayClient

if TYPE_CHECKING:
    from .self_relayer import SelfRelayer

logger = logging.getLogger(__name__)


class StatusTracker:
    """Follows one request at a time through its delivery stages."""

    def __init__(
        self,
        relay_client: RelayClient,
        self_relayer: "SelfRelayer | None" = None,
        self_relay: bool = True,
    ) -> None:
        """
        Initialize the tracker.

        Args:
            relay_client: Query capability over the relay network
            self_relayer: Submits finalized deliveries (None disables self-relay)
            self_relay: Whether to self-relay when a self_relayer is given
        """
        self.relay_client = relay_client
        self.self_relayer = self_relayer
        self.self_relay = self_relay and self_relayer is not None

        # commitment -> submitted tx hash (None if the attempt failed)
        self.self_relay_hashes: dict[str, str | None] = {}

    async def query_status(self, request: CrossChainRequest) -> StatusEvent:
        """
        One-shot poll of the request's current status.

        Returns:
            The current StatusEvent (Pending before any relay progress)

        Raises:
            RelayQueryError: If the relay does not recognize the request
            TrackingUnavailableError: If the relay cannot be reached
            UnknownStatusError: If the relay reports an unknown status
        """
        raw = await self.relay_client.query_request_status(request)
        return StatusEvent.from_wire(raw)

    async def subscribe_status(self, request: CrossChainRequest) -> AsyncIterator[StatusEvent]:
        """
        Stream the request's statuses from its current stage onwards.

        Each stage is yielded once, in order, and the stream ends after
        DestinationDelivered or Timeout. After HyperbridgeFinalized has been
        handed to the consumer the tracker self-relays, at most once per
        request.

        Raises:
            StatusSequenceError: If the relay skips a stage mid-stream
            UnknownStatusError: If the relay reports an unknown status
            TrackingUnavailableError: If the relay stops answering or stalls
        """
        last: StatusKind | None = None

        async with aclosing(self.relay_client.request_status_stream(request)) as stream:
            async for raw in stream:
                event = StatusEvent.from_wire(raw)

                if event.kind is StatusKind.PENDING:
                    continue

                if last is not None:
                    if event.kind.ordinal <= last.ordinal:
                        logger.debug(f"Dropping stale status {event} (already at {last.value})")
                        continue
                    if event.kind is not StatusKind.TIMEOUT and event.kind.ordinal != last.ordinal + 1:
                        raise StatusSequenceError(
                            f"Relay jumped from {last.value} to {event.kind.value} "
                            f"for request {request.commitment}"
                        )

                last = event.kind
                logger.debug(f"Request {request.commitment[:10]}... status: {event}")
                yield event

                if event.kind is StatusKind.HYPERBRIDGE_FINALIZED:
                    await self._self_relay(request, event)

                if event.kind.is_terminal:
                    return

    async def _self_relay(self, request: CrossChainRequest, event: StatusEvent) -> None:
        """Attempt the self-relay for a request, once."""
        if not self.self_relay or self.self_relayer is None:
            return

        commitment = request.commitment
        if commitment in self.self_relay_hashes:
            logger.debug(f"Self-relay already attempted for {commitment[:10]}...")
            return

        tx_hash = await self.self_relayer.relay(event)
        self.self_relay_hashes[commitment] = tx_hash
        if tx_hash is None:
            logger.info("Self-relay failed, waiting for a third-party relayer to deliver")
