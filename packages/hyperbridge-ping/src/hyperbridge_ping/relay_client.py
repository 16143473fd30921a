"""
Relay status client for Hyperbridge.

The relay network is an external collaborator: this module only asks it where
a request currently is. Statuses come back as raw wire mappings and are
decoded by the tracker.

Status service contract (HYPERBRIDGE_URL, JSON-RPC 2.0 over HTTP POST):

    request:  {"method": "hyperbridge_queryRequestStatus",
               "params": [{"request": {...}, "commitment": "0x...",
                           "source": {...}, "dest": {...}}]}
    result:   {"history": [status, ...]} ordered oldest first, or null for
              an unknown request
    status:   {"kind": "SourceFinalized" | "HyperbridgeDelivered" |
                       "HyperbridgeFinalized" | "DestinationDelivered" |
                       "Timeout",
               "transaction_hash": "0x...",
               "calldata": "0x..."  (HyperbridgeFinalized only),
               "block_number": int  (optional)}

A Hyperbridge node does not serve this method itself; the service sits in
front of a node or indexer and reports the stages it has observed.
"""

import asyncio
import itertools
import logging
import random
import time
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Mapping
from typing import Any

import httpx

from .config import ChainConfig, HyperbridgeConfig, TrackingConfig
from .exceptions import RelayQueryError, TrackingUnavailableError
from .models import CrossChainRequest, StatusKind

logger = logging.getLogger(__name__)

PENDING_STATUS: dict[str, Any] = {"kind": StatusKind.PENDING.value}
TERMINAL_KINDS = frozenset(kind.value for kind in StatusKind if kind.is_terminal)
RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class RelayClient(ABC):
    """Query capability over the relay network's view of a request."""

    @abstractmethod
    async def query_request_status(self, request: CrossChainRequest) -> Mapping[str, Any]:
        """Current wire status of the request."""

    @abstractmethod
    def request_status_stream(self, request: CrossChainRequest) -> AsyncIterator[Mapping[str, Any]]:
        """Wire statuses from the current one onwards, until a terminal one."""

    async def aclose(self) -> None:
        """Release any held connections."""


class HyperbridgeRelayClient(RelayClient):
    """
    JSON-RPC client for a Hyperbridge request-status endpoint.

    The endpoint answers ``hyperbridge_queryRequestStatus`` with
    ``{"history": [status, ...]}``, the ordered stages the request has
    reached. Transport failures and overloaded responses are retried with
    exponential backoff; JSON-RPC errors are not.
    """

    RPC_METHOD = "hyperbridge_queryRequestStatus"

    def __init__(
        self,
        hyperbridge: HyperbridgeConfig,
        source: ChainConfig,
        dest: ChainConfig,
        tracking: TrackingConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the relay client.

        Args:
            hyperbridge: Relay endpoint configuration
            source: Source chain descriptor
            dest: Destination chain descriptor
            tracking: Poll/retry settings (defaults if omitted)
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.hyperbridge = hyperbridge
        self.source = source
        self.dest = dest
        self.tracking = tracking or TrackingConfig()
        self._ids = itertools.count(1)
        self._client = httpx.AsyncClient(
            transport=transport,
            timeout=self.tracking.request_timeout,
        )

    async def __aenter__(self) -> "HyperbridgeRelayClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _backoff(self, attempt: int) -> float:
        """Exponential backoff with jitter for the given retry attempt."""
        delay = min(self.tracking.backoff_base * (2 ** attempt), self.tracking.backoff_max)
        return delay + random.uniform(0, delay * 0.3)

    async def _rpc(self, method: str, params: list[Any]) -> Any:
        """
        Perform one JSON-RPC call with bounded retries.

        Raises:
            RelayQueryError: If the relay answers with a JSON-RPC error
            TrackingUnavailableError: If every attempt failed in transport
        """
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }

        last_error: Exception | None = None
        for attempt in range(self.tracking.retry_count + 1):
            try:
                response = await self._client.post(self.hyperbridge.rpc_url, json=payload)
                if response.status_code in RETRYABLE_STATUS_CODES:
                    raise httpx.HTTPStatusError(
                        f"Relay responded with HTTP {response.status_code}",
                        request=response.request,
                        response=response,
                    )
                response.raise_for_status()
                body = response.json()
            except (httpx.TransportError, httpx.HTTPStatusError, ValueError) as e:
                if isinstance(e, httpx.HTTPStatusError) and \
                        e.response.status_code not in RETRYABLE_STATUS_CODES:
                    raise RelayQueryError(
                        f"Relay rejected {method}: HTTP {e.response.status_code}"
                    ) from e
                last_error = e
                if attempt < self.tracking.retry_count:
                    delay = self._backoff(attempt)
                    logger.warning(
                        f"Relay query failed ({e}), retrying in {delay:.1f}s "
                        f"(attempt {attempt + 1}/{self.tracking.retry_count})"
                    )
                    await asyncio.sleep(delay)
                continue

            if not isinstance(body, Mapping):
                raise RelayQueryError(f"Malformed JSON-RPC response to {method}: {body!r}")
            if error := body.get("error"):
                if not isinstance(error, Mapping):
                    raise RelayQueryError(f"Relay error for {method}: {error}")
                raise RelayQueryError(
                    f"Relay error for {method}: {error.get('message', error)}",
                    code=error.get("code"),
                )
            return body.get("result")

        raise TrackingUnavailableError(
            f"Relay at {self.hyperbridge.rpc_url} unavailable after "
            f"{self.tracking.retry_count + 1} attempts: {last_error}"
        ) from last_error

    async def query_status_history(self, request: CrossChainRequest) -> list[Mapping[str, Any]]:
        """Ordered list of stages the request has reached so far."""
        params = [{
            "request": request.to_dict(),
            "commitment": request.commitment,
            "source": self.source.descriptor(),
            "dest": self.dest.descriptor(),
        }]
        result = await self._rpc(self.RPC_METHOD, params)
        if result is None:
            raise RelayQueryError(f"Relay does not recognize request {request.commitment}")
        if not isinstance(result, Mapping):
            raise RelayQueryError(f"Malformed status result: {result!r}")
        history = result.get("history", [])
        if not isinstance(history, list):
            raise RelayQueryError(f"Malformed status history: {history!r}")
        if bad := [entry for entry in history if not isinstance(entry, Mapping)]:
            raise RelayQueryError(f"Malformed status entries: {bad!r}")
        return history

    async def query_request_status(self, request: CrossChainRequest) -> Mapping[str, Any]:
        history = await self.query_status_history(request)
        return history[-1] if history else PENDING_STATUS

    async def request_status_stream(
        self, request: CrossChainRequest
    ) -> AsyncIterator[Mapping[str, Any]]:
        """
        Poll the relay and yield each newly reached stage.

        The first yield is the request's current stage (nothing while it is
        still pending); afterwards every new history entry is yielded in order.
        Ends after a terminal stage.

        Raises:
            TrackingUnavailableError: If no new stage appears within
                tracking.event_timeout seconds
        """
        seen: int | None = None
        last_progress = time.monotonic()

        while True:
            history = await self.query_status_history(request)

            if seen is None:
                # Fresh subscription: start at the current stage
                new_entries = history[-1:]
                seen = max(len(history) - 1, 0)
            else:
                new_entries = history[seen:]

            for entry in new_entries:
                seen += 1
                last_progress = time.monotonic()
                yield entry
                if entry.get("kind") in TERMINAL_KINDS:
                    return

            if time.monotonic() - last_progress > self.tracking.event_timeout:
                raise TrackingUnavailableError(
                    f"No status change for request {request.commitment} in "
                    f"{self.tracking.event_timeout}s"
                )

            await asyncio.sleep(self.tracking.poll_interval)
