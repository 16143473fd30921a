"""Unit tests for the Hyperbridge relay client."""

import json

import httpx
import pytest
from unittest.mock import AsyncMock, patch

from hyperbridge_ping.config import ChainConfig, HyperbridgeConfig, TrackingConfig
from hyperbridge_ping.exceptions import RelayQueryError, TrackingUnavailableError
from hyperbridge_ping.models import CrossChainRequest
from hyperbridge_ping.relay_client import HyperbridgeRelayClient

RELAY_URL = "https://relay.test/rpc"


def status(kind: str, n: int) -> dict:
    entry = {"kind": kind, "transaction_hash": "0x" + f"{n:02x}" * 32}
    if kind == "HyperbridgeFinalized":
        entry["calldata"] = "0xc0ffee"
    return entry


@pytest.fixture
def cross_chain_request():
    return CrossChainRequest(
        source=b"BSC",
        dest=b"OPTI",
        from_=b"\x01" * 20,
        to=b"\x02" * 20,
        nonce=1,
        timeout_timestamp=0,
        body=b"ping",
        height=10,
    )


@pytest.fixture
def chains():
    source = ChainConfig(
        rpc_url="https://bsc.test.rpc",
        state_machine="BSC",
        consensus_state_id="BSC0",
        host_address="0xa3F07C94A7E6cD9367a2E0C0F4247eB2AC467C86",
        explorer_url="https://testnet.bscscan.com",
    )
    dest = ChainConfig(
        rpc_url="https://op.test.rpc",
        state_machine="OPTI",
        consensus_state_id="ETH0",
        host_address="0x8Ac39DfC1F2616e5e19B93420C6d008a8a8EE65f",
        explorer_url="https://sepolia-optimism.etherscan.io",
    )
    return source, dest


def make_client(chains, handler, **tracking) -> HyperbridgeRelayClient:
    source, dest = chains
    return HyperbridgeRelayClient(
        hyperbridge=HyperbridgeConfig(rpc_url=RELAY_URL),
        source=source,
        dest=dest,
        tracking=TrackingConfig(**tracking),
        transport=httpx.MockTransport(handler),
    )


def rpc_result(request: httpx.Request, result) -> httpx.Response:
    payload = json.loads(request.content)
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], "result": result})


class TestQueryRequestStatus:
    """Test suite for one-shot relay queries."""

    @pytest.mark.asyncio
    async def test_payload_describes_request_and_chains(self, chains, cross_chain_request):
        """The query carries the request, its commitment and both chain descriptors."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return rpc_result(request, {"history": []})

        async with make_client(chains, handler) as client:
            await client.query_request_status(cross_chain_request)

        payload = seen[0]
        assert payload["method"] == "hyperbridge_queryRequestStatus"
        params = payload["params"][0]
        assert params["commitment"] == cross_chain_request.commitment
        assert params["request"]["nonce"] == 1
        assert params["source"]["consensus_state_id"] == "BSC0"
        assert params["dest"]["state_machine"] == "OPTI"

    @pytest.mark.asyncio
    async def test_empty_history_is_pending(self, chains, cross_chain_request):
        """No relay progress yet reads as Pending."""
        async with make_client(chains, lambda r: rpc_result(r, {"history": []})) as client:
            result = await client.query_request_status(cross_chain_request)

        assert result == {"kind": "Pending"}

    @pytest.mark.asyncio
    async def test_latest_history_entry_returned(self, chains, cross_chain_request):
        """The current status is the newest history entry."""
        history = [status("SourceFinalized", 1), status("HyperbridgeDelivered", 2)]

        async with make_client(chains, lambda r: rpc_result(r, {"history": history})) as client:
            result = await client.query_request_status(cross_chain_request)

        assert result["kind"] == "HyperbridgeDelivered"

    @pytest.mark.asyncio
    async def test_rpc_error_not_retried(self, chains, cross_chain_request):
        """JSON-RPC errors surface immediately as RelayQueryError."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={
                "jsonrpc": "2.0", "id": 1,
                "error": {"code": -32602, "message": "unknown request"},
            })

        async with make_client(chains, handler) as client:
            with pytest.raises(RelayQueryError, match="unknown request") as exc_info:
                await client.query_request_status(cross_chain_request)

        assert exc_info.value.code == -32602
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_null_result_is_unrecognized(self, chains, cross_chain_request):
        """A null result means the relay does not know the request."""
        async with make_client(chains, lambda r: rpc_result(r, None)) as client:
            with pytest.raises(RelayQueryError, match="does not recognize"):
                await client.query_request_status(cross_chain_request)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "result, match",
        [
            (["SourceFinalized"], "Malformed status result"),
            ("SourceFinalized", "Malformed status result"),
            ({"history": "SourceFinalized"}, "Malformed status history"),
            ({"history": ["SourceFinalized"]}, "Malformed status entries"),
            ({"history": [status("SourceFinalized", 1), None]}, "Malformed status entries"),
        ],
    )
    async def test_malformed_result_rejected(self, chains, cross_chain_request, result, match):
        """Result shapes other than an object of status objects are relay errors."""
        async with make_client(chains, lambda r: rpc_result(r, result)) as client:
            with pytest.raises(RelayQueryError, match=match):
                await client.query_request_status(cross_chain_request)

    @pytest.mark.asyncio
    async def test_non_object_response_rejected(self, chains, cross_chain_request):
        """A JSON body that is not a JSON-RPC object is a relay error."""
        async with make_client(chains, lambda r: httpx.Response(200, json=[1, 2])) as client:
            with pytest.raises(RelayQueryError, match="Malformed JSON-RPC response"):
                await client.query_request_status(cross_chain_request)

    @pytest.mark.asyncio
    async def test_string_error_rejected(self, chains, cross_chain_request):
        """A bare string error object still surfaces as RelayQueryError."""
        async with make_client(
            chains, lambda r: httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": "Method not found"})
        ) as client:
            with pytest.raises(RelayQueryError, match="Method not found") as exc_info:
                await client.query_request_status(cross_chain_request)

        assert exc_info.value.code is None

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, chains, cross_chain_request):
        """HTTP 4xx (other than 429) is a rejection, not an outage."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(404)

        async with make_client(chains, handler) as client:
            with pytest.raises(RelayQueryError, match="HTTP 404"):
                await client.query_request_status(cross_chain_request)

        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self, chains, cross_chain_request):
        """Transient failures are retried with backoff."""
        responses = iter([503, 429, 200])

        def handler(request: httpx.Request) -> httpx.Response:
            code = next(responses)
            if code != 200:
                return httpx.Response(code)
            return rpc_result(request, {"history": [status("SourceFinalized", 1)]})

        with patch("hyperbridge_ping.relay_client.asyncio.sleep", new=AsyncMock()) as sleep:
            async with make_client(chains, handler, retry_count=3) as client:
                result = await client.query_request_status(cross_chain_request)

        assert result["kind"] == "SourceFinalized"
        assert sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_unavailable_after_retries(self, chains, cross_chain_request):
        """Exhausted retries raise TrackingUnavailableError."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        with patch("hyperbridge_ping.relay_client.asyncio.sleep", new=AsyncMock()):
            async with make_client(chains, handler, retry_count=2) as client:
                with pytest.raises(TrackingUnavailableError, match="after 3 attempts"):
                    await client.query_request_status(cross_chain_request)

        assert len(calls) == 3

    def test_backoff_grows_and_caps(self, chains):
        """Backoff doubles per attempt and never exceeds the cap plus jitter."""
        client = make_client(chains, lambda r: httpx.Response(200), backoff_base=1.0, backoff_max=4.0)

        with patch("hyperbridge_ping.relay_client.random.uniform", return_value=0.0):
            delays = [client._backoff(attempt) for attempt in range(5)]

        assert delays == [1.0, 2.0, 4.0, 4.0, 4.0]


class TestRequestStatusStream:
    """Test suite for the polling status stream."""

    @pytest.mark.asyncio
    async def test_stream_yields_each_new_stage(self, chains, cross_chain_request):
        """Every new history entry is yielded once, in order, until terminal."""
        full = [
            status("SourceFinalized", 1),
            status("HyperbridgeDelivered", 2),
            status("HyperbridgeFinalized", 3),
            status("DestinationDelivered", 4),
        ]
        polls = iter([[], full[:1], full[:1], full[:3], full])

        with patch("hyperbridge_ping.relay_client.asyncio.sleep", new=AsyncMock()):
            async with make_client(chains, lambda r: rpc_result(r, {"history": next(polls)})) as client:
                kinds = [
                    entry["kind"]
                    async for entry in client.request_status_stream(cross_chain_request)
                ]

        assert kinds == [
            "SourceFinalized",
            "HyperbridgeDelivered",
            "HyperbridgeFinalized",
            "DestinationDelivered",
        ]

    @pytest.mark.asyncio
    async def test_stream_starts_at_current_stage(self, chains, cross_chain_request):
        """A fresh stream skips stages reached before it was opened."""
        history = [
            status("SourceFinalized", 1),
            status("HyperbridgeDelivered", 2),
            status("HyperbridgeFinalized", 3),
        ]
        polls = iter([history, history + [status("DestinationDelivered", 4)]])

        with patch("hyperbridge_ping.relay_client.asyncio.sleep", new=AsyncMock()):
            async with make_client(chains, lambda r: rpc_result(r, {"history": next(polls)})) as client:
                kinds = [
                    entry["kind"]
                    async for entry in client.request_status_stream(cross_chain_request)
                ]

        assert kinds == ["HyperbridgeFinalized", "DestinationDelivered"]

    @pytest.mark.asyncio
    async def test_stream_stops_at_timeout(self, chains, cross_chain_request):
        """A relay-reported Timeout ends the stream."""
        history = [status("SourceFinalized", 1), status("Timeout", 9)]

        with patch("hyperbridge_ping.relay_client.asyncio.sleep", new=AsyncMock()):
            async with make_client(chains, lambda r: rpc_result(r, {"history": history})) as client:
                kinds = [
                    entry["kind"]
                    async for entry in client.request_status_stream(cross_chain_request)
                ]

        assert kinds == ["Timeout"]

    @pytest.mark.asyncio
    async def test_stream_gives_up_without_progress(self, chains, cross_chain_request):
        """No new stage within event_timeout raises TrackingUnavailableError."""
        clock = iter(range(0, 10_000, 60))

        with patch("hyperbridge_ping.relay_client.asyncio.sleep", new=AsyncMock()), \
                patch("hyperbridge_ping.relay_client.time") as mock_time:
            mock_time.monotonic.side_effect = lambda: next(clock)
            async with make_client(
                chains,
                lambda r: rpc_result(r, {"history": [status("SourceFinalized", 1)]}),
                poll_interval=12,
                event_timeout=120,
            ) as client:
                with pytest.raises(TrackingUnavailableError, match="No status change"):
                    async for _ in client.request_status_stream(cross_chain_request):
                        pass
