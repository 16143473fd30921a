"""Unit tests for request and status models."""

import pytest
from web3 import Web3

from hyperbridge_ping.exceptions import StatusDecodeError, UnknownStatusError
from hyperbridge_ping.models import CrossChainRequest, PingMessage, StatusEvent, StatusKind

PING_MODULE = "0x32EBaeF451dD321855B168b5ad96b480066DE060"
TX_HASH = "0x" + "ab" * 32


@pytest.fixture
def request_args():
    """Decoded PostRequestEvent args as web3 returns them."""
    return {
        "source": "BSC",
        "dest": "OPTI",
        "from": PING_MODULE,
        "to": Web3.to_bytes(hexstr=PING_MODULE),
        "nonce": 42,
        "timeoutTimestamp": 1_700_003_600,
        "body": b"hello from BSC",
        "fee": 0,
    }


class TestCrossChainRequest:
    """Test suite for CrossChainRequest."""

    def test_from_event_args(self, request_args):
        """Test building a request from PostRequestEvent args."""
        request = CrossChainRequest.from_event_args(request_args, height=123)

        assert request.source == b"BSC"
        assert request.dest == b"OPTI"
        assert request.from_ == Web3.to_bytes(hexstr=PING_MODULE)
        assert request.to == Web3.to_bytes(hexstr=PING_MODULE)
        assert request.nonce == 42
        assert request.timeout_timestamp == 1_700_003_600
        assert request.body == b"hello from BSC"
        assert request.height == 123

    def test_immutability(self, request_args):
        """Test that the request cannot be changed once built."""
        request = CrossChainRequest.from_event_args(request_args, height=123)

        with pytest.raises(AttributeError):
            request.nonce = 43

    def test_commitment_matches_packed_encoding(self, request_args):
        """Test the commitment is keccak256 over the packed request fields."""
        request = CrossChainRequest.from_event_args(request_args, height=123)

        packed = (
            b"BSC"
            + b"OPTI"
            + (42).to_bytes(8, "big")
            + (1_700_003_600).to_bytes(8, "big")
            + request.from_
            + request.to
            + b"hello from BSC"
        )
        assert request.commitment == Web3.to_hex(Web3.keccak(packed))

    def test_commitment_ignores_height(self, request_args):
        """Test that the inclusion height is not part of the commitment."""
        first = CrossChainRequest.from_event_args(request_args, height=1)
        second = CrossChainRequest.from_event_args(request_args, height=2)

        assert first.commitment == second.commitment

    def test_to_dict(self, request_args):
        """Test the JSON-ready representation."""
        data = CrossChainRequest.from_event_args(request_args, height=123).to_dict()

        assert data["source"] == "BSC"
        assert data["dest"] == "OPTI"
        assert data["from"] == PING_MODULE.lower()
        assert data["nonce"] == 42
        assert data["body"] == Web3.to_hex(b"hello from BSC")
        assert data["height"] == 123


class TestPingMessage:
    """Test suite for PingMessage."""

    def test_as_struct(self):
        """Test the struct passed to ping()."""
        message = PingMessage(dest=b"OPTI", module=PING_MODULE.lower(), timeout=3600)

        assert message.as_struct() == {
            "dest": b"OPTI",
            "module": PING_MODULE,
            "timeout": 3600,
            "count": 1,
            "fee": 0,
        }


class TestStatusKind:
    """Test suite for StatusKind ordering."""

    def test_emission_order(self):
        """Test that ordinals follow the delivery stages."""
        stages = [
            StatusKind.PENDING,
            StatusKind.SOURCE_FINALIZED,
            StatusKind.HYPERBRIDGE_DELIVERED,
            StatusKind.HYPERBRIDGE_FINALIZED,
            StatusKind.DESTINATION_DELIVERED,
        ]
        ordinals = [stage.ordinal for stage in stages]
        assert ordinals == sorted(ordinals)
        assert len(set(ordinals)) == len(ordinals)

    def test_terminal_kinds(self):
        """Test which kinds end a subscription."""
        assert StatusKind.DESTINATION_DELIVERED.is_terminal
        assert StatusKind.TIMEOUT.is_terminal
        assert not StatusKind.HYPERBRIDGE_FINALIZED.is_terminal
        assert not StatusKind.PENDING.is_terminal


class TestStatusEventDecoding:
    """Test suite for StatusEvent.from_wire."""

    def test_decode_source_finalized(self):
        """Test decoding a plain status with a transaction hash."""
        event = StatusEvent.from_wire({
            "kind": "SourceFinalized",
            "transaction_hash": TX_HASH,
            "block_number": 77,
        })

        assert event.kind is StatusKind.SOURCE_FINALIZED
        assert event.transaction_hash == TX_HASH
        assert event.block_number == 77
        assert event.calldata is None

    def test_decode_hyperbridge_finalized(self):
        """Test that HyperbridgeFinalized carries calldata."""
        event = StatusEvent.from_wire({
            "kind": "HyperbridgeFinalized",
            "transaction_hash": TX_HASH,
            "calldata": "0xdeadbeef",
        })

        assert event.kind is StatusKind.HYPERBRIDGE_FINALIZED
        assert event.calldata == bytes.fromhex("deadbeef")

    def test_hyperbridge_finalized_requires_calldata(self):
        """Test that missing calldata is a decode error."""
        with pytest.raises(StatusDecodeError, match="calldata"):
            StatusEvent.from_wire({"kind": "HyperbridgeFinalized", "transaction_hash": TX_HASH})

    def test_missing_transaction_hash(self):
        """Test that stage statuses need a transaction hash."""
        with pytest.raises(StatusDecodeError, match="transaction_hash"):
            StatusEvent.from_wire({"kind": "DestinationDelivered"})

    def test_pending(self):
        """Test that Pending needs no payload."""
        event = StatusEvent.from_wire({"kind": "Pending"})

        assert event.kind is StatusKind.PENDING
        assert event.transaction_hash is None

    @pytest.mark.parametrize("kind", ["Delivered", "sourcefinalized", None, 3])
    def test_unknown_kind_rejected(self, kind):
        """Test that unknown tags are a distinct error, not a fallthrough."""
        with pytest.raises(UnknownStatusError) as exc_info:
            StatusEvent.from_wire({"kind": kind, "transaction_hash": TX_HASH})

        assert exc_info.value.kind == kind

    @pytest.mark.parametrize(
        "field, value",
        [
            ("transaction_hash", "not-hex"),
            ("transaction_hash", ["0xab"]),
            ("block_number", "abc"),
            ("block_number", {"n": 1}),
        ],
    )
    def test_malformed_payload_rejected(self, field, value):
        """Test that malformed relay values become decode errors."""
        status = {"kind": "SourceFinalized", "transaction_hash": TX_HASH, field: value}

        with pytest.raises(StatusDecodeError, match=field):
            StatusEvent.from_wire(status)

    def test_malformed_calldata_rejected(self):
        """Test that non-hex calldata is a decode error."""
        with pytest.raises(StatusDecodeError, match="calldata"):
            StatusEvent.from_wire({
                "kind": "HyperbridgeFinalized",
                "transaction_hash": TX_HASH,
                "calldata": "0xzz",
            })

    @pytest.mark.parametrize("status", [["SourceFinalized"], "SourceFinalized", None])
    def test_non_object_status_rejected(self, status):
        """Test that a status must be an object."""
        with pytest.raises(StatusDecodeError, match="must be an object"):
            StatusEvent.from_wire(status)

    def test_block_number_from_string(self):
        """Test that decimal strings are accepted as block numbers."""
        event = StatusEvent.from_wire({
            "kind": "DestinationDelivered",
            "transaction_hash": TX_HASH,
            "block_number": "77",
        })

        assert event.block_number == 77
