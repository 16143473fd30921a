"""
Shared data models for the Hyperbridge ping tracker.

This module contains the cross-chain request descriptor, the ping message
struct and the closed set of delivery statuses reported by the relay.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from hexbytes import HexBytes
from web3 import Web3

from .exceptions import StatusDecodeError, UnknownStatusError


def _to_bytes(value: Any) -> bytes:
    """Normalize event/wire values (str, hex str, bytes) to bytes."""
    match value:
        case bytes() as raw:
            return bytes(raw)
        case str() as text if text.startswith("0x"):
            return Web3.to_bytes(hexstr=text)
        case str() as text:
            return text.encode()
        case _:
            raise TypeError(f"Cannot convert {type(value).__name__} to bytes")


@dataclass(frozen=True, slots=True)
class CrossChainRequest:
    """A post request accepted by the source chain's host for relaying.

    Immutable once built from the PostRequestEvent emitted on the source chain.

    Attributes:
        source: State machine id of the source chain (e.g. b"BSC")
        dest: State machine id of the destination chain (e.g. b"OPTI")
        from_: Sending module on the source chain
        to: Receiving module on the destination chain
        nonce: Host-assigned request nonce
        timeout_timestamp: Unix timestamp after which the request times out (0 = never)
        body: Opaque request payload
        height: Source chain block that included the request
        fee: Relayer fee paid with the request
    """
    source: bytes
    dest: bytes
    from_: bytes
    to: bytes
    nonce: int
    timeout_timestamp: int
    body: bytes
    height: int
    fee: int = 0

    @classmethod
    def from_event_args(cls, args: Mapping[str, Any], height: int) -> "CrossChainRequest":
        """Build a request from decoded PostRequestEvent arguments."""
        return cls(
            source=_to_bytes(args["source"]),
            dest=_to_bytes(args["dest"]),
            from_=_to_bytes(args["from"]),
            to=_to_bytes(args["to"]),
            nonce=int(args["nonce"]),
            timeout_timestamp=int(args["timeoutTimestamp"]),
            body=_to_bytes(args["body"]),
            height=int(height),
            fee=int(args.get("fee", 0)),
        )

    @property
    def commitment(self) -> str:
        """keccak256 commitment the relay network indexes the request by."""
        return Web3.to_hex(Web3.solidity_keccak(
            ["bytes", "bytes", "uint64", "uint64", "bytes", "bytes", "bytes"],
            [
                self.source,
                self.dest,
                self.nonce,
                self.timeout_timestamp,
                self.from_,
                self.to,
                self.body,
            ],
        ))

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-ready dictionary for relay queries."""
        return {
            "source": self.source.decode(errors="replace"),
            "dest": self.dest.decode(errors="replace"),
            "from": Web3.to_hex(self.from_),
            "to": Web3.to_hex(self.to),
            "nonce": self.nonce,
            "timeout_timestamp": self.timeout_timestamp,
            "body": Web3.to_hex(self.body),
            "height": self.height,
        }

    def __str__(self) -> str:
        return (
            f"CrossChainRequest({self.source.decode(errors='replace')}"
            f"->{self.dest.decode(errors='replace')}, "
            f"nonce={self.nonce}, height={self.height})"
        )


@dataclass(frozen=True, slots=True)
class PingMessage:
    """Arguments of the ping module's ping(PingMessage) call."""
    dest: bytes
    module: str
    timeout: int
    count: int = 1
    fee: int = 0

    def as_struct(self) -> dict[str, Any]:
        return {
            "dest": self.dest,
            "module": Web3.to_checksum_address(self.module),
            "timeout": self.timeout,
            "count": self.count,
            "fee": self.fee,
        }


class StatusKind(Enum):
    """Delivery stages of a cross-chain request, in emission order."""
    PENDING = "Pending"
    SOURCE_FINALIZED = "SourceFinalized"
    HYPERBRIDGE_DELIVERED = "HyperbridgeDelivered"
    HYPERBRIDGE_FINALIZED = "HyperbridgeFinalized"
    DESTINATION_DELIVERED = "DestinationDelivered"
    TIMEOUT = "Timeout"

    @property
    def ordinal(self) -> int:
        return _ORDINALS[self]

    @property
    def is_terminal(self) -> bool:
        return self in (StatusKind.DESTINATION_DELIVERED, StatusKind.TIMEOUT)


_ORDINALS: dict[StatusKind, int] = {kind: index for index, kind in enumerate(StatusKind)}


@dataclass(frozen=True, slots=True)
class StatusEvent:
    """One observed status of a cross-chain request.

    Attributes:
        kind: Delivery stage
        transaction_hash: Transaction that moved the request into this stage
        calldata: Destination handler calldata (HyperbridgeFinalized only)
        block_number: Block of the transaction, when the relay reports it
    """
    kind: StatusKind
    transaction_hash: str | None = None
    calldata: bytes | None = None
    block_number: int | None = None

    @classmethod
    def pending(cls) -> "StatusEvent":
        return cls(kind=StatusKind.PENDING)

    @classmethod
    def from_wire(cls, status: Mapping[str, Any]) -> "StatusEvent":
        """
        Decode a relay status object.

        Args:
            status: Mapping with a "kind" tag plus its payload fields

        Returns:
            The decoded StatusEvent

        Raises:
            UnknownStatusError: If the tag is not a known status kind
            StatusDecodeError: If the status is not an object, or a known tag
                has missing or malformed payload
        """
        if not isinstance(status, Mapping):
            raise StatusDecodeError(f"Status must be an object, got {status!r}")

        raw_kind = status.get("kind")
        try:
            kind = StatusKind(raw_kind)
        except ValueError:
            raise UnknownStatusError(raw_kind) from None

        if kind is StatusKind.PENDING:
            return cls.pending()

        tx_hash = status.get("transaction_hash")
        if not tx_hash:
            raise StatusDecodeError(f"{kind.value} status is missing transaction_hash")
        try:
            tx_hash = Web3.to_hex(HexBytes(tx_hash))
        except (TypeError, ValueError) as e:
            raise StatusDecodeError(f"{kind.value} status has invalid transaction_hash: {e}") from e

        calldata = None
        if kind is StatusKind.HYPERBRIDGE_FINALIZED:
            if not status.get("calldata"):
                raise StatusDecodeError("HyperbridgeFinalized status is missing calldata")
            try:
                calldata = bytes(HexBytes(status["calldata"]))
            except (TypeError, ValueError) as e:
                raise StatusDecodeError(f"HyperbridgeFinalized status has invalid calldata: {e}") from e

        if (block_number := status.get("block_number")) is not None:
            try:
                block_number = int(block_number)
            except (TypeError, ValueError):
                raise StatusDecodeError(
                    f"{kind.value} status has invalid block_number: {block_number!r}"
                ) from None

        return cls(
            kind=kind,
            transaction_hash=tx_hash,
            calldata=calldata,
            block_number=block_number,
        )

    def __str__(self) -> str:
        if self.transaction_hash:
            return f"{self.kind.value}({self.transaction_hash[:10]}...)"
        return self.kind.value
