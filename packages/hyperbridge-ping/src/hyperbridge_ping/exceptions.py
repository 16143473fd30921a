"""
Error types for the Hyperbridge ping tracker.

Configuration problems are reported as ValueError from the config dataclasses;
everything raised while dispatching or tracking a request derives from
HyperbridgePingError.
"""


class HyperbridgePingError(Exception):
    """Base class for dispatch and tracking errors."""


class UnexpectedEventError(HyperbridgePingError):
    """The dispatch receipt did not contain the expected PostRequestEvent."""


class UnknownStatusError(HyperbridgePingError):
    """The relay reported a status tag outside the known set."""

    def __init__(self, kind: object) -> None:
        super().__init__(f"Unknown request status kind: {kind!r}")
        self.kind = kind


class StatusDecodeError(HyperbridgePingError):
    """A known status tag arrived with a malformed payload."""


class StatusSequenceError(HyperbridgePingError):
    """The relay skipped a delivery stage mid-subscription."""


class RelayQueryError(HyperbridgePingError):
    """The relay rejected the query or does not recognize the request."""

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


class TrackingUnavailableError(HyperbridgePingError):
    """The relay could not be reached, or made no progress in time."""


class TransactionFailedError(HyperbridgePingError):
    """A submitted transaction was mined but reverted."""

    def __init__(self, tx_hash: str, status: int) -> None:
        super().__init__(f"Transaction {tx_hash} failed with status={status}")
        self.tx_hash = tx_hash
        self.status = status
