"""
Block explorer link formatting.

Relay-chain stages (SourceFinalized, HyperbridgeDelivered) reference
Hyperbridge extrinsics; delivery stages reference destination transactions.
"""

from ..config import AppConfig
from ..models import StatusEvent, StatusKind


class ExplorerLinks:
    """Formats explorer URLs for the chains of one route."""

    def __init__(self, source_url: str, dest_url: str, hyperbridge_url: str) -> None:
        self.source_url = source_url.rstrip("/")
        self.dest_url = dest_url.rstrip("/")
        self.hyperbridge_url = hyperbridge_url.rstrip("/")

    @classmethod
    def from_config(cls, config: AppConfig) -> "ExplorerLinks":
        return cls(
            source_url=config.source_chain.explorer_url,
            dest_url=config.dest_chain.explorer_url,
            hyperbridge_url=config.hyperbridge.explorer_url,
        )

    def source_tx(self, tx_hash: str) -> str:
        return f"{self.source_url}/tx/{tx_hash}"

    def dest_tx(self, tx_hash: str) -> str:
        return f"{self.dest_url}/tx/{tx_hash}"

    def hyperbridge_tx(self, tx_hash: str) -> str:
        return f"{self.hyperbridge_url}/{tx_hash}"

    def for_status(self, event: StatusEvent) -> str | None:
        """Explorer link for the transaction carried by a status event."""
        if not event.transaction_hash:
            return None
        match event.kind:
            case StatusKind.SOURCE_FINALIZED | StatusKind.HYPERBRIDGE_DELIVERED:
                return self.hyperbridge_tx(event.transaction_hash)
            case StatusKind.HYPERBRIDGE_FINALIZED | StatusKind.DESTINATION_DELIVERED:
                return self.dest_tx(event.transaction_hash)
            case StatusKind.TIMEOUT:
                return self.hyperbridge_tx(event.transaction_hash)
            case _:
                return None
