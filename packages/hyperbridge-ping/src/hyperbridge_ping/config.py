#!/usr/bin/env python3
"""Configuration management for the Hyperbridge ping tracker.

This module provides type-safe configuration dataclasses with validation.
Configuration is loaded from environment variables with testnet defaults
for the BSC -> Optimism Sepolia route.
"""

import logging
import os
from dataclasses import dataclass, field
from urllib.parse import urlparse

from web3 import Web3

# Get logger for this module
logger = logging.getLogger(__name__)

DEFAULT_HYPERBRIDGE_EXPLORER = "https://gargantua.statescan.io/#/extrinsics"

DEFAULT_PING_MODULE_ADDRESS = "0x32EBaeF451dD321855B168b5ad96b480066DE060"
DEFAULT_FEE_TOKEN_ADDRESS = "0x157Ef95562CACF7F7bDFC606cc4Ce73B65e5E1f2"
DEFAULT_TOKEN_FAUCET_ADDRESS = "0x50A60531EF45a62711A812C081CC2C17ac683def"
DEFAULT_HANDLER_ADDRESS = "0x761426351F32261a10e2DF5e359f5A0A09e5A1D7"
DEFAULT_SOURCE_HOST_ADDRESS = "0xa3F07C94A7E6cD9367a2E0C0F4247eB2AC467C86"
DEFAULT_DEST_HOST_ADDRESS = "0x8Ac39DfC1F2616e5e19B93420C6d008a8a8EE65f"


def _validate_rpc_url(url: str, name: str) -> None:
    if not url:
        raise ValueError(f"{name} is required")
    parsed = urlparse(url)
    if parsed.scheme not in ('http', 'https', 'ws', 'wss'):
        raise ValueError(
            f"Invalid {name} scheme: {parsed.scheme}. "
            "Expected http, https, ws, or wss"
        )


def _checksum(obj: object, attr: str, label: str) -> None:
    """Validate an address attribute and store it checksummed."""
    address = getattr(obj, attr)
    if not address:
        raise ValueError(f"{label} address is required")
    if not Web3.is_address(address):
        raise ValueError(f"Invalid {label} address: {address}")
    # Use object.__setattr__ since dataclass is frozen
    object.__setattr__(obj, attr, Web3.to_checksum_address(address))


@dataclass(frozen=True, slots=True)
class ChainConfig:
    """Configuration for one EVM chain taking part in the route.

    Attributes:
        rpc_url: HTTP(S) RPC endpoint
        state_machine: ISMP state machine id (e.g. 'BSC', 'OPTI')
        consensus_state_id: Hyperbridge consensus client tracking this chain
        host_address: Checksummed address of the chain's EvmHost
        explorer_url: Block explorer base URL (transactions at /tx/<hash>)
    """

    rpc_url: str
    state_machine: str
    consensus_state_id: str
    host_address: str
    explorer_url: str

    def __post_init__(self) -> None:
        """Validate chain configuration."""
        _validate_rpc_url(self.rpc_url, f"{self.state_machine} RPC URL")

        if not self.state_machine:
            raise ValueError("State machine id is required")
        if len(self.consensus_state_id) != 4:
            raise ValueError(
                f"Consensus state id must be 4 characters, got {self.consensus_state_id!r}"
            )

        _checksum(self, 'host_address', f"{self.state_machine} host")

    def descriptor(self) -> dict[str, str]:
        """Chain descriptor sent to the relay alongside a request."""
        return {
            "state_machine": self.state_machine,
            "consensus_state_id": self.consensus_state_id,
            "host_address": self.host_address,
            "rpc_url": self.rpc_url,
        }


@dataclass(frozen=True, slots=True)
class HyperbridgeConfig:
    """Configuration for the request-status service.

    Attributes:
        rpc_url: HTTP(S) endpoint serving hyperbridge_queryRequestStatus
        explorer_url: Hyperbridge extrinsic explorer base URL
    """

    rpc_url: str
    explorer_url: str = DEFAULT_HYPERBRIDGE_EXPLORER

    def __post_init__(self) -> None:
        _validate_rpc_url(self.rpc_url, "HYPERBRIDGE_URL")
        if urlparse(self.rpc_url).scheme not in ("http", "https"):
            raise ValueError(
                f"HYPERBRIDGE_URL must be an http(s) status service, got {self.rpc_url}"
            )


@dataclass(frozen=True, slots=True)
class ContractsConfig:
    """Addresses of the contracts used by the ping flow."""

    ping_module: str = DEFAULT_PING_MODULE_ADDRESS
    fee_token: str = DEFAULT_FEE_TOKEN_ADDRESS
    token_faucet: str = DEFAULT_TOKEN_FAUCET_ADDRESS
    handler: str = DEFAULT_HANDLER_ADDRESS

    def __post_init__(self) -> None:
        """Validate and checksum every contract address."""
        _checksum(self, 'ping_module', "Ping module")
        _checksum(self, 'fee_token', "Fee token")
        _checksum(self, 'token_faucet', "Token faucet")
        _checksum(self, 'handler', "Handler")


@dataclass(frozen=True, slots=True)
class TrackingConfig:
    """Polling, retry and confirmation settings."""
    poll_interval: int = 12  # seconds between relay status polls
    event_timeout: int = 1800  # max seconds to wait for the next status
    retry_count: int = 3  # retry attempts per relay query
    backoff_base: float = 2.0  # seconds, doubled per retry
    backoff_max: float = 60.0
    request_timeout: int = 30  # HTTP request timeout in seconds
    confirmations: int = 1  # confirmations to await per transaction
    ping_timeout: int = 60 * 60  # relative request timeout passed to ping()

    def __post_init__(self) -> None:
        """Validate tracking configuration."""
        if self.poll_interval <= 0:
            raise ValueError(f"Poll interval must be positive, got {self.poll_interval}")
        if self.poll_interval > 300:
            raise ValueError(f"Poll interval too long (max 300s), got {self.poll_interval}")

        if self.event_timeout < self.poll_interval:
            raise ValueError(
                f"Event timeout ({self.event_timeout}s) must be at least "
                f"the poll interval ({self.poll_interval}s)"
            )

        if self.retry_count < 0:
            raise ValueError(f"Retry count must be non-negative, got {self.retry_count}")
        if self.retry_count > 10:
            raise ValueError(f"Retry count too high (max 10), got {self.retry_count}")

        if self.backoff_base <= 0 or self.backoff_max < self.backoff_base:
            raise ValueError(
                f"Invalid backoff window: base={self.backoff_base}, max={self.backoff_max}"
            )

        if self.request_timeout <= 0:
            raise ValueError(f"Request timeout must be positive, got {self.request_timeout}")

        if self.confirmations < 1:
            raise ValueError(f"Confirmations must be at least 1, got {self.confirmations}")

        if self.ping_timeout < 0:
            raise ValueError(f"Ping timeout must be non-negative, got {self.ping_timeout}")


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Main configuration for the ping dispatch-and-track flow.

    Attributes:
        source_chain: Chain the ping is dispatched from
        dest_chain: Chain the ping is delivered to
        hyperbridge: Relay endpoint settings
        contracts: Contract addresses on both chains
        tracking: Polling/retry settings
        private_key: Key used to sign on both chains
        self_relay: Submit finalized deliveries ourselves
    """

    source_chain: ChainConfig
    dest_chain: ChainConfig
    private_key: str
    hyperbridge: HyperbridgeConfig
    contracts: ContractsConfig = field(default_factory=ContractsConfig)
    tracking: TrackingConfig = field(default_factory=TrackingConfig)
    self_relay: bool = True

    def __post_init__(self) -> None:
        """Validate the signing key."""
        if not self.private_key:
            raise ValueError("PRIVATE_KEY environment variable is required")

        # Should be 64 hex chars, optionally with 0x prefix
        key = self.private_key.removeprefix('0x')
        if len(key) != 64:
            raise ValueError(
                f"Invalid private key length. Expected 64 hex characters, got {len(key)}"
            )
        try:
            int(key, 16)
        except ValueError:
            raise ValueError("Invalid private key format. Must be hexadecimal") from None

        if self.source_chain.state_machine == self.dest_chain.state_machine:
            raise ValueError(
                f"Source and destination must differ, both are {self.source_chain.state_machine}"
            )

    @classmethod
    def from_env(cls, self_relay: bool = True) -> "AppConfig":
        """Load configuration from environment variables.

        Args:
            self_relay: Whether to self-relay finalized deliveries

        Returns:
            AppConfig instance with loaded values

        Raises:
            ValueError: If required environment variables are missing or invalid
        """
        source_rpc_url = os.environ.get("SOURCE_RPC_URL") or os.environ.get("BSC_URL", "")
        if not source_rpc_url:
            raise ValueError(
                "SOURCE_RPC_URL (or BSC_URL) environment variable is required. "
                "Example: https://bsc-testnet.publicnode.com"
            )

        dest_rpc_url = os.environ.get("DEST_RPC_URL") or os.environ.get("OP_URL", "")
        if not dest_rpc_url:
            raise ValueError(
                "DEST_RPC_URL (or OP_URL) environment variable is required. "
                "Example: https://sepolia.optimism.io"
            )

        hyperbridge_url = os.environ.get("HYPERBRIDGE_URL", "")
        if not hyperbridge_url:
            raise ValueError(
                "HYPERBRIDGE_URL environment variable is required. It must point at an "
                "HTTP(S) service answering hyperbridge_queryRequestStatus"
            )

        source_chain = ChainConfig(
            rpc_url=source_rpc_url,
            state_machine=os.environ.get("SOURCE_STATE_MACHINE", "BSC"),
            consensus_state_id=os.environ.get("SOURCE_CONSENSUS_STATE_ID", "BSC0"),
            host_address=os.environ.get("SOURCE_HOST_ADDRESS", DEFAULT_SOURCE_HOST_ADDRESS),
            explorer_url=os.environ.get("SOURCE_EXPLORER_URL", "https://testnet.bscscan.com"),
        )

        dest_chain = ChainConfig(
            rpc_url=dest_rpc_url,
            state_machine=os.environ.get("DEST_STATE_MACHINE", "OPTI"),
            consensus_state_id=os.environ.get("DEST_CONSENSUS_STATE_ID", "ETH0"),
            host_address=os.environ.get("DEST_HOST_ADDRESS", DEFAULT_DEST_HOST_ADDRESS),
            explorer_url=os.environ.get(
                "DEST_EXPLORER_URL", "https://sepolia-optimism.etherscan.io"
            ),
        )

        hyperbridge = HyperbridgeConfig(
            rpc_url=hyperbridge_url,
            explorer_url=os.environ.get("HYPERBRIDGE_EXPLORER_URL", DEFAULT_HYPERBRIDGE_EXPLORER),
        )

        contracts = ContractsConfig(
            ping_module=os.environ.get("PING_MODULE_ADDRESS", DEFAULT_PING_MODULE_ADDRESS),
            fee_token=os.environ.get("FEE_TOKEN_ADDRESS", DEFAULT_FEE_TOKEN_ADDRESS),
            token_faucet=os.environ.get("TOKEN_FAUCET_ADDRESS", DEFAULT_TOKEN_FAUCET_ADDRESS),
            handler=os.environ.get("HANDLER_ADDRESS", DEFAULT_HANDLER_ADDRESS),
        )

        tracking = TrackingConfig(
            poll_interval=int(os.environ.get("POLL_INTERVAL", "12")),
            event_timeout=int(os.environ.get("EVENT_TIMEOUT", "1800")),
            retry_count=int(os.environ.get("RETRY_COUNT", "3")),
            request_timeout=int(os.environ.get("REQUEST_TIMEOUT", "30")),
            confirmations=int(os.environ.get("CONFIRMATIONS", "1")),
            ping_timeout=int(os.environ.get("PING_TIMEOUT", str(60 * 60))),
        )

        return cls(
            source_chain=source_chain,
            dest_chain=dest_chain,
            private_key=os.environ.get("PRIVATE_KEY", ""),
            hyperbridge=hyperbridge,
            contracts=contracts,
            tracking=tracking,
            self_relay=self_relay,
        )

    def log_config(self) -> None:
        """Log the configuration in a readable format (hiding the key)."""
        logger.info("=" * 60)
        logger.info("Hyperbridge Ping Configuration")
        logger.info("=" * 60)

        for label, chain in (("Source", self.source_chain), ("Destination", self.dest_chain)):
            logger.info(f"{label} Chain ({chain.state_machine}):")
            logger.info(f"  RPC URL: {chain.rpc_url}")
            logger.info(f"  Consensus State: {chain.consensus_state_id}")
            logger.info(f"  Host: {chain.host_address}")

        logger.info("Hyperbridge:")
        logger.info(f"  Status URL: {self.hyperbridge.rpc_url}")

        logger.info("Contracts:")
        logger.info(f"  Ping Module: {self.contracts.ping_module}")
        logger.info(f"  Fee Token: {self.contracts.fee_token}")
        logger.info(f"  Token Faucet: {self.contracts.token_faucet}")
        logger.info(f"  Handler: {self.contracts.handler}")

        logger.info("Tracking Settings:")
        logger.info(f"  Poll Interval: {self.tracking.poll_interval} seconds")
        logger.info(f"  Event Timeout: {self.tracking.event_timeout} seconds")
        logger.info(f"  Retry Count: {self.tracking.retry_count}")
        logger.info(f"  Confirmations: {self.tracking.confirmations}")
        logger.info(f"  Self Relay: {'ON' if self.self_relay else 'OFF'}")
        logger.info(f"  Private Key: {'[SET]' if self.private_key else '[NOT SET]'}")

        logger.info("=" * 60)
