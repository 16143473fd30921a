#!/usr/bin/env python3
"""Entry point for the Hyperbridge ping example.

Dispatches one ping from the source chain and tracks it through Hyperbridge
until it is delivered on the destination chain.
"""

import argparse
import asyncio
import logging
import os
import sys

from dotenv import load_dotenv


# Configure logging before any other imports create loggers
def setup_logging(level: str = "INFO") -> None:
    """Configure logging for the application.

    Args:
        level: Logging level as string (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    log_level: int = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


# Get logger for this module
logger = logging.getLogger(__name__)

from hyperbridge_ping.app import PingApp
from hyperbridge_ping.exceptions import (
    HyperbridgePingError,
    TransactionFailedError,
    UnexpectedEventError,
)
from hyperbridge_ping.models import StatusKind


async def main(argv: list[str] | None = None) -> None:
    """Main entry point for the Hyperbridge ping example.

    Args:
        argv: Command line arguments (defaults to sys.argv)

    Raises:
        SystemExit: On configuration, dispatch or tracking errors
    """
    load_dotenv()

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="Send a cross-chain ping through Hyperbridge and track its delivery",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""Environment Variables:
  SOURCE_RPC_URL / BSC_URL  - RPC endpoint for the source chain
  DEST_RPC_URL / OP_URL     - RPC endpoint for the destination chain
  PRIVATE_KEY               - Signing key used on both chains
  HYPERBRIDGE_URL           - Request-status service (JSON-RPC over HTTP(S),
                              method hyperbridge_queryRequestStatus; no default)
  POLL_INTERVAL             - Status polling interval (default: 12)
  LOG_LEVEL                 - Logging level (can be overridden with --log-level)
        """
    )
    parser.add_argument(
        "--no-self-relay",
        action="store_true",
        default=False,
        help="Wait for third-party relayers instead of self-relaying the delivery"
    )
    parser.add_argument(
        "--skip-bootstrap",
        action="store_true",
        default=False,
        help="Skip the fee token faucet and allowance checks"
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging level (default: INFO)"
    )
    args: argparse.Namespace = parser.parse_args(argv)

    setup_logging(args.log_level)
    logger.info("=== Hyperbridge Ping Starting ===")

    try:
        app = PingApp.from_env(self_relay=not args.no_self_relay)

    except ValueError as e:
        logger.error(f"Configuration Error: {e}")
        logger.error("Please check your environment variables:")
        logger.error("  - SOURCE_RPC_URL (or BSC_URL): RPC endpoint for the source chain")
        logger.error("  - DEST_RPC_URL (or OP_URL): RPC endpoint for the destination chain")
        logger.error("  - PRIVATE_KEY: Signing key (64 hex characters)")
        logger.error("  - HYPERBRIDGE_URL: Request-status service endpoint (http or https)")
        sys.exit(1)

    try:
        result = await app.run(bootstrap=not args.skip_bootstrap)

    except UnexpectedEventError as e:
        logger.error(f"Dispatch Error: {e}")
        sys.exit(1)

    except TransactionFailedError as e:
        logger.error(f"Transaction Error: {e}")
        sys.exit(1)

    except HyperbridgePingError as e:
        logger.error(f"Tracking Error: {e}")
        sys.exit(1)

    except KeyboardInterrupt:
        logger.info("\nReceived interrupt signal, shutting down...")
        sys.exit(0)

    except Exception as e:
        logger.error(f"Fatal Error: {e}", exc_info=True)
        sys.exit(1)

    if result is None:
        logger.warning("Status stream ended before delivery")
        sys.exit(1)

    logger.info(f"=== Finished: {result.kind.value} ===")
    if result.kind is not StatusKind.DESTINATION_DELIVERED:
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
