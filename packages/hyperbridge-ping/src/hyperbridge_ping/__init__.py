"""
Hyperbridge ping package.

Dispatches cross-chain pings through Hyperbridge and tracks their delivery.
"""

from .app import PingApp
from .config import AppConfig
from .models import CrossChainRequest, StatusEvent, StatusKind
from .relay_client import HyperbridgeRelayClient, RelayClient
from .status_tracker import StatusTracker

__all__ = [
    "AppConfig",
    "PingApp",
    "CrossChainRequest",
    "StatusEvent",
    "StatusKind",
    "RelayClient",
    "HyperbridgeRelayClient",
    "StatusTracker",
]
__version__ = "0.1.0"
