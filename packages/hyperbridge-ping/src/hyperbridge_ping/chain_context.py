"""
Chain clients and contract bindings for one ping route.

Built once at startup from AppConfig and passed explicitly to the dispatcher,
self-relayer and tracker.
"""

import logging
from dataclasses import dataclass

from web3.contract import Contract

from .config import AppConfig
from .utils.contract_utility import ContractUtility

logger = logging.getLogger(__name__)


@dataclass
class ChainContext:
    """Bundle of chain clients and contract bindings.

    Attributes:
        source: Signing client for the source chain
        dest: Signing client for the destination chain
        fee_token: ERC6160 fee token on the source chain
        token_faucet: Fee token faucet on the source chain
        ping_module: Ping module on the source chain
        source_host: EvmHost on the source chain (emits PostRequestEvent)
        handler: ISMP handler on the destination chain
    """
    source: ContractUtility
    dest: ContractUtility
    fee_token: Contract
    token_faucet: Contract
    ping_module: Contract
    source_host: Contract
    handler: Contract

    @classmethod
    def from_config(cls, config: AppConfig) -> "ChainContext":
        """
        Connect to both chains and bind the route's contracts.

        Args:
            config: Application configuration

        Returns:
            ChainContext ready for dispatch and self-relay
        """
        timeout = config.tracking.request_timeout
        source = ContractUtility(config.source_chain.rpc_url, config.private_key, timeout)
        dest = ContractUtility(config.dest_chain.rpc_url, config.private_key, timeout)

        context = cls(
            source=source,
            dest=dest,
            fee_token=source.get_contract("ERC6160", config.contracts.fee_token),
            token_faucet=source.get_contract("TokenFaucet", config.contracts.token_faucet),
            ping_module=source.get_contract("PingModule", config.contracts.ping_module),
            source_host=source.get_contract("EvmHost", config.source_chain.host_address),
            handler=dest.get_contract("Handler", config.contracts.handler),
        )

        logger.info(
            f"Chain context ready for {source.address} "
            f"({config.source_chain.state_machine} -> {config.dest_chain.state_machine})"
        )
        return context

    @property
    def account_address(self) -> str:
        return self.source.address
