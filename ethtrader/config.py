"""Environment configuration and the supported chain table."""

import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from dotenv import load_dotenv
from eth_account import Account
from web3 import Web3

# Load environment variables
load_dotenv()


class ChainID(str, Enum):
    ETHEREUM_MAIN = "1"
    OPTIMISM_MAIN = "10"
    POLYGON_MAIN = "137"
    ARBITRUM_MAIN = "42161"


@dataclass(frozen=True)
class ChainConfig:
    """Configuration for a blockchain network"""
    chain_id: int
    name: str
    rpc_url: str
    native_symbol: str
    wrapped_native: str
    wrapped_native_symbol: str
    v3_factory: str
    v3_quoter: str
    v3_router: str
    explorer_url: str


# Uniswap V3 shares factory, QuoterV1 and SwapRouter02 addresses on these chains
UNISWAP_V3_FACTORY = "0x1F98431c8aD98523631AE4a59f267346ea31F984"
UNISWAP_V3_QUOTER = "0xb27308f9F90D607463bb33eA1BeBb41C27CE5AB6"
UNISWAP_V3_ROUTER_02 = "0x68b3465833fb72A70ecDF485E0e4C7bD8665Fc45"

# Chain configurations mapping
CHAIN_CONFIGS = {
    ChainID.ETHEREUM_MAIN: ChainConfig(
        chain_id=1,
        name="Ethereum",
        rpc_url="https://eth.llamarpc.com",
        native_symbol="ETH",
        wrapped_native="0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
        wrapped_native_symbol="WETH",
        v3_factory=UNISWAP_V3_FACTORY,
        v3_quoter=UNISWAP_V3_QUOTER,
        v3_router=UNISWAP_V3_ROUTER_02,
        explorer_url="https://etherscan.io",
    ),
    ChainID.OPTIMISM_MAIN: ChainConfig(
        chain_id=10,
        name="Optimism",
        rpc_url="https://mainnet.optimism.io",
        native_symbol="ETH",
        wrapped_native="0x4200000000000000000000000000000000000006",
        wrapped_native_symbol="WETH",
        v3_factory=UNISWAP_V3_FACTORY,
        v3_quoter=UNISWAP_V3_QUOTER,
        v3_router=UNISWAP_V3_ROUTER_02,
        explorer_url="https://optimistic.etherscan.io",
    ),
    ChainID.POLYGON_MAIN: ChainConfig(
        chain_id=137,
        name="Polygon",
        rpc_url="https://polygon-rpc.com",
        native_symbol="POL",
        wrapped_native="0x0d500B1d8E8eF31E21C99d1Db9A6444d3ADf1270",
        wrapped_native_symbol="WPOL",
        v3_factory=UNISWAP_V3_FACTORY,
        v3_quoter=UNISWAP_V3_QUOTER,
        v3_router=UNISWAP_V3_ROUTER_02,
        explorer_url="https://polygonscan.com",
    ),
    ChainID.ARBITRUM_MAIN: ChainConfig(
        chain_id=42161,
        name="Arbitrum One",
        rpc_url="https://arb1.arbitrum.io/rpc",
        native_symbol="ETH",
        wrapped_native="0x82aF49447D8a07e3bd95BD0d56f35241523fBab1",
        wrapped_native_symbol="WETH",
        v3_factory=UNISWAP_V3_FACTORY,
        v3_quoter=UNISWAP_V3_QUOTER,
        v3_router=UNISWAP_V3_ROUTER_02,
        explorer_url="https://arbiscan.io",
    ),
}

DEFAULT_TOKEN_LIST_URL = "https://tokens.uniswap.org"


@dataclass(frozen=True)
class Settings:
    """Process-wide settings, read once at startup."""
    chain: ChainConfig
    rpc_url: str
    wallet_address: str
    rpc_timeout: float = 10.0
    token_list_urls: Tuple[str, ...] = (DEFAULT_TOKEN_LIST_URL,)
    transport: str = "stdio"
    log_level: str = "INFO"


def _wallet_from_env() -> str:
    private_key = os.getenv("ETH_PRIVATE_KEY")
    if private_key:
        # Only the address is needed; nothing is ever signed.
        return Account.from_key(private_key).address

    wallet_address = os.getenv("WALLET_ADDRESS")
    if wallet_address:
        if not Web3.is_address(wallet_address):
            raise ValueError(f"WALLET_ADDRESS is not a valid address: {wallet_address}")
        return Web3.to_checksum_address(wallet_address)

    raise ValueError("ETH_PRIVATE_KEY or WALLET_ADDRESS environment variable is required")


def load_settings(chain_id: Optional[str] = None) -> Settings:
    """Build Settings from the environment (and .env, if present)."""
    chain_id = chain_id or os.getenv("CHAIN_ID", ChainID.ETHEREUM_MAIN.value)
    if chain_id not in CHAIN_CONFIGS:
        available_chains = [k.value for k in CHAIN_CONFIGS.keys()]
        raise ValueError(f"Unsupported chain ID '{chain_id}'. Available: {available_chains}")
    chain = CHAIN_CONFIGS[ChainID(chain_id)]

    urls = os.getenv("TOKEN_LIST_URLS", DEFAULT_TOKEN_LIST_URL)
    token_list_urls = tuple(u.strip() for u in urls.split(",") if u.strip())

    return Settings(
        chain=chain,
        rpc_url=os.getenv("ETH_RPC_URL") or chain.rpc_url,
        wallet_address=_wallet_from_env(),
        rpc_timeout=float(os.getenv("RPC_TIMEOUT_SECONDS", "10")),
        token_list_urls=token_list_urls or (DEFAULT_TOKEN_LIST_URL,),
        transport=os.getenv("TRANSPORT", "stdio"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
