#!/usr/bin/env python3
"""
ETH Trader MCP Server (FastMCP Implementation)
Provides AI agents with balance, price and swap-simulation tools on an
EVM chain. Read-only: no transaction is ever signed or broadcast.
"""

import json
import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
from mcp.server.fastmcp import Context, FastMCP

from ethtrader.config import Settings, load_settings
from ethtrader.engine import TradingEngine
from ethtrader.errors import EngineError
from ethtrader.rpc import ChainClient
from ethtrader.tokens import TokenDirectory, TokenResolver

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@dataclass
class EthTraderContext:
    """Context for the ETH trader MCP server."""
    settings: Settings
    http_client: httpx.AsyncClient
    client: ChainClient
    directory: TokenDirectory
    engine: TradingEngine


@asynccontextmanager
async def eth_trader_lifespan(server: FastMCP) -> AsyncIterator[EthTraderContext]:
    """Manages the engine and HTTP client lifecycle."""
    settings = load_settings()
    logging.getLogger().setLevel(settings.log_level)

    http_client = httpx.AsyncClient(timeout=30.0)
    client = ChainClient.from_url(settings.rpc_url, timeout=settings.rpc_timeout)
    directory = TokenDirectory(settings.chain.chain_id, settings.token_list_urls, http_client)
    resolver = TokenResolver(directory, client, settings.chain)
    engine = TradingEngine(client, resolver, settings.chain, default_wallet=settings.wallet_address)

    logger.info(f"Connected to {settings.chain.name} ({settings.chain.chain_id})")
    logger.info(f"Simulation wallet: {settings.wallet_address}")

    try:
        yield EthTraderContext(
            settings=settings,
            http_client=http_client,
            client=client,
            directory=directory,
            engine=engine,
        )
    finally:
        await http_client.aclose()
        logger.info("ETH trader server shutdown complete")


# Initialize FastMCP server
mcp = FastMCP(
    "eth-trader",
    instructions="ETH trading MCP server: balances, Uniswap V3 prices and swap simulation",
    lifespan=eth_trader_lifespan,
)


def _engine(ctx: Context) -> TradingEngine:
    return ctx.request_context.lifespan_context.engine


def render_error(error: EngineError) -> str:
    return json.dumps({"error": error.to_dict()}, indent=2)


def render_result(result: Dict[str, Any]) -> str:
    return json.dumps(result, indent=2)


@mcp.tool()
async def get_balance(ctx: Context, wallet_address: str, token: Optional[str] = None) -> str:
    """Query native and ERC-20 token balances.

    Args:
        wallet_address: Wallet address (e.g. '0x...')
        token: Token symbol (e.g. 'UNI') or address (e.g. '0x...'); if not
            provided, the balance of the native asset is returned

    Returns:
        JSON string with the balance as a decimal string.
    """
    try:
        result = await _engine(ctx).get_balance(wallet_address, token)
        return render_result(result.to_dict())
    except EngineError as e:
        logger.error(f"Error getting balance: {e}")
        return render_error(e)
    except Exception as e:
        logger.error(f"Error getting balance: {e}")
        return f"Error getting balance: {str(e)}"


@mcp.tool()
async def get_token_price(ctx: Context, token: str, currency: str) -> str:
    """Get the price of a token in the specified currency via the Uniswap V3 Quoter.

    Args:
        token: Token symbol (e.g. 'UNI') or address (e.g. '0x...')
        currency: Currency symbol (e.g. 'USDC', 'USDT', 'WETH') or address

    Returns:
        JSON string with the price as a decimal string and the fee tier it came from.
    """
    try:
        result = await _engine(ctx).get_token_price(token, currency)
        return render_result(result.to_dict())
    except EngineError as e:
        logger.error(f"Error getting token price: {e}")
        return render_error(e)
    except Exception as e:
        logger.error(f"Error getting token price: {e}")
        return f"Error getting token price: {str(e)}"


@mcp.tool()
async def swap_tokens(ctx: Context, from_token: str, to_token: str, amount_from: str,
                      slippage_percent: str, wallet_address: Optional[str] = None) -> str:
    """Simulate a Uniswap V3 token swap to estimate output amount and gas cost.

    This is a simulation only - no transaction will be broadcast to the blockchain.

    Args:
        from_token: From token symbol (e.g. 'USDC') or address
        to_token: To token symbol (e.g. 'WETH') or address
        amount_from: Amount to swap as a decimal string (e.g. '100.5')
        slippage_percent: Slippage tolerance in percent as a string (e.g. '0.5')
        wallet_address: Wallet to simulate from (defaults to the server wallet)

    Returns:
        JSON string with estimated amount_to and gas_estimate.
    """
    try:
        result = await _engine(ctx).swap_tokens(
            from_token, to_token, amount_from, slippage_percent, wallet_address
        )
        return render_result(result.to_dict())
    except EngineError as e:
        logger.error(f"Error simulating swap: {e}")
        return render_error(e)
    except Exception as e:
        logger.error(f"Error simulating swap: {e}")
        return f"Error simulating swap: {str(e)}"


async def main():
    """Main function to run the MCP server."""
    transport = os.getenv("TRANSPORT", "stdio")

    if transport == "stdio":
        await mcp.run_stdio_async()
    elif transport == "sse":
        await mcp.run_sse_async()
    else:
        logger.error(f"Unsupported transport: {transport}")
        return
