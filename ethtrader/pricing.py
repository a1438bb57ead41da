"""
Fee-tier price probing on Uniswap V3.

Every supported fee tier is quoted concurrently through the QuoterV1
contract; the join waits for all tiers before picking the best one.
"""

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Iterable, List, Optional, Sequence

from eth_abi import encode
from eth_abi.exceptions import DecodingError
from web3 import Web3

from ethtrader.config import ChainConfig
from ethtrader.contracts import POOL_INIT_CODE_HASH, decode_uint256, encode_quote_exact_input_single
from ethtrader.errors import CallReverted, CallTimeout, InvalidAmount, NoLiquidity, Step
from ethtrader.rpc import ChainClient

logger = logging.getLogger(__name__)


class FeeTier(Enum):
    """Uniswap V3 fee tiers, valued by their on-chain fee code (hundredths of a bip)."""
    LOWEST = 100
    LOW = 500
    MEDIUM = 3000
    HIGH = 10000

    @property
    def code(self) -> int:
        return self.value

    @property
    def percent(self) -> str:
        return f"{Decimal(self.value) / Decimal(10000):.2f}%"


FEE_TIERS = tuple(FeeTier)


@dataclass(frozen=True)
class PoolQuote:
    fee_tier: FeeTier
    amount_out: int
    pool_exists: bool
    pool_address: Optional[str] = None


def pool_address(factory: str, token_a: str, token_b: str, tier: FeeTier) -> str:
    """CREATE2 address of the V3 pool for a pair and fee tier."""
    token0, token1 = sorted(
        (Web3.to_checksum_address(token_a), Web3.to_checksum_address(token_b)),
        key=lambda a: int(a, 16),
    )
    salt = Web3.keccak(encode(["address", "address", "uint24"], [token0, token1, tier.code]))
    preimage = (
        b"\xff"
        + bytes.fromhex(factory[2:])
        + bytes(salt)
        + bytes.fromhex(POOL_INIT_CODE_HASH[2:])
    )
    return Web3.to_checksum_address(Web3.keccak(preimage)[12:])


def select_best(quotes: Iterable[PoolQuote], prefer_lower_fee: bool = True) -> Optional[PoolQuote]:
    """Greatest amount_out wins; equal outputs resolve by fee tier."""
    candidates = [q for q in quotes if q.pool_exists and q.amount_out > 0]
    if not candidates:
        return None

    def rank(q: PoolQuote):
        tie_break = -q.fee_tier.code if prefer_lower_fee else q.fee_tier.code
        return (q.amount_out, tie_break)

    return max(candidates, key=rank)


class FeeTierProber:
    """Finds the best-priced fee tier for a token pair."""

    def __init__(self, client: ChainClient, chain: ChainConfig, prefer_lower_fee: bool = True,
                 tiers: Sequence[FeeTier] = FEE_TIERS):
        self.client = client
        self.chain = chain
        self.prefer_lower_fee = prefer_lower_fee
        self.tiers = tuple(tiers)

    async def probe_tier(self, token_in: str, token_out: str, amount_in: int, tier: FeeTier) -> PoolQuote:
        """Quote one tier. A revert or timeout means the pool is unusable."""
        pool = pool_address(self.chain.v3_factory, token_in, token_out, tier)
        tx = {
            "to": Web3.to_checksum_address(self.chain.v3_quoter),
            "data": encode_quote_exact_input_single(token_in, token_out, tier.code, amount_in),
        }
        try:
            data = await self.client.call(tx, step=Step.PROBING)
            amount_out = decode_uint256(data)
        except (CallReverted, CallTimeout) as e:
            logger.debug(f"Fee tier {tier.percent}: no liquidity or error ({e.message})")
            return PoolQuote(fee_tier=tier, amount_out=0, pool_exists=False, pool_address=pool)
        except DecodingError as e:
            logger.debug(f"Fee tier {tier.percent}: undecodable quote ({e})")
            return PoolQuote(fee_tier=tier, amount_out=0, pool_exists=False, pool_address=pool)

        logger.debug(f"Fee tier {tier.percent}: quote = {amount_out}")
        return PoolQuote(fee_tier=tier, amount_out=amount_out, pool_exists=True, pool_address=pool)

    async def quote_all(self, token_in: str, token_out: str, amount_in: int) -> List[PoolQuote]:
        """Quote every tier concurrently and wait for all of them."""
        results = await asyncio.gather(
            *(self.probe_tier(token_in, token_out, amount_in, tier) for tier in self.tiers),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        return list(results)

    async def best_quote(self, token_in: str, token_out: str, amount_in: int) -> PoolQuote:
        """Best quote across all fee tiers for swapping amount_in of token_in.

        Raises:
            NoLiquidity: no tier has a pool that answers with a non-zero quote
        """
        if amount_in <= 0:
            raise InvalidAmount("Input amount must be greater than zero", Step.PROBING)
        if token_in.lower() == token_out.lower():
            raise NoLiquidity(f"Cannot quote {token_in} against itself", Step.PROBING)

        logger.debug(f"Testing fee tiers: {[t.percent for t in self.tiers]}")
        quotes = await self.quote_all(token_in, token_out, amount_in)
        best = select_best(quotes, self.prefer_lower_fee)
        if best is None:
            logger.warning(f"No liquidity found for pair {token_in}/{token_out} in any V3 pool")
            raise NoLiquidity(f"No liquidity found for pair {token_in}/{token_out} in V3 pools", Step.PROBING)

        logger.debug(f"Selected fee tier: {best.fee_tier.percent}, estimated output: {best.amount_out}")
        return best
