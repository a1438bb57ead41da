"""Balance, price and swap operations composed from the engine parts."""

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional, Union

from web3 import Web3

from ethtrader.config import ChainConfig
from ethtrader.decimals import format_amount, parse_amount, to_decimal, to_raw
from ethtrader.errors import CallReverted, InvalidAddress, InvalidAmount, Step
from ethtrader.pricing import FeeTier, FeeTierProber
from ethtrader.rpc import ChainClient
from ethtrader.simulation import SwapSimulationResult, SwapSimulator, slippage_percent_to_bps
from ethtrader.tokens import TokenResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BalanceResult:
    balance: Decimal
    token: str
    decimals: int
    wallet_address: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "balance": format_amount(self.balance),
            "token": self.token,
            "decimals": self.decimals,
            "wallet_address": self.wallet_address,
        }


@dataclass(frozen=True)
class PriceResult:
    price: Decimal
    token: str
    currency: str
    fee_tier: FeeTier
    pool: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "price": format_amount(self.price),
            "token": self.token,
            "currency": self.currency,
            "fee_tier": self.fee_tier.percent,
            "pool": self.pool,
        }


def _checksum_wallet(wallet_address: str) -> str:
    if not wallet_address or not Web3.is_address(wallet_address):
        raise InvalidAddress(f"Invalid wallet address: {wallet_address}", Step.RESOLUTION)
    return Web3.to_checksum_address(wallet_address)


class TradingEngine:
    """The three public operations. Holds no per-request state."""

    def __init__(self, client: ChainClient, resolver: TokenResolver, chain: ChainConfig,
                 default_wallet: Optional[str] = None, prefer_lower_fee: bool = True):
        self.client = client
        self.resolver = resolver
        self.chain = chain
        self.default_wallet = default_wallet
        self.prober = FeeTierProber(client, chain, prefer_lower_fee=prefer_lower_fee)
        self.simulator = SwapSimulator(client, chain, self.prober)

    async def get_balance(self, wallet_address: str, token: Optional[str] = None) -> BalanceResult:
        """Native balance when ``token`` is empty, ERC-20 balance otherwise."""
        wallet = _checksum_wallet(wallet_address)

        descriptor = await self.resolver.resolve(token) if token else self.resolver.native
        if descriptor.is_native:
            raw = await self.client.get_native_balance(wallet)
        else:
            try:
                raw = await self.client.get_token_balance(descriptor.address, wallet)
            except CallReverted as e:
                raise InvalidAddress(
                    f"balanceOf on {descriptor.label} at {descriptor.address} failed: {e.reason or e.message}",
                    Step.CALL,
                ) from e

        logger.debug(f"Balance of {wallet} in {descriptor.label}: {raw}")
        return BalanceResult(
            balance=to_decimal(raw, descriptor.decimals),
            token=descriptor.label,
            decimals=descriptor.decimals,
            wallet_address=wallet,
        )

    async def get_token_price(self, token: str, currency: str) -> PriceResult:
        """Price of one whole ``token`` expressed in ``currency``."""
        base, quote = await asyncio.gather(self.resolver.resolve(token), self.resolver.resolve(currency))
        base_pool = self.resolver.for_pool(base)
        quote_pool = self.resolver.for_pool(quote)

        # One whole unit in, so amount_out scaled by the currency's decimals is the price
        amount_in = 10 ** base_pool.decimals
        best = await self.prober.best_quote(base_pool.address, quote_pool.address, amount_in)

        return PriceResult(
            price=to_decimal(best.amount_out, quote_pool.decimals),
            token=base.label,
            currency=quote.label,
            fee_tier=best.fee_tier,
            pool=best.pool_address,
        )

    async def swap_tokens(
        self,
        from_token: str,
        to_token: str,
        amount_from: Union[str, Decimal],
        slippage_percent: Union[str, Decimal],
        wallet_address: Optional[str] = None,
    ) -> SwapSimulationResult:
        """Simulate swapping ``amount_from`` of ``from_token`` into ``to_token``.

        Nothing is signed or broadcast.
        """
        wallet = _checksum_wallet(wallet_address or self.default_wallet)

        logger.debug(f"Resolving tokens: {from_token} -> {to_token}")
        token_in, token_out = await asyncio.gather(
            self.resolver.resolve(from_token), self.resolver.resolve(to_token)
        )
        token_in = self.resolver.for_pool(token_in)
        token_out = self.resolver.for_pool(token_out)

        amount = parse_amount(amount_from)
        if amount == 0:
            raise InvalidAmount("Swap amount must be greater than zero", Step.CONVERSION)
        amount_in = to_raw(amount, token_in.decimals)
        max_slippage_bps = slippage_percent_to_bps(slippage_percent)
        logger.debug(f"Input amount in raw units: {amount_in}, slippage: {max_slippage_bps} bps")

        return await self.simulator.simulate_swap(token_in, token_out, amount_in, max_slippage_bps, wallet)
