"""
State-override swap simulation.

The input token's code is swapped for a bare ERC-20 whose transferFrom
skips the allowance check, and the wallet's balance slot is set to the
uint256 maximum. Only the input token is overridden; the pool, the
router and the output token run their real code, so the simulated
output reflects real pool pricing.
"""

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal, DecimalTuple, InvalidOperation
from fractions import Fraction
from math import floor
from typing import Any, Dict, Union

from eth_abi import encode
from eth_abi.exceptions import DecodingError
from web3 import Web3

from ethtrader.config import ChainConfig
from ethtrader.contracts import (
    MOCK_TOKEN_BALANCE_SLOT,
    MOCK_TOKEN_BYTECODE,
    REVERT_TOO_LITTLE_RECEIVED,
    decode_uint256,
    encode_exact_input_single,
)
from ethtrader.decimals import UINT256_MAX, format_amount, to_decimal
from ethtrader.errors import (
    CallReverted,
    CallTimeout,
    InvalidAddress,
    InvalidSlippage,
    SimulationReverted,
    SlippageExceeded,
    Step,
)
from ethtrader.pricing import FeeTier, FeeTierProber
from ethtrader.rpc import ChainClient, StateOverride
from ethtrader.tokens import TokenDescriptor

logger = logging.getLogger(__name__)

BPS_DENOMINATOR = 10000
# Finer than any uint256 amount can resolve
MIN_BPS_EXPONENT = -78


@dataclass(frozen=True)
class SwapSimulationResult:
    amount_out: Decimal
    gas_estimate: int
    fee_tier: FeeTier
    quoted_amount_out: Decimal
    amount_out_minimum: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "amount_to": format_amount(self.amount_out),
            "gas_estimate": self.gas_estimate,
            "fee_tier": self.fee_tier.percent,
            "quoted_amount_to": format_amount(self.quoted_amount_out),
            "amount_out_minimum": format_amount(self.amount_out_minimum),
        }


def slippage_percent_to_bps(slippage_percent: Union[str, Decimal]) -> Decimal:
    """'0.5' (percent) -> Decimal('50') basis points."""
    try:
        percent = Decimal(str(slippage_percent).strip())
    except InvalidOperation:
        raise InvalidSlippage(f"Invalid slippage: {slippage_percent!r}", Step.CONVERSION) from None
    if not percent.is_finite():
        raise InvalidSlippage(f"Slippage must be finite: {slippage_percent!r}", Step.CONVERSION)
    sign, digits, exponent = percent.as_tuple()
    return Decimal(DecimalTuple(sign, digits, exponent + 2))


def validate_slippage(max_slippage_bps: Union[int, Decimal]) -> None:
    if max_slippage_bps < 0 or max_slippage_bps >= BPS_DENOMINATOR:
        raise InvalidSlippage(
            f"Slippage must be at least 0% and below 100%, got {max_slippage_bps} bps",
            Step.CONVERSION,
        )
    if isinstance(max_slippage_bps, Decimal) and max_slippage_bps != 0:
        _, digits, exponent = max_slippage_bps.as_tuple()
        trailing_zeros = len(digits) - len("".join(str(d) for d in digits).rstrip("0"))
        if exponent + trailing_zeros < MIN_BPS_EXPONENT:
            raise InvalidSlippage(
                f"Slippage has too many fractional digits: {max_slippage_bps} bps",
                Step.CONVERSION,
            )


def minimum_amount_out(quoted_amount_out: int, max_slippage_bps: Union[int, Decimal]) -> int:
    """floor(quoted * (10000 - bps) / 10000), computed exactly."""
    validate_slippage(max_slippage_bps)
    bps = Fraction(max_slippage_bps) if max_slippage_bps else Fraction(0)
    bound = Fraction(quoted_amount_out) * (BPS_DENOMINATOR - bps) / BPS_DENOMINATOR
    return floor(bound)


def balance_slot(wallet: str) -> str:
    """Storage key of balances[wallet] in the mock token."""
    key = Web3.keccak(encode(["address", "uint256"], [wallet, MOCK_TOKEN_BALANCE_SLOT]))
    return "0x" + bytes(key).hex()


def build_state_override(token_in: str, wallet: str) -> StateOverride:
    """One-shot override: mock code on token_in and a maximal balance for wallet."""
    if not Web3.is_address(token_in) or not Web3.is_address(wallet):
        raise InvalidAddress(
            f"Cannot build state override for token {token_in} and wallet {wallet}",
            Step.OVERRIDE_CONSTRUCTION,
        )
    token_in = Web3.to_checksum_address(token_in)
    wallet = Web3.to_checksum_address(wallet)
    return {
        token_in: {
            "code": MOCK_TOKEN_BYTECODE,
            "stateDiff": {
                balance_slot(wallet): "0x" + format(UINT256_MAX, "064x"),
            },
        }
    }


class SwapSimulator:
    """Simulates SwapRouter02.exactInputSingle without owning the input token."""

    def __init__(self, client: ChainClient, chain: ChainConfig, prober: FeeTierProber):
        self.client = client
        self.chain = chain
        self.prober = prober

    async def simulate_swap(
        self,
        token_in: TokenDescriptor,
        token_out: TokenDescriptor,
        amount_in: int,
        max_slippage_bps: Union[int, Decimal],
        wallet_address: str,
    ) -> SwapSimulationResult:
        validate_slippage(max_slippage_bps)

        best = await self.prober.best_quote(token_in.address, token_out.address, amount_in)
        amount_out_minimum = minimum_amount_out(best.amount_out, max_slippage_bps)
        logger.debug(
            f"Slippage: {max_slippage_bps} bps, quoted: {best.amount_out}, min output: {amount_out_minimum}"
        )

        logger.debug(f"Creating state override for token: {token_in.address}")
        state_override = build_state_override(token_in.address, wallet_address)
        wallet = Web3.to_checksum_address(wallet_address)

        tx = {
            "from": wallet,
            "to": Web3.to_checksum_address(self.chain.v3_router),
            "data": encode_exact_input_single(
                token_in.address,
                token_out.address,
                best.fee_tier.code,
                wallet,
                amount_in,
                amount_out_minimum,
            ),
        }

        logger.debug(f"Simulating swap on Uniswap V3 router via fee tier {best.fee_tier.percent}")
        call_result, gas_result = await asyncio.gather(
            self.client.call(tx, state_override),
            self.client.estimate_gas(tx, state_override),
            return_exceptions=True,
        )
        for result in (call_result, gas_result):
            if isinstance(result, BaseException):
                raise self._classify_failure(result)

        try:
            amount_out = decode_uint256(call_result)
        except DecodingError as e:
            raise SimulationReverted(f"Undecodable swap return data: {e}", Step.DECODE) from e

        if amount_out < amount_out_minimum:
            raise SlippageExceeded(
                f"Simulated output {amount_out} is below the minimum {amount_out_minimum}",
                Step.DECODE,
            )

        logger.debug(f"Swap simulation successful, actual output: {amount_out}, gas: {gas_result}")
        return SwapSimulationResult(
            amount_out=to_decimal(amount_out, token_out.decimals),
            gas_estimate=int(gas_result),
            fee_tier=best.fee_tier,
            quoted_amount_out=to_decimal(best.amount_out, token_out.decimals),
            amount_out_minimum=to_decimal(amount_out_minimum, token_out.decimals),
        )

    @staticmethod
    def _classify_failure(error: BaseException) -> BaseException:
        if isinstance(error, CallReverted):
            if error.reason and REVERT_TOO_LITTLE_RECEIVED in error.reason:
                return SlippageExceeded(f"Router rejected output below minimum: {error.reason}", Step.CALL)
            logger.warning(f"Swap simulation reverted: {error.message}")
            return SimulationReverted(f"Swap simulation reverted: {error.reason or error.message}", Step.CALL)
        if isinstance(error, CallTimeout):
            logger.warning(f"Swap simulation timed out: {error.message}")
            return SimulationReverted(f"Swap simulation timed out: {error.message}", Step.CALL)
        return error
