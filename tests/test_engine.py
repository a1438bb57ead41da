import asyncio
from decimal import Decimal

import pytest

from conftest import UNI, USDC, WALLET, WETH, FakeChainClient
from ethtrader.errors import (
    CallReverted,
    InvalidAddress,
    InvalidAmount,
    InvalidSlippage,
    NoLiquidity,
    Overflow,
    PrecisionLoss,
    Step,
)


def test_native_balance(make_engine):
    client = FakeChainClient(native_balances={WALLET: 1_500_000_000_000_000_000})
    result = asyncio.run(make_engine(client).get_balance(WALLET))
    assert result.balance == Decimal("1.5")
    assert result.to_dict() == {
        "balance": "1.500000000000000000",
        "token": "ETH",
        "decimals": 18,
        "wallet_address": WALLET,
    }


def test_token_balance_by_symbol(make_engine):
    client = FakeChainClient(token_balances={(USDC, WALLET): 2_500_000})
    result = asyncio.run(make_engine(client).get_balance(WALLET, "usdc"))
    assert result.balance == Decimal("2.5")
    assert result.decimals == 6
    assert result.token == "USDC"


def test_balance_invalid_wallet(make_engine):
    with pytest.raises(InvalidAddress):
        asyncio.run(make_engine(FakeChainClient()).get_balance("not-a-valid-address"))


def test_price_from_single_tier(make_engine):
    client = FakeChainClient(quotes={3000: 3_000_000_000})
    result = asyncio.run(make_engine(client).get_token_price("UNI", "USDC"))

    assert result.price == Decimal("3000")
    assert result.to_dict()["price"] == "3000.000000"
    assert result.to_dict()["fee_tier"] == "0.30%"
    assert result.token == "UNI"
    assert result.currency == "USDC"
    # Probed with exactly one whole UNI
    assert {r[3] for r in client.quote_requests} == {10**18}
    assert {r[0].lower() for r in client.quote_requests} == {UNI.lower()}


def test_native_price_routes_through_wrapped_native(make_engine):
    client = FakeChainClient(quotes={500: 2_500_123_456})
    result = asyncio.run(make_engine(client).get_token_price("ETH", "USDC"))
    assert result.price == Decimal("2500.123456")
    assert result.token == "ETH"
    assert {r[0].lower() for r in client.quote_requests} == {WETH.lower()}


def test_price_without_liquidity(make_engine):
    with pytest.raises(NoLiquidity):
        asyncio.run(make_engine(FakeChainClient()).get_token_price("UNI", "USDT"))


def test_swap_tokens(make_engine):
    client = FakeChainClient(quotes={500: 3_750_000_000, 3000: 3_700_000_000}, gas=130_000)
    result = asyncio.run(make_engine(client).swap_tokens("WETH", "USDC", "1.5", "0.5"))

    assert result.amount_out == Decimal("3750")
    assert result.gas_estimate == 130_000
    assert result.to_dict()["fee_tier"] == "0.05%"
    assert result.amount_out_minimum == Decimal("3731.25")
    assert {r[3] for r in client.quote_requests} == {1_500_000_000_000_000_000}


def test_swap_uses_explicit_wallet(make_engine):
    other = "0x4000000000000000000000000000000000000004"
    client = FakeChainClient(quotes={3000: 10**6})
    asyncio.run(make_engine(client).swap_tokens("USDC", "USDT", "1", "1", wallet_address=other))
    tx, override = client.calls[-1]
    assert tx["from"] == other
    assert list(override) == [USDC]


def test_swap_precision_loss(make_engine):
    client = FakeChainClient(quotes={3000: 10**6})
    with pytest.raises(PrecisionLoss):
        asyncio.run(make_engine(client).swap_tokens("USDC", "WETH", "1.0000001", "0.5"))
    assert client.calls == []


def test_swap_zero_amount(make_engine):
    with pytest.raises(InvalidAmount):
        asyncio.run(make_engine(FakeChainClient()).swap_tokens("USDC", "WETH", "0", "0.5"))


@pytest.mark.parametrize("slippage", ["100", "-0.1", "250"])
def test_swap_invalid_slippage(make_engine, slippage):
    client = FakeChainClient(quotes={3000: 10**6})
    with pytest.raises(InvalidSlippage):
        asyncio.run(make_engine(client).swap_tokens("USDC", "WETH", "1", slippage))
    assert client.calls == []


def test_balance_of_token_without_code_is_invalid_address(make_engine):
    client = FakeChainClient(balance_error=CallReverted("balanceOf returned no data", Step.CALL))
    with pytest.raises(InvalidAddress) as exc_info:
        asyncio.run(make_engine(client).get_balance(WALLET, "USDC"))
    assert exc_info.value.step is Step.CALL


def test_swap_with_huge_exponent_amount_overflows(make_engine):
    client = FakeChainClient(quotes={500: 10**6})
    with pytest.raises(Overflow):
        asyncio.run(make_engine(client).swap_tokens("USDC", "USDT", "1e999999999", "0.5"))
    assert client.calls == []
