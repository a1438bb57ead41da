import pytest
from eth_abi import encode

from ethtrader.config import CHAIN_CONFIGS, ChainID
from ethtrader.contracts import (
    EXACT_INPUT_SINGLE,
    QUOTE_EXACT_INPUT_SINGLE,
    decode_exact_input_single,
    decode_quote_exact_input_single,
    selector,
)
from ethtrader.engine import TradingEngine
from ethtrader.errors import CallReverted, Step
from ethtrader.tokens import TokenDirectory, TokenResolver

USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
USDT = "0xdAC17F958D2ee523a2206206994597C13D831ec7"
WETH = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
UNI = "0x1f9840a85d5aF5bf1D1762F925BDADdC4201F984"
WALLET = "0x2000000000000000000000000000000000000002"

QUOTE_SELECTOR = "0x" + selector(QUOTE_EXACT_INPUT_SINGLE).hex()
SWAP_SELECTOR = "0x" + selector(EXACT_INPUT_SINGLE).hex()

TOKEN_LIST = {
    "name": "Test List",
    "tokens": [
        {"chainId": 1, "address": USDC, "symbol": "USDC", "name": "USD Coin", "decimals": 6},
        {"chainId": 1, "address": USDT, "symbol": "USDT", "name": "Tether USD", "decimals": 6},
        {"chainId": 1, "address": UNI, "symbol": "UNI", "name": "Uniswap", "decimals": 18},
        {"chainId": 10, "address": "0x0b2C639c533813f4Aa9D7837CAf62653d097Ff85",
         "symbol": "USDC", "name": "USD Coin", "decimals": 6},
    ],
}


class FakeChainClient:
    """Stands in for ChainClient; answers quoter and router calls from tables.

    quotes maps fee code -> amount_out, or -> an exception to raise.
    Fee codes missing from quotes revert like an undeployed pool.
    """

    def __init__(self, quotes=None, swap_output=None, gas=150000, swap_error=None, gas_error=None,
                 native_balances=None, token_balances=None, decimals=None, balance_error=None):
        self.quotes = quotes or {}
        self.swap_output = swap_output
        self.gas = gas
        self.swap_error = swap_error
        self.gas_error = gas_error
        self.native_balances = native_balances or {}
        self.token_balances = token_balances or {}
        self.decimals = decimals or {}
        self.balance_error = balance_error
        self.calls = []
        self.quote_requests = []

    async def call(self, tx, state_override=None, step=Step.CALL):
        self.calls.append((tx, state_override))
        data = tx["data"]
        if data.startswith(QUOTE_SELECTOR):
            token_in, token_out, fee, amount_in, _ = decode_quote_exact_input_single(data)
            self.quote_requests.append((token_in, token_out, fee, amount_in))
            answer = self.quotes.get(fee)
            if answer is None:
                raise CallReverted("pool does not exist", step, reason="execution reverted")
            if isinstance(answer, BaseException):
                raise answer
            return encode(["uint256"], [answer])
        if data.startswith(SWAP_SELECTOR):
            if self.swap_error is not None:
                raise self.swap_error
            params = decode_exact_input_single(data)
            output = self.swap_output if self.swap_output is not None else self.quotes[params[2]]
            return encode(["uint256"], [output])
        raise AssertionError(f"unexpected call data {data[:10]}")

    async def estimate_gas(self, tx, state_override=None, step=Step.CALL):
        if self.gas_error is not None:
            raise self.gas_error
        return self.gas

    async def get_native_balance(self, address):
        return self.native_balances.get(address, 0)

    async def get_token_balance(self, token, wallet):
        if self.balance_error is not None:
            raise self.balance_error
        return self.token_balances.get((token, wallet), 0)

    async def get_token_decimals(self, token):
        if token not in self.decimals:
            raise CallReverted(f"decimals() on {token} returned no data", Step.RESOLUTION)
        return self.decimals[token]


@pytest.fixture
def chain():
    return CHAIN_CONFIGS[ChainID.ETHEREUM_MAIN]


@pytest.fixture
def directory():
    return TokenDirectory.from_token_list(TOKEN_LIST, chain_id=1)


@pytest.fixture
def make_engine(chain, directory):
    def _make(client, prefer_lower_fee=True):
        resolver = TokenResolver(directory, client, chain)
        return TradingEngine(client, resolver, chain, default_wallet=WALLET,
                             prefer_lower_fee=prefer_lower_fee)
    return _make
