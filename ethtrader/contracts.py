"""Contract ABIs, call encoders and the mock token bytecode asset."""

from typing import Tuple

from eth_abi import decode, encode
from web3 import Web3

# ERC-20 ABI (minimal)
ERC20_ABI = [
    {
        "constant": True,
        "inputs": [{"name": "_owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "balance", "type": "uint256"}],
        "type": "function"
    },
    {
        "constant": True,
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "type": "function"
    },
    {
        "constant": True,
        "inputs": [],
        "name": "symbol",
        "outputs": [{"name": "", "type": "string"}],
        "type": "function"
    }
]

QUOTE_EXACT_INPUT_SINGLE = "quoteExactInputSingle(address,address,uint24,uint256,uint160)"
QUOTE_EXACT_INPUT_SINGLE_TYPES = ["address", "address", "uint24", "uint256", "uint160"]

EXACT_INPUT_SINGLE_PARAMS = "(address,address,uint24,address,uint256,uint256,uint160)"
EXACT_INPUT_SINGLE = f"exactInputSingle({EXACT_INPUT_SINGLE_PARAMS})"

POOL_INIT_CODE_HASH = "0xe34f199b19b2b4f47f68442619d555527d244f78a3297ea89325f843f87b8b54"

# Runtime code of a bare ERC-20 used in place of the input token during swap
# simulation. Balances live in mapping(address => uint256) at slot 0.
#   balanceOf(address)                     0x70a08231
#   transfer(address,uint256)              0xa9059cbb
#   transferFrom(address,address,uint256)  0x23b872dd  no allowance check
#   approve(address,uint256)               0x095ea7b3  returns true
#   allowance(address,address)             0xdd62ed3e  returns 2**256-1
# Transfers revert on insufficient balance and return true otherwise.
MOCK_TOKEN_BYTECODE = (
    "0x60003560e01c"
    "806370a0823114610042578063a9059cbb1461005c57806323b872dd1461006857"
    "8063095ea7b314610076578063dd62ed3e1461008157"
    "5b600080fd"
    "5b600435600052600060205260406000205460005260206000f3"
    "5b6024356004353361008d56"
    "5b60443560243560043561008d56"
    "5b600160005260206000f3"
    "5b60001960005260206000f3"
    "5b60005260006020526040600020805483811061003d57839003905560005260406000"
    "208054820190555060016000526020"
    "6000f3"
)
MOCK_TOKEN_BALANCE_SLOT = 0

REVERT_TOO_LITTLE_RECEIVED = "Too little received"


def selector(signature: str) -> bytes:
    return bytes(Web3.keccak(text=signature)[:4])


def encode_quote_exact_input_single(token_in: str, token_out: str, fee: int, amount_in: int) -> str:
    """Calldata for QuoterV1.quoteExactInputSingle with no price limit."""
    args = encode(QUOTE_EXACT_INPUT_SINGLE_TYPES, [token_in, token_out, fee, amount_in, 0])
    return "0x" + (selector(QUOTE_EXACT_INPUT_SINGLE) + args).hex()


def encode_exact_input_single(
    token_in: str,
    token_out: str,
    fee: int,
    recipient: str,
    amount_in: int,
    amount_out_minimum: int,
) -> str:
    """Calldata for SwapRouter02.exactInputSingle with no price limit."""
    params = (token_in, token_out, fee, recipient, amount_in, amount_out_minimum, 0)
    args = encode([EXACT_INPUT_SINGLE_PARAMS], [params])
    return "0x" + (selector(EXACT_INPUT_SINGLE) + args).hex()


def decode_uint256(data: bytes) -> int:
    (value,) = decode(["uint256"], bytes(data))
    return value


def decode_exact_input_single(data: str) -> Tuple[str, str, int, str, int, int, int]:
    """Inverse of encode_exact_input_single; returns the params tuple."""
    raw = bytes.fromhex(data[2:] if data.startswith("0x") else data)
    (params,) = decode([EXACT_INPUT_SINGLE_PARAMS], raw[4:])
    return params


def decode_quote_exact_input_single(data: str) -> Tuple[str, str, int, int, int]:
    """Inverse of encode_quote_exact_input_single; returns the argument tuple."""
    raw = bytes.fromhex(data[2:] if data.startswith("0x") else data)
    return tuple(decode(QUOTE_EXACT_INPUT_SINGLE_TYPES, raw[4:]))
