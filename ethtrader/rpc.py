"""
Read-only RPC boundary.

Wraps a synchronous Web3 client so every call runs in the default
executor under a timeout, and classifies failures into the engine's
error taxonomy. Nothing here retries.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

import requests
from web3 import Web3
from web3.exceptions import BadFunctionCallOutput, ContractLogicError

from ethtrader.contracts import ERC20_ABI
from ethtrader.errors import CallReverted, CallTimeout, Step, TransportFailure

logger = logging.getLogger(__name__)

StateOverride = Dict[str, Dict[str, Any]]


def classify_error(exc: BaseException, step: Step, what: str) -> Exception:
    """Map a raw web3/transport exception onto the engine taxonomy."""
    if isinstance(exc, ContractLogicError):
        reason = getattr(exc, "message", None) or str(exc)
        return CallReverted(f"{what} reverted: {reason}", step, reason=reason)
    if isinstance(exc, BadFunctionCallOutput):
        # Empty return data: no contract at the address
        return CallReverted(f"{what} returned no data: {exc}", step, reason=str(exc))
    if isinstance(exc, (asyncio.TimeoutError, requests.exceptions.Timeout)):
        return CallTimeout(f"{what} timed out", step)
    message = str(exc)
    if "revert" in message.lower():
        return CallReverted(f"{what} reverted: {message}", step, reason=message)
    return TransportFailure(f"{what} failed: {message}", step)


class ChainClient:
    """Async facade over a Web3 HTTP client."""

    def __init__(self, web3: Web3, timeout: float = 10.0):
        self.web3 = web3
        self.timeout = timeout

    @classmethod
    def from_url(cls, rpc_url: str, timeout: float = 10.0) -> "ChainClient":
        web3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))
        return cls(web3, timeout)

    async def _run(self, fn: Callable[[], Any], step: Step, what: str) -> Any:
        try:
            return await asyncio.wait_for(
                asyncio.get_event_loop().run_in_executor(None, fn),
                timeout=self.timeout,
            )
        except Exception as e:
            error = classify_error(e, step, what)
            logger.debug(f"{what}: {error}")
            raise error from e

    async def call(self, tx: Dict[str, Any], state_override: Optional[StateOverride] = None,
                   step: Step = Step.CALL) -> bytes:
        """eth_call at the latest block, optionally under a state override."""
        result = await self._run(
            lambda: self.web3.eth.call(tx, "latest", state_override),
            step,
            f"eth_call to {tx.get('to')}",
        )
        return bytes(result)

    async def estimate_gas(self, tx: Dict[str, Any], state_override: Optional[StateOverride] = None,
                           step: Step = Step.CALL) -> int:
        """eth_estimateGas at the latest block, optionally under a state override."""
        return await self._run(
            lambda: self.web3.eth.estimate_gas(tx, "latest", state_override),
            step,
            f"eth_estimateGas to {tx.get('to')}",
        )

    async def get_native_balance(self, address: str) -> int:
        return await self._run(
            lambda: self.web3.eth.get_balance(address),
            Step.CALL,
            f"eth_getBalance({address})",
        )

    def _erc20(self, token: str):
        return self.web3.eth.contract(address=token, abi=ERC20_ABI)

    async def get_token_balance(self, token: str, wallet: str) -> int:
        contract = self._erc20(token)
        return await self._run(
            lambda: contract.functions.balanceOf(wallet).call(),
            Step.CALL,
            f"balanceOf({wallet}) on {token}",
        )

    async def get_token_decimals(self, token: str) -> int:
        contract = self._erc20(token)
        return await self._run(
            lambda: contract.functions.decimals().call(),
            Step.RESOLUTION,
            f"decimals() on {token}",
        )
