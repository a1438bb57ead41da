"""
Token descriptors, the token-list directory and the resolver.

The directory is a thin client over Uniswap-format token lists. The
resolver turns a symbol or an address into a TokenDescriptor and caches
on-chain decimal lookups for the life of the process.
"""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import httpx
from web3 import Web3

from ethtrader.config import ChainConfig
from ethtrader.errors import (
    AmbiguousSymbol,
    CallReverted,
    InvalidAddress,
    Step,
    TransportFailure,
    UnknownSymbol,
)
from ethtrader.rpc import ChainClient

logger = logging.getLogger(__name__)

NATIVE_DECIMALS = 18


@dataclass(frozen=True, eq=False)
class TokenDescriptor:
    """Resolved token. ``address`` is None for the chain's native coin."""
    address: Optional[str]
    decimals: int
    symbol: Optional[str] = None

    @property
    def is_native(self) -> bool:
        return self.address is None

    def _key(self) -> Optional[str]:
        return self.address.lower() if self.address else None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TokenDescriptor):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    @property
    def label(self) -> str:
        return self.symbol or self.address or "native"


@dataclass(frozen=True)
class DirectoryEntry:
    address: str
    decimals: int
    symbol: str
    name: str = ""
    rank: int = 0


class TokenDirectory:
    """Symbol -> token lookup backed by one or more token lists.

    Lists are ranked by position: entries from an earlier list shadow
    entries for the same symbol from later lists.
    """

    def __init__(self, chain_id: int, urls: Sequence[str] = (),
                 http_client: Optional[httpx.AsyncClient] = None):
        self.chain_id = chain_id
        self.urls = tuple(urls)
        self.http_client = http_client
        self._entries: Optional[Dict[str, List[DirectoryEntry]]] = None
        self._lock = asyncio.Lock()

    @classmethod
    def from_token_list(cls, payload: Dict[str, Any], chain_id: int) -> "TokenDirectory":
        return cls.from_token_lists([payload], chain_id)

    @classmethod
    def from_token_lists(cls, payloads: Sequence[Dict[str, Any]], chain_id: int) -> "TokenDirectory":
        directory = cls(chain_id)
        directory._entries = directory._index(payloads)
        return directory

    def _index(self, payloads: Sequence[Dict[str, Any]]) -> Dict[str, List[DirectoryEntry]]:
        entries: Dict[str, List[DirectoryEntry]] = defaultdict(list)
        for rank, payload in enumerate(payloads):
            for token in payload.get("tokens", []):
                if token.get("chainId") != self.chain_id:
                    continue
                address = token.get("address", "")
                symbol = token.get("symbol")
                if not symbol or not Web3.is_address(address):
                    continue
                address = Web3.to_checksum_address(address)
                bucket = entries[symbol.upper()]
                if any(e.address == address for e in bucket):
                    continue
                bucket.append(DirectoryEntry(
                    address=address,
                    decimals=int(token["decimals"]),
                    symbol=symbol,
                    name=token.get("name", ""),
                    rank=rank,
                ))
        return dict(entries)

    async def _fetch(self) -> Dict[str, List[DirectoryEntry]]:
        if self.http_client is None:
            raise TransportFailure("Token directory has no HTTP client configured", Step.RESOLUTION)

        payloads: List[Dict[str, Any]] = []
        for url in self.urls:
            logger.debug(f"Fetching token list from: {url}")
            try:
                response = await self.http_client.get(url)
                response.raise_for_status()
                payloads.append(response.json())
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(f"Failed to fetch token list {url}: {e}")
                payloads.append({})

        if not any(payloads):
            raise TransportFailure(f"Could not fetch any token list from {list(self.urls)}", Step.RESOLUTION)

        entries = self._index(payloads)
        logger.info(f"Token directory loaded with {len(entries)} symbols for chain {self.chain_id}")
        return entries

    async def refresh(self) -> None:
        """Re-fetch every token list, replacing the current index."""
        async with self._lock:
            self._entries = await self._fetch()

    async def lookup(self, symbol: str) -> List[DirectoryEntry]:
        """Best-ranked entries listed under ``symbol`` (case-insensitive)."""
        if self._entries is None:
            async with self._lock:
                if self._entries is None:
                    self._entries = await self._fetch()

        candidates = self._entries.get(symbol.upper(), [])
        if not candidates:
            return []
        best_rank = min(e.rank for e in candidates)
        return [e for e in candidates if e.rank == best_rank]


class TokenResolver:
    """Resolves symbols and addresses into TokenDescriptors."""

    def __init__(self, directory: TokenDirectory, client: ChainClient, chain: ChainConfig):
        self.directory = directory
        self.client = client
        self.chain = chain
        self._cache: Dict[str, TokenDescriptor] = {}

    @property
    def native(self) -> TokenDescriptor:
        return TokenDescriptor(address=None, decimals=NATIVE_DECIMALS, symbol=self.chain.native_symbol)

    @property
    def wrapped_native(self) -> TokenDescriptor:
        return TokenDescriptor(
            address=Web3.to_checksum_address(self.chain.wrapped_native),
            decimals=NATIVE_DECIMALS,
            symbol=self.chain.wrapped_native_symbol,
        )

    def clear_cache(self) -> None:
        self._cache.clear()

    def for_pool(self, token: TokenDescriptor) -> TokenDescriptor:
        """Pools only hold ERC-20s; the native coin trades as its wrapped form."""
        return self.wrapped_native if token.is_native else token

    async def resolve(self, token: str) -> TokenDescriptor:
        """Resolve a symbol (e.g. 'USDC') or address (e.g. '0x...').

        Raises:
            InvalidAddress: 0x-prefixed input that is not a token address
            UnknownSymbol: symbol missing from the directory
            AmbiguousSymbol: several equally-ranked tokens share the symbol
        """
        token = (token or "").strip()
        if not token:
            raise UnknownSymbol("Empty token symbol", Step.RESOLUTION)

        if token[:2].lower() == "0x":
            return await self._resolve_address(token)

        symbol = token.upper()
        if symbol == self.chain.native_symbol.upper():
            return self.native
        if symbol == self.chain.wrapped_native_symbol.upper():
            return self.wrapped_native

        logger.debug(f"Resolving token symbol: {token}")
        entries = await self.directory.lookup(symbol)
        if not entries:
            raise UnknownSymbol(f"Token symbol '{token}' not found in registry", Step.RESOLUTION)
        if len(entries) > 1:
            addresses = ", ".join(e.address for e in entries)
            raise AmbiguousSymbol(
                f"Token symbol '{token}' matches several tokens: {addresses}; pass an address instead",
                Step.RESOLUTION,
            )

        entry = entries[0]
        descriptor = TokenDescriptor(address=entry.address, decimals=entry.decimals, symbol=entry.symbol)
        logger.debug(f"Resolved token: {token} -> {descriptor.address} ({descriptor.decimals} decimals)")
        return descriptor

    async def _resolve_address(self, token: str) -> TokenDescriptor:
        if not Web3.is_address(token):
            raise InvalidAddress(f"Invalid token address: {token}", Step.RESOLUTION)
        address = Web3.to_checksum_address(token)

        if address == self.wrapped_native.address:
            return self.wrapped_native
        if address in self._cache:
            return self._cache[address]

        try:
            decimals = await self.client.get_token_decimals(address)
        except CallReverted as e:
            raise InvalidAddress(f"{address} is not an ERC-20 token: {e.message}", Step.RESOLUTION) from e

        descriptor = TokenDescriptor(address=address, decimals=int(decimals))
        self._cache[address] = descriptor
        logger.debug(f"Fetched decimals for {address}: {decimals}")
        return descriptor
