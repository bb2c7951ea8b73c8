"""
Wallet Display Resolution
Display name and link for a wallet address, used to decorate leaderboard rows.

Priority: Manual Label > ENS > AGW Portal > Truncated Address
ENS and AGW lookups fail soft (not every address has either) and are cached.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import httpx

from config.holders import (
    ABSCAN_URL,
    FOUNDATION_ADDRESSES,
    PORTAL_PROFILE_URL,
    get_known_label,
    truncate_address,
)

logger = logging.getLogger(__name__)

ENS_LOOKUP_URL = "https://api.web3.bio/ns/ens"
AGW_PROFILE_URL = "https://api.portal.abs.xyz/api/v1/user/profile"

NAME_CACHE_TTL = 86400  # 24 hours
MAX_NAME_LENGTH = 20
RESOLVE_BATCH_SIZE = 10


@dataclass(frozen=True)
class WalletDisplay:
    name: str
    url: str
    source: str  # 'manual' | 'ens' | 'agw' | 'truncated'


def shorten_name(name: str) -> str:
    if len(name) > MAX_NAME_LENGTH:
        return f"{name[:17]}..."
    return name


class WalletDisplayResolver:
    """
    Usage:
        resolver = WalletDisplayResolver()
        display = await resolver.resolve("0x5fbd6ade9ff68644ff9b612ecd00f201e154802a")
        display.name, display.source  # 'nix.eth', 'manual'
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        cache_ttl: float = NAME_CACHE_TTL,
        timeout: float = 5.0,
        foundation_addresses: Tuple[str, ...] = FOUNDATION_ADDRESSES,
    ):
        self._client = client
        self._owns_client = client is None
        self.timeout = timeout
        self.cache_ttl = cache_ttl
        self.foundation_addresses = tuple(a.lower() for a in foundation_addresses)
        self._cache: Dict[str, Tuple[float, WalletDisplay]] = {}

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self):
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def fetch_ens_name(self, address: str) -> Optional[str]:
        """ENS reverse lookup via web3.bio"""
        client = await self._get_client()
        try:
            response = await client.get(f"{ENS_LOOKUP_URL}/{address}")
            if response.status_code != 200:
                return None
            return response.json().get("identity") or None
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"ENS lookup failed for {address}: {e}")
            return None

    async def fetch_agw_name(self, address: str) -> Optional[str]:
        """Abstract Global Wallet portal profile name"""
        client = await self._get_client()
        try:
            response = await client.get(f"{AGW_PROFILE_URL}/{address}")
            if response.status_code != 200:
                return None
            name = response.json().get("name")
            return name.strip() if isinstance(name, str) and name.strip() else None
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"AGW profile lookup failed for {address}: {e}")
            return None

    async def resolve(self, address: str) -> WalletDisplay:
        normalized = address.lower()

        # 1. Manual labels are config, never cached
        known = get_known_label(normalized, self.foundation_addresses)
        if known:
            return WalletDisplay(
                name=known["label"],
                url=known.get("url") or f"{ABSCAN_URL}/address/{normalized}",
                source="manual",
            )

        cached = self._cache.get(normalized)
        if cached and time.time() - cached[0] < self.cache_ttl:
            return cached[1]

        display = await self._lookup(normalized)
        self._cache[normalized] = (time.time(), display)
        return display

    async def _lookup(self, address: str) -> WalletDisplay:
        # 2. ENS
        ens_name = await self.fetch_ens_name(address)
        if ens_name:
            return WalletDisplay(
                name=shorten_name(ens_name),
                url=f"{ABSCAN_URL}/address/{address}",
                source="ens",
            )

        # 3. AGW Portal
        agw_name = await self.fetch_agw_name(address)
        if agw_name:
            return WalletDisplay(
                name=shorten_name(agw_name),
                url=f"{PORTAL_PROFILE_URL}/{address}",
                source="agw",
            )

        # 4. Fallback
        return WalletDisplay(
            name=truncate_address(address),
            url=f"{ABSCAN_URL}/address/{address}",
            source="truncated",
        )

    async def resolve_many(self, addresses: List[str]) -> Dict[str, WalletDisplay]:
        """Resolve in batches of 10 concurrent lookups"""
        results: Dict[str, WalletDisplay] = {}
        unique = list(dict.fromkeys(a.lower() for a in addresses))

        for i in range(0, len(unique), RESOLVE_BATCH_SIZE):
            batch = unique[i:i + RESOLVE_BATCH_SIZE]
            displays = await asyncio.gather(*(self.resolve(a) for a in batch))
            results.update(zip(batch, displays))

        return results
