"""
Lock Discovery
Walks every veABX token id from 1 to the escrow's tokenId counter and
classifies each lock.

Key concepts:
- veABX is an ERC721 where each NFT represents a lock
- Voting power decays linearly over time (max 4 years), permanent locks don't decay
- Locks can be deposited into vaults (Maxi or Rewards); the vault then votes
  with a managed NFT that pools every deposit
- Burned or never-minted ids answer ownerOf with a revert or the zero address
"""

import asyncio
import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from config.contracts import ZERO_ADDRESS
from config.holders import LeaderboardSettings
from data_sources.onchain import CallResult, ContractCall, RpcError

logger = logging.getLogger(__name__)

# Log progress every N completed windows
PROGRESS_EVERY = 10


class EscrowKind(Enum):
    """escrowType enum of the VotingEscrow contract"""
    ORDINARY = 0        # held directly by a user
    VAULTED = 1         # deposited into a vault, tracked by weight
    VAULT_INTERNAL = 2  # the vault's own managed NFT


@dataclass
class Lock:
    """One veABX lock. Amounts are raw token units (18 decimals)."""
    token_id: int
    owner: str
    amount: int
    voting_power: int
    escrow_kind: EscrowKind
    is_permanent: bool = False
    lock_end: int = 0
    managed_id: int = 0
    weight: int = 0
    accrued_rewards: int = 0
    vault_name: Optional[str] = None

    @property
    def is_vaulted(self) -> bool:
        return self.escrow_kind is EscrowKind.VAULTED


@dataclass
class DiscoveryStats:
    """Counters for one discovery run, so drift in skipped ids is visible"""
    max_token_id: int = 0
    windows: int = 0
    window_retries: int = 0
    scanned: int = 0
    empty_ids: int = 0            # owner read failed or zero address
    vault_internal: int = 0
    dust: int = 0                 # ordinary lock with nothing locked
    unknown_kind: int = 0
    vault_owned: int = 0          # held by a configured vault contract
    ordinary: int = 0
    vaulted: int = 0
    vaulted_dropped: int = 0      # zero or unreadable managed id
    missing_reward_contract: int = 0
    failed_subreads: int = 0
    vaulted_by_vault: Dict[str, int] = field(default_factory=dict)
    duration_seconds: float = 0.0

    def merge(self, other: "DiscoveryStats"):
        for name in (
            "window_retries", "scanned", "empty_ids", "vault_internal", "dust",
            "unknown_kind", "vault_owned", "ordinary", "vaulted", "vaulted_dropped",
            "missing_reward_contract", "failed_subreads",
        ):
            setattr(self, name, getattr(self, name) + getattr(other, name))
        merged = Counter(self.vaulted_by_vault)
        merged.update(other.vaulted_by_vault)
        self.vaulted_by_vault = dict(merged)

    def to_dict(self) -> Dict:
        return {
            "max_token_id": self.max_token_id,
            "windows": self.windows,
            "window_retries": self.window_retries,
            "scanned": self.scanned,
            "empty_ids": self.empty_ids,
            "vault_internal": self.vault_internal,
            "dust": self.dust,
            "unknown_kind": self.unknown_kind,
            "vault_owned": self.vault_owned,
            "ordinary": self.ordinary,
            "vaulted": self.vaulted,
            "vaulted_dropped": self.vaulted_dropped,
            "missing_reward_contract": self.missing_reward_contract,
            "failed_subreads": self.failed_subreads,
            "vaulted_by_vault": dict(self.vaulted_by_vault),
            "duration_seconds": round(self.duration_seconds, 2),
        }


class DiscoveryError(Exception):
    """A discovery window kept failing after every retry"""

    def __init__(self, start: int, end: int, attempts: int, cause: Exception):
        self.start = start
        self.end = end
        self.attempts = attempts
        self.cause = cause
        super().__init__(f"Token window {start}-{end} failed after {attempts} attempts: {cause}")


class LockDiscovery:
    """
    Enumerates every lock of the voting escrow in fixed-size windows.

    Each window is one multicall with four reads per id (ownerOf, locked,
    balanceOfNFT, escrowType). Vaulted locks of the window are handed to the
    attribution resolver before the window counts as done.
    """

    def __init__(self, reader, resolver, settings: LeaderboardSettings, retry_backoff: float = 0.5):
        self.reader = reader
        self.resolver = resolver
        self.settings = settings
        self.retry_backoff = retry_backoff

    def windows(self, max_token_id: int) -> List[Tuple[int, int]]:
        """Inclusive [start, end] id ranges covering 1..max_token_id"""
        size = self.settings.batch_size
        return [
            (start, min(start + size - 1, max_token_id))
            for start in range(1, max_token_id + 1, size)
        ]

    async def discover(self) -> Tuple[List[Lock], DiscoveryStats]:
        """Fetch every live lock, ordinary and vault-attributed, sorted by token id"""
        started = time.time()
        logger.info("Fetching veABX locks from chain...")

        max_token_id = await self.reader.get_max_token_id()
        windows = self.windows(max_token_id)
        stats = DiscoveryStats(max_token_id=max_token_id, windows=len(windows))
        logger.info(f"Max token ID: {max_token_id} ({len(windows)} windows of {self.settings.batch_size})")

        semaphore = asyncio.Semaphore(self.settings.window_concurrency)
        completed = 0

        async def run(start: int, end: int):
            nonlocal completed
            async with semaphore:
                result = await self._fetch_window_with_retry(start, end)
            completed += 1
            if completed % PROGRESS_EVERY == 0:
                logger.info(f"Processed {completed} / {len(windows)} windows (up to id {end})...")
            return result

        tasks = [asyncio.ensure_future(run(start, end)) for start, end in windows]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

        locks: List[Lock] = []
        for window_locks, window_stats in results:
            locks.extend(window_locks)
            stats.merge(window_stats)

        # Windows finish in any order; token id order keeps the leaderboard deterministic
        locks.sort(key=lambda lock: lock.token_id)
        stats.duration_seconds = time.time() - started

        logger.info(
            f"Fetched {len(locks)} active locks ({stats.ordinary} ordinary, {stats.vaulted} vaulted) "
            f"in {stats.duration_seconds:.1f}s"
        )
        if stats.vaulted_dropped or stats.missing_reward_contract:
            logger.warning(
                f"Dropped vaulted locks: {stats.vaulted_dropped} without managed id, "
                f"{stats.missing_reward_contract} without reward contract"
            )
        return locks, stats

    async def _fetch_window_with_retry(self, start: int, end: int) -> Tuple[List[Lock], DiscoveryStats]:
        token_ids = list(range(start, end + 1))
        attempts = self.settings.window_retries

        for attempt in range(1, attempts + 1):
            try:
                locks, stats = await self.fetch_window(token_ids)
                stats.window_retries = attempt - 1
                return locks, stats
            except RpcError as e:
                if attempt == attempts:
                    raise DiscoveryError(start, end, attempt, e) from e
                logger.warning(f"Window {start}-{end} failed (attempt {attempt}/{attempts}): {e}")
                await asyncio.sleep(self.retry_backoff * attempt)

    async def fetch_window(self, token_ids: List[int]) -> Tuple[List[Lock], DiscoveryStats]:
        """Fetch and classify one window of token ids"""
        stats = DiscoveryStats()
        ve = self.settings.ve_address

        calls = []
        for token_id in token_ids:
            calls.extend([
                ContractCall(ve, 'ownerOf', (token_id,)),
                ContractCall(ve, 'locked', (token_id,)),
                ContractCall(ve, 'balanceOfNFT', (token_id,)),
                ContractCall(ve, 'escrowType', (token_id,)),
            ])

        results = await self.reader.read_batch(calls)
        if len(results) != len(calls):
            raise RpcError(
                f"window {token_ids[0]}-{token_ids[-1]}",
                f"expected {len(calls)} results, got {len(results)}"
            )

        ordinary: List[Lock] = []
        pending: List[Lock] = []

        for i, token_id in enumerate(token_ids):
            owner, locked, power, kind = results[i * 4:i * 4 + 4]
            stats.scanned += 1
            lock = self._classify(token_id, owner, locked, power, kind, stats)
            if lock is None:
                continue
            if lock.is_vaulted:
                pending.append(lock)
            else:
                stats.ordinary += 1
                ordinary.append(lock)

        vaulted = await self.resolver.resolve(pending, stats) if pending else []
        return ordinary + vaulted, stats

    def _classify(
        self,
        token_id: int,
        owner_result: CallResult,
        locked_result: CallResult,
        power_result: CallResult,
        kind_result: CallResult,
        stats: DiscoveryStats,
    ) -> Optional[Lock]:
        if not owner_result.success or not owner_result.value:
            stats.empty_ids += 1
            return None

        owner = str(owner_result.value).lower()
        if owner == ZERO_ADDRESS:
            stats.empty_ids += 1
            return None

        stats.failed_subreads += sum(
            1 for r in (locked_result, power_result, kind_result) if not r.success
        )

        try:
            kind = EscrowKind(int(kind_result.value_or(EscrowKind.ORDINARY.value)))
        except (TypeError, ValueError):
            logger.warning(f"Token {token_id}: unknown escrowType {kind_result.value!r}")
            stats.unknown_kind += 1
            return None

        if kind is EscrowKind.VAULT_INTERNAL:
            stats.vault_internal += 1
            return None

        if owner in self.settings.vaults:
            stats.vault_owned += 1
            return None

        amount, lock_end, is_permanent = locked_result.value_or((0, 0, False))

        # Vaulted locks read amount 0 here; their tokens now sit in the vault
        if kind is EscrowKind.ORDINARY and amount <= 0:
            stats.dust += 1
            return None

        return Lock(
            token_id=token_id,
            owner=owner,
            amount=int(amount),
            voting_power=int(power_result.value_or(0)),
            escrow_kind=kind,
            is_permanent=bool(is_permanent),
            lock_end=int(lock_end),
        )
