"""
Vault Attribution
Resolves what a vaulted veABX lock is actually worth to its depositor.

When a lock is deposited into a vault its own `locked` amount reads zero; the
tokens are pooled into the vault's managed NFT. The depositor's share is the
lock's weight inside that managed NFT, and vault rewards accrue on the
managed NFT's LockedManagedReward contract until withdrawal.
"""

import logging
from typing import Dict, List

from config.contracts import ZERO_ADDRESS
from config.holders import LeaderboardSettings
from data_sources.onchain import ContractCall, earned_call
from services.lock_discovery import DiscoveryStats, Lock

logger = logging.getLogger(__name__)


class VaultAttributionResolver:
    """Second pass over the vaulted locks of one discovery window"""

    def __init__(self, reader, settings: LeaderboardSettings):
        self.reader = reader
        self.settings = settings

    async def resolve(self, pending: List[Lock], stats: DiscoveryStats) -> List[Lock]:
        """
        Attribute vaulted locks to their depositor.

        Locks whose managed id reads zero, or whose managed NFT has no reward
        contract, are dropped and counted rather than guessed at.
        """
        if not pending:
            return []

        ve = self.settings.ve_address

        # 1. Which managed NFT was each lock swept into
        managed_results = await self.reader.read_batch([
            ContractCall(ve, 'idToManaged', (lock.token_id,)) for lock in pending
        ])

        attributable: List[Lock] = []
        for lock, result in zip(pending, managed_results):
            managed_id = int(result.value_or(0) or 0)
            if managed_id <= 0:
                logger.debug(f"Token {lock.token_id}: vaulted without managed id, dropped")
                stats.vaulted_dropped += 1
                continue
            lock.managed_id = managed_id
            attributable.append(lock)

        if not attributable:
            return []

        # 2. Reward contract per distinct managed NFT (memoized by the reader)
        reward_contracts: Dict[int, str] = {}
        for managed_id in sorted({lock.managed_id for lock in attributable}):
            reward_contracts[managed_id] = await self.reader.get_locked_reward_contract(managed_id)

        resolvable: List[Lock] = []
        for lock in attributable:
            if reward_contracts[lock.managed_id] in (None, "", ZERO_ADDRESS):
                logger.debug(f"Token {lock.token_id}: managed NFT {lock.managed_id} has no reward contract, dropped")
                stats.missing_reward_contract += 1
                continue
            resolvable.append(lock)

        if not resolvable:
            return []

        # 3. weight + earned for every lock in one round-trip
        calls = []
        for lock in resolvable:
            calls.append(ContractCall(ve, 'weights', (lock.token_id, lock.managed_id)))
            calls.append(earned_call(
                reward_contracts[lock.managed_id], self.settings.token_address, lock.token_id
            ))
        results = await self.reader.read_batch(calls)

        resolved: List[Lock] = []
        for i, lock in enumerate(resolvable):
            weight = int(results[i * 2].value_or(0))
            lock.weight = weight
            lock.amount = weight        # the lock's own share, not the vault total
            lock.voting_power = weight
            lock.accrued_rewards = int(results[i * 2 + 1].value_or(0))
            lock.is_permanent = True    # the vault keeps deposits permanently locked
            lock.vault_name = self.settings.vault_name(lock.managed_id)

            stats.vaulted += 1
            vault_key = lock.vault_name or f"managed #{lock.managed_id}"
            stats.vaulted_by_vault[vault_key] = stats.vaulted_by_vault.get(vault_key, 0) + 1
            resolved.append(lock)

        return resolved
