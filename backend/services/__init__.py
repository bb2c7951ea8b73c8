"""
veABX Holder Services
Lock discovery, vault attribution, aggregation and the snapshot cache
"""

from .lock_discovery import DiscoveryError, DiscoveryStats, EscrowKind, Lock, LockDiscovery
from .vault_attribution import VaultAttributionResolver
from .holder_aggregator import Holder, aggregate_holders, build_leaderboard, merge_foundation, rank_holders
from .holders_cache import (
    HolderSnapshotCache,
    HoldersPage,
    NoSnapshotAvailable,
    Snapshot,
    build_holders_service,
)
from .wallet_display import WalletDisplay, WalletDisplayResolver

__all__ = [
    # Discovery
    "DiscoveryError",
    "DiscoveryStats",
    "EscrowKind",
    "Lock",
    "LockDiscovery",

    # Vault attribution
    "VaultAttributionResolver",

    # Aggregation
    "Holder",
    "aggregate_holders",
    "build_leaderboard",
    "merge_foundation",
    "rank_holders",

    # Snapshot cache
    "HolderSnapshotCache",
    "HoldersPage",
    "NoSnapshotAvailable",
    "Snapshot",
    "build_holders_service",

    # Wallet display
    "WalletDisplay",
    "WalletDisplayResolver",
]
