"""
Holder Aggregation
Folds locks into per-owner holders, merges the Foundation treasury addresses
into one row and ranks everyone else by voting power.

Holders are frozen: a snapshot hands the same rows to every caller.
"""

import logging
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from config.holders import (
    LeaderboardSettings,
    get_known_label,
    truncate_address,
)
from services.lock_discovery import Lock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Holder:
    """Aggregate over every lock of one owner. Amounts are raw token units."""
    address: str
    display_name: str
    locked_amount: int = 0
    voting_power: int = 0
    accrued_rewards: int = 0
    num_locks: int = 0
    num_locks_vaulted: int = 0
    lock_ids: Tuple[int, ...] = ()
    is_foundation: bool = False
    rank: int = 0


def default_display_name(address: str, foundation_addresses: Tuple[str, ...] = ()) -> str:
    """Manual label, else 0x12345...abcde"""
    known = get_known_label(address, foundation_addresses)
    if known:
        return known["label"]
    return truncate_address(address, chars=5)


def aggregate_holders(
    locks: Sequence[Lock],
    foundation_addresses: Tuple[str, ...] = (),
    label_for: Optional[Callable[[str], str]] = None,
) -> List[Holder]:
    """Group locks by lower-cased owner, in first-seen order"""
    if label_for is None:
        def label_for(address: str) -> str:
            return default_display_name(address, foundation_addresses)

    owned: Dict[str, List[Lock]] = {}
    for lock in locks:
        owned.setdefault(lock.owner.lower(), []).append(lock)

    return [
        Holder(
            address=owner,
            display_name=label_for(owner),
            locked_amount=sum(lock.amount for lock in owner_locks),
            voting_power=sum(lock.voting_power for lock in owner_locks),
            accrued_rewards=sum(lock.accrued_rewards for lock in owner_locks),
            num_locks=len(owner_locks),
            num_locks_vaulted=sum(1 for lock in owner_locks if lock.is_vaulted),
            lock_ids=tuple(lock.token_id for lock in owner_locks),
            is_foundation=owner in foundation_addresses,
        )
        for owner, owner_locks in owned.items()
    ]


def merge_foundation(
    holders: Sequence[Holder],
    foundation_addresses: Tuple[str, ...],
    foundation_label: str,
) -> List[Holder]:
    """Collapse every Foundation row into one synthetic holder placed first"""
    foundation_rows = [h for h in holders if h.is_foundation]
    others = [h for h in holders if not h.is_foundation]

    if not foundation_rows:
        return others

    merged = Holder(
        address=foundation_addresses[0],
        display_name=foundation_label,
        locked_amount=sum(h.locked_amount for h in foundation_rows),
        voting_power=sum(h.voting_power for h in foundation_rows),
        accrued_rewards=sum(h.accrued_rewards for h in foundation_rows),
        num_locks=sum(h.num_locks for h in foundation_rows),
        num_locks_vaulted=sum(h.num_locks_vaulted for h in foundation_rows),
        lock_ids=tuple(token_id for h in foundation_rows for token_id in h.lock_ids),
        is_foundation=True,
    )

    logger.debug(f"Merged {len(foundation_rows)} Foundation addresses into one row")
    return [merged] + others


def rank_holders(holders: Sequence[Holder]) -> List[Holder]:
    """
    Foundation first with rank 0, then everyone else by voting power, ranked 1..N.

    Equal voting power keeps input order (stable sort); with locks sorted by
    token id that means the holder with the lowest first lock id wins the tie.
    """
    foundation = [replace(h, rank=0) for h in holders if h.is_foundation]
    others = sorted(
        (h for h in holders if not h.is_foundation),
        key=lambda h: h.voting_power,
        reverse=True,
    )
    ranked = [replace(h, rank=rank) for rank, h in enumerate(others, start=1)]
    return foundation + ranked


def build_leaderboard(locks: Sequence[Lock], settings: LeaderboardSettings) -> List[Holder]:
    """aggregate -> merge Foundation -> rank"""
    holders = aggregate_holders(locks, settings.foundation_addresses)
    holders = merge_foundation(holders, settings.foundation_addresses, settings.foundation_label)
    return rank_holders(holders)
