"""
Holders Router - veABX holder leaderboard API

Endpoints:
- GET /api/holders - Paginated, searchable leaderboard

Features:
- On-chain data (no Dune dependency)
- Vaulted locks attributed to original depositors
- Accrued vault rewards shown before withdrawal
- Foundation addresses aggregated as single entry
"""

import logging
import math
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from pydantic import BaseModel

from config.holders import (
    DEFAULT_PAGE_LIMIT,
    FOUNDATION_URL,
    MAX_PAGE_LIMIT,
    format_token_amount,
)
from services.holders_cache import HolderSnapshotCache, NoSnapshotAvailable
from services.holder_aggregator import Holder
from services.wallet_display import WalletDisplay, WalletDisplayResolver

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/holders", tags=["holders"])


class HolderRow(BaseModel):
    rank: int
    address: str
    displayName: str
    displayUrl: Optional[str] = None
    displaySource: str
    veabxPower: float
    lockedAmount: float
    percentOfTotal: float
    numLocks: int
    numLocksVaulted: int
    lockIds: List[str]
    isFoundation: bool
    accruedRewards: float


class Pagination(BaseModel):
    page: int
    limit: int
    totalCount: int
    totalPages: int


class HoldersResponse(BaseModel):
    holders: List[HolderRow]
    pagination: Pagination
    totalVeABX: float
    capturedAt: float


def get_holders_cache(request: Request) -> HolderSnapshotCache:
    return request.app.state.holders_cache


def get_wallet_resolver(request: Request) -> WalletDisplayResolver:
    return request.app.state.wallet_resolver


def calculate_percent_of_total(voting_power: int, total_voting_power: int) -> float:
    if total_voting_power == 0:
        return 0.0
    return (voting_power / total_voting_power) * 100


def to_row(holder: Holder, total_voting_power: int, display: Optional[WalletDisplay]) -> HolderRow:
    if holder.is_foundation:
        name, url, source = holder.display_name, FOUNDATION_URL, "manual"
    elif display is not None:
        name, url, source = display.name, display.url, display.source
    else:
        name, url, source = holder.display_name, None, "truncated"

    return HolderRow(
        rank=holder.rank,
        address=holder.address,
        displayName=name,
        displayUrl=url,
        displaySource=source,
        veabxPower=format_token_amount(holder.voting_power),
        lockedAmount=format_token_amount(holder.locked_amount),
        percentOfTotal=calculate_percent_of_total(holder.voting_power, total_voting_power),
        numLocks=holder.num_locks,
        numLocksVaulted=holder.num_locks_vaulted,
        lockIds=[str(token_id) for token_id in holder.lock_ids],
        isFoundation=holder.is_foundation,
        accruedRewards=format_token_amount(holder.accrued_rewards),
    )


@router.get("", response_model=HoldersResponse)
async def get_holders(
    response: Response,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1),
    search: str = Query("", max_length=100),
    refresh: bool = Query(False),
    cache: HolderSnapshotCache = Depends(get_holders_cache),
    resolver: WalletDisplayResolver = Depends(get_wallet_resolver),
):
    """
    Get the veABX holder leaderboard

    - Foundation row first (rank 0), then holders by voting power
    - search matches address or display name, case-insensitive
    - limit is capped at 100
    """
    limit = min(limit, MAX_PAGE_LIMIT)

    try:
        result = await cache.get_holders(
            force_refresh=refresh,
            search=search,
            page=page,
            limit=limit,
        )
    except NoSnapshotAvailable as e:
        logger.error(f"Holders API error: {e}")
        raise HTTPException(status_code=503, detail="No holder data available")

    displays = await resolver.resolve_many(
        [h.address for h in result.holders if not h.is_foundation]
    )

    response.headers["Cache-Control"] = "public, max-age=60, s-maxage=60"

    return HoldersResponse(
        holders=[
            to_row(h, result.total_voting_power, displays.get(h.address))
            for h in result.holders
        ],
        pagination=Pagination(
            page=result.page,
            limit=result.limit,
            totalCount=result.total_count,
            totalPages=math.ceil(result.total_count / result.limit),
        ),
        totalVeABX=format_token_amount(result.total_voting_power),
        capturedAt=result.captured_at,
    )
