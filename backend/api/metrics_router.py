"""
Metrics API Router - Exposes RPC metrics and holder snapshot health

Endpoints:
- GET /api/metrics/rpc - All RPC method stats
- GET /api/metrics/rpc/errors - Recent failed RPC calls
- GET /api/metrics/rpc/slow - Slow RPC calls
- GET /api/metrics/snapshot - Holder snapshot age, size and discovery counters
"""

from fastapi import APIRouter, Depends

from api.holders_router import get_holders_cache
from infrastructure.rpc_metrics import rpc_metrics
from services.holders_cache import HolderSnapshotCache

router = APIRouter(prefix="/api/metrics", tags=["metrics"])


@router.get("/rpc")
async def get_rpc_metrics():
    """
    Get metrics for every RPC method the chain reader used

    Returns:
    - Uptime info
    - Per-method stats (success rate, response times, batch sizes)
    - Total call counts
    """
    return rpc_metrics.get_all_stats()


@router.get("/rpc/errors")
async def get_recent_errors(limit: int = 20):
    """
    Get recent failed RPC calls
    """
    errors = rpc_metrics.get_recent_errors(limit)
    return {
        'count': len(errors),
        'errors': errors
    }


@router.get("/rpc/slow")
async def get_slow_calls(threshold_ms: float = 1000, limit: int = 20):
    """
    Get recent slow RPC calls (above threshold)
    """
    return {
        'threshold_ms': threshold_ms,
        'calls': rpc_metrics.get_slow_calls(threshold_ms, limit)
    }


@router.get("/snapshot")
async def get_snapshot_health(cache: HolderSnapshotCache = Depends(get_holders_cache)):
    """
    Holder snapshot health: age, size, rebuild counters and the discovery
    counters of the last successful rebuild (skipped/dropped ids)
    """
    snapshot = cache.snapshot
    if snapshot is None:
        return {
            'status': 'empty',
            'rebuilds': cache.rebuild_count,
            'failed_rebuilds': cache.failed_rebuild_count,
            'last_error': cache.last_error,
        }

    return {
        'status': 'fresh' if cache.is_fresh() else 'stale',
        'age_seconds': round(cache.age_seconds(), 1),
        'ttl_seconds': cache.ttl_seconds,
        'captured_at': snapshot.captured_at,
        'holders': len(snapshot.holders),
        'total_voting_power': str(snapshot.total_voting_power),
        'rebuilds': cache.rebuild_count,
        'failed_rebuilds': cache.failed_rebuild_count,
        'last_error': cache.last_error,
        'discovery': snapshot.stats.to_dict() if snapshot.stats else None,
    }
