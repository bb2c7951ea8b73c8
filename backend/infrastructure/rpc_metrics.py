"""
RPC Metrics Tracker - Monitoring for every chain read the holders pipeline makes

Tracks:
- Request counts per RPC method (success/error/timeout/rate limited)
- Response times (rolling average, min, max)
- Recent errors and slow calls

Methods recorded by the chain reader:
- eth_call   (single contract read)
- multicall  (one aggregate3 round-trip)
"""

import asyncio
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Any
from dataclasses import dataclass, field, asdict
from collections import defaultdict
import logging

logger = logging.getLogger(__name__)

SLOW_CALL_THRESHOLD_MS = 2000


@dataclass
class RPCCallMetric:
    """Single RPC call record"""
    method: str
    label: str
    status: str  # 'success', 'error', 'timeout', 'rate_limited'
    response_time_ms: float
    timestamp: str
    batch_size: int = 1
    error_message: Optional[str] = None


@dataclass
class MethodMetrics:
    """Aggregated metrics for one RPC method"""
    total_calls: int = 0
    success_count: int = 0
    error_count: int = 0
    timeout_count: int = 0
    rate_limit_count: int = 0
    total_subcalls: int = 0
    avg_response_time_ms: float = 0
    min_response_time_ms: float = float('inf')
    max_response_time_ms: float = 0
    last_error: Optional[str] = None
    last_error_time: Optional[str] = None
    last_success_time: Optional[str] = None

    # Track recent response times for rolling average
    _recent_times: list = field(default_factory=list)


def classify_error(error_message: str) -> str:
    """Map an exception message onto a call status"""
    lowered = error_message.lower()
    if '429' in error_message or 'rate' in lowered:
        return 'rate_limited'
    if 'timeout' in lowered or 'timed out' in lowered:
        return 'timeout'
    return 'error'


class RPCMetricsTracker:
    """
    Centralized RPC metrics tracking

    Usage:
        metrics = RPCMetricsTracker()

        start = time.time()
        results = multicall.execute()
        metrics.record_call('multicall', 'lock window', 'success', time.time() - start, batch_size=400)

        stats = metrics.get_all_stats()
    """

    def __init__(self, max_recent_calls: int = 1000):
        self._metrics: Dict[str, MethodMetrics] = defaultdict(MethodMetrics)
        self._recent_calls: list = []  # Last N calls for detailed logs
        self._max_recent_calls = max_recent_calls
        # record_call runs on executor threads (RPCCallTimer inside run_in_executor)
        self._lock = threading.Lock()
        self._start_time = datetime.now(timezone.utc)

        logger.info("[RPCMetrics] Tracker initialized")

    def record_call(
        self,
        method: str,
        label: str,
        status: str,
        response_time_s: float,
        batch_size: int = 1,
        error_message: str = None,
    ):
        """Record an RPC call (thread-safe)"""
        with self._lock:
            self._record(method, label, status, response_time_s, batch_size, error_message)

    def _record(self, method, label, status, response_time_s, batch_size, error_message):
        response_time_ms = response_time_s * 1000
        now = datetime.now(timezone.utc)

        call = RPCCallMetric(
            method=method,
            label=label,
            status=status,
            response_time_ms=round(response_time_ms, 2),
            timestamp=now.isoformat(),
            batch_size=batch_size,
            error_message=error_message,
        )

        self._recent_calls.append(asdict(call))
        if len(self._recent_calls) > self._max_recent_calls:
            self._recent_calls.pop(0)

        m = self._metrics[method]
        m.total_calls += 1
        m.total_subcalls += batch_size

        if status == 'success':
            m.success_count += 1
            m.last_success_time = now.isoformat()
        elif status == 'error':
            m.error_count += 1
            m.last_error = error_message
            m.last_error_time = now.isoformat()
        elif status == 'timeout':
            m.timeout_count += 1
            m.last_error = 'Timeout'
            m.last_error_time = now.isoformat()
        elif status == 'rate_limited':
            m.rate_limit_count += 1
            m.last_error = 'Rate limited'
            m.last_error_time = now.isoformat()

        m._recent_times.append(response_time_ms)
        if len(m._recent_times) > 100:
            m._recent_times.pop(0)

        m.avg_response_time_ms = sum(m._recent_times) / len(m._recent_times)
        m.min_response_time_ms = min(m.min_response_time_ms, response_time_ms)
        m.max_response_time_ms = max(m.max_response_time_ms, response_time_ms)

        if response_time_ms > SLOW_CALL_THRESHOLD_MS:
            logger.warning(f"[RPCMetrics] Slow call: {method} {label} took {response_time_ms:.0f}ms")

    def get_method_stats(self, method: str) -> Dict[str, Any]:
        """Get stats for a specific RPC method"""
        m = self._metrics.get(method)
        if not m:
            return {'method': method, 'status': 'no_data'}

        failed = m.error_count + m.timeout_count + m.rate_limit_count
        return {
            'method': method,
            'total_calls': m.total_calls,
            'total_subcalls': m.total_subcalls,
            'success_count': m.success_count,
            'error_count': m.error_count,
            'timeout_count': m.timeout_count,
            'rate_limit_count': m.rate_limit_count,
            'failed_count': failed,
            'success_rate': round((m.success_count / m.total_calls) * 100, 1) if m.total_calls > 0 else 0,
            'avg_response_ms': round(m.avg_response_time_ms, 1),
            'min_response_ms': round(m.min_response_time_ms, 1) if m.min_response_time_ms != float('inf') else 0,
            'max_response_ms': round(m.max_response_time_ms, 1),
            'last_error': m.last_error,
            'last_error_time': m.last_error_time,
            'last_success_time': m.last_success_time,
        }

    def get_all_stats(self) -> Dict[str, Any]:
        """Get comprehensive stats for all RPC methods"""
        uptime = (datetime.now(timezone.utc) - self._start_time).total_seconds()

        methods = {}
        total_calls = 0
        total_failed = 0

        with self._lock:
            method_names = list(self._metrics.keys())

        for method in method_names:
            stats = self.get_method_stats(method)
            methods[method] = stats
            total_calls += stats.get('total_calls', 0)
            total_failed += stats.get('failed_count', 0)

        return {
            'uptime_seconds': round(uptime, 0),
            'uptime_human': str(timedelta(seconds=int(uptime))),
            'started_at': self._start_time.isoformat(),
            'total_rpc_calls': total_calls,
            'total_errors': total_failed,
            'overall_success_rate': round(((total_calls - total_failed) / total_calls) * 100, 1) if total_calls > 0 else 100,
            'methods': methods,
        }

    def _snapshot_recent_calls(self) -> list:
        with self._lock:
            return list(self._recent_calls)

    def get_recent_errors(self, limit: int = 20) -> list:
        """Get recent failed calls"""
        errors = [
            c for c in reversed(self._snapshot_recent_calls())
            if c['status'] in ('error', 'timeout', 'rate_limited')
        ]
        return errors[:limit]

    def get_slow_calls(self, threshold_ms: float = 1000, limit: int = 20) -> list:
        """Get recent slow calls"""
        slow = [
            c for c in reversed(self._snapshot_recent_calls())
            if c['response_time_ms'] > threshold_ms
        ]
        return slow[:limit]


# Global instance
rpc_metrics = RPCMetricsTracker()


class RPCCallTimer:
    """Context manager for tracking RPC calls"""

    def __init__(self, method: str, label: str = '', batch_size: int = 1, tracker: RPCMetricsTracker = None):
        self.method = method
        self.label = label
        self.batch_size = batch_size
        self.tracker = tracker or rpc_metrics
        self.start = None
        self.status = 'success'
        self.error_message = None

    def __enter__(self):
        self.start = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = time.time() - self.start

        if exc_type:
            if exc_type is asyncio.TimeoutError:
                self.status = 'timeout'
                self.error_message = 'Request timeout'
            else:
                error_msg = str(exc_val)
                self.status = classify_error(error_msg)
                self.error_message = error_msg[:200]

        self.tracker.record_call(
            method=self.method,
            label=self.label,
            status=self.status,
            response_time_s=duration,
            batch_size=self.batch_size,
            error_message=self.error_message,
        )

        return False  # Don't suppress exceptions
