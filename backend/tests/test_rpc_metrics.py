"""
RPC metrics tests
==================

Run: python -m pytest tests/test_rpc_metrics.py -v --tb=short
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from infrastructure.rpc_metrics import RPCCallTimer, RPCMetricsTracker, classify_error


class TestRPCMetricsTracker:
    """Per-method counters"""

    def test_success_and_error_counts(self):
        tracker = RPCMetricsTracker()

        tracker.record_call('multicall', 'ownerOf', 'success', 0.2, batch_size=400)
        tracker.record_call('multicall', 'ownerOf', 'error', 0.1, batch_size=400, error_message="reverted")

        stats = tracker.get_method_stats('multicall')
        assert stats['total_calls'] == 2
        assert stats['total_subcalls'] == 800, "❌ Batch sizes must add up"
        assert stats['success_rate'] == 50.0
        assert stats['last_error'] == "reverted"
        assert len(tracker.get_recent_errors()) == 1

    def test_unknown_method(self):
        assert RPCMetricsTracker().get_method_stats('eth_call')['status'] == 'no_data'

    def test_slow_calls(self):
        tracker = RPCMetricsTracker()
        tracker.record_call('eth_call', 'tokenId', 'success', 1.5)
        tracker.record_call('eth_call', 'tokenId', 'success', 0.01)

        slow = tracker.get_slow_calls(threshold_ms=1000)

        assert len(slow) == 1 and slow[0]['response_time_ms'] == 1500.0

    def test_record_call_from_many_threads(self):
        tracker = RPCMetricsTracker()

        def record_many(_):
            for _ in range(500):
                tracker.record_call('multicall', 'ownerOf', 'success', 0.001, batch_size=4)

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(record_many, range(8)))

        stats = tracker.get_method_stats('multicall')
        assert stats['total_calls'] == 4000, f"❌ Lost updates: {stats['total_calls']}"
        assert stats['total_subcalls'] == 16000
        assert tracker.get_all_stats()['total_rpc_calls'] == 4000

    def test_timestamps_are_utc_aware(self):
        started_at = RPCMetricsTracker().get_all_stats()['started_at']

        assert started_at.endswith("+00:00"), f"❌ Expected an aware UTC timestamp: {started_at}"


class TestRPCCallTimer:
    """Context manager records and never swallows"""

    def test_records_success(self):
        tracker = RPCMetricsTracker()

        with RPCCallTimer('eth_call', 'tokenId', tracker=tracker):
            pass

        assert tracker.get_method_stats('eth_call')['success_count'] == 1

    def test_records_and_reraises_errors(self):
        tracker = RPCMetricsTracker()

        with pytest.raises(ConnectionError):
            with RPCCallTimer('multicall', 'locked', batch_size=10, tracker=tracker):
                raise ConnectionError("429 Too Many Requests")

        stats = tracker.get_method_stats('multicall')
        assert stats['rate_limit_count'] == 1, f"❌ {stats}"
        assert stats['failed_count'] == 1

    @pytest.mark.parametrize("message,status", [
        ("429 Too Many Requests", 'rate_limited'),
        ("Read timed out", 'timeout'),
        ("execution reverted", 'error'),
    ])
    def test_classify_error(self, message, status):
        assert classify_error(message) == status
