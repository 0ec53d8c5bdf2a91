"""
Unit Tests for PoolEventEmitter and StructlogEventSink
"""

from unittest.mock import MagicMock

import pytest

from powertick_db.core.config.constants import PoolEvent, Stage
from powertick_db.core.logging.logger import clear_correlation_id, set_correlation_id
from powertick_db.core.resilience.pool_events import PoolEventEmitter, StructlogEventSink


@pytest.fixture(autouse=True)
def _no_correlation_id():
    clear_correlation_id()
    yield
    clear_correlation_id()


@pytest.mark.unit
class TestPoolEventEmitter:
    def test_delivers_to_all_subscribers(self):
        emitter = PoolEventEmitter()
        first, second = MagicMock(), MagicMock()
        emitter.subscribe(first)
        emitter.subscribe(second)

        emitter.emit(PoolEvent.ACQUIRE, outcome="success")

        first.assert_called_once_with(PoolEvent.ACQUIRE, {"outcome": "success"})
        second.assert_called_once_with(PoolEvent.ACQUIRE, {"outcome": "success"})

    def test_event_filter(self):
        emitter = PoolEventEmitter()
        queries = MagicMock()
        emitter.subscribe(queries, events={PoolEvent.QUERY})

        emitter.emit(PoolEvent.ACQUIRE)
        emitter.emit(PoolEvent.QUERY, row_count=1)

        queries.assert_called_once_with(PoolEvent.QUERY, {"row_count": 1})

    def test_unsubscribe(self):
        emitter = PoolEventEmitter()
        callback = MagicMock()
        unsubscribe = emitter.subscribe(callback)

        unsubscribe()
        unsubscribe()
        emitter.emit(PoolEvent.CONNECT)

        callback.assert_not_called()
        assert emitter.subscriber_count == 0

    def test_attaches_current_correlation_id(self):
        emitter = PoolEventEmitter()
        callback = MagicMock()
        emitter.subscribe(callback)
        set_correlation_id("cid-42")

        emitter.emit(PoolEvent.RELEASE)
        emitter.emit(PoolEvent.RELEASE, correlation_id="explicit")

        assert callback.call_args_list[0].args[1]["correlation_id"] == "cid-42"
        assert callback.call_args_list[1].args[1]["correlation_id"] == "explicit"

    def test_failing_subscriber_does_not_block_others(self):
        emitter = PoolEventEmitter()
        broken = MagicMock(side_effect=RuntimeError("metrics backend down"))
        healthy = MagicMock()
        emitter.subscribe(broken)
        emitter.subscribe(healthy)

        emitter.emit(PoolEvent.ERROR, error="boom")

        healthy.assert_called_once()


@pytest.mark.unit
class TestStructlogEventSink:
    @pytest.fixture
    def bound_logger(self):
        return MagicMock()

    def test_success_logged_at_info_with_stage(self, bound_logger):
        sink = StructlogEventSink(bound_logger)

        sink(PoolEvent.ACQUIRE, {"outcome": "success", "duration_ms": 1.2})

        bound_logger.info.assert_called_once_with(
            "Connection acquired from pool",
            stage=Stage.ACQUIRE,
            pool_event="acquire",
            outcome="success",
            duration_ms=1.2,
        )

    def test_failure_levels(self, bound_logger):
        sink = StructlogEventSink(bound_logger)

        sink(PoolEvent.QUERY, {"outcome": "failure"})
        sink(PoolEvent.RELEASE, {"outcome": "failure"})
        sink(PoolEvent.ERROR, {"outcome": "failure"})

        assert bound_logger.error.call_args_list[0].args[0] == "Query executed (failed)"
        bound_logger.warning.assert_called_once()
        assert bound_logger.error.call_args_list[1].args[0] == "Pool error occurred"

    def test_slow_query_is_warning(self, bound_logger):
        StructlogEventSink(bound_logger)(PoolEvent.QUERY, {"outcome": "success", "slow": True})

        bound_logger.warning.assert_called_once()

    def test_circuit_open_is_warning(self, bound_logger):
        sink = StructlogEventSink(bound_logger)

        sink(PoolEvent.STATE_CHANGE, {"to_state": "OPEN"})
        sink(PoolEvent.STATE_CHANGE, {"to_state": "CLOSED"})

        bound_logger.warning.assert_called_once()
        bound_logger.info.assert_called_once()
