"""
Unit Tests for process lifecycle helpers

Tests that cold start detection is measured from process start.
"""

import time

import pytest

from powertick_db.core.resilience import lifecycle
from powertick_db.core.resilience.connection_manager import ResilientConnectionManager


@pytest.mark.unit
class TestProcessStart:
    def test_start_time_is_fixed_at_import(self):
        start = lifecycle.process_start_time()

        assert start <= time.monotonic()
        assert lifecycle.process_start_time() == start

    def test_manager_uptime_defaults_to_process_start(self, test_settings, pool_factory):
        start = lifecycle.process_start_time()
        manager = ResilientConnectionManager(
            settings=test_settings,
            pool_factory=pool_factory,
            clock=lambda: start + 12.5,
        )

        assert manager.uptime() == 12.5
        assert manager.is_cold_start() is True
