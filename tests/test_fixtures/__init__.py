"""
Test Fixtures Package

Shared test utilities and helpers for consistent testing across all modules.
"""

from .fake_pool import (
    FakeClock,
    FakeConnection,
    FakePool,
    FakePoolFactory,
    RecordingSleep,
)

__all__ = ["FakeClock", "FakeConnection", "FakePool", "FakePoolFactory", "RecordingSleep"]
