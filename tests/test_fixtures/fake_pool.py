"""
Fake asyncpg Pool

In-memory stand-ins for ``asyncpg.create_pool`` and the objects it returns,
with scripted failures so resilience behavior can be tested without a
database or real timers.
"""

import asyncio
from collections import deque
from typing import Any


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Awaitable sleep replacement that only records the requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FakeStatement:
    def __init__(self, conn: "FakeConnection", query: str):
        self._conn = conn
        self._query = query
        self._status: str | None = None

    async def fetch(self, *args, timeout=None):
        factory = self._conn.factory
        self._conn.executed.append((self._query, args))
        factory.executed.append((self._query, args))
        if factory.query_errors:
            raise factory.query_errors.popleft()
        self._status = factory.status
        return [dict(row) for row in factory.rows]

    def get_statusmsg(self) -> str | None:
        return self._status


class FakeConnection:
    def __init__(self, factory: "FakePoolFactory", pid: int):
        self.factory = factory
        self.pid = pid
        self.terminated = False
        self.executed: list[tuple[str, tuple]] = []

    def get_server_pid(self) -> int:
        return self.pid

    async def prepare(self, query: str, timeout=None) -> FakeStatement:
        return FakeStatement(self, query)

    async def fetchrow(self, query: str, *args, timeout=None) -> dict[str, Any]:
        self.executed.append((query, args))
        return {"current_time": "2025-01-01T00:00:00Z", "pg_version": "PostgreSQL 16"}

    async def fetchval(self, query: str, *args, timeout=None):
        self.executed.append((query, args))
        if self.factory.health_delay:
            await asyncio.sleep(self.factory.health_delay)
        if self.factory.health_errors:
            raise self.factory.health_errors.popleft()
        return 1

    def terminate(self) -> None:
        self.terminated = True

    def is_closed(self) -> bool:
        return self.terminated


class FakePool:
    """Bounded pool with asyncpg's acquire/release/size surface."""

    def __init__(self, factory: "FakePoolFactory", **kwargs):
        self.factory = factory
        self.kwargs = kwargs
        self.max_size = kwargs.get("max_size", 5)
        self._init = kwargs.get("init")
        self._idle: list[FakeConnection] = []
        self._in_use: list[FakeConnection] = []
        self.closed = False
        self.terminated = False
        self.acquire_calls = 0

    async def acquire(self, timeout=None) -> FakeConnection:
        self.acquire_calls += 1
        if self.factory.acquire_errors:
            raise self.factory.acquire_errors.popleft()

        if self._idle:
            conn = self._idle.pop()
        elif self.get_size() < self.max_size:
            conn = self.factory.new_connection()
            if self._init is not None:
                await self._init(conn)
        else:
            raise asyncio.TimeoutError()

        self._in_use.append(conn)
        return conn

    async def release(self, conn: FakeConnection, timeout=None) -> None:
        if conn not in self._in_use:
            raise RuntimeError("connection released twice")
        self._in_use.remove(conn)
        if not conn.terminated:
            self._idle.append(conn)

    def expire_idle(self) -> None:
        """Close idle connections the way max_inactive_connection_lifetime does."""
        for conn in self._idle:
            conn.terminate()
        self._idle.clear()

    async def close(self) -> None:
        self.closed = True

    def terminate(self) -> None:
        self.terminated = True

    def get_size(self) -> int:
        return len(self._idle) + len(self._in_use)

    def get_idle_size(self) -> int:
        return len(self._idle)

    def get_max_size(self) -> int:
        return self.max_size

    @property
    def checked_out(self) -> int:
        return len(self._in_use)


class FakePoolFactory:
    """
    ``asyncpg.create_pool`` replacement.

    Scripted failures are consumed in order:
    - ``create_errors``: raised by pool construction
    - ``acquire_errors``: raised by ``pool.acquire``
    - ``query_errors``: raised by prepared statement ``fetch``
    - ``health_errors``: raised by the health check query
    """

    def __init__(self):
        self.calls: list[dict[str, Any]] = []
        self.pools: list[FakePool] = []
        self.create_errors: deque[BaseException] = deque()
        self.acquire_errors: deque[BaseException] = deque()
        self.query_errors: deque[BaseException] = deque()
        self.health_errors: deque[BaseException] = deque()
        self.health_delay = 0.0
        self.rows: list[dict[str, Any]] = [{"alive": 1}]
        self.status = "SELECT 1"
        self.executed: list[tuple[str, tuple]] = []
        self._next_pid = 1000

    async def __call__(self, **kwargs) -> FakePool:
        self.calls.append(kwargs)
        if self.create_errors:
            raise self.create_errors.popleft()
        pool = FakePool(self, **kwargs)
        self.pools.append(pool)
        return pool

    @property
    def pool(self) -> FakePool | None:
        return self.pools[-1] if self.pools else None

    def new_connection(self) -> FakeConnection:
        self._next_pid += 1
        return FakeConnection(self, self._next_pid)
