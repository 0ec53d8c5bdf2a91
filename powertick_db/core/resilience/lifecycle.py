"""
Process lifecycle helpers.

Cold start detection is based on process uptime: a serverless worker that
was started less than ``COLD_START_WINDOW`` seconds ago has no warm pool yet,
so health checks use a shorter timeout and ``ping`` triggers pre-warming.
The manager measures uptime from ``process_start_time()``.

Termination signals are owned by the ASGI server. Uvicorn turns SIGTERM and
SIGINT into a graceful exit, which runs the application lifespan shutdown
and with it ``ResilientConnectionManager.shutdown()``.
"""

import time

# Captured at import time, which is process start for a function worker
_PROCESS_START = time.monotonic()


def process_start_time() -> float:
    return _PROCESS_START
