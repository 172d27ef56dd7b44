from __future__ import annotations

import asyncio
import os
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Any

_WORKERS_ENV = "SPINVERSE_SESSION_WORKERS"
_DEFAULT_WORKERS = max(1, min(8, os.cpu_count() or 1))

_executor: ThreadPoolExecutor | None = None
_executor_lock = threading.Lock()


def _worker_count() -> int:
    raw = os.getenv(_WORKERS_ENV, "").strip()
    if raw.isdigit() and int(raw) > 0:
        return int(raw)
    return _DEFAULT_WORKERS


def _get_executor() -> ThreadPoolExecutor:
    global _executor
    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(max_workers=_worker_count(), thread_name_prefix="spinverse-session")
        return _executor


async def run_blocking(func: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Any:
    """Run a session call off the event loop; the manager's lock serialises the work."""

    loop = asyncio.get_running_loop()
    bound = partial(func, *args, **kwargs)
    return await loop.run_in_executor(_get_executor(), bound)


def shutdown_executor() -> None:
    """Stop the worker pool; the next ``run_blocking`` call starts a fresh one."""

    global _executor
    with _executor_lock:
        executor, _executor = _executor, None
    if executor is not None:
        executor.shutdown(wait=True)
