"""
Async wrapper for PyDAL operations.

PyDAL is synchronous and Quart is async, so every datastore call is run
in a thread pool executor to keep the event loop free for redirects.
PyDAL keeps one connection per thread, so the pool size should match
the DB connection pool size.
"""

from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
from contextvars import copy_context
from functools import wraps
from typing import Any, Callable, TypeVar

# Thread pool for database operations
_db_executor: ThreadPoolExecutor | None = None

# Type variable for generic return types
T = TypeVar("T")


def get_executor(max_workers: int = 10) -> ThreadPoolExecutor:
    """
    Get or create the thread pool executor for database operations.

    Args:
        max_workers: Maximum number of worker threads

    Returns:
        ThreadPoolExecutor instance
    """
    global _db_executor
    if _db_executor is None:
        _db_executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="pydal_",
        )
    return _db_executor


def shutdown_executor() -> None:
    """Shutdown the thread pool executor."""
    global _db_executor
    if _db_executor is not None:
        _db_executor.shutdown(wait=True)
        _db_executor = None


async def run_sync(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """
    Run a synchronous function in the thread pool.

    Context variables are copied to the worker thread so the Quart app
    context stays visible to the called function.

    Example:
        link = await run_sync(store.find_link_by_code, "aB3dE5fG", active_only=True)
    """
    loop = asyncio.get_running_loop()
    executor = get_executor()

    ctx = copy_context()

    def run_with_context() -> T:
        return ctx.run(func, *args, **kwargs)

    return await loop.run_in_executor(executor, run_with_context)


def async_db_operation(func: Callable[..., T]) -> Callable[..., T]:
    """
    Decorator to convert a synchronous database function to async.

    Example:
        @async_db_operation
        def count_links(db) -> int:
            return db(db.utm_links).count()

        total = await count_links(db)
    """

    @wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        return await run_sync(func, *args, **kwargs)

    return wrapper
