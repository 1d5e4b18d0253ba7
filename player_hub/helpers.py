"""
Helper functions for player_hub package.
Pure utility functions with minimal dependencies.

Dependencies: state (for task tracking)
"""
from __future__ import annotations
import asyncio
import re
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Callable, Any

from . import state
from logging_config import get_logger

logger = get_logger(__name__)

_TRAILING_NUMBER = re.compile(r"[0-9]+$")


# =============================================================================
# Thread Executor for Blocking Operations
# =============================================================================

_thread_executor: Optional[ThreadPoolExecutor] = None


def _get_daemon_executor() -> ThreadPoolExecutor:
    """Get or create the thread executor for blocking operations."""
    global _thread_executor
    if _thread_executor is None:
        _thread_executor = ThreadPoolExecutor(
            max_workers=4,
            thread_name_prefix="PlayerHub_Worker"
        )
    return _thread_executor


async def run_in_daemon_executor(func: Callable, *args: Any) -> Any:
    """
    Run a blocking function (subprocess, file or HTTP I/O) off the event loop.

    Args:
        func: Blocking function to run
        *args: Arguments to pass to the function

    Returns:
        Result of the function
    """
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(_get_daemon_executor(), func, *args)


def shutdown_daemon_executor():
    """Shutdown the thread executor. Call during app cleanup."""
    global _thread_executor
    if _thread_executor is not None:
        # wait=False ensures we don't block if a worker is hung on I/O
        _thread_executor.shutdown(wait=False, cancel_futures=True)
        _thread_executor = None


def create_tracked_task(coro):
    """
    Create a background task with automatic cleanup and error logging.
    Prevents silent failures and ensures tasks complete even if references are lost.
    """
    task = asyncio.create_task(coro)
    state._background_tasks.add(task)

    def cleanup(t):
        state._background_tasks.discard(t)
        try:
            t.result()
        except asyncio.CancelledError:
            pass  # Superseded or shutting down
        except Exception as e:
            logger.error(f"Background task failed: {e}", exc_info=True)

    task.add_done_callback(cleanup)
    return task


def has_running_loop() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


def monotonic_ticks() -> int:
    """Monotonic clock in microseconds."""
    return time.monotonic_ns() // 1000


def get_numbers_from_end_of(text: Optional[str]) -> Optional[int]:
    """
    Parse the trailing digits of a string.

    "org.mpris.MediaPlayer2.GnomeMpv.instance-1" -> 1
    "/io/github/GnomeMpv/window/12" -> 12
    "org.mpris.MediaPlayer2.rhythmbox" -> None
    """
    if not text:
        return None
    match = _TRAILING_NUMBER.search(text)
    return int(match.group(0)) if match else None
