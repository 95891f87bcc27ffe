"""
Thread offload for blocking filesystem calls.

The stores push every directory scan and file read/write through run_sync()
so that a Q&A session parked on the event loop keeps being scheduled while
the disk is busy.
"""

import asyncio
import functools
import logging
import time
from typing import Any, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_IO_TIMEOUT_S = 30.0


async def run_sync(func: Callable[..., T], *args: Any, timeout: float = DEFAULT_IO_TIMEOUT_S, **kwargs: Any) -> T:
    """Run ``func(*args, **kwargs)`` in the default executor.

    Exceptions from ``func`` propagate unchanged. Exceeding ``timeout``
    raises TimeoutError, an OSError subclass, so store code handles it with
    the rest of its I/O failures.
    """
    label = getattr(func, "__qualname__", None) or repr(func)
    call = functools.partial(func, *args, **kwargs)
    started = time.monotonic()
    try:
        return await asyncio.wait_for(asyncio.to_thread(call), timeout)
    except asyncio.TimeoutError:
        raise TimeoutError(f"{label} did not finish within {timeout}s") from None
    finally:
        logger.debug("run_sync %s took %.1fms", label, (time.monotonic() - started) * 1000)
