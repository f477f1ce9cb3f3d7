# hybrid_ai/infrastructure/adapters/ai/functionality/timeout_wrapper.py

"""Async Timeout Wrapper"""

import asyncio
from typing import Awaitable, TypeVar
import structlog

from hybrid_ai.core.exceptions import BackendTimeoutError

logger = structlog.get_logger()

T = TypeVar('T')


async def with_timeout(
        coro: Awaitable[T],
        timeout: float,
        name: str = "operation"
) -> T:
    """
    Execute coroutine with timeout. The awaited call is cancelled on expiry.

    Args:
        coro: Coroutine to execute
        timeout: Timeout in seconds
        name: Operation name for logging

    Returns:
        Result from coroutine

    Raises:
        BackendTimeoutError: If timeout exceeded
    """
    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except asyncio.TimeoutError:
        logger.debug("operation_timeout", name=name, timeout=timeout)
        raise BackendTimeoutError(f"{name} timed out after {timeout}s", backend=name)
