"""Timeout helper for bounded async operations."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from iconsearch.exceptions import OperationTimeoutError

T = TypeVar("T")


async def with_timeout(
    operation: Callable[[], Awaitable[T]],
    timeout: float,
    error_message: str,
) -> T:
    """Run ``operation`` and give up waiting after ``timeout`` seconds.

    Work already handed to a thread keeps running after the timeout; only the
    wait is abandoned.

    Args:
        operation: Zero-argument callable returning an awaitable.
        timeout: Seconds to wait.
        error_message: Message of the raised error.

    Returns:
        The operation result.

    Raises:
        OperationTimeoutError: If the operation does not finish in time.
    """
    try:
        return await asyncio.wait_for(operation(), timeout=timeout)
    except TimeoutError as e:
        raise OperationTimeoutError(
            error_message,
            details={"timeout_seconds": timeout},
        ) from e
