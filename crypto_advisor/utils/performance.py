"""
Performance timing utilities for the crypto analysis pipeline.

Provides a timing decorator so that slow upstream calls (exchange, news,
language model) show up in the logs.
"""
import functools
import time
from typing import Any, Callable, Optional

from crypto_advisor.utils.logging import get_logger

logger = get_logger(__name__)


def time_function(operation_name: Optional[str] = None, log_result: bool = True):
    """
    Decorator to time coroutine execution.

    Args:
        operation_name: Custom name for the operation (defaults to function name)
        log_result: Whether to log the timing result
    """
    def decorator(func: Callable) -> Callable:
        name = operation_name or f"{func.__module__}.{func.__name__}"

        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            start = time.perf_counter()
            success = False
            try:
                result = await func(*args, **kwargs)
                success = True
                return result
            finally:
                if log_result:
                    logger.debug(
                        f"Performance: {name}",
                        duration=round(time.perf_counter() - start, 4),
                        success=success,
                    )

        return wrapper

    return decorator
