"""
Automatic usage logging around arbitrary calls.

Wraps a function so that every call records one usage event, whether the
call returns or raises. The wrapped call's result and exceptions pass
through unchanged.
"""

import functools
import inspect
import time
from typing import Any, Callable, Optional

from ..core.event_logger import DEFAULT_METHOD, UsageLogger
from ..core.status import AgentType, UsageStatus


def status_from_http(status_code: int) -> UsageStatus:
    """Map an HTTP response code to a usage status."""
    if status_code == 402:
        return UsageStatus.PAYMENT_REQUIRED
    if 200 <= status_code < 300:
        return UsageStatus.SUCCESS
    return UsageStatus.UNKNOWN_ERROR


def elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def logged(
    logger: UsageLogger,
    *,
    tenant_id: Optional[str] = None,
    actor_id: Optional[str] = None,
    actor_type: AgentType = AgentType.UNKNOWN,
    method: str = DEFAULT_METHOD,
    endpoint: Optional[str] = None,
    billing_key: Optional[str] = None,
    network: Optional[str] = None,
    asset: Optional[str] = None,
    amount_atomic: Optional[int] = None,
    tx_hash: Optional[str] = None,
) -> Callable[[Callable], Callable]:
    """Decorator recording a usage event for each call of the function.

    The event is SUCCESS when the call returns and UNKNOWN_ERROR when it
    raises; ``latency_ms`` is the call's wall time. ``endpoint`` defaults to
    the function's qualified name. Coroutine functions are supported.

    Example:
        @logged(usage_logger, actor_id="buyer-123", network="eip155:84532",
                asset="USDC", amount_atomic=1_000_000)
        def process_payment(request):
            ...
    """
    def decorator(func: Callable) -> Callable:
        fields = dict(
            tenant_id=tenant_id,
            actor_id=actor_id,
            actor_type=actor_type,
            method=method,
            endpoint=endpoint or f"{func.__module__}.{func.__qualname__}",
            billing_key=billing_key,
            network=network,
            asset=asset,
            amount_atomic=amount_atomic,
            tx_hash=tx_hash,
        )

        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                started = time.perf_counter()
                status = UsageStatus.UNKNOWN_ERROR
                try:
                    result = await func(*args, **kwargs)
                    status = UsageStatus.SUCCESS
                    return result
                finally:
                    logger.log(status=status, latency_ms=elapsed_ms(started), **fields)
            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            started = time.perf_counter()
            status = UsageStatus.UNKNOWN_ERROR
            try:
                result = func(*args, **kwargs)
                status = UsageStatus.SUCCESS
                return result
            finally:
                logger.log(status=status, latency_ms=elapsed_ms(started), **fields)
        return wrapper

    return decorator
