from __future__ import annotations
import logging
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

T = TypeVar("T")

log = logging.getLogger(__name__)

@dataclass(frozen=True)
class RetryPolicy:
    attempts: int = 3
    base_delay_s: float = 0.05
    max_delay_s: float = 0.25

def with_retries(
    fn: Callable[[], T],
    policy: RetryPolicy,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
) -> T:
    last_exc: BaseException | None = None
    delay = policy.base_delay_s
    for attempt in range(1, policy.attempts + 1):
        try:
            return fn()
        except retry_on as e:
            last_exc = e
            log.debug("attempt %d/%d failed: %r", attempt, policy.attempts, e)
            if attempt < policy.attempts:
                time.sleep(delay)
                delay = min(policy.max_delay_s, delay * 2)
    if last_exc is None:
        raise ValueError("RetryPolicy.attempts must be at least 1")
    raise last_exc
