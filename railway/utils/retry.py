"""
Retry driver with exponential backoff and jitter

Pipelines never retry on their own: a "retry" is either a graph edge back to
an earlier member, or this driver re-entering the pipeline from outside via
run_at().
"""
import time
import random
import logging
from typing import Any, Callable, Optional

from railway.pipeline.action import ERROR, Action, ActionResult
from railway.pipeline.context import RunContext
from railway.pipeline.pipeline_engine import Pipeline

logger = logging.getLogger(__name__)


def backoff_delay(
    attempt: int,
    base_delay: float = 1.0,
    max_delay: float = 32.0,
    exponential_base: float = 2.0,
    jitter: bool = True
) -> float:
    """
    Delay before retry number `attempt` (0-indexed)

    Delays (without jitter):
    - Attempt 0: 1s
    - Attempt 1: 2s
    - Attempt 2: 4s
    - etc., capped at max_delay
    """
    delay = min(base_delay * (exponential_base ** attempt), max_delay)

    # Add jitter (randomness) to prevent thundering herd
    if jitter:
        delay = delay * (0.5 + random.random())  # 50-150% of delay

    return delay


def run_with_retry(
    pipeline: Pipeline,
    ctx: Optional[RunContext],
    value: Any,
    start: Optional[Action] = None,
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 32.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    sleep: Callable[[float], None] = time.sleep
) -> ActionResult:
    """
    Run a pipeline, re-entering it while it ends in a recoverable ERROR

    Args:
        pipeline: Pipeline to run
        ctx: Run context; a cancelled context stops further attempts
        value: Input for every attempt
        start: Member to (re-)enter at (default: the pipeline's init action)
        max_retries: Maximum number of retry attempts after the first run
        base_delay: Initial delay in seconds (default: 1s)
        max_delay: Maximum delay cap in seconds (default: 32s)
        exponential_base: Base for exponential calculation (default: 2)
        jitter: Add randomness to the delay (default: True)
        sleep: Called with the delay between attempts

    Returns:
        Result of the last attempt. SUCCESS, ABORT, custom directions and
        failures marked non-recoverable are returned immediately.

    Raises:
        ValueError: max_retries is negative
    """
    if max_retries < 0:
        raise ValueError(f"max_retries must be >= 0, got {max_retries}")
    if ctx is None:
        ctx = RunContext.background()
    start = start or pipeline.init_action

    for attempt in range(max_retries + 1):
        result = pipeline.run_at(start, ctx, value)

        if result.direction != ERROR:
            if attempt > 0:
                logger.info(
                    f"{pipeline.name} finished with '{result.direction}' on attempt {attempt + 1}/{max_retries + 1}"
                )
            return result

        if not getattr(result.failure, 'recoverable', True):
            logger.error(f"{pipeline.name} failed with non-recoverable error: {result.failure}")
            return result

        # Don't retry if we've exhausted attempts
        if attempt >= max_retries:
            logger.error(
                f"{pipeline.name} failed after {max_retries + 1} attempts: {result.failure}"
            )
            return result

        if ctx.cancelled():
            logger.warning(f"{pipeline.name}: context done, giving up retries ({ctx.error()})")
            return result

        delay = backoff_delay(attempt, base_delay, max_delay, exponential_base, jitter)
        logger.warning(
            f"{pipeline.name} attempt {attempt + 1}/{max_retries + 1} failed: {result.failure}. "
            f"Retrying in {delay:.2f}s..."
        )
        sleep(delay)

    return result
