"""Retry decorators for transient collaborator calls (tenacity)."""

import logging
import structlog

from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    before_sleep_log,
)

from llm.base import LLMRateLimitError

logger = structlog.stdlib.get_logger(__name__)


def with_retry(
    max_attempts: int = 3,
    min_wait: float = 1.0,
    max_wait: float = 10.0,
    exceptions: tuple = (Exception,),
):
    """Generic retry decorator.

    Args:
        max_attempts: Max attempts including the first call
        min_wait: Min wait between retries (seconds)
        max_wait: Max wait between retries (seconds)
        exceptions: Exception types to retry on
    """
    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(exceptions),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


def embedding_retry(max_attempts: int = 2, min_wait: float = 0.5, max_wait: float = 5.0):
    """Retry an embedding call on provider rate limits only.

    Other failures surface immediately so retrieval can degrade quickly.
    """
    return with_retry(
        max_attempts=max_attempts,
        min_wait=min_wait,
        max_wait=max_wait,
        exceptions=(LLMRateLimitError,),
    )

