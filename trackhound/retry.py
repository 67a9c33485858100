"""
Bounded retry for a single provider call

This is the inner layer; the orchestrator's fallback chain is the outer one.
Only transport failures are retried. Authentication failures are raised
immediately since repeating the same credentials cannot help.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from .errors import AuthenticationError, TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 2             # retries after the first attempt
    retry_delay: float = 0.5         # fixed delay between attempts (seconds)
    attempt_timeout: Optional[float] = 60.0


async def call_with_retries(
    call: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    name: str = "provider",
) -> T:
    """
    Run ``call`` with up to ``policy.max_retries`` retries.

    Each attempt gets its own timeout; a timeout counts as a TransportError.

    Raises:
        AuthenticationError: on the first occurrence
        TransportError: the last one, once retries are exhausted
    """
    policy = policy or RetryPolicy()
    last_error: Optional[TransportError] = None

    for attempt in range(policy.max_retries + 1):
        try:
            if policy.attempt_timeout is None:
                return await call()
            return await asyncio.wait_for(call(), timeout=policy.attempt_timeout)

        except AuthenticationError:
            raise

        except asyncio.TimeoutError as e:
            last_error = TransportError(
                f"{name} timed out after {policy.attempt_timeout}s",
                provider=name,
            )
            last_error.__cause__ = e

        except TransportError as e:
            last_error = e

        if attempt < policy.max_retries:
            logger.warning(
                f"[{name}] attempt {attempt + 1}/{policy.max_retries + 1} failed: {last_error}, "
                f"retrying in {policy.retry_delay}s"
            )
            await asyncio.sleep(policy.retry_delay)

    raise last_error
