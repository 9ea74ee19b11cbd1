"""Adaptive rate limiter shared by provider clients and the media pipeline"""

import asyncio
from dataclasses import asdict, dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from loguru import logger
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt

from .config import RateLimiterConfig
from .errors import (
    ProviderUnavailable,
    RateLimited,
    RateLimitExhausted,
    is_rate_limit_error,
    is_transient_error,
)

T = TypeVar("T")
SleepFunc = Callable[[float], Awaitable[Any]]


@dataclass
class RateLimiterState:
    """Mutable pacing state, one per provider instance"""
    current_delay_ms: float
    consecutive_successes: int = 0
    consecutive_failures: int = 0
    total_requests: int = 0
    total_rate_limited: int = 0
    last_attempts: int = 0


class AdaptiveRateLimiter:
    """
    Paces calls to a single provider.

    Every attempt is preceded by a sleep of the current delay. Throttling
    responses grow the delay (up to max_delay), a run of successes shrinks it
    (down to base_delay). Transient failures are retried with the same budget
    but leave the delay untouched.
    """

    def __init__(
        self,
        config: Optional[RateLimiterConfig] = None,
        name: str = "provider",
        sleep: Optional[SleepFunc] = None,
    ):
        self.config = config or RateLimiterConfig.default()
        self.name = name
        self._sleep = sleep or asyncio.sleep
        self.state = RateLimiterState(current_delay_ms=self.config.base_delay_ms)

    @property
    def current_delay_ms(self) -> float:
        return self.state.current_delay_ms

    @property
    def batch_size(self) -> int:
        return self.config.batch_size

    async def execute(self, call: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``call`` under pacing and bounded retry.

        Raises:
            RateLimitExhausted: provider kept throttling through every retry
            ProviderUnavailable: transient failures exhausted the retry budget
            Any non-transient error raised by ``call``, unchanged
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.config.max_retries + 1),
            wait=self._wait_for_retry,
            retry=retry_if_exception(is_transient_error),
            after=self._on_failed_attempt,
            sleep=self._sleep,
            reraise=True,
        )

        await self._sleep(self.state.current_delay_ms / 1000)
        attempts = 0
        try:
            async for attempt in retrying:
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    self.state.total_requests += 1
                    result = await call()
        except Exception as e:
            self.state.last_attempts = attempts
            if isinstance(e, (RateLimitExhausted, ProviderUnavailable)):
                raise
            if is_rate_limit_error(e):
                logger.error(
                    f"[{self.name}] Rate limit persisted after {attempts} attempts "
                    f"(delay {self.state.current_delay_ms:.0f}ms)"
                )
                raise RateLimitExhausted(
                    f"{self.name}: rate limited after {attempts} attempts",
                    provider=self.name,
                    attempts=attempts,
                ) from e
            if is_transient_error(e):
                logger.error(f"[{self.name}] Giving up after {attempts} attempts: {e}")
                raise ProviderUnavailable(
                    f"{self.name}: {e}", provider=self.name, status=getattr(e, "status", None)
                ) from e
            raise

        self.state.last_attempts = attempts
        self._record_success()
        return result

    async def wait(self, delay_ms: float) -> None:
        """Explicit pause used for page-level backoff and page spacing"""
        if delay_ms > 0:
            logger.debug(f"[{self.name}] Waiting {delay_ms:.0f}ms")
            await self._sleep(delay_ms / 1000)

    def reset(self) -> None:
        self.state = RateLimiterState(current_delay_ms=self.config.base_delay_ms)

    def stats(self) -> Dict[str, Any]:
        return {"name": self.name, **asdict(self.state)}

    def _record_success(self) -> None:
        self.state.consecutive_failures = 0
        self.state.consecutive_successes += 1
        if self.state.consecutive_successes >= self.config.adaptive_threshold:
            previous = self.state.current_delay_ms
            self.state.current_delay_ms = max(
                self.config.base_delay_ms, previous * self.config.decrease_factor
            )
            self.state.consecutive_successes = 0
            if self.state.current_delay_ms < previous:
                logger.debug(
                    f"[{self.name}] Decreased delay {previous:.0f}ms -> {self.state.current_delay_ms:.0f}ms"
                )

    def _record_rate_limit(self, error: BaseException) -> None:
        previous = self.state.current_delay_ms
        grown = max(previous, 1.0) * self.config.backoff_multiplier
        retry_after = getattr(error, "retry_after", None)
        if isinstance(error, RateLimited) and retry_after:
            grown = max(grown, retry_after * 1000)
        self.state.current_delay_ms = min(grown, self.config.max_delay_ms)
        self.state.consecutive_failures += 1
        self.state.consecutive_successes = 0
        self.state.total_rate_limited += 1
        logger.warning(
            f"[{self.name}] Rate limited, delay {previous:.0f}ms -> {self.state.current_delay_ms:.0f}ms "
            f"({self.state.consecutive_failures} consecutive)"
        )

    def _on_failed_attempt(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception()
        if is_rate_limit_error(error):
            self._record_rate_limit(error)
        else:
            self.state.consecutive_successes = 0
            logger.warning(
                f"[{self.name}] Transient error on attempt {retry_state.attempt_number}: {error}"
            )

    def _wait_for_retry(self, retry_state: RetryCallState) -> float:
        return self.state.current_delay_ms / 1000
