"""Retry policy for calls to the routing service."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, TypeVar

from ...config import settings
from ...errors import ProviderUnavailable

T = TypeVar("T")

logger = logging.getLogger(__name__)


class RateLimited(Exception):
    """The routing service answered HTTP 429."""


class TransientProviderError(Exception):
    """A request failed in a way worth retrying (status, timeout, network, bad payload)."""


@dataclass(slots=True)
class RetryPolicy:
    """Attempt budget and back-off schedule for one logical request.

    Rate-limit responses wait ``rate_limit_backoff_seconds``; any other transient
    failure waits ``backoff_seconds``. When the budget is spent the policy returns
    ``fallback()`` if one is given, otherwise raises ``ProviderUnavailable``.
    """

    max_attempts: int = settings.osrm_max_attempts
    rate_limit_backoff_seconds: float = settings.osrm_rate_limit_backoff_seconds
    backoff_seconds: float = settings.osrm_backoff_seconds
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

    def backoff_for(self, error: Exception) -> float:
        if isinstance(error, RateLimited):
            return self.rate_limit_backoff_seconds
        return self.backoff_seconds

    def run(
        self,
        operation: Callable[[], T],
        *,
        description: str = "routing request",
        fallback: Optional[Callable[[], T]] = None,
    ) -> T:
        last_error: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return operation()
            except (RateLimited, TransientProviderError) as error:
                last_error = error
                if attempt == self.max_attempts:
                    break
                wait_time = self.backoff_for(error)
                logger.debug(
                    f"{description} failed ({error}); retrying in {wait_time:.1f}s "
                    f"(attempt {attempt}/{self.max_attempts})"
                )
                self.sleep(wait_time)

        if fallback is not None:
            logger.warning(f"{description} failed after {self.max_attempts} attempts ({last_error}); using fallback")
            return fallback()
        logger.error(f"{description} failed after {self.max_attempts} attempts: {last_error}")
        raise ProviderUnavailable(
            f"{description} failed after {self.max_attempts} attempts: {last_error}"
        ) from last_error
