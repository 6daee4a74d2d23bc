from __future__ import annotations

import random
from dataclasses import dataclass


def exponential_backoff(
    attempt: int,
    base_seconds: float = 0.05,
    cap_seconds: float = 2.0,
    jitter: float = 0.25,
    multiplier: float = 2.0,
) -> float:
    raw = min(cap_seconds, base_seconds * (multiplier ** max(0, attempt - 1)))
    spread = raw * jitter
    return max(0.0, raw + random.uniform(-spread, spread))


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 5
    base_delay_seconds: float = 0.2
    multiplier: float = 2.0
    max_delay_seconds: float = 10.0
    jitter: float = 0.2

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay_seconds < 0 or self.max_delay_seconds < 0:
            raise ValueError("delays must be non-negative")
        if self.multiplier < 1:
            raise ValueError("multiplier must be >= 1")

    def delay_for(self, attempt: int) -> float:
        return exponential_backoff(
            attempt,
            base_seconds=self.base_delay_seconds,
            cap_seconds=self.max_delay_seconds,
            jitter=self.jitter,
            multiplier=self.multiplier,
        )
