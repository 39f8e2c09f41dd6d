from __future__ import annotations

import random
from dataclasses import dataclass

from .errors import DdbError, DdbThrottled, DdbUnavailable


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Retry schedule for one logical call.

    `retries` is the number of retries allowed after the first attempt, so a
    server fault stops after `retries + 1` attempts. Throttling is looser: the
    first throttling error is retried straight away, even when `retries` is 0,
    and later ones keep retrying while the attempt index is at most `retries`
    and at most `max_throttle_attempt`.
    """

    retries: int = 3
    server_base_delay_s: float = 0.1
    throttle_base_delay_s: float = 0.025
    max_throttle_attempt: int = 10

    def next_delay(self, error: DdbError, attempt: int, rng: random.Random | None = None) -> float | None:
        """Seconds to wait before retrying `attempt`, or None to surface `error`."""
        if isinstance(error, DdbUnavailable):
            if attempt < self.retries:
                return (4**attempt) * self.server_base_delay_s
            return None

        if isinstance(error, DdbThrottled):
            if attempt == 0:
                return 0.0
            if attempt <= self.retries and attempt <= self.max_throttle_attempt:
                # Randomized so competing clients do not retry in lockstep.
                jitter = (rng or random).random() + 1
                return (2 ** (attempt - 1)) * self.throttle_base_delay_s * jitter
            return None

        return None
