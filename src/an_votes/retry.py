"""Retry policy for failed deputy lookups.

Independent of any timer or event loop: callers pass the current time, so the
same policy is driven by ``time.monotonic`` in production and a fake clock in
tests.
"""

from __future__ import annotations

from dataclasses import dataclass

from .config import FAILURE_COOLDOWN_S


@dataclass(frozen=True)
class RetryPolicy:
    cooldown_s: float = FAILURE_COOLDOWN_S
    backoff_factor: float = 1.0  # 1.0 = fixed cooldown
    max_cooldown_s: float = 300.0
    max_attempts: int = 0  # 0 = no cap other than cooldown spacing

    def backoff(self, attempts: int) -> float:
        """Cooldown after the *attempts*-th consecutive failure."""
        if attempts <= 1:
            return self.cooldown_s
        return min(self.cooldown_s * self.backoff_factor ** (attempts - 1), self.max_cooldown_s)

    def is_eligible(self, last_attempt_at: float, attempts: int, now: float) -> bool:
        """True when a failed ID may be queued again at *now*."""
        if self.max_attempts and attempts >= self.max_attempts:
            return False
        return now - last_attempt_at >= self.backoff(attempts)
