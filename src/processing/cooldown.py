import time
from typing import Callable, Optional, Tuple


class CooldownGate:
    """
    Minimum interval between generation attempts.

    The gate is stamped when an attempt *starts*, not when it finishes, so a
    slow generation call still blocks a second attempt for the full cooldown.
    """

    def __init__(self, cooldown: float, clock: Callable[[], float] = time.monotonic):
        self.cooldown = cooldown
        self.clock = clock
        self.last_generation_at: Optional[float] = None

    def check_ready(self, now: Optional[float] = None) -> Tuple[bool, float]:
        """Returns (ready, remaining seconds)."""
        if self.last_generation_at is None:
            return True, 0.0

        now = self.clock() if now is None else now
        elapsed = now - self.last_generation_at
        if elapsed >= self.cooldown:
            return True, 0.0
        return False, self.cooldown - elapsed

    def stamp(self, now: Optional[float] = None) -> float:
        self.last_generation_at = self.clock() if now is None else now
        return self.last_generation_at
