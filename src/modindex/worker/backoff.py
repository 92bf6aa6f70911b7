import random
from typing import Optional

# Smallest pause handed out, so a pause is never zero
MIN_PAUSE_SECONDS = 1e-9

DEFAULT_INITIAL_SECONDS = 1.0
DEFAULT_MAX_SECONDS = 30.0
DEFAULT_MULTIPLIER = 2.0


class Backoff:
    """Exponential backoff with full jitter.

    The retry period starts at `initial_seconds` and grows by `multiplier`
    after every pause, capped at `max_seconds`. Each pause is a random value
    between MIN_PAUSE_SECONDS and the current retry period.

    There is no reset: callers that want to start over create a new instance.

    Examples:
        initial=30, multiplier=1.5, max=300 -> ~0-30s, ~0-45s, ~0-67.5s, ... ~0-300s
    """

    def __init__(
        self,
        initial_seconds: float = 0.0,
        max_seconds: float = 0.0,
        multiplier: float = 0.0,
        rng: Optional[random.Random] = None,
    ):
        self.initial_seconds = initial_seconds if initial_seconds > 0 else DEFAULT_INITIAL_SECONDS
        self.max_seconds = max_seconds if max_seconds > 0 else DEFAULT_MAX_SECONDS
        self.multiplier = multiplier if multiplier > 1 else DEFAULT_MULTIPLIER
        self._current: Optional[float] = None
        self._random = rng or random.Random()

    @property
    def current_seconds(self) -> float:
        """Upper bound of the next pause."""
        return self._current if self._current is not None else self.initial_seconds

    def pause(self) -> float:
        current = self.current_seconds
        delay = self._random.uniform(MIN_PAUSE_SECONDS, current)
        self._current = min(current * self.multiplier, self.max_seconds)
        return delay
