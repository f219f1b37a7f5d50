"""
Push-based progress reporting.

The engine calls ``inc`` after discrete units of work; whatever front end
is attached (CLI printer, GUI bridge, test recorder) receives the new
percentage through a callback. A failing callback is logged and ignored so
reporting can never abort an installation.
"""

import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float, str], None]


class Progress:
    """
    Percentage tracker feeding an optional callback.

    Attributes:
        value: Current percentage in the range 0-100
    """

    TICK = "tick"

    def __init__(self, callback: Optional[ProgressCallback] = None):
        self.callback = callback
        self.value = 0.0

    def inc(self, delta: float, message: str = "") -> None:
        """Advance by ``delta`` percentage points (clamped to 100)."""
        self.set(self.value + delta, message)

    def set(self, value: float, message: str = "") -> None:
        self.value = max(0.0, min(100.0, value))
        self._emit(message)

    def tick(self) -> None:
        """Signal liveness without advancing, for spinners."""
        self._emit(self.TICK)

    @staticmethod
    def split(weight: float, count: int) -> float:
        """Per-item increment when ``weight`` is spread over ``count`` items."""
        return weight / count if count else 0.0

    def _emit(self, message: str) -> None:
        if self.callback is None:
            return
        try:
            self.callback(self.value, message)
        except Exception as e:
            logger.warning(f"Progress callback failed: {e}")
