"""
Game timer: turns scheduler time into settlement ticks.

The host calls `advance(delta_seconds)` from its frame or event loop. Time is
scaled, passed to time listeners (download progress) and accumulated; every
full interval fires the tick listeners once, in registration order.
"""

import logging
import math
from typing import Callable, List, Optional

from config import CONFIG

logger = logging.getLogger(__name__)

TickListener = Callable[[], object]
TimeListener = Callable[[float], object]


class GameTimer:
    def __init__(
        self,
        interval: Optional[float] = None,
        debug_mode: bool = False,
        time_scale: float = 1.0,
    ):
        cfg = CONFIG.settlement
        if interval is None:
            interval = cfg.debug_tick_interval_seconds if debug_mode else cfg.tick_interval_seconds
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.interval = interval
        self.debug_mode = debug_mode
        self.time_scale = 1.0
        self.set_time_scale(time_scale)
        self.elapsed = 0.0
        self.total_ticks = 0
        self.paused = False
        self.enabled = True
        self._tick_listeners: List[TickListener] = []
        self._time_listeners: List[TimeListener] = []

    def add_tick_listener(self, callback: TickListener) -> None:
        self._tick_listeners.append(callback)

    def add_time_listener(self, callback: TimeListener) -> None:
        self._time_listeners.append(callback)

    def set_time_scale(self, scale: float) -> None:
        cfg = CONFIG.settlement
        self.time_scale = min(cfg.max_time_scale, max(cfg.min_time_scale, scale))

    def pause(self) -> None:
        self.paused = True

    def resume(self) -> None:
        self.paused = False

    def set_enabled(self, enabled: bool) -> None:
        self.enabled = enabled

    def reset(self) -> None:
        self.elapsed = 0.0
        self.total_ticks = 0

    def advance(self, delta_seconds: float) -> int:
        """Feed real seconds into the timer; returns how many ticks fired."""
        if delta_seconds < 0:
            raise ValueError(f"delta_seconds cannot be negative, got {delta_seconds}")
        if self.paused or not self.enabled:
            return 0

        scaled = delta_seconds * self.time_scale
        for callback in self._time_listeners:
            callback(scaled)

        self.elapsed += scaled
        fired = 0
        while self.elapsed >= self.interval:
            self.elapsed -= self.interval
            self._fire()
            fired += 1
        return fired

    def trigger_now(self) -> None:
        """Fire a tick immediately without touching the running interval."""
        self._fire()

    def _fire(self) -> None:
        self.total_ticks += 1
        logger.debug("Game tick %d", self.total_ticks)
        for callback in self._tick_listeners:
            callback()

    def remaining_seconds(self) -> int:
        return max(0, math.ceil(self.interval - self.elapsed))

    def remaining_formatted(self) -> str:
        minutes, seconds = divmod(self.remaining_seconds(), 60)
        return f"{minutes:02d}:{seconds:02d}"

    def progress(self) -> float:
        """Fraction of the current interval already elapsed (0..1)."""
        return self.elapsed / self.interval
