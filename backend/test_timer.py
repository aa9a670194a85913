"""
Unit tests for GameTimer
"""

import pytest

from config import CONFIG
from timer import GameTimer


@pytest.fixture
def timer():
    timer = GameTimer()
    timer.ticks = []
    timer.add_tick_listener(lambda: timer.ticks.append(timer.total_ticks))
    return timer


class TestGameTimer:
    """Interval accumulation and controls"""

    def test_default_interval(self):
        assert GameTimer().interval == CONFIG.settlement.tick_interval_seconds
        assert GameTimer(debug_mode=True).interval == CONFIG.settlement.debug_tick_interval_seconds

    def test_fires_once_per_interval(self, timer):
        assert timer.advance(299.0) == 0
        assert timer.advance(1.0) == 1
        assert timer.ticks == [1]

    def test_remainder_carries_over(self, timer):
        assert timer.advance(750.0) == 2
        assert timer.elapsed == pytest.approx(150.0)
        assert timer.remaining_seconds() == 150
        assert timer.remaining_formatted() == "02:30"
        assert timer.progress() == pytest.approx(0.5)

    def test_time_scale_is_clamped(self, timer):
        timer.set_time_scale(50.0)
        assert timer.time_scale == 10.0
        timer.set_time_scale(0.1)
        assert timer.time_scale == 1.0

    def test_scaled_time_reaches_listeners(self, timer):
        seen = []
        timer.add_time_listener(seen.append)
        timer.set_time_scale(10.0)

        assert timer.advance(30.0) == 1
        assert seen == [300.0]

    def test_pause_and_disable(self, timer):
        timer.pause()
        assert timer.advance(1000.0) == 0
        timer.resume()
        timer.set_enabled(False)
        assert timer.advance(1000.0) == 0
        timer.set_enabled(True)
        assert timer.advance(300.0) == 1

    def test_trigger_now_keeps_interval(self, timer):
        timer.advance(100.0)

        timer.trigger_now()

        assert timer.ticks == [1]
        assert timer.elapsed == pytest.approx(100.0)

    def test_reset(self, timer):
        timer.advance(400.0)

        timer.reset()

        assert timer.total_ticks == 0
        assert timer.elapsed == 0.0

    def test_negative_delta_rejected(self, timer):
        with pytest.raises(ValueError, match="cannot be negative"):
            timer.advance(-1.0)

    def test_non_positive_interval_rejected(self):
        with pytest.raises(ValueError, match="interval"):
            GameTimer(interval=0.0)
