from __future__ import annotations

import pytest

from warehouseviz.driver import AnimationDriver
from warehouseviz.model import AnimationSegment, AnimationState


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _state(anim_id: str, pallet_id: str, duration: float = 1000.0) -> AnimationState:
    seg = AnimationSegment(duration_ms=duration, start=(0.0, 0.0, 0.0), end=(4.0, 0.0, 0.0))
    return AnimationState(id=anim_id, pallet_id=pallet_id, segments=[seg], total_duration_ms=duration)


def test_tick_reports_time_based_positions() -> None:
    clock = _Clock()
    driver = AnimationDriver(clock=clock)
    driver.start(_state("a1", "p1"))
    clock.now = 250.0
    assert driver.tick() == {"p1": pytest.approx((1.0, 0.0, 0.0))}
    clock.now = 1000.0
    assert driver.tick() == {"p1": (4.0, 0.0, 0.0)}


def test_expiry_after_total_plus_grace() -> None:
    clock = _Clock()
    driver = AnimationDriver(clock=clock, grace_ms=500.0)
    driver.start(_state("a1", "p1"))

    clock.now = 1200.0
    assert driver.is_finished("a1")
    assert driver.tick() == {"p1": (4.0, 0.0, 0.0)}
    assert len(driver) == 1

    clock.now = 1500.0
    assert driver.tick() == {}
    assert len(driver) == 0
    assert driver.animating_pallet_ids() == set()


def test_independent_animations() -> None:
    clock = _Clock()
    driver = AnimationDriver(clock=clock, grace_ms=0.0)
    driver.start(_state("a1", "p1", duration=1000.0))
    clock.now = 800.0
    driver.start(_state("a2", "p2", duration=1000.0))

    clock.now = 1000.0
    positions = driver.tick()
    assert set(positions) == {"p2"}
    assert positions["p2"] == pytest.approx((0.8, 0.0, 0.0))
    assert [s.id for s in driver.active_states()] == ["a2"]


def test_at_most_one_animation_per_pallet() -> None:
    driver = AnimationDriver(clock=_Clock())
    driver.start(_state("a1", "p1"))
    with pytest.raises(ValueError):
        driver.start(_state("a2", "p1"))
    with pytest.raises(ValueError):
        driver.start(_state("a1", "p9"))


def test_clear_cancels_everything() -> None:
    driver = AnimationDriver(clock=_Clock())
    driver.start(_state("a1", "p1"))
    driver.start(_state("a2", "p2"))
    driver.clear()
    assert driver.active_states() == []
    assert driver.tick() == {}


def test_unknown_animation_counts_as_finished() -> None:
    driver = AnimationDriver(clock=_Clock())
    assert driver.get("nope") is None
    assert driver.is_finished("nope")
