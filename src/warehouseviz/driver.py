from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional
import time

from .model import AnimationState, Vec3
from .motion import position_at

DEFAULT_GRACE_MS = 500.0


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


@dataclass
class ActiveAnimation:
    state: AnimationState
    started_ms: float

    def age_ms(self, now_ms: float) -> float:
        return max(0.0, now_ms - self.started_ms)


class AnimationDriver:
    """Owns the set of running pallet animations, keyed by animation id.

    Positions are a function of elapsed clock time, never of frame count. An
    animation stays registered for grace_ms after its last segment ends, then
    tick() drops it.
    """

    def __init__(self, clock: Callable[[], float] = monotonic_ms, grace_ms: float = DEFAULT_GRACE_MS):
        self.clock = clock
        self.grace_ms = float(grace_ms)
        self._active: Dict[str, ActiveAnimation] = {}

    def __len__(self) -> int:
        return len(self._active)

    def start(self, state: AnimationState) -> ActiveAnimation:
        if state.id in self._active:
            raise ValueError(f"animation {state.id} already running")
        if state.pallet_id in self.animating_pallet_ids():
            raise ValueError(f"pallet {state.pallet_id} is already animating")
        entry = ActiveAnimation(state=state, started_ms=self.clock())
        self._active[state.id] = entry
        return entry

    def get(self, anim_id: str) -> Optional[ActiveAnimation]:
        return self._active.get(anim_id)

    def active_states(self) -> List[AnimationState]:
        return [a.state for a in self._active.values()]

    def animating_pallet_ids(self) -> set[str]:
        return {a.state.pallet_id for a in self._active.values()}

    def is_finished(self, anim_id: str, now_ms: Optional[float] = None) -> bool:
        """True once the clip has played out, including during the grace window."""
        entry = self._active.get(anim_id)
        if entry is None:
            return True
        now = self.clock() if now_ms is None else now_ms
        return entry.age_ms(now) >= entry.state.total_duration_ms

    def retire_expired(self, now_ms: Optional[float] = None) -> List[AnimationState]:
        now = self.clock() if now_ms is None else now_ms
        expired = [aid for aid, a in self._active.items()
                   if a.age_ms(now) >= a.state.total_duration_ms + self.grace_ms]
        return [self._active.pop(aid).state for aid in expired]

    def tick(self, now_ms: Optional[float] = None) -> Dict[str, Vec3]:
        """Retire expired animations and return pallet_id -> current position."""
        now = self.clock() if now_ms is None else now_ms
        self.retire_expired(now)
        return {a.state.pallet_id: position_at(a.state, a.age_ms(now)) for a in self._active.values()}

    def clear(self) -> None:
        self._active.clear()
