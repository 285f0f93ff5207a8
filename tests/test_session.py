from __future__ import annotations

import pytest

from warehouseviz.config import AppConfig, GeneratorCfg
from warehouseviz.model import ObjectKind
from warehouseviz.session import Session
from warehouseviz.suggest import PlaceholderSuggestionService


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _session(fill: float = 0.5, seed: int = 3, **gen) -> tuple[Session, _Clock]:
    clock = _Clock()
    g = GeneratorCfg(racks=gen.get("racks", 4), columns_per_rack=2, layers_per_column=2,
                     bins_per_layer=2, fill_probability=fill)
    return Session(AppConfig(seed=seed, generator=g), clock=clock), clock


def test_seeded_sessions_match() -> None:
    a, _ = _session(seed=10)
    b, _ = _session(seed=10)
    assert a.warehouse.to_dict() == b.warehouse.to_dict()
    assert [o.id for o in a.objects] == [o.id for o in b.objects]


def test_start_animation_marks_pallet_busy() -> None:
    s, clock = _session(fill=1.0)
    state = s.start_animation()
    assert state is not None
    assert state.pallet_id in s.driver.animating_pallet_ids()
    assert s.pallet_details(state.pallet_id)["animating"] is True
    clock.now = state.total_duration_ms + s.cfg.motion.grace_ms
    s.tick()
    assert s.pallet_details(state.pallet_id)["animating"] is False


def test_every_pallet_animating_disables_affordance() -> None:
    s, _ = _session(fill=1.0, racks=1)
    for _ in range(len(s.warehouse.full_bins())):
        assert s.start_animation() is not None
    assert not s.can_animate()
    assert s.start_animation() is None


def test_zero_full_bins_disables_animation() -> None:
    s, _ = _session(fill=0.0)
    assert not s.can_animate()
    assert s.start_animation() is None


def test_clear_while_animating() -> None:
    s, clock = _session(fill=1.0)
    s.start_animation()
    s.start_animation()
    clock.now = 1000.0
    s.clear_scene()
    assert s.objects == []
    assert s.driver.active_states() == []
    assert s.tick() == {}
    assert not s.can_animate()


def test_regenerate_drops_animations_and_selection() -> None:
    s, _ = _session(fill=1.0)
    state = s.start_animation()
    s.select(state.pallet_id)
    old = {b.id for b in s.warehouse.iter_bins()}
    s.regenerate()
    assert s.driver.active_states() == []
    assert s.selected_id is None
    assert old.isdisjoint(b.id for b in s.warehouse.iter_bins())


def test_search_selects_first_match_or_none() -> None:
    s, _ = _session(fill=1.0)
    first = s.warehouse.full_bins()[0]
    assert s.search(first.id[:8].upper()) == first.id
    assert s.selected_id == first.id
    assert s.search("definitely-not-here") is None
    assert s.selected_id is None


def test_select_rejects_unknown_ids() -> None:
    s, _ = _session()
    with pytest.raises(KeyError):
        s.select("missing")
    assert s.select(None) is None


def test_add_object_and_accept_suggestion() -> None:
    s, _ = _session()
    before = len(s.objects)
    sphere = s.add_object(kind=ObjectKind.SPHERE, color="#00ff00", position=(1.0, 2.0, 3.0))
    assert sphere.id.startswith("object-")
    assert sphere.position == (1.0, 2.0, 3.0)
    box = s.accept_suggestion("glowing orb")
    assert box.kind is ObjectKind.BOX
    assert box.color == s.cfg.viewer.default_object_color
    assert len(s.objects) == before + 2


def test_failed_suggestion_leaves_scene_untouched() -> None:
    s, _ = _session()
    before = list(s.objects)
    res = s.suggest(PlaceholderSuggestionService(), "please raise an error now")
    assert not res.success
    assert s.objects == before


def test_pallet_details_for_non_pallet() -> None:
    s, _ = _session()
    assert s.pallet_details("conveyor-belt-last") is None
    assert s.pallet_details("missing") is None
