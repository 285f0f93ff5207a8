from __future__ import annotations

from fastapi.testclient import TestClient

from warehouseviz.api import create_app
from warehouseviz.config import AppConfig, GeneratorCfg
from warehouseviz.session import Session


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _client(fill: float = 1.0) -> tuple[TestClient, Session, _Clock]:
    clock = _Clock()
    g = GeneratorCfg(racks=2, columns_per_rack=2, layers_per_column=2, bins_per_layer=2, fill_probability=fill)
    session = Session(AppConfig(seed=4, generator=g), clock=clock)
    return TestClient(create_app(session)), session, clock


def test_health_and_warehouse() -> None:
    client, session, _ = _client()
    assert client.get("/health").json() == {"status": "healthy"}
    body = client.get("/api/warehouse").json()
    assert body["bin_count"] == 16
    assert body["full_count"] == 16
    assert len(body["racks"]) == 2


def test_scene_lists_objects() -> None:
    client, session, _ = _client()
    body = client.get("/api/scene").json()
    assert len(body["objects"]) == len(session.objects)
    assert body["can_animate"] is True
    assert body["issues"] == []
    digest = client.get("/api/scene/digest").json()
    assert digest["summary"]["pallets"] == 16


def test_animation_flow() -> None:
    client, session, clock = _client()
    r = client.post("/api/animations").json()
    assert r["started"] is True
    anim = r["animation"]
    assert anim["totalDuration"] == 18000.0
    assert len(anim["segments"]) == 4

    clock.now = 18000.0
    listed = client.get("/api/animations").json()["animations"]
    assert len(listed) == 1
    assert listed[0]["finished"] is True
    assert listed[0]["position"] == anim["segments"][-1]["endPosition"]

    one = client.get(f"/api/animations/{anim['id']}").json()
    assert one["palletId"] == anim["palletId"]

    clock.now = 18500.0
    assert client.get("/api/animations").json()["animations"] == []
    assert client.get(f"/api/animations/{anim['id']}").status_code == 404


def test_start_without_full_bins_is_not_an_error() -> None:
    client, _, _ = _client(fill=0.0)
    r = client.post("/api/animations")
    assert r.status_code == 200
    assert r.json()["started"] is False
    assert client.get("/api/scene").json()["can_animate"] is False


def test_clear_and_regenerate() -> None:
    client, session, _ = _client()
    client.post("/api/animations")
    cleared = client.post("/api/scene/clear").json()
    assert cleared["objects"] == []
    assert cleared["can_animate"] is False
    assert client.get("/api/animations").json()["animations"] == []

    regen = client.post("/api/warehouse/regenerate").json()
    assert len(regen["objects"]) > 0
    assert regen["can_animate"] is True


def test_search_select_and_details() -> None:
    client, session, _ = _client()
    target = session.warehouse.full_bins()[3]
    assert client.post("/api/search", json={"term": target.id}).json()["selected_id"] == target.id
    assert client.post("/api/search", json={"term": "zzz-no-match"}).json()["selected_id"] is None

    assert client.post("/api/select", json={"pallet_id": target.id}).json()["selected_id"] == target.id
    assert client.post("/api/select", json={"pallet_id": "missing"}).status_code == 404

    details = client.get(f"/api/pallets/{target.id}").json()
    assert details["item"] == target.item
    assert details["animating"] is False
    assert client.get("/api/pallets/conveyor-belt-last").status_code == 404


def test_add_object() -> None:
    client, session, _ = _client()
    body = client.post("/api/scene/objects", json={"type": "torus", "color": "#123456",
                                                   "position": [1, 2, 3]}).json()
    assert body["type"] == "torus"
    assert body["position"] == [1.0, 2.0, 3.0]
    assert session.objects[-1].id == body["id"]
    assert client.post("/api/scene/objects", json={"position": [1, 2]}).status_code == 422
    assert client.post("/api/scene/objects", json={"type": "cone"}).status_code == 422


def test_suggestions() -> None:
    client, session, _ = _client()
    ok = client.post("/api/suggestions", json={"prompt": "a tidy warehouse aisle"}).json()
    assert ok["success"] is True
    assert ok["data"]["suggested_objects"]

    failed = client.post("/api/suggestions", json={"prompt": "this will error out"}).json()
    assert failed["success"] is False

    assert client.post("/api/suggestions", json={"prompt": "short"}).status_code == 422

    before = len(session.objects)
    added = client.post("/api/suggestions/accept", json={"suggestion": "glowing orb"}).json()
    assert added["type"] == "box"
    assert len(session.objects) == before + 1
