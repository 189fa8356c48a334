"""Integration tests for the FastAPI routes."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from flexol.config_loader import AppConfig
from flexol.errors import DataUnavailable
from flexol.layout_store import LayoutStore
from flexol.models import ItemKind
from main import create_app
from tests.helpers import make_item, make_payload


@pytest.fixture
def adapter():
    async def resolve(token, kind, owner=None):
        if token == "missing":
            raise DataUnavailable(token, "No market pair found")
        return make_payload(token=token)

    adapter = MagicMock()
    adapter.resolve = AsyncMock(side_effect=resolve)
    adapter.close = AsyncMock()
    return adapter


@pytest.fixture
def store(tmp_path):
    return LayoutStore(tmp_path / "layout.json")


@pytest.fixture
def app(store, adapter):
    return create_app(AppConfig(), layout_store=store, adapter=adapter)


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


def submit(client, kind="wl", token="TokenMint111", owner=None):
    assert client.post("/api/form/open", json={"kind": kind, "owner": owner}).status_code == 200
    return client.post("/api/form/submit", json={"token_address": token, "owner": owner})


def test_health(client):
    assert client.get("/api/health").json() == {"status": "ok"}


def test_submit_places_items_in_row_major_order(client):
    for token in ("A", "B", "C"):
        assert submit(client, token=token).status_code == 200

    items = client.get("/api/items").json()
    assert [(i["id"], i["x"], i["y"]) for i in items] == [(1, 0, 0), (2, 150, 0), (3, 300, 0)]
    assert items[0]["payload"]["token_address"] == "A"
    assert client.get("/api/board").json()["status"] == "idle"


def test_submit_failure_adds_nothing(client):
    resp = submit(client, token="missing")
    assert resp.status_code == 200
    assert resp.json()["item"] is None
    assert client.get("/api/items").json() == []


def test_submit_while_idle_conflicts(client):
    resp = client.post("/api/form/submit", json={"token_address": "TokenMint111"})
    assert resp.status_code == 409


def test_open_identity_bound_form_without_owner(client):
    resp = client.post("/api/form/open", json={"kind": "tc"})
    assert resp.status_code == 400

    board = client.get("/api/board").json()
    assert board["status"] == "idle"
    assert [n["message"] for n in board["notices"]] == ["No wallet connected"]


def test_submit_with_owner_passes_identity_to_adapter(client, adapter):
    assert submit(client, kind="pnl", owner="Wallet1").status_code == 200
    adapter.resolve.assert_awaited_once_with("TokenMint111", ItemKind.PROFIT_AND_LOSS, "Wallet1")


def test_submit_identity_bound_form_without_owner(client, adapter):
    assert client.post("/api/form/open", json={"kind": "tc", "owner": "Wallet1"}).status_code == 200

    resp = client.post("/api/form/submit", json={"token_address": "TokenMint111"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "No wallet connected"

    board = client.get("/api/board").json()
    assert board["status"] == "form_open"
    assert [n["message"] for n in board["notices"]] == ["No wallet connected"]
    assert client.get("/api/items", params={"include_pending": True}).json() == []
    adapter.resolve.assert_not_awaited()


def test_create_item_returns_reservation(app, adapter):
    with TestClient(app) as client:
        resp = client.post("/api/items", json={"kind": "wl", "token_address": " TokenMint111 "})
        assert resp.status_code == 200
        assert resp.json() == {"item_id": 1, "x": 0, "y": 0}

    # 关闭时会等待后台解析完成
    items = app.state.manager.list_items()
    assert [(i.id, i.payload.token_address) for i in items] == [(1, "TokenMint111")]


def test_create_item_validation(client):
    assert client.post("/api/items", json={"kind": "wl", "token_address": "  "}).status_code == 400
    assert client.post("/api/items", json={"kind": "tc", "token_address": "T"}).status_code == 400
    assert client.post("/api/items", json={"kind": "xx", "token_address": "T"}).status_code == 422


def test_move_accept_reject_and_not_found(client):
    submit(client, token="A")
    submit(client, token="B")

    rejected = client.post("/api/items/2/move", json={"dx": -150, "dy": 10})
    assert rejected.status_code == 200
    assert rejected.json()["status"] == "rejected"

    accepted = client.post("/api/items/2/move", json={"dx": 160, "dy": 140})
    assert accepted.json() == {"item_id": 2, "status": "accepted", "x": 300, "y": 150}

    assert client.post("/api/items/99/move", json={"dx": 0, "dy": 0}).status_code == 404

    items = client.get("/api/items").json()
    assert [(i["x"], i["y"]) for i in items] == [(0, 0), (300, 150)]


def test_move_clamps_to_reported_container_width(client):
    submit(client)
    resp = client.post("/api/items/1/move", json={"dx": 5000, "dy": 0, "container_width": 300})
    assert resp.json()["x"] == 150

    # 宽度已更新，后续移动沿用
    resp = client.post("/api/items/1/move", json={"dx": 5000, "dy": 0})
    assert resp.json()["x"] == 150


@pytest.mark.parametrize("width", [0, -50])
def test_move_rejects_non_positive_container_width(client, width):
    submit(client)
    client.post("/api/items/1/move", json={"dx": 300, "dy": 0})

    resp = client.post("/api/items/1/move", json={"dx": 0, "dy": 0, "container_width": width})
    assert resp.status_code == 400

    # 视口宽度保持不变
    assert client.post("/api/items/1/move", json={"dx": 5000, "dy": 0}).json()["x"] == 750


def test_update_viewport(client):
    assert client.put("/api/viewport", json={"width": 450}).json() == {"width": 450}
    assert client.put("/api/viewport", json={"width": 0}).status_code == 400

    submit(client)
    assert client.post("/api/items/1/move", json={"dx": 5000, "dy": 0}).json()["x"] == 300


def test_layout_is_persisted_and_restored(tmp_path, adapter):
    store = LayoutStore(tmp_path / "layout.json")
    app = create_app(AppConfig(), layout_store=store, adapter=adapter)
    with TestClient(app) as client:
        submit(client, token="A")
        client.post("/api/items/1/move", json={"dx": 300, "dy": 0})

    store = LayoutStore(tmp_path / "layout.json")
    restored_app = create_app(AppConfig(), layout_store=store, adapter=adapter)
    with TestClient(restored_app) as client:
        items = client.get("/api/items").json()
        assert [(i["id"], i["x"]) for i in items] == [(1, 300)]
        assert client.post("/api/items", json={"kind": "wl", "token_address": "B"}).json()["item_id"] == 2


def test_restore_skips_pending_records(tmp_path, adapter):
    store = LayoutStore(tmp_path / "layout.json")
    store.save_items([make_item(1, 0, 0), make_item(2, 1, 0, pending=True)])

    app = create_app(AppConfig(), layout_store=store, adapter=adapter)
    with TestClient(app) as client:
        assert [i["id"] for i in client.get("/api/items").json()] == [1]
