import pytest
from fastapi.testclient import TestClient
from pydantic import SecretStr

from blog_rag_server.main import create_app
from blog_rag_server.api.dependencies import get_title_dictionary, get_vector_store
from blog_rag_server.config import settings
from blog_rag_server.rag.titles import TitleDictionary
from blog_rag_server.vectors import FaissVectorStore

TOKEN = "test-admin-token"
DIM = 4


@pytest.fixture
def store(tmp_path):
    return FaissVectorStore(
        index_path=str(tmp_path / "index.bin"),
        meta_path=str(tmp_path / "meta.json"),
    )


@pytest.fixture
def client(store, monkeypatch):
    monkeypatch.setattr(settings, "admin_token", SecretStr(TOKEN))
    monkeypatch.setattr(settings, "embed_dim", DIM)

    app = create_app()
    app.dependency_overrides[get_vector_store] = lambda: store
    app.dependency_overrides[get_title_dictionary] = lambda: TitleDictionary({"a": "b"})

    yield TestClient(app)

    app.dependency_overrides = {}


def auth(token=TOKEN):
    return {"Authorization": f"Bearer {token}"}


def upsert_payload(*ids, dim=DIM):
    return {
        "items": [
            {
                "id": item_id,
                "vector": [1.0] + [0.0] * (dim - 1),
                "text": f"text {item_id}",
                "url": f"https://your-site.com/blog/{item_id}",
                "language": "zh",
            }
            for item_id in ids
        ]
    }


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {
        "status": "ok",
        "provider": settings.provider,
        "vectors": 0,
        "title_translations": 1,
    }


def test_admin_requires_token(client):
    assert client.post("/admin/upsert", json=upsert_payload("a")).status_code == 401
    assert client.post("/admin/upsert", json=upsert_payload("a"), headers=auth("wrong")).status_code == 401
    assert client.request("DELETE", "/admin/clear-all").status_code == 401


def test_admin_token_not_configured(client, monkeypatch):
    monkeypatch.setattr(settings, "admin_token", SecretStr(""))
    resp = client.post("/admin/upsert", json=upsert_payload("a"), headers=auth())
    assert resp.status_code == 500


def test_upsert(client, store):
    resp = client.post("/admin/upsert", json=upsert_payload("a", "b"), headers=auth())

    assert resp.status_code == 200
    assert resp.json() == {"ok": True, "count": 2}
    assert store.count() == 2


def test_upsert_rejects_wrong_dimension(client, store):
    resp = client.post("/admin/upsert", json=upsert_payload("a", dim=DIM + 1), headers=auth())

    assert resp.status_code == 400
    assert resp.json()["detail"] == f"Invalid vector dimension: expected {DIM}, got {DIM + 1}"
    assert store.count() == 0


def test_upsert_rejects_empty_batch(client):
    resp = client.post("/admin/upsert", json={"items": []}, headers=auth())
    assert resp.status_code == 422


def test_delete(client, store):
    client.post("/admin/upsert", json=upsert_payload("a", "b"), headers=auth())

    resp = client.request("DELETE", "/admin/delete", json={"ids": ["a", "zzz"]}, headers=auth())

    assert resp.status_code == 200
    assert resp.json() == {"ok": True, "count": 1}
    assert store.count() == 1


def test_clear_all(client, store):
    client.post("/admin/upsert", json=upsert_payload("a", "b", "c"), headers=auth())

    resp = client.request("DELETE", "/admin/clear-all", headers=auth())

    assert resp.status_code == 200
    assert resp.json() == {"ok": True, "totalDeleted": 3}
    assert store.count() == 0
