"""
Admin API Store Tests

Ingestion is pushed through the real FastAPI admin routes over
``httpx.ASGITransport``; the server side keeps its own FAISS store.
"""

from unittest.mock import AsyncMock

import httpx
import pytest
from pydantic import SecretStr

from blog_rag_server.main import create_app
from blog_rag_server.api.dependencies import get_vector_store
from blog_rag_server.config import settings
from blog_rag_server.embeddings.embedder import Embedder
from blog_rag_server.rag.ingest import IngestionPipeline
from blog_rag_server.vectors import AdminApiStore, FaissVectorStore, IndexedItem, ItemMetadata, RemoteStoreError

TOKEN = "test-admin-token"
DIM = 4
SERVER = "http://test"


@pytest.fixture
def server_store(tmp_path):
    return FaissVectorStore(
        index_path=str(tmp_path / "server" / "index.bin"),
        meta_path=str(tmp_path / "server" / "meta.json"),
    )


@pytest.fixture
def transport(server_store, monkeypatch):
    monkeypatch.setattr(settings, "admin_token", SecretStr(TOKEN))
    monkeypatch.setattr(settings, "embed_dim", DIM)

    app = create_app()
    app.dependency_overrides[get_vector_store] = lambda: server_store
    yield httpx.ASGITransport(app=app)
    app.dependency_overrides = {}


@pytest.fixture
def remote(transport):
    return AdminApiStore(SERVER, TOKEN, transport=transport)


def item(id, language="zh"):
    return IndexedItem(
        id=id,
        values=[1.0, 0.0, 0.0, 0.0],
        metadata=ItemMetadata(
            text=f"text {id}",
            title=id,
            source=f"{language}/blog/{id}/index.md",
            url=f"https://your-site.com/blog/{id}",
            language=language,
        ),
    )


@pytest.mark.asyncio
async def test_upsert_reaches_live_store(remote, server_store):
    assert await remote.upsert([item("a"), item("b", language="en")]) == 2

    assert server_store.count() == 2
    response = await server_store.query([1.0, 0.0, 0.0, 0.0], top_k=5, filter={"language": "en"})
    assert [m.id for m in response.matches] == ["b"]
    assert response.matches[0].metadata.text == "text b"


@pytest.mark.asyncio
async def test_delete_and_clear(remote, server_store):
    await remote.upsert([item("a"), item("b"), item("c")])

    assert await remote.delete_by_ids(["a", "missing"]) == 1
    assert await remote.clear() == 2
    assert server_store.count() == 0


@pytest.mark.asyncio
async def test_wrong_token_raises(transport):
    remote = AdminApiStore(SERVER, "wrong", transport=transport)

    with pytest.raises(RemoteStoreError):
        await remote.upsert([item("a")])


@pytest.mark.asyncio
async def test_pipeline_uploads_through_admin_api(remote, server_store, tmp_path):
    root = tmp_path / "content"
    for rel, title, body in [
        ("zh/blog/mesh/index.md", "服务网格", "服务网格是基础设施层。"),
        ("en/blog/mesh/index.md", "Service Mesh", "A mesh is infrastructure."),
        ("en/blog/only-en/index.md", "Only English", "English only post."),
    ]:
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f"---\ntitle: {title}\n---\n\n{body}\n", encoding="utf-8")

    embedder = AsyncMock(spec=Embedder)

    async def _embed(texts, batch_size=10):
        return [[1.0, 0.5, 0.0, 0.0] for _ in texts]

    embedder.embed.side_effect = _embed

    pipeline = IngestionPipeline(
        remote,
        embedder,
        content_root=root,
        base_url="https://your-site.com",
        dim=DIM,
    )
    report = await pipeline.run(full_reindex=True)

    assert report.failed == []
    assert report.failed_items == 0
    assert report.items == 2
    assert server_store.get_stats()["languages"] == {"zh": 1, "en": 1}
    assert (tmp_path / "server" / "index.bin").exists()
