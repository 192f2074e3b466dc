"""
Retrieval Engine Tests

Covers the filtered-query / fallback state machine, language post-filtering,
English source reconciliation via the title dictionary, and source dedup.
"""

import asyncio
import time
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from blog_rag_server.core.errors import FallbackQueryFailure
from blog_rag_server.rag.retriever import (
    FallbackReason,
    FilteredOk,
    NeedsFallback,
    RetrievalEngine,
    convert_url_for_language,
    has_english_marker,
)
from blog_rag_server.rag.titles import TitleDictionary
from blog_rag_server.vectors import FaissVectorStore, IndexedItem
from blog_rag_server.vectors.models import ItemMetadata, QueryResponse, VectorMatch

SITE = "https://your-site.com"
VECTOR = [0.1, 0.2, 0.3]


def match(id, url, title="标题", text="内容", score=0.9, language=None):
    return VectorMatch(
        id=id,
        score=score,
        metadata=ItemMetadata(text=text, title=title, source=f"{id}.md", url=url, language=language),
    )


def response(*matches):
    return QueryResponse(matches=list(matches))


@pytest.fixture
def store():
    return AsyncMock()


@pytest.fixture
def titles():
    return TitleDictionary({"服务网格": "Service Mesh"})


@pytest.fixture
def engine(store, titles):
    return RetrievalEngine(store, titles, filter_timeout=0.05)


# ---------------------------------------------------------------------
# URL helpers
# ---------------------------------------------------------------------

class TestUrlHelpers:

    def test_english_marker_detection(self):
        assert has_english_marker(f"{SITE}/en/blog/p")
        assert has_english_marker(f"{SITE}/en")
        assert not has_english_marker(f"{SITE}/blog/p")
        assert not has_english_marker(f"{SITE}/english/p")

    def test_convert_to_english(self):
        assert convert_url_for_language(f"{SITE}/blog/p", "en") == f"{SITE}/en/blog/p"
        assert convert_url_for_language(f"{SITE}/zh/blog/p", "en") == f"{SITE}/en/blog/p"

    def test_convert_to_chinese(self):
        assert convert_url_for_language(f"{SITE}/en/blog/p", "zh") == f"{SITE}/blog/p"

    def test_convert_placeholder_unchanged(self):
        assert convert_url_for_language("#", "en") == "#"
        assert convert_url_for_language("", "en") == ""


# ---------------------------------------------------------------------
# Filtered query / fallback
# ---------------------------------------------------------------------

class TestFilteredQuery:

    @pytest.mark.asyncio
    async def test_success_returns_filtered_ok(self, engine, store):
        store.query.return_value = response(match("a", f"{SITE}/blog/a"))

        outcome = await engine.filtered_query(VECTOR, 5, "zh")

        assert isinstance(outcome, FilteredOk)
        store.query.assert_awaited_once_with(
            VECTOR, top_k=5, filter={"language": "zh"}, return_metadata=True
        )

    @pytest.mark.asyncio
    async def test_empty_needs_fallback(self, engine, store):
        store.query.return_value = response()
        outcome = await engine.filtered_query(VECTOR, 5, "zh")
        assert isinstance(outcome, NeedsFallback)
        assert outcome.reason is FallbackReason.EMPTY

    @pytest.mark.asyncio
    async def test_failure_needs_fallback(self, engine, store):
        store.query.side_effect = RuntimeError("metadata index missing")
        outcome = await engine.filtered_query(VECTOR, 5, "en")
        assert isinstance(outcome, NeedsFallback)
        assert outcome.reason is FallbackReason.FAILURE

    @pytest.mark.asyncio
    async def test_timeout_needs_fallback(self, engine, store):
        async def slow(*args, **kwargs):
            await asyncio.sleep(1)
            return response(match("a", f"{SITE}/blog/a"))

        store.query.side_effect = slow
        outcome = await engine.filtered_query(VECTOR, 5, "zh")
        assert isinstance(outcome, NeedsFallback)
        assert outcome.reason is FallbackReason.TIMEOUT


class TestRetrieveFlow:

    @pytest.mark.asyncio
    async def test_filtered_hit_skips_fallback(self, engine, store):
        store.query.return_value = response(match("a", f"{SITE}/blog/a", title="A"))

        result = await engine.retrieve(VECTOR, k=5, language="zh")

        assert result.used_fallback is False
        assert store.query.await_count == 1
        assert result.contexts == "内容"
        assert [s.url for s in result.sources] == [f"{SITE}/blog/a"]

    @pytest.mark.asyncio
    async def test_empty_filtered_result_falls_back_once(self, engine, store):
        store.query.side_effect = [
            response(),
            response(match("a", f"{SITE}/blog/a")),
        ]

        result = await engine.retrieve(VECTOR, k=7, language="zh")

        assert result.used_fallback is True
        assert store.query.await_count == 2
        second = store.query.await_args_list[1]
        assert second.kwargs["top_k"] == 7
        assert second.kwargs.get("filter") is None

    @pytest.mark.asyncio
    async def test_filtered_failure_falls_back(self, engine, store):
        store.query.side_effect = [
            RuntimeError("boom"),
            response(match("a", f"{SITE}/blog/a")),
        ]

        result = await engine.retrieve(VECTOR, language="zh")

        assert result.used_fallback is True
        assert store.query.await_count == 2
        assert len(result.sources) == 1

    @pytest.mark.asyncio
    async def test_fallback_failure_is_fatal(self, engine, store):
        store.query.side_effect = [RuntimeError("boom"), RuntimeError("still down")]

        with pytest.raises(FallbackQueryFailure):
            await engine.retrieve(VECTOR, language="zh")

        assert store.query.await_count == 2

    @pytest.mark.asyncio
    async def test_no_matches_anywhere(self, engine, store):
        store.query.side_effect = [response(), response()]

        result = await engine.retrieve(VECTOR, language="en")

        assert result.contexts == ""
        assert result.sources == []
        assert result.used_fallback is True

    @pytest.mark.asyncio
    async def test_matches_without_text_yield_empty_result(self, engine, store):
        store.query.return_value = response(
            match("a", f"{SITE}/blog/a", text=None),
            VectorMatch(id="b", score=0.5, metadata=None),
        )

        result = await engine.retrieve(VECTOR, language="zh")

        assert result.contexts == ""
        assert result.sources == []
        assert len(result.matches) == 2

    @pytest.mark.asyncio
    async def test_contexts_join_retained_texts_in_order(self, engine, store):
        store.query.return_value = response(
            match("a", f"{SITE}/blog/a", text="第一段"),
            match("b", f"{SITE}/blog/b", text=None),
            match("c", f"{SITE}/blog/c", text="第三段"),
        )

        result = await engine.retrieve(VECTOR, language="zh")

        assert result.contexts == "第一段\n---\n第三段"


# ---------------------------------------------------------------------
# Language reconciliation
# ---------------------------------------------------------------------

class TestLanguageReconciliation:

    @pytest.mark.asyncio
    async def test_chinese_request_drops_english_matches_on_fallback(self, engine, store):
        store.query.side_effect = [
            response(),
            response(
                match("en-1", f"{SITE}/en/blog/p", text="english"),
                match("zh-1", f"{SITE}/blog/p", text="中文"),
            ),
        ]

        result = await engine.retrieve(VECTOR, language="zh")

        assert [s.id for s in result.sources] == ["zh-1"]
        assert result.contexts == "中文"

    @pytest.mark.asyncio
    async def test_english_request_keeps_only_english_when_present(self, engine, store):
        store.query.side_effect = [
            response(),
            response(
                match("zh-1", f"{SITE}/blog/p", title="服务网格", text="中文"),
                match("en-1", f"{SITE}/en/blog/p", title="Service Mesh", text="english"),
            ),
        ]

        result = await engine.retrieve(VECTOR, language="en")

        assert [s.id for s in result.sources] == ["en-1"]
        assert result.contexts == "english"

    @pytest.mark.asyncio
    async def test_english_request_without_translation_has_no_sources(self, engine, store):
        store.query.side_effect = [
            response(),
            response(match("zh-1", f"{SITE}/blog/q", title="未翻译", text="中文内容")),
        ]

        result = await engine.retrieve(VECTOR, language="en")

        assert result.sources == []
        assert result.contexts == "中文内容"

    @pytest.mark.asyncio
    async def test_english_request_translates_chinese_source(self, engine, store):
        store.query.side_effect = [
            response(),
            response(match("zh-1", f"{SITE}/blog/p", title="服务网格", text="中文内容")),
        ]

        result = await engine.retrieve(VECTOR, language="en")

        assert len(result.sources) == 1
        source = result.sources[0]
        assert source.title == "Service Mesh"
        assert source.url == f"{SITE}/en/blog/p"

    def test_post_filter_chinese_rule(self, engine):
        matches = [match("en-1", f"{SITE}/en/blog/p"), match("zh-1", f"{SITE}/blog/p")]
        assert [m.id for m in engine.post_filter(matches, "zh")] == ["zh-1"]


# ---------------------------------------------------------------------
# Dedup
# ---------------------------------------------------------------------

class TestSourceDedup:

    @pytest.mark.asyncio
    async def test_first_occurrence_wins(self, engine, store):
        store.query.return_value = response(
            match("a-0", f"{SITE}/blog/a", title="First", score=0.9),
            match("a-1", f"{SITE}/blog/a", title="Second", score=0.8),
            match("b-0", f"{SITE}/blog/b", title="B", score=0.7),
        )

        result = await engine.retrieve(VECTOR, language="zh")

        assert [s.id for s in result.sources] == ["a-0", "b-0"]
        assert result.sources[0].title == "First"

    @pytest.mark.asyncio
    async def test_placeholder_urls_are_removed(self, engine, store):
        store.query.return_value = response(
            match("a", None),
            match("b", "#"),
            match("c", f"{SITE}/blog/c"),
        )

        result = await engine.retrieve(VECTOR, language="zh")

        assert [s.url for s in result.sources] == [f"{SITE}/blog/c"]
        assert "#" not in [s.url for s in result.sources]

    @pytest.mark.asyncio
    async def test_title_falls_back_to_source_then_id(self, engine, store):
        store.query.return_value = response(
            VectorMatch(
                id="x-0",
                score=0.9,
                metadata=ItemMetadata(text="t", source="zh/blog/x/index.md", url=f"{SITE}/blog/x"),
            ),
            VectorMatch(
                id="y-0",
                score=0.8,
                metadata=ItemMetadata(text="t", url=f"{SITE}/blog/y"),
            ),
        )

        result = await engine.retrieve(VECTOR, language="zh")

        assert [s.title for s in result.sources] == ["zh/blog/x/index.md", "y-0"]


# ---------------------------------------------------------------------
# Timeout race against the FAISS store
# ---------------------------------------------------------------------

class SlowFilteredStore(FaissVectorStore):
    """FAISS store whose language-filtered searches block for ``delay`` seconds."""

    def __init__(self, *args, delay=0.3, **kwargs):
        super().__init__(*args, **kwargs)
        self.delay = delay

    def _query_sync(self, vector, top_k, filter, return_metadata):
        if filter:
            time.sleep(self.delay)
        return super()._query_sync(vector, top_k, filter, return_metadata)


class TestFaissTimeoutRace:

    @pytest_asyncio.fixture
    async def slow_store(self, tmp_path):
        store = SlowFilteredStore(
            index_path=str(tmp_path / "index.bin"),
            meta_path=str(tmp_path / "meta.json"),
        )
        await store.upsert([
            IndexedItem(
                id="zh-0",
                values=[1.0, 0.0],
                metadata=ItemMetadata(text="中文", title="标题", url=f"{SITE}/blog/p", language="zh"),
            ),
        ])
        return store

    @pytest.mark.asyncio
    async def test_blocking_filtered_search_falls_back(self, slow_store, titles):
        engine = RetrievalEngine(slow_store, titles, filter_timeout=0.05)

        result = await engine.retrieve([1.0, 0.0], k=5, language="zh")

        assert result.used_fallback is True
        assert [s.id for s in result.sources] == ["zh-0"]

    @pytest.mark.asyncio
    async def test_filtered_outcome_reports_timeout(self, slow_store, titles):
        engine = RetrievalEngine(slow_store, titles, filter_timeout=0.05)

        outcome = await engine.filtered_query([1.0, 0.0], 5, "zh")

        assert isinstance(outcome, NeedsFallback)
        assert outcome.reason is FallbackReason.TIMEOUT

    @pytest.mark.asyncio
    async def test_slow_search_does_not_block_event_loop(self, slow_store):
        ticks = 0

        async def ticker():
            nonlocal ticks
            while True:
                await asyncio.sleep(0.01)
                ticks += 1

        task = asyncio.create_task(ticker())
        try:
            await slow_store.query([1.0, 0.0], top_k=1, filter={"language": "zh"})
        finally:
            task.cancel()

        assert ticks >= 5
