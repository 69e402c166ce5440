"""Tests for the article chat pipeline (retrieval, identity, persistence)."""

import asyncio
from datetime import timedelta

import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel
from langchain_core.messages import SystemMessage
from langchain_core.runnables import RunnableLambda

from articlechat.configs.system import PromptConfig, StreamConfig
from articlechat.core.chat.events import CompleteEvent, ErrorEvent
from articlechat.core.chat.exceptions import UpstreamCompletionError
from articlechat.core.chat.models import ArticleContext, ChatTurn, Identity, SourceArticle
from articlechat.core.chat.orchestrator import EMPTY_COMPLETION_FALLBACK
from articlechat.core.chat.retrieval import NOTE_LOOKUP_FAILED, ContextRetriever
from articlechat.core.chat.service import ArticleChatService
from articlechat.core.llm.client import CompletionClient

ARTICLE = ArticleContext(article_id="gen-1", title="Headline", content="Body text")


class _FakeRepository:
    def __init__(self, rows=None, exc: Exception | None = None) -> None:
        self.rows = rows or []
        self.exc = exc
        self.calls = 0

    async def fetch_cited_sources(self, article_id: str):
        self.calls += 1
        if self.exc is not None:
            raise self.exc
        return self.rows


class _FakeRecorder:
    def __init__(self) -> None:
        self.submitted = []

    def submit(self, message) -> bool:
        self.submitted.append(message)
        return True


class _FakeIdentityProvider:
    def __init__(self, identity: Identity | None = None, exc: Exception | None = None):
        self.identity = identity
        self.exc = exc
        self.tokens: list[str | None] = []

    async def resolve(self, token):
        self.tokens.append(token)
        if self.exc is not None:
            raise self.exc
        return self.identity


async def _boom(_):
    raise RuntimeError("upstream down")


def _make_service(
    *,
    llm=None,
    repository: _FakeRepository | None = None,
    recorder: _FakeRecorder | None = None,
    identity_provider: _FakeIdentityProvider | None = None,
    persistence_enabled: bool = True,
) -> ArticleChatService:
    return ArticleChatService(
        retriever=ContextRetriever(repository or _FakeRepository()),
        completion=CompletionClient(
            llm or FakeListChatModel(responses=["The answer is here"]),
            timeout=timedelta(seconds=5),
        ),
        recorder=recorder if recorder is not None else _FakeRecorder(),
        identity_provider=identity_provider or _FakeIdentityProvider(),
        prompt_config=PromptConfig(),
        stream_config=StreamConfig(chunk_delay=timedelta(0)),
        persistence_enabled=persistence_enabled,
    )


def _turn(article: ArticleContext = ARTICLE) -> ChatTurn:
    return ChatTurn(message="What happened?", article=article)


class TestPrepare:
    @pytest.mark.asyncio
    async def test_sources_reach_the_instruction(self):
        repo = _FakeRepository([SourceArticle(id="src-9", title="Wire report")])
        prepared = await _make_service(repository=repo).prepare(_turn())
        system = prepared.messages[0]
        assert isinstance(system, SystemMessage)
        assert "(ID: src-9)" in system.content

    @pytest.mark.asyncio
    async def test_lookup_failure_still_prepares(self):
        repo = _FakeRepository(exc=RuntimeError("db down"))
        prepared = await _make_service(repository=repo).prepare(_turn())
        assert NOTE_LOOKUP_FAILED in prepared.messages[0].content

    @pytest.mark.asyncio
    async def test_no_lookup_without_article_body(self):
        repo = _FakeRepository([SourceArticle(id="s")])
        await _make_service(repository=repo).prepare(
            _turn(ArticleContext(article_id="gen-1"))
        )
        assert repo.calls == 0

    @pytest.mark.asyncio
    async def test_user_message_recorded_for_identified_user(self):
        recorder = _FakeRecorder()
        provider = _FakeIdentityProvider(Identity(user_id="u-1"))
        prepared = await _make_service(
            recorder=recorder, identity_provider=provider
        ).prepare(_turn(), "token-abc")

        assert provider.tokens == ["token-abc"]
        assert prepared.identity == Identity(user_id="u-1")
        [record] = recorder.submitted
        assert (record.user_id, record.article_id, record.role, record.content) == (
            "u-1",
            "gen-1",
            "user",
            "What happened?",
        )

    @pytest.mark.asyncio
    async def test_anonymous_user_not_recorded(self):
        recorder = _FakeRecorder()
        await _make_service(recorder=recorder).prepare(_turn(), None)
        assert recorder.submitted == []

    @pytest.mark.asyncio
    async def test_identity_failure_is_anonymous(self):
        recorder = _FakeRecorder()
        provider = _FakeIdentityProvider(exc=RuntimeError("auth down"))
        prepared = await _make_service(
            recorder=recorder, identity_provider=provider
        ).prepare(_turn(), "t")
        assert prepared.identity is None
        assert recorder.submitted == []

    @pytest.mark.asyncio
    async def test_persistence_disabled_skips_identity(self):
        provider = _FakeIdentityProvider(Identity(user_id="u-1"))
        prepared = await _make_service(
            identity_provider=provider, persistence_enabled=False
        ).prepare(_turn(), "t")
        assert prepared.identity is None
        assert provider.tokens == []

    @pytest.mark.asyncio
    async def test_retrieval_and_identity_run_concurrently(self):
        started: list[str] = []
        timed_out: list[str] = []
        both_started = asyncio.Event()

        async def _rendezvous(name: str) -> None:
            started.append(name)
            if len(started) == 2:
                both_started.set()
            try:
                await asyncio.wait_for(both_started.wait(), timeout=1)
            except TimeoutError:
                timed_out.append(name)

        class _SlowRepository(_FakeRepository):
            async def fetch_cited_sources(self, article_id):
                await _rendezvous("retrieval")
                return []

        class _SlowProvider(_FakeIdentityProvider):
            async def resolve(self, token):
                await _rendezvous("identity")
                return None

        service = _make_service(
            repository=_SlowRepository(), identity_provider=_SlowProvider()
        )
        await service.prepare(_turn(), "t")
        assert sorted(started) == ["identity", "retrieval"]
        assert timed_out == []


class TestAnswer:
    @pytest.mark.asyncio
    async def test_answer_recorded_after_user_message(self):
        recorder = _FakeRecorder()
        service = _make_service(
            recorder=recorder,
            identity_provider=_FakeIdentityProvider(Identity(user_id="u-1")),
        )
        prepared = await service.prepare(_turn(), "t")
        assert await service.answer(prepared) == "The answer is here"
        assert [m.role for m in recorder.submitted] == ["user", "assistant"]
        assert recorder.submitted[1].content == "The answer is here"

    @pytest.mark.asyncio
    async def test_empty_answer_fallback(self):
        service = _make_service(llm=FakeListChatModel(responses=["  "]))
        prepared = await service.prepare(_turn())
        assert await service.answer(prepared) == EMPTY_COMPLETION_FALLBACK

    @pytest.mark.asyncio
    async def test_failure_raises_and_skips_assistant_write(self):
        recorder = _FakeRecorder()
        service = _make_service(
            llm=RunnableLambda(_boom),
            recorder=recorder,
            identity_provider=_FakeIdentityProvider(Identity(user_id="u-1")),
        )
        prepared = await service.prepare(_turn(), "t")
        with pytest.raises(UpstreamCompletionError):
            await service.answer(prepared)
        assert [m.role for m in recorder.submitted] == ["user"]


class TestStream:
    @pytest.mark.asyncio
    async def test_stream_records_full_answer(self):
        recorder = _FakeRecorder()
        service = _make_service(
            recorder=recorder,
            identity_provider=_FakeIdentityProvider(Identity(user_id="u-1")),
        )
        prepared = await service.prepare(_turn(), "t")
        events = [event async for event in service.stream(prepared)]
        assert isinstance(events[-1], CompleteEvent)
        assert recorder.submitted[-1].role == "assistant"
        assert recorder.submitted[-1].content == events[-1].full_content

    @pytest.mark.asyncio
    async def test_stream_error_skips_assistant_write(self):
        recorder = _FakeRecorder()
        service = _make_service(
            llm=RunnableLambda(_boom),
            recorder=recorder,
            identity_provider=_FakeIdentityProvider(Identity(user_id="u-1")),
        )
        prepared = await service.prepare(_turn(), "t")
        events = [event async for event in service.stream(prepared)]
        assert isinstance(events[-1], ErrorEvent)
        assert [m.role for m in recorder.submitted] == ["user"]
