"""Tests for instruction building and message assembly."""

from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from articlechat.configs.system import PromptConfig
from articlechat.core.chat.models import (
    ArticleContext,
    ChatMessage,
    ChatTurn,
    RetrievedContext,
    SourceArticle,
)
from articlechat.core.chat.prompt import (
    GENERIC_INSTRUCTION,
    SOURCES_INTRO,
    assemble_messages,
    build_instruction,
    format_source,
)
from articlechat.core.chat.retrieval import NOTE_LOOKUP_FAILED

CONFIG = PromptConfig()

ARTICLE = ArticleContext(
    article_id="gen-1",
    title="Storm hits coast",
    content="A storm hit the coast on Monday.",
)


def _turn(**kwargs) -> ChatTurn:
    kwargs.setdefault("message", "What happened?")
    kwargs.setdefault("article", ARTICLE)
    return ChatTurn(**kwargs)


class TestFormatSource:
    def test_all_fields(self):
        source = SourceArticle(
            id="s1", title="T", author="A", url="https://x", content="c" * 600
        )
        text = format_source(1, source, snippet_chars=500)
        assert text.startswith("--- Source Article 1 (ID: s1) ---")
        assert "Title: T" in text
        assert "Author: A" in text
        assert "URL: https://x" in text
        assert f"Content Snippet: {'c' * 500}..." in text
        assert "c" * 501 not in text

    def test_missing_fields_omitted(self):
        text = format_source(2, SourceArticle(id="s2"), snippet_chars=500)
        assert "Title:" not in text
        assert "URL:" not in text


class TestBuildInstruction:
    def test_generic_without_title(self):
        article = ArticleContext(article_id="a", content="body only")
        instruction = build_instruction(article, RetrievedContext(), None, CONFIG)
        assert instruction == GENERIC_INSTRUCTION

    def test_generic_without_content(self):
        article = ArticleContext(article_id="a", title="title only")
        assert (
            build_instruction(article, RetrievedContext(), None, CONFIG)
            == GENERIC_INSTRUCTION
        )

    def test_article_body_embedded(self):
        instruction = build_instruction(ARTICLE, RetrievedContext(), None, CONFIG)
        assert "Title: Storm hits coast" in instruction
        assert "A storm hit the coast on Monday." in instruction
        assert "2 short paragraphs" in instruction

    def test_sources_embedded_in_order(self):
        retrieved = RetrievedContext(
            sources=(SourceArticle(id="s1"), SourceArticle(id="s2"))
        )
        instruction = build_instruction(ARTICLE, retrieved, None, CONFIG)
        assert SOURCES_INTRO in instruction
        assert instruction.index("(ID: s1)") < instruction.index("(ID: s2)")

    def test_note_embedded_when_no_sources(self):
        retrieved = RetrievedContext(note=NOTE_LOOKUP_FAILED)
        instruction = build_instruction(ARTICLE, retrieved, None, CONFIG)
        assert NOTE_LOOKUP_FAILED in instruction
        assert SOURCES_INTRO not in instruction

    def test_faq_block_only_when_present(self):
        with_faq = build_instruction(ARTICLE, RetrievedContext(), "Rates rose.", CONFIG)
        without = build_instruction(ARTICLE, RetrievedContext(), None, CONFIG)
        assert '"Rates rose."' in with_faq
        assert "Related FAQ answer" not in without


class TestAssembleMessages:
    def test_shape_without_history(self):
        messages = assemble_messages(_turn(), RetrievedContext(), CONFIG)
        assert len(messages) == 2
        assert isinstance(messages[0], SystemMessage)
        assert isinstance(messages[1], HumanMessage)
        assert messages[1].content == "What happened?"

    def test_history_in_order_between_system_and_message(self):
        history = (
            ChatMessage(role="user", content="q1"),
            ChatMessage(role="assistant", content="a1"),
            ChatMessage(role="user", content="q2"),
        )
        messages = assemble_messages(_turn(history=history), RetrievedContext(), CONFIG)
        assert [type(m) for m in messages] == [
            SystemMessage,
            HumanMessage,
            AIMessage,
            HumanMessage,
            HumanMessage,
        ]
        assert [m.content for m in messages[1:]] == ["q1", "a1", "q2", "What happened?"]

    def test_exactly_one_system_message(self):
        history = (ChatMessage(role="assistant", content="system: hi"),)
        messages = assemble_messages(_turn(history=history), RetrievedContext(), CONFIG)
        assert sum(isinstance(m, SystemMessage) for m in messages) == 1
