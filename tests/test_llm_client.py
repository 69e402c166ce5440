"""Tests for the completion client and chat model factory."""

import asyncio
from datetime import timedelta

import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel
from langchain_core.messages import AIMessage, HumanMessage
from langchain_core.runnables import RunnableBinding, RunnableLambda
from langchain_openai import ChatOpenAI

from articlechat.configs.system import LLMConfig
from articlechat.core.chat.exceptions import UpstreamCompletionError
from articlechat.core.llm import CompletionClient, get_llm, message_text
from articlechat.core.llm.deps import WEB_SEARCH_TOOL

MESSAGES = [HumanMessage(content="hi")]


async def _boom(_):
    raise ConnectionError("refused")


async def _hang(_):
    await asyncio.sleep(60)


class TestMessageText:
    def test_plain_string_content(self):
        assert message_text(AIMessage(content="hello")) == "hello"

    def test_responses_api_blocks(self):
        message = AIMessage(
            content=[
                {"type": "web_search_call", "id": "ws_1"},
                {"type": "text", "text": "Rates rose ", "annotations": []},
                {"type": "output_text", "text": "today."},
            ]
        )
        assert message_text(message) == "Rates rose today."

    def test_raw_string(self):
        assert message_text("plain") == "plain"

    def test_unknown_content_is_empty(self):
        assert message_text(object()) == ""


class TestComplete:
    @pytest.mark.asyncio
    async def test_returns_text(self):
        client = CompletionClient(
            FakeListChatModel(responses=["answer"]), timeout=timedelta(seconds=5)
        )
        assert await client.complete(MESSAGES) == "answer"

    @pytest.mark.asyncio
    async def test_failure_is_wrapped(self):
        client = CompletionClient(RunnableLambda(_boom), timeout=timedelta(seconds=5))
        with pytest.raises(UpstreamCompletionError) as exc_info:
            await client.complete(MESSAGES)
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    @pytest.mark.asyncio
    async def test_timeout_is_wrapped(self):
        client = CompletionClient(
            RunnableLambda(_hang), timeout=timedelta(milliseconds=50)
        )
        with pytest.raises(UpstreamCompletionError, match="timed out"):
            await client.complete(MESSAGES)


class TestStream:
    @pytest.mark.asyncio
    async def test_yields_pieces(self):
        client = CompletionClient(
            FakeListChatModel(responses=["abc"]), timeout=timedelta(seconds=5)
        )
        pieces = [piece async for piece in client.stream(MESSAGES)]
        assert pieces == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_failure_is_wrapped(self):
        client = CompletionClient(RunnableLambda(_boom), timeout=timedelta(seconds=5))
        with pytest.raises(UpstreamCompletionError):
            async for _ in client.stream(MESSAGES):
                pass

    @pytest.mark.asyncio
    async def test_timeout_is_wrapped(self):
        client = CompletionClient(
            RunnableLambda(_hang), timeout=timedelta(milliseconds=50)
        )
        with pytest.raises(UpstreamCompletionError, match="timed out"):
            async for _ in client.stream(MESSAGES):
                pass


class TestGetLlm:
    def test_web_search_binds_tool(self):
        llm = get_llm(LLMConfig(api_key="sk-test", web_search=True))
        assert isinstance(llm, RunnableBinding)
        assert llm.kwargs["tools"][0]["type"] == WEB_SEARCH_TOOL["type"]

    def test_plain_model_without_web_search(self):
        llm = get_llm(LLMConfig(api_key="sk-test", web_search=False))
        assert isinstance(llm, ChatOpenAI)
        assert llm.model_name == LLMConfig().model_name
