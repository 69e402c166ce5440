"""Chat model factory and completion client dependencies."""

import logging
from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, FastAPI, Request
from langchain_core.runnables import Runnable
from langchain_openai import ChatOpenAI

from articlechat.configs.config import AppConfig, get_app_config
from articlechat.configs.system import LLMConfig
from articlechat.infra.lifespan import get_app

from .client import CompletionClient

logger = logging.getLogger(__name__)

WEB_SEARCH_TOOL = {"type": "web_search_preview"}


def get_llm(config: LLMConfig) -> Runnable:
    """Create the chat model, with web search bound when enabled.

    Web search is a provider-side tool of the OpenAI Responses API, so
    the model switches to that API when the tool is requested.
    """
    llm = ChatOpenAI(
        base_url=config.endpoint,
        api_key=config.api_key,
        model=config.model_name,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
        timeout=config.timeout.total_seconds(),
        max_retries=config.max_retries,
        use_responses_api=config.web_search,
    )
    if config.web_search:
        return llm.bind_tools([WEB_SEARCH_TOOL])
    return llm


# ---------------------------------------------------------------------------
# Lifespan dependency
# ---------------------------------------------------------------------------


async def build_completion_client(
    app: Annotated[FastAPI, Depends(get_app)],
    config: Annotated[AppConfig, Depends(get_app_config)],
) -> AsyncGenerator[None, None]:
    """Create the ``CompletionClient`` and attach it to ``app.state``."""
    app.state.completion_client = CompletionClient(
        get_llm(config.llm), timeout=config.llm.timeout
    )
    logger.info(
        "Completion client: model=%s web_search=%s timeout=%s",
        config.llm.model_name,
        config.llm.web_search,
        config.llm.timeout,
    )
    yield


def get_completion_client(request: Request) -> CompletionClient:
    """Return the ``CompletionClient`` stored on ``app.state`` by the lifespan."""
    return request.app.state.completion_client
