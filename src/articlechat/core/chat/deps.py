"""FastAPI dependency factory for the chat pipeline.

``get_chat_service`` is a per-request ``Depends`` factory with an
explicit parameter chain; every collaborator comes from ``app.state``
through its own ``get_*`` function and can be overridden in tests.
"""

from typing import Annotated

from fastapi import Depends

from articlechat.configs.config import AppConfig, get_app_config
from articlechat.core.llm.client import CompletionClient
from articlechat.core.llm.deps import get_completion_client
from articlechat.infra.db.engine import get_citation_repository
from articlechat.infra.db.recorder import MessageRecorder, get_message_recorder
from articlechat.infra.db.repository import CitationRepository
from articlechat.infra.identity import JwtIdentityProvider, get_identity_provider

from .retrieval import ContextRetriever
from .service import ArticleChatService


def get_chat_service(
    config: Annotated[AppConfig, Depends(get_app_config)],
    repository: Annotated[CitationRepository, Depends(get_citation_repository)],
    completion: Annotated[CompletionClient, Depends(get_completion_client)],
    recorder: Annotated[MessageRecorder, Depends(get_message_recorder)],
    identity_provider: Annotated[
        JwtIdentityProvider, Depends(get_identity_provider)
    ],
) -> ArticleChatService:
    return ArticleChatService(
        retriever=ContextRetriever(repository),
        completion=completion,
        recorder=recorder,
        identity_provider=identity_provider,
        prompt_config=config.prompt,
        stream_config=config.stream,
        persistence_enabled=config.persistence.enabled,
    )
