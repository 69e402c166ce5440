"""The article chat pipeline shared by the JSON and SSE endpoints.

One turn runs: retrieval ‖ (identity → user-message write), then prompt
assembly, then completion, then the assistant-message write.  Retrieval
and identity never fail the turn; only the completion itself can.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator, Sequence
from dataclasses import dataclass
from functools import partial
from typing import TYPE_CHECKING

from langchain_core.messages import BaseMessage

from articlechat.configs.system import PromptConfig, StreamConfig
from articlechat.core.llm.client import CompletionClient

from .events import StreamEvent
from .models import (
    ROLE_ASSISTANT,
    ROLE_USER,
    ChatMessage,
    ChatTurn,
    Identity,
    PersistedChatMessage,
    RetrievedContext,
)
from .orchestrator import DisconnectCheck, StreamingOrchestrator, with_fallback
from .prompt import assemble_messages
from .retrieval import ContextRetriever

if TYPE_CHECKING:
    from articlechat.infra.db.recorder import MessageRecorder
    from articlechat.infra.identity import JwtIdentityProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreparedTurn:
    """A turn whose context is resolved and whose prompt is assembled."""

    turn: ChatTurn
    messages: Sequence[BaseMessage]
    identity: Identity | None = None


class ArticleChatService:
    def __init__(
        self,
        *,
        retriever: ContextRetriever,
        completion: CompletionClient,
        recorder: "MessageRecorder | None",
        identity_provider: "JwtIdentityProvider",
        prompt_config: PromptConfig,
        stream_config: StreamConfig,
        persistence_enabled: bool = True,
    ) -> None:
        self._retriever = retriever
        self._completion = completion
        self._recorder = recorder
        self._identity_provider = identity_provider
        self._prompt_config = prompt_config
        self._stream_config = stream_config
        self._persistence_enabled = persistence_enabled

    async def prepare(
        self, turn: ChatTurn, session_token: str | None = None
    ) -> PreparedTurn:
        """Resolve context and identity concurrently, then assemble the prompt.

        The user message is queued for persistence as soon as the identity
        resolves, before the completion starts.
        """
        retrieved, identity = await asyncio.gather(
            self._retrieve(turn),
            self._identify_and_record(turn, session_token),
        )
        messages = assemble_messages(turn, retrieved, self._prompt_config)
        return PreparedTurn(turn=turn, messages=messages, identity=identity)

    async def answer(self, prepared: PreparedTurn) -> str:
        """Return the full answer for the non-streaming endpoint.

        Raises:
            UpstreamCompletionError: when the completion fails or times out.
        """
        text = with_fallback(await self._completion.complete(prepared.messages))
        self._record_answer(prepared, text)
        return text

    def stream(
        self,
        prepared: PreparedTurn,
        *,
        is_disconnected: DisconnectCheck | None = None,
    ) -> AsyncGenerator[StreamEvent, None]:
        """Return the event stream for the SSE endpoint."""
        orchestrator = StreamingOrchestrator(self._completion, self._stream_config)
        return orchestrator.run(
            prepared.messages,
            on_complete=partial(self._record_answer, prepared),
            is_disconnected=is_disconnected,
        )

    # -- internal ----------------------------------------------------

    async def _retrieve(self, turn: ChatTurn) -> RetrievedContext:
        # Without a body the generic instruction is used and sources are unused.
        if not turn.article.has_body:
            return RetrievedContext()
        return await self._retriever.retrieve(turn.article)

    async def _identify_and_record(
        self, turn: ChatTurn, session_token: str | None
    ) -> Identity | None:
        if not self._persistence_enabled or self._recorder is None:
            return None
        try:
            identity = await self._identity_provider.resolve(session_token)
        except Exception:
            logger.warning("Identity lookup failed; continuing anonymously", exc_info=True)
            return None
        if identity is not None:
            self._record(identity, turn, ChatMessage(role=ROLE_USER, content=turn.message))
        return identity

    def _record_answer(self, prepared: PreparedTurn, text: str) -> None:
        if prepared.identity is None:
            return
        self._record(
            prepared.identity,
            prepared.turn,
            ChatMessage(role=ROLE_ASSISTANT, content=text),
        )

    def _record(self, identity: Identity, turn: ChatTurn, message: ChatMessage) -> None:
        self._recorder.submit(
            PersistedChatMessage.from_message(
                message,
                user_id=identity.user_id,
                article_id=turn.article.article_id,
            )
        )
