"""Centralized FastAPI dependency type aliases.

Import these ``*Dep`` aliases in route modules instead of manually
writing ``Annotated[T, Depends(get_xxx)]`` everywhere.  Each alias
corresponds to a single ``get_*`` factory and can be overridden in
tests via ``app.dependency_overrides[get_xxx] = ...``.
"""

from typing import Annotated

from fastapi import Depends, Request

from articlechat.configs.config import (
    AppConfig,
    get_api_config,
    get_app_config,
    get_stream_config,
    get_validation_config,
)
from articlechat.configs.system import APIConfig, StreamConfig, ValidationConfig
from articlechat.core.chat.deps import get_chat_service
from articlechat.core.chat.models import ChatTurn
from articlechat.core.chat.service import ArticleChatService
from articlechat.core.chat.validation import read_json_payload, validate_chat_request
from articlechat.infra.db.engine import get_chat_message_repository
from articlechat.infra.db.repository import ChatMessageRepository
from articlechat.infra.identity import (
    JwtIdentityProvider,
    get_identity_provider,
    get_session_token,
)
from articlechat.infra.ratelimit import enforce_rate_limit, get_client_id

AppConfigDep = Annotated[AppConfig, Depends(get_app_config)]
APIConfigDep = Annotated[APIConfig, Depends(get_api_config)]
ValidationConfigDep = Annotated[ValidationConfig, Depends(get_validation_config)]
StreamConfigDep = Annotated[StreamConfig, Depends(get_stream_config)]


async def get_chat_turn(
    request: Request,
    api: APIConfigDep,
    limits: ValidationConfigDep,
) -> ChatTurn:
    """Read, size-check, validate, and sanitize the chat request body."""
    payload = await read_json_payload(request, api.max_body_bytes)
    return validate_chat_request(payload, limits)


ChatTurnDep = Annotated[ChatTurn, Depends(get_chat_turn)]
ChatServiceDep = Annotated[ArticleChatService, Depends(get_chat_service)]
ChatMessageRepositoryDep = Annotated[
    ChatMessageRepository, Depends(get_chat_message_repository)
]
IdentityProviderDep = Annotated[
    JwtIdentityProvider, Depends(get_identity_provider)
]
SessionTokenDep = Annotated[str | None, Depends(get_session_token)]
ClientIdDep = Annotated[str, Depends(get_client_id)]
RateLimitDep = Annotated[None, Depends(enforce_rate_limit)]
