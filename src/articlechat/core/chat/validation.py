"""Request body validation for the chat endpoints.

Turns an untrusted JSON body into a ``ChatTurn`` with every free-text
field sanitized and bounded, or raises ``InvalidChatRequest`` /
``PayloadTooLarge``.
"""

import json
from typing import Any

from fastapi import Request

from articlechat.configs.system import ValidationConfig

from .exceptions import InvalidChatRequest, PayloadTooLarge
from .models import (
    VALID_ROLES,
    ArticleContext,
    ChatMessage,
    ChatTurn,
    SourceArticle,
)
from .sanitize import sanitize_text

# Client-facing rejection messages.
ERR_INVALID_JSON = "Invalid JSON"
ERR_BODY_NOT_OBJECT = "Request body must be a JSON object"
ERR_MESSAGE_REQUIRED = "Message is required and must be a string"
ERR_MESSAGE_EMPTY = "Message cannot be empty after sanitization"
ERR_MESSAGE_TOO_LONG = "Message too long (max {limit} characters)"
ERR_ARTICLE_REQUIRED = "Valid article context with article_id is required"
ERR_TITLE_INVALID = "Article title must be a string of at most {limit} characters"
ERR_CONTENT_INVALID = (
    "Article content must be a string of at most {limit} characters"
)
ERR_CITATIONS_INVALID = "Article citations must be a list"
ERR_FAQ_NOT_STRING = "FAQ context must be a string"


async def read_json_payload(request: Request, max_bytes: int) -> Any:
    """Read and decode the request body, enforcing the size ceiling.

    A declared ``Content-Length`` above *max_bytes* is rejected before
    the body is read.  Bodies without a usable declared length are
    measured once read.
    """
    declared = request.headers.get("content-length")
    if declared is not None:
        try:
            size = int(declared)
        except ValueError:
            size = None
        if size is not None and size > max_bytes:
            raise PayloadTooLarge(size, max_bytes)

    raw = await request.body()
    if len(raw) > max_bytes:
        raise PayloadTooLarge(len(raw), max_bytes)

    try:
        return json.loads(raw)
    except (ValueError, UnicodeDecodeError) as exc:
        raise InvalidChatRequest(ERR_INVALID_JSON) from exc


def validate_chat_request(payload: Any, limits: ValidationConfig) -> ChatTurn:
    """Validate a decoded request body and sanitize its text fields."""
    if not isinstance(payload, dict):
        raise InvalidChatRequest(ERR_BODY_NOT_OBJECT)

    message = _validate_message(payload.get("message"), limits)
    article = _validate_article(payload.get("articleContext"), limits)
    history = _validate_history(payload.get("history"), limits)
    faq = _validate_faq(payload.get("faqContext"), limits)

    return ChatTurn(message=message, article=article, history=history, faq=faq)


def _validate_message(value: Any, limits: ValidationConfig) -> str:
    if not isinstance(value, str) or not value:
        raise InvalidChatRequest(ERR_MESSAGE_REQUIRED)

    message = sanitize_text(value)
    if not message:
        raise InvalidChatRequest(ERR_MESSAGE_EMPTY)
    if len(message) > limits.max_message_chars:
        raise InvalidChatRequest(
            ERR_MESSAGE_TOO_LONG.format(limit=limits.max_message_chars)
        )
    return message


def _validate_article(value: Any, limits: ValidationConfig) -> ArticleContext:
    if not isinstance(value, dict):
        raise InvalidChatRequest(ERR_ARTICLE_REQUIRED)

    article_id = value.get("article_id")
    if not isinstance(article_id, str):
        raise InvalidChatRequest(ERR_ARTICLE_REQUIRED)
    article_id = article_id.strip()
    if not article_id or len(article_id) > limits.max_article_id_chars:
        raise InvalidChatRequest(ERR_ARTICLE_REQUIRED)

    title = _bounded_optional_text(
        value.get("title"),
        limits.max_title_chars,
        ERR_TITLE_INVALID.format(limit=limits.max_title_chars),
    )
    content = _bounded_optional_text(
        value.get("content"),
        limits.max_content_chars,
        ERR_CONTENT_INVALID.format(limit=limits.max_content_chars),
    )
    citations = _validate_citations(value.get("citations"), limits)

    return ArticleContext(
        article_id=article_id,
        title=title,
        content=content,
        citations=citations,
    )


def _bounded_optional_text(value: Any, limit: int, error: str) -> str | None:
    """Sanitize an optional string field; reject wrong types and overflow."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidChatRequest(error)
    text = sanitize_text(value)
    if len(text) > limit:
        raise InvalidChatRequest(error)
    return text or None


def _validate_citations(
    value: Any, limits: ValidationConfig
) -> tuple[SourceArticle, ...] | None:
    """Pre-resolved cited sources supplied by the caller, if any."""
    if value is None:
        return None
    if not isinstance(value, list):
        raise InvalidChatRequest(ERR_CITATIONS_INVALID)

    sources: list[SourceArticle] = []
    for item in value:
        if not isinstance(item, dict):
            continue
        source_id = item.get("id")
        if not isinstance(source_id, str) or not source_id.strip():
            continue
        sources.append(
            SourceArticle(
                id=source_id.strip(),
                title=_optional_sanitized(item.get("title")),
                content=_optional_sanitized(item.get("content")),
                author=_optional_sanitized(item.get("author")),
                url=_optional_sanitized(item.get("url")),
            )
        )
        if len(sources) >= limits.max_citations:
            break
    return tuple(sources)


def _optional_sanitized(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    return sanitize_text(value) or None


def _validate_history(value: Any, limits: ValidationConfig) -> tuple[ChatMessage, ...]:
    """Keep the most recent well-formed turns, sanitized and truncated."""
    if not isinstance(value, list):
        return ()

    well_formed = [
        entry
        for entry in value
        if isinstance(entry, dict)
        and entry.get("role") in VALID_ROLES
        and isinstance(entry.get("content"), str)
    ]

    history: list[ChatMessage] = []
    for entry in well_formed[-limits.max_history_turns :]:
        content = sanitize_text(entry["content"])[: limits.max_message_chars]
        if not content:
            continue
        fields: dict[str, Any] = {"role": entry["role"], "content": content}
        if isinstance(entry.get("id"), str) and entry["id"]:
            fields["id"] = entry["id"]
        history.append(ChatMessage(**fields))
    return tuple(history)


def _validate_faq(value: Any, limits: ValidationConfig) -> str | None:
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise InvalidChatRequest(ERR_FAQ_NOT_STRING)
    return sanitize_text(value)[: limits.max_faq_chars] or None
