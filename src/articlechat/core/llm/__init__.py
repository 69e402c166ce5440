"""Completion model access."""

from .client import CompletionClient, message_text  # noqa: F401
from .deps import build_completion_client, get_completion_client, get_llm  # noqa: F401
