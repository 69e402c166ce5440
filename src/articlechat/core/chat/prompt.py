"""Instruction block and message list assembly.

Pure functions: the output is always one ``SystemMessage``, then the
history turns in order, then one ``HumanMessage`` holding the current
sanitized message.
"""

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from articlechat.configs.system import PromptConfig

from .models import (
    ROLE_USER,
    ArticleContext,
    ChatMessage,
    ChatTurn,
    RetrievedContext,
    SourceArticle,
)

GENERIC_INSTRUCTION = (
    "You are a helpful AI assistant. You can consult current web "
    "information when it helps answer the user's question."
)

SOURCES_INTRO = (
    "Excerpts from the source articles the main article was written from. "
    "Use them for specific details or direct quotes."
)

SOURCE_HEADER = "--- Source Article {index} (ID: {id}) ---"
SOURCE_FOOTER = "--------------"

FAQ_BLOCK = """Related FAQ answer
The question touches on a topic that already has this answer: "{faq}"
Build on it where useful: expand it, add context, or clarify it."""

ARTICLE_INSTRUCTION = """You answer questions about one specific news article.

=== CONTEXT ===
Main article
Title: {title}
Content:
{content}

Cited sources
{sources}
{faq_block}
=== RULES ===
1. Source hierarchy.
   a. Rely on the main article first.
   b. Then on the cited sources above.
   c. Only if neither covers the question, run ONE focused web search built \
from the key terms of the question. Prefer recent, authoritative results \
unless historical context is needed.
2. Attribute facts found on the web by naming the publication in prose \
("According to ..."). Never write bracketed or numeric citation markers \
such as [1] or [Main_Article].
3. If the answer still cannot be found, apologise briefly and offer a next \
step. Do not describe the search process or mention missing links.
4. Stay within the article's themes. For an unrelated question, say it is \
outside this article and suggest a related angle the article does cover. \
Reasonable tangents that build on the article are welcome.
5. Answer in at most {max_paragraphs} short paragraphs of clear prose unless \
the user asks for more depth. If sources disagree, summarise both sides.
6. Never comment on your tools or limitations, and never reproduce the \
whole article.
"""


def format_source(index: int, source: SourceArticle, snippet_chars: int) -> str:
    """Render one cited source as a labelled excerpt."""
    lines = [SOURCE_HEADER.format(index=index, id=source.id)]
    if source.title:
        lines.append(f"Title: {source.title}")
    if source.author:
        lines.append(f"Author: {source.author}")
    if source.url:
        lines.append(f"URL: {source.url}")
    if source.content:
        lines.append(f"Content Snippet: {source.content[:snippet_chars]}...")
    lines.append(SOURCE_FOOTER)
    return "\n".join(lines)


def render_sources(retrieved: RetrievedContext, snippet_chars: int) -> str:
    if not retrieved.sources:
        return retrieved.note or ""
    excerpts = [
        format_source(index, source, snippet_chars)
        for index, source in enumerate(retrieved.sources, start=1)
    ]
    return "\n\n".join([SOURCES_INTRO, *excerpts])


def build_instruction(
    article: ArticleContext,
    retrieved: RetrievedContext,
    faq: str | None,
    config: PromptConfig,
) -> str:
    """Build the system instruction for one turn.

    Without both a title and content there is nothing to ground on, so
    the instruction falls back to a generic capability statement.
    """
    if not article.has_body:
        return GENERIC_INSTRUCTION

    return ARTICLE_INSTRUCTION.format(
        title=article.title,
        content=article.content,
        sources=render_sources(retrieved, config.source_snippet_chars),
        faq_block=f"\n{FAQ_BLOCK.format(faq=faq)}\n" if faq else "",
        max_paragraphs=config.max_paragraphs,
    )


def _history_message(message: ChatMessage) -> BaseMessage:
    if message.role == ROLE_USER:
        return HumanMessage(content=message.content)
    return AIMessage(content=message.content)


def assemble_messages(
    turn: ChatTurn,
    retrieved: RetrievedContext,
    config: PromptConfig,
) -> list[BaseMessage]:
    """Return the ordered message list sent to the completion model."""
    instruction = build_instruction(turn.article, retrieved, turn.faq, config)
    return [
        SystemMessage(content=instruction),
        *(_history_message(message) for message in turn.history),
        HumanMessage(content=turn.message),
    ]
