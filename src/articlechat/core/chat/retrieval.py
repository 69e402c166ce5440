"""Cited-source retrieval for the instruction block.

Retrieval never fails a chat turn: a failed lookup or an article with no
usable citations yields a ``RetrievedContext`` carrying an explanatory
note instead of sources, and the prompt is assembled around it.
"""

import logging
import time
from collections.abc import Iterable
from typing import Protocol

from articlechat.core.metrics import (
    CONTEXT_RETRIEVAL_LATENCY_SECONDS,
    CONTEXT_RETRIEVALS_TOTAL,
    CONTEXT_SOURCES_RETURNED,
)
from articlechat.infra.telemetry import (
    ATTR_ARTICLE_ID,
    ATTR_CONTEXT_OUTCOME,
    ATTR_CONTEXT_SOURCE_COUNT,
    SPAN_CONTEXT_RETRIEVE,
    tracer,
)

from .models import ArticleContext, RetrievedContext, SourceArticle

logger = logging.getLogger(__name__)

NOTE_NO_LINKS = "No citation references were found for this article."
NOTE_NO_SOURCES = "No usable source articles were linked to this article."
NOTE_LOOKUP_FAILED = "Source article information could not be retrieved."

OUTCOME_CACHED = "cached"
OUTCOME_FOUND = "found"
OUTCOME_NO_LINKS = "no_links"
OUTCOME_NO_SOURCES = "no_sources"
OUTCOME_ERROR = "error"


class CitationSource(Protocol):
    async def fetch_cited_sources(
        self, article_id: str
    ) -> list[SourceArticle | None]: ...


def dedupe_sources(
    sources: Iterable[SourceArticle | None],
) -> tuple[SourceArticle, ...]:
    """Keep the first occurrence of each source id, in order.

    Missing entries and sources without an id are discarded.
    """
    unique: dict[str, SourceArticle] = {}
    for source in sources:
        if source is None or not source.id:
            continue
        unique.setdefault(source.id, source)
    return tuple(unique.values())


class ContextRetriever:
    """Resolves the deduplicated cited sources of a generated article."""

    def __init__(self, repository: CitationSource) -> None:
        self._repository = repository

    async def retrieve(self, article: ArticleContext) -> RetrievedContext:
        with tracer.start_as_current_span(SPAN_CONTEXT_RETRIEVE) as span:
            span.set_attribute(ATTR_ARTICLE_ID, article.article_id)
            context, outcome = await self._resolve(article)
            span.set_attribute(ATTR_CONTEXT_OUTCOME, outcome)
            span.set_attribute(ATTR_CONTEXT_SOURCE_COUNT, len(context.sources))

        CONTEXT_RETRIEVALS_TOTAL.labels(outcome=outcome).inc()
        CONTEXT_SOURCES_RETURNED.observe(len(context.sources))
        return context

    async def _resolve(
        self, article: ArticleContext
    ) -> tuple[RetrievedContext, str]:
        # Caller already resolved the citations; skip the lookup.
        if article.citations is not None:
            sources = dedupe_sources(article.citations)
            note = None if sources else NOTE_NO_LINKS
            return RetrievedContext(sources=sources, note=note), OUTCOME_CACHED

        start = time.monotonic()
        try:
            rows = await self._repository.fetch_cited_sources(article.article_id)
        except Exception:
            logger.warning(
                "Citation lookup failed for article %s",
                article.article_id,
                exc_info=True,
            )
            return RetrievedContext(note=NOTE_LOOKUP_FAILED), OUTCOME_ERROR
        finally:
            CONTEXT_RETRIEVAL_LATENCY_SECONDS.observe(time.monotonic() - start)

        if not rows:
            logger.info("No citation links for article %s", article.article_id)
            return RetrievedContext(note=NOTE_NO_LINKS), OUTCOME_NO_LINKS

        sources = dedupe_sources(rows)
        logger.debug(
            "Article %s: %d citation link(s), %d unique source(s)",
            article.article_id,
            len(rows),
            len(sources),
        )
        if not sources:
            return RetrievedContext(note=NOTE_NO_SOURCES), OUTCOME_NO_SOURCES
        return RetrievedContext(sources=sources), OUTCOME_FOUND
