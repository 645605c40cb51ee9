"""Context building: internal retrieval, web fallback, citation formatting.

ContextBuilder.build() is the single entry point used by the assistant and
the CLI:

  1. Internal sources from the user's semantic index.
  2. Trigger heuristic on the message and the internal count.
  3. External sources, when web search is enabled and triggered, a client is
     configured, and a company or founder name is known.
  4. Citation keys and context text.
  5. First web sources handed to the flywheel persister (non-blocking).

build() never raises. Any failure degrades to fewer sources.
"""

from __future__ import annotations

import logging

from dealflow.config import RetrievalCfg, WebSearchCfg
from dealflow.rag.external import retrieve_external
from dealflow.rag.flywheel import FlywheelPersister
from dealflow.rag.formatter import format_context
from dealflow.rag.index import Reranker, SemanticIndex
from dealflow.rag.internal import retrieve_internal
from dealflow.rag.models import ContextPack, Source
from dealflow.rag.trigger import matching_trigger, should_search_web
from dealflow.rag.websearch import WebSearchClient

logger = logging.getLogger(__name__)


class ContextBuilder:
    """Builds citation-indexed context packs for one configured deployment.

    Args:
        index: Semantic index holding the users' internal documents.
        web_search: Live search client, or None to run internal-only.
        reranker: Optional reranker for internal hits.
        persister: Optional flywheel persister for accepted web sources.
        retrieval: Internal retrieval and formatting settings.
        web: Web search settings.
    """

    def __init__(
        self,
        index: SemanticIndex,
        web_search: WebSearchClient | None,
        reranker: Reranker | None = None,
        persister: FlywheelPersister | None = None,
        retrieval: RetrievalCfg | None = None,
        web: WebSearchCfg | None = None,
    ) -> None:
        self.index = index
        self.web_search = web_search
        self.reranker = reranker
        self.persister = persister
        self.retrieval = retrieval or RetrievalCfg()
        self.web = web or WebSearchCfg()

    def build(
        self,
        user_id: str,
        message: str,
        company_id: str | None = None,
        company_name: str | None = None,
        company_website: str | None = None,
        company_description: str | None = None,
        founder_id: str | None = None,
        founder_name: str | None = None,
        include_web_search: bool = True,
    ) -> ContextPack:
        """Return a ContextPack for *message*. Never raises."""
        internal = self._internal(user_id, message, company_id, founder_id)
        logger.info("Internal retrieval returned %d sources", len(internal))

        external: list[Source] = []
        if self._web_enabled(include_web_search) and self._triggered(message, len(internal)):
            if company_name or founder_name:
                external = self._external(
                    message, company_name, company_website, company_description, founder_name
                )
                logger.info("External retrieval returned %d sources", len(external))
            else:
                logger.debug("Web search triggered but no company or founder name is known")

        try:
            pack = format_context(internal, external, snippet_chars=self.retrieval.snippet_chars)
        except Exception as exc:
            logger.error("Context formatting failed: %s", exc)
            return ContextPack()

        if external:
            self._persist(user_id, external, company_id, founder_id)
        return pack

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _web_enabled(self, include_web_search: bool) -> bool:
        return include_web_search and self.web.enabled and self.web_search is not None

    def _triggered(self, message: str, internal_count: int) -> bool:
        triggered = should_search_web(message, internal_count, floor=self.retrieval.internal_floor)
        if triggered:
            rule = matching_trigger(message)
            logger.debug(
                "Web search triggered by %s",
                rule.name if rule else f"only {internal_count} internal sources",
            )
        return triggered

    def _internal(
        self,
        user_id: str,
        message: str,
        company_id: str | None,
        founder_id: str | None,
    ) -> list[Source]:
        try:
            return retrieve_internal(
                self.index,
                user_id,
                message,
                company_id=company_id,
                founder_id=founder_id,
                top_k=self.retrieval.top_k,
                reranker=self.reranker,
            )
        except Exception as exc:
            logger.warning("Internal retrieval failed (non-fatal): %s", exc)
            return []

    def _external(
        self,
        message: str,
        company_name: str | None,
        company_website: str | None,
        company_description: str | None,
        founder_name: str | None,
    ) -> list[Source]:
        try:
            return retrieve_external(
                self.web_search,
                company_name=company_name,
                company_website=company_website,
                company_description=company_description,
                founder_name=founder_name,
                query=message,
                max_queries=self.web.max_queries,
                results_per_query=self.web.num_results,
                text_max_chars=self.web.text_max_chars,
                highlight_sentences=self.web.highlight_sentences,
                max_sources=self.web.max_sources,
                concurrency=self.web.concurrency,
                query_timeout=self.web.query_timeout,
            )
        except Exception as exc:
            logger.warning("External retrieval failed (non-fatal): %s", exc)
            return []

    def _persist(
        self,
        user_id: str,
        external: list[Source],
        company_id: str | None,
        founder_id: str | None,
    ) -> None:
        if self.persister is None:
            return
        try:
            self.persister.submit(user_id, external, company_id=company_id, founder_id=founder_id)
        except Exception as exc:
            logger.warning("Could not queue web sources for persistence: %s", exc)
