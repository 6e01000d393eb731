"""Lexical (full-text) retrieval.

Natural-language queries are noisy, so the whole query is sent as a single
phrase: quote characters are doubled and the text is wrapped in quotes. That
favors precision and keeps punctuation from being read as index operators.
"""

from typing import List, Optional

import structlog

from ..common.metrics import MetricsCollector
from ..store.base import FragmentStore, LexicalQueryError

logger = structlog.get_logger("retrievers.lexical")


def build_phrase_query(text: str) -> str:
    """Escape ``text`` for the full-text syntax and wrap it as a phrase query."""
    return '"' + text.replace('"', '""') + '"'


class LexicalRetriever:
    """Ranks fragment ids by full-text relevance."""

    def __init__(self, store: FragmentStore, metrics: Optional[MetricsCollector] = None):
        self.store = store
        self.metrics = metrics

    async def retrieve(self, query: str, limit: int) -> List[int]:
        """Return up to ``limit`` fragment ids, most relevant first.

        Never raises for index or store failures: the path degrades to an
        empty list so the search continues on the semantic signal alone.
        """
        try:
            ids = await self.store.lexical_query(build_phrase_query(query), limit)
        except LexicalQueryError as e:
            logger.warning("Lexical query rejected by index", query=query[:50], error=str(e))
            self._record_failure()
            return []
        except Exception as e:
            logger.warning("Lexical search failed", query=query[:50], error=str(e))
            self._record_failure()
            return []

        logger.debug("Lexical search completed", results_count=len(ids))
        return ids

    def _record_failure(self) -> None:
        if self.metrics:
            self.metrics.record_retrieval_failure("lexical", "error")
