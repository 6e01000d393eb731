"""Knowledge-base search exposed as an agent tool.

The tool returns plain text because that is what a language model reads
back: one block per hit with the file name and fused score, or a sentence
explaining that nothing was found or that the search failed.
"""

import os
from typing import Any, Dict, List, Mapping

import structlog

from ..hybrid.search_manager import HybridSearcher
from ..models import SearchResult

logger = structlog.get_logger("tools.knowledge_base")

NO_RESULTS_MESSAGE = "No relevant information found in knowledge base."


def format_results(results: List[SearchResult]) -> str:
    """Render hits as ``--- Source: <file> (Score: 0.033) ---`` blocks."""
    if not results:
        return NO_RESULTS_MESSAGE

    return "\n".join(
        f"--- Source: {os.path.basename(result.file_path)} (Score: {result.score:.3f}) ---\n{result.content}\n"
        for result in results
    )


class KnowledgeBaseTool:
    """Tool wrapper around ``HybridSearcher.search``."""

    name = "search_knowledge_base"
    description = (
        "Search personal knowledge base, project documentation, and memories using "
        "semantic search. Use this for broad questions about projects, concepts, or "
        "previous lessons."
    )
    parameters: Dict[str, Any] = {
        "type": "object",
        "properties": {
            "query": {
                "type": "string",
                "description": "The natural language query to search for",
            }
        },
        "required": ["query"],
    }
    result_limit = 5

    def __init__(self, searcher: HybridSearcher):
        self.searcher = searcher

    def definition(self) -> Dict[str, Any]:
        """Tool definition in the JSON-schema shape tool registries expect."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }

    async def run(self, arguments: Mapping[str, Any]) -> str:
        """Execute the tool with registry-style ``{"query": ...}`` arguments."""
        return await self(str(arguments.get("query", "")))

    async def __call__(self, query: str) -> str:
        logger.info("Searching knowledge base", query=query[:50])
        try:
            results = await self.searcher.search(query, limit=self.result_limit)
        except Exception as e:
            logger.error("Knowledge base search failed", error=str(e))
            return f"Error searching knowledge base: {e}"

        return format_results(results)
