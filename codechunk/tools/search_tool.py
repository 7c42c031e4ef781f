"""MCP tool for similarity and keyword search over code chunks."""

import logging
from typing import Optional

from ..indexer.embeddings import OllamaEmbeddings
from ..indexer.errors import CodeChunkError, InvalidProjectError
from ..indexer.models import CHUNK_TYPES
from ..indexer.project_store import ProjectStore
from ..vector_db.chunk_store import CodeChunkStore, format_chunk

logger = logging.getLogger(__name__)


class SearchTool:
    """Tool for searching a project's chunks."""

    def __init__(
        self,
        chunk_store: CodeChunkStore,
        embeddings: OllamaEmbeddings,
        project_store: ProjectStore,
        default_threshold: Optional[float] = 0.3,
    ):
        """Initialize search tool.

        Args:
            chunk_store: Chunk storage
            embeddings: Embeddings generator for queries
            project_store: Project registry, to reject unknown projects
            default_threshold: Similarity threshold used when none is given
        """
        self.chunk_store = chunk_store
        self.embeddings = embeddings
        self.project_store = project_store
        self.default_threshold = default_threshold

    async def search_code_chunks(
        self,
        project_id: str,
        query: str,
        limit: int = 10,
        threshold: Optional[float] = None,
    ) -> dict:
        """Search chunks by semantic similarity.

        Args:
            project_id: Project to search
            query: Natural language or code query
            limit: Maximum number of results to return (default: 10)
            threshold: Minimum similarity score (defaults to the configured threshold)

        Returns:
            Dictionary with ranked results
        """
        try:
            if not query:
                raise InvalidProjectError("query is required")
            self.project_store.get_project(project_id)
            threshold = self.default_threshold if threshold is None else threshold

            logger.info(f"Searching project {project_id} for: {query}")
            query_vector = await self.embeddings.embed_query(query)
            results = self.chunk_store.search(project_id, query_vector, limit=limit, threshold=threshold)

            return {
                "success": True,
                "query": query,
                "threshold": threshold,
                "total_results": len(results),
                "results": results,
            }
        except CodeChunkError as e:
            logger.error(f"Error during search: {e}")
            return {"success": False, "error": str(e), "error_type": type(e).__name__}

    def keyword_search(self, project_id: str, query: str, limit: int = 10) -> dict:
        """Search chunk names and code for a keyword (case-insensitive)."""
        try:
            if not query:
                raise InvalidProjectError("query is required")
            self.project_store.get_project(project_id)
            results = self.chunk_store.keyword_search(project_id, query, limit=limit)
            return {
                "success": True,
                "query": query,
                "total_results": len(results),
                "results": results,
            }
        except CodeChunkError as e:
            logger.error(f"Error during keyword search: {e}")
            return {"success": False, "error": str(e), "error_type": type(e).__name__}

    def list_chunks(self, project_id: str, chunk_type: Optional[str] = None) -> dict:
        """List a project's chunks, optionally only one type."""
        try:
            self.project_store.get_project(project_id)
            if chunk_type:
                if chunk_type not in CHUNK_TYPES:
                    raise InvalidProjectError(f"chunk_type must be one of {', '.join(CHUNK_TYPES)}")
                chunks = self.chunk_store.get_chunks_by_type(project_id, chunk_type)
            else:
                chunks = self.chunk_store.get_chunks_by_project(project_id)
            return {
                "success": True,
                "total_chunks": len(chunks),
                "chunks": [format_chunk(chunk) for chunk in chunks],
            }
        except CodeChunkError as e:
            logger.error(f"Error listing chunks: {e}")
            return {"success": False, "error": str(e), "error_type": type(e).__name__}
