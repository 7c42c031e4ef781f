"""MCP tool for analyzing (indexing) projects."""

import logging

from ..indexer.errors import CodeChunkError
from ..indexer.orchestrator import ChunkingOrchestrator

logger = logging.getLogger(__name__)


class IndexingTool:
    """Tool for running analysis passes and inspecting the dependency graph."""

    def __init__(self, orchestrator: ChunkingOrchestrator):
        self.orchestrator = orchestrator

    async def analyze_project(self, project_id: str, force_full: bool = False) -> dict:
        """Index a project incrementally, or fully when forced.

        Args:
            project_id: Project to analyze
            force_full: Re-extract every file regardless of git state

        Returns:
            Dictionary with the analysis summary
        """
        logger.info(f"Starting analysis of project {project_id} (force_full={force_full})")
        try:
            result = await self.orchestrator.analyze(project_id, force_full=force_full)
            return {"success": True, **result.to_dict()}
        except CodeChunkError as e:
            logger.error(f"Error analyzing project {project_id}: {e}")
            return {"success": False, "error": str(e), "error_type": type(e).__name__}

    def get_dependency_graph(self, project_id: str, name: str) -> dict:
        """Dependencies, dependents and transitive dependencies of a symbol."""
        try:
            graph = self.orchestrator.dependency_graph(project_id, name)
            return {"success": True, **graph}
        except CodeChunkError as e:
            logger.error(f"Error reading dependency graph for {name}: {e}")
            return {"success": False, "error": str(e), "error_type": type(e).__name__}
