"""FastMCP server exposing project indexing and code chunk search."""

import asyncio
import logging
from typing import Callable, Dict, Optional

from mcp.server.fastmcp import FastMCP

from .config import get_env_config, setup_logging
from .context import AppContext, create_app_context

logger = logging.getLogger(__name__)

SERVER_NAME = "codechunk"

TOOL_NAMES = (
    "create_project",
    "list_projects",
    "analyze_project",
    "delete_project",
    "search_code_chunks",
    "keyword_search",
    "list_chunks",
    "get_symbols",
    "get_dependency_graph",
    "health_check",
)


def build_tool_table(context: AppContext) -> Dict[str, Callable]:
    """Create the tool handlers bound to one context."""

    def create_project(path: str, name: Optional[str] = None, description: Optional[str] = None) -> dict:
        """Register a git working copy as a project.

        Args:
            path: Project root directory (must be inside a git working copy)
            name: Display name (defaults to the directory name)
            description: Optional description

        Returns:
            Dictionary with the created project, including its id
        """
        return context.project_tool.create_project(path, name=name, description=description)

    def list_projects() -> dict:
        """List all projects with their last indexed revision and chunk counts."""
        return context.project_tool.list_projects()

    async def analyze_project(project_id: str, force_full: bool = False) -> dict:
        """Index a project, re-processing only files changed since the last run.

        Args:
            project_id: Project to analyze
            force_full: Re-extract every file regardless of git state

        Returns:
            Dictionary with the run mode and counts of analyzed files and indexed chunks
        """
        return await context.index_tool.analyze_project(project_id, force_full=force_full)

    def delete_project(project_id: str) -> dict:
        """Delete a project and all of its code chunks."""
        return context.project_tool.delete_project(project_id)

    async def search_code_chunks(
        project_id: str,
        query: str,
        limit: int = 10,
        threshold: Optional[float] = None,
    ) -> dict:
        """Search a project's code chunks by semantic similarity.

        Args:
            project_id: Project to search
            query: Natural language or code query (e.g., "parse config file")
            limit: Maximum number of results to return (default: 10)
            threshold: Minimum similarity score between 0 and 1

        Returns:
            Dictionary with matching chunks, their code, dependencies and scores
        """
        return await context.search_tool.search_code_chunks(project_id, query, limit=limit, threshold=threshold)

    def keyword_search(project_id: str, query: str, limit: int = 10) -> dict:
        """Search a project's chunk names and code for a keyword (case-insensitive)."""
        return context.search_tool.keyword_search(project_id, query, limit=limit)

    def list_chunks(project_id: str, chunk_type: Optional[str] = None) -> dict:
        """List a project's chunks, optionally filtered by type (function, class, type, constant)."""
        return context.search_tool.list_chunks(project_id, chunk_type=chunk_type)

    def get_symbols(file_path: str, symbol_type: Optional[str] = None) -> dict:
        """Extract symbols (functions, classes, types, constants) from a source file.

        Args:
            file_path: Path to a TypeScript or JavaScript file
            symbol_type: Filter by symbol type

        Returns:
            Dictionary with symbol names, types and line ranges
        """
        return context.symbol_tool.get_symbols(file_path, symbol_type)

    def get_dependency_graph(project_id: str, name: str) -> dict:
        """Show what a symbol depends on, what depends on it, and its transitive dependencies."""
        return context.index_tool.get_dependency_graph(project_id, name)

    async def health_check() -> dict:
        """Check health status of the vector database and the embedding service."""
        return await context.health_check()

    return {
        "create_project": create_project,
        "list_projects": list_projects,
        "analyze_project": analyze_project,
        "delete_project": delete_project,
        "search_code_chunks": search_code_chunks,
        "keyword_search": keyword_search,
        "list_chunks": list_chunks,
        "get_symbols": get_symbols,
        "get_dependency_graph": get_dependency_graph,
        "health_check": health_check,
    }


def validate_tool_table(table: Dict[str, Callable]) -> None:
    """Fail fast if the handler table does not match TOOL_NAMES exactly."""
    missing = set(TOOL_NAMES) - set(table)
    unknown = set(table) - set(TOOL_NAMES)
    if missing or unknown:
        raise ValueError(f"Tool table mismatch: missing={sorted(missing)} unknown={sorted(unknown)}")
    for name, handler in table.items():
        if not callable(handler):
            raise ValueError(f"Tool {name} is not callable")
        if not handler.__doc__:
            raise ValueError(f"Tool {name} has no description")


def create_server(context: AppContext) -> FastMCP:
    """Create a FastMCP server with every tool bound to context."""
    table = build_tool_table(context)
    validate_tool_table(table)

    mcp = FastMCP(SERVER_NAME)
    for name in TOOL_NAMES:
        mcp.add_tool(table[name], name=name)

    logger.info(f"Registered {len(table)} tools")
    return mcp


def main() -> None:
    config = get_env_config()
    setup_logging(config["log_level"], config["log_file"])

    logger.info("Starting codechunk MCP server...")
    context = create_app_context(config)
    mcp = create_server(context)

    logger.info("Server ready!")
    try:
        mcp.run()
    except KeyboardInterrupt:
        logger.info("Server interrupted")
    finally:
        asyncio.run(context.close())


if __name__ == "__main__":
    main()
