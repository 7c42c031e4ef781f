"""
Command-line interface for codechunk.

    create-project → analyze → search / keyword-search

Every command prints a JSON result on stdout. Failures print a message on
stderr and exit with status 1.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer

from .config import get_env_config, setup_logging
from .context import AppContext, create_app_context
from .server import create_server

app = typer.Typer(help="Incremental code chunk indexer for TypeScript and JavaScript projects.")
logger = logging.getLogger(__name__)


def _emit(result: dict) -> None:
    """Print a tool result, or fail the command if it reports an error."""
    if not result.get("success", False):
        typer.echo(f"Error: {result.get('error', 'unknown error')}", err=True)
        raise typer.Exit(code=1)
    typer.echo(json.dumps(result, indent=2, default=str))


def _context(ctx: typer.Context) -> AppContext:
    return ctx.obj


@app.callback()
def main(ctx: typer.Context) -> None:
    """Build components from the environment unless a context was supplied."""
    if ctx.obj is not None:
        return

    config = get_env_config()
    setup_logging(config["log_level"], config["log_file"])
    context = create_app_context(config)
    ctx.obj = context
    ctx.call_on_close(lambda: asyncio.run(context.close()))


@app.command("create-project")
def create_project(
    ctx: typer.Context,
    path: Path = typer.Option(..., "--path", "-p", help="Project root (a git working copy)."),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Display name; defaults to the directory name."),
    description: Optional[str] = typer.Option(None, "--description", "-d", help="Free-text description."),
) -> None:
    """Register a project."""
    _emit(_context(ctx).project_tool.create_project(str(path), name=name, description=description))


@app.command("list-projects")
def list_projects(ctx: typer.Context) -> None:
    """List registered projects."""
    _emit(_context(ctx).project_tool.list_projects())


@app.command("analyze")
def analyze(
    ctx: typer.Context,
    project_id: str = typer.Argument(..., help="Project id."),
    force: bool = typer.Option(False, "--force", "-f", help="Re-extract every file."),
) -> None:
    """Index a project, incrementally when git allows it."""
    _emit(asyncio.run(_context(ctx).index_tool.analyze_project(project_id, force_full=force)))


@app.command("delete-project")
def delete_project(
    ctx: typer.Context,
    project_id: str = typer.Argument(..., help="Project id."),
) -> None:
    """Delete a project and its chunks."""
    _emit(_context(ctx).project_tool.delete_project(project_id))


@app.command("search")
def search(
    ctx: typer.Context,
    project_id: str = typer.Argument(..., help="Project id."),
    query: str = typer.Argument(..., help="Search query."),
    limit: int = typer.Option(10, "--limit", "-l", help="Maximum number of results."),
    threshold: Optional[float] = typer.Option(None, "--threshold", "-t", help="Minimum similarity score."),
) -> None:
    """Search chunks by semantic similarity."""
    tool = _context(ctx).search_tool
    _emit(asyncio.run(tool.search_code_chunks(project_id, query, limit=limit, threshold=threshold)))


@app.command("keyword-search")
def keyword_search(
    ctx: typer.Context,
    project_id: str = typer.Argument(..., help="Project id."),
    query: str = typer.Argument(..., help="Keyword to look for in names and code."),
    limit: int = typer.Option(10, "--limit", "-l", help="Maximum number of results."),
) -> None:
    """Search chunk names and code for a keyword."""
    _emit(_context(ctx).search_tool.keyword_search(project_id, query, limit=limit))


@app.command("serve")
def serve(ctx: typer.Context) -> None:
    """Run the MCP server over stdio."""
    mcp = create_server(_context(ctx))
    logger.info("Server ready!")
    mcp.run()


if __name__ == "__main__":
    app()
