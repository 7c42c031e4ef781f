"""MCP tool for managing indexed projects."""

import logging
from dataclasses import asdict
from typing import Optional

from ..indexer.errors import CodeChunkError
from ..indexer.project_store import ProjectStore
from ..vector_db.chunk_store import CodeChunkStore

logger = logging.getLogger(__name__)


class ProjectTool:
    """Tool for creating, listing and deleting projects."""

    def __init__(self, project_store: ProjectStore, chunk_store: CodeChunkStore):
        """Initialize project tool.

        Args:
            project_store: Project registry
            chunk_store: Chunk storage, for counts and cascading deletes
        """
        self.project_store = project_store
        self.chunk_store = chunk_store

    def create_project(
        self,
        path: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> dict:
        """Register a git working copy as a project.

        Args:
            path: Project root directory
            name: Display name (defaults to the directory name)
            description: Optional free-text description

        Returns:
            Dictionary with the created project
        """
        try:
            project = self.project_store.create_project(path, name=name, description=description)
            return {"success": True, "project": asdict(project)}
        except CodeChunkError as e:
            logger.error(f"Error creating project at {path}: {e}")
            return {"success": False, "error": str(e), "error_type": type(e).__name__}

    def list_projects(self) -> dict:
        """List all projects with their stored chunk counts."""
        try:
            projects = []
            for project in self.project_store.list_projects():
                entry = asdict(project)
                entry["chunk_count"] = self.chunk_store.count_chunks(project.id)
                projects.append(entry)
            return {"success": True, "total_projects": len(projects), "projects": projects}
        except CodeChunkError as e:
            logger.error(f"Error listing projects: {e}")
            return {"success": False, "error": str(e), "error_type": type(e).__name__}

    def delete_project(self, project_id: str) -> dict:
        """Delete a project and every chunk it owns."""
        try:
            self.project_store.get_project(project_id)
            deleted_chunks = self.chunk_store.delete_by_project(project_id)
            project = self.project_store.delete_project(project_id)
            return {
                "success": True,
                "project_id": project.id,
                "deleted_chunks": deleted_chunks,
            }
        except CodeChunkError as e:
            logger.error(f"Error deleting project {project_id}: {e}")
            return {"success": False, "error": str(e), "error_type": type(e).__name__}
