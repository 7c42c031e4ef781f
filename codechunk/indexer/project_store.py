"""JSON-file registry of indexed projects."""

import json
import logging
import time
import uuid
from dataclasses import asdict
from pathlib import Path
from typing import Dict, List, Optional

from .errors import InvalidProjectError, PersistenceError, ProjectNotFoundError
from .git_client import GitClient
from .models import Project

logger = logging.getLogger(__name__)


class ProjectStore:
    """Persist projects and their last indexed revision to projects.json."""

    def __init__(self, index_path: Path, git: Optional[GitClient] = None):
        """Initialize project store.

        Args:
            index_path: Directory holding projects.json
            git: Git client used to validate new project roots
        """
        self.index_path = Path(index_path)
        self.index_path.mkdir(parents=True, exist_ok=True)
        self.state_file = self.index_path / "projects.json"
        self.git = git or GitClient()
        self.projects: Dict[str, Project] = {}
        self._load_state()

    def _load_state(self) -> None:
        """Load project state from disk."""
        if not self.state_file.exists():
            logger.info("No existing project state found, starting fresh")
            return

        try:
            with open(self.state_file, "r") as f:
                data = json.load(f)
            self.projects = {pid: Project(**record) for pid, record in data.items()}
        except (OSError, ValueError, TypeError) as e:
            raise PersistenceError(f"Error loading project state from {self.state_file}: {e}") from e

        logger.info(f"Loaded {len(self.projects)} projects")

    def _save_state(self) -> None:
        """Write project state atomically."""
        data = {pid: asdict(project) for pid, project in self.projects.items()}
        tmp_file = self.state_file.with_suffix(".json.tmp")
        try:
            with open(tmp_file, "w") as f:
                json.dump(data, f, indent=2)
            tmp_file.replace(self.state_file)
        except OSError as e:
            raise PersistenceError(f"Error saving project state: {e}") from e
        logger.debug(f"Saved state for {len(self.projects)} projects")

    def create_project(
        self, path: str, name: Optional[str] = None, description: Optional[str] = None
    ) -> Project:
        """Register a project rooted at a git working copy.

        The revision marker stays empty until the first successful analysis.

        Raises:
            InvalidProjectError: If the path is missing, not a directory, or not a working copy
        """
        if not path:
            raise InvalidProjectError("Project path is required")

        root = Path(path).expanduser().resolve()
        if not root.is_dir():
            raise InvalidProjectError(f"Project path does not exist or is not a directory: {root}")
        if not self.git.is_working_copy(str(root)):
            raise InvalidProjectError(f"Project path is not a git working copy: {root}")

        now = time.time()
        project = Project(
            id=str(uuid.uuid4()),
            name=name or root.name,
            path=str(root),
            description=description,
            last_commit_hash=None,
            created_at=now,
            updated_at=now,
        )
        self.projects[project.id] = project
        self._save_state()

        logger.info(f"Created project {project.name} ({project.id}) at {project.path}")
        return project

    def get_project(self, project_id: str) -> Project:
        """Return a project.

        Raises:
            ProjectNotFoundError: If no project has this id
        """
        if not project_id:
            raise InvalidProjectError("project_id is required")
        project = self.projects.get(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        return project

    def list_projects(self) -> List[Project]:
        return sorted(self.projects.values(), key=lambda p: p.created_at or 0)

    def update_last_revision(self, project_id: str, revision: Optional[str]) -> Project:
        """Record the revision indexed by the last successful run."""
        project = self.get_project(project_id)
        project.last_commit_hash = revision
        project.updated_at = time.time()
        self._save_state()
        logger.info(f"Project {project_id} revision set to {revision}")
        return project

    def delete_project(self, project_id: str) -> Project:
        """Remove a project from the registry; chunks are deleted by the caller."""
        project = self.get_project(project_id)
        del self.projects[project_id]
        self._save_state()
        logger.info(f"Deleted project {project_id}")
        return project
