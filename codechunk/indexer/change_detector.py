"""Revision-based change detection for incremental indexing."""

import logging
import os
from typing import Optional

from .git_client import GitClient
from .models import ChangeSet, ChangeStatus

logger = logging.getLogger(__name__)


class ChangeDetector:
    """Compare a project's last indexed revision with its working copy."""

    def __init__(self, git: Optional[GitClient] = None):
        self.git = git or GitClient()

    def detect(self, project_root: str, last_revision: Optional[str]) -> ChangeSet:
        """Classify the project's state since the last successful run.

        Args:
            project_root: Absolute project root
            last_revision: Revision recorded after the last successful run, if any

        Returns:
            ChangeSet; changed_files holds absolute paths for CHANGED only and
            may be empty when the new commits touch nothing under the root
        """
        if not self.git.is_working_copy(project_root):
            logger.info(f"{project_root} is not a git working copy; full run")
            return ChangeSet(status=ChangeStatus.NOT_APPLICABLE)

        current = self.git.current_revision(project_root)
        if current is None:
            logger.info(f"No revision available for {project_root}; full run")
            return ChangeSet(status=ChangeStatus.NOT_APPLICABLE)

        if not last_revision:
            return ChangeSet(status=ChangeStatus.FIRST_RUN, current_revision=current)

        if last_revision == current:
            return ChangeSet(status=ChangeStatus.NO_CHANGES, current_revision=current)

        relative_paths = self.git.changed_paths(project_root, last_revision, current)
        if relative_paths is None:
            # Baseline unknown to git (rewritten history, shallow clone)
            logger.warning(f"Cannot diff {last_revision[:8]}..{current[:8]}; full run")
            return ChangeSet(status=ChangeStatus.NOT_APPLICABLE, current_revision=current)

        changed_files = [os.path.join(project_root, p) for p in relative_paths]
        logger.info(f"{len(changed_files)} files changed since {last_revision[:8]}")
        return ChangeSet(
            status=ChangeStatus.CHANGED,
            current_revision=current,
            changed_files=changed_files,
        )
