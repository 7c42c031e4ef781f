"""Thin wrapper over the git command line.

Every call degrades to a neutral value (False or None) on failure.
"""

import logging
import subprocess
from typing import List, Optional

from .retry import retry_call

logger = logging.getLogger(__name__)


class GitClient:
    """Query a working copy through the git executable."""

    def __init__(self, timeout: float = 10.0, max_attempts: int = 2, base_delay: float = 0.5):
        """Initialize git client.

        Args:
            timeout: Seconds before a git command is killed
            max_attempts: Attempts for commands that time out
            base_delay: Delay before retrying a timed out command
        """
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.base_delay = base_delay

    def _run(self, path: str, *args: str) -> Optional[str]:
        """Run git in path and return stdout, or None on any failure."""
        command = ["git", "-C", str(path), *args]

        try:
            result = retry_call(
                lambda: subprocess.run(command, capture_output=True, text=True, timeout=self.timeout),
                max_attempts=self.max_attempts,
                base_delay=self.base_delay,
                retry_on=(subprocess.TimeoutExpired,),
                description=f"git {args[0]}",
            )
        except (subprocess.TimeoutExpired, OSError) as e:
            logger.warning(f"git {' '.join(args)} failed in {path}: {e}")
            return None

        if result.returncode != 0:
            logger.debug(f"git {' '.join(args)} exited {result.returncode} in {path}: {result.stderr.strip()}")
            return None

        return result.stdout

    def is_working_copy(self, path: str) -> bool:
        output = self._run(path, "rev-parse", "--is-inside-work-tree")
        return output is not None and output.strip() == "true"

    def current_revision(self, path: str) -> Optional[str]:
        """Return the HEAD commit hash, or None (no commits, not a repo)."""
        output = self._run(path, "rev-parse", "HEAD")
        if output is None:
            return None
        revision = output.strip()
        return revision or None

    def changed_paths(self, path: str, from_revision: str, to_revision: str) -> Optional[List[str]]:
        """List files that differ between two revisions.

        Paths are relative to path. Added, modified and deleted files are all
        included. An empty list means nothing under path changed; None means
        the diff could not be computed (unknown revision, git failure).
        """
        output = self._run(path, "diff", "--name-only", "--relative", from_revision, to_revision)
        if output is None:
            return None
        return [line.strip() for line in output.splitlines() if line.strip()]
