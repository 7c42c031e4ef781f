"""Source file discovery with ignored directories, patterns and .gitignore."""

import fnmatch
import logging
import os
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from gitignore_parser import parse_gitignore

logger = logging.getLogger(__name__)

IGNORED_DIRECTORIES = frozenset(
    {"node_modules", ".git", "dist", "build", "coverage", ".next", ".cache"}
)

IGNORED_FILE_PATTERNS = ("*.min.js", "*.map")


class IgnoreRules:
    """Decide which files under a project root are eligible for indexing."""

    def __init__(
        self,
        root: str,
        extensions: Iterable[str],
        follow_gitignore: bool = True,
        extra_patterns: Optional[List[str]] = None,
    ):
        """Initialize ignore rules.

        Args:
            root: Absolute project root
            extensions: Supported source extensions (with leading dot)
            follow_gitignore: Whether to respect the root .gitignore
            extra_patterns: Additional glob patterns to exclude
        """
        self.root = Path(root).resolve()
        self.extensions = {ext.lower() for ext in extensions}
        self.patterns = list(IGNORED_FILE_PATTERNS) + list(extra_patterns or [])
        self.gitignore_matcher: Optional[Callable[[str], bool]] = None

        if follow_gitignore:
            gitignore_path = self.root / ".gitignore"
            if gitignore_path.exists():
                try:
                    self.gitignore_matcher = parse_gitignore(gitignore_path, base_dir=str(self.root))
                    logger.info(f"Loaded .gitignore from {gitignore_path}")
                except Exception as e:
                    logger.warning(f"Error parsing .gitignore: {e}")

    def is_eligible(self, file_path: str) -> bool:
        """Check whether a file should be indexed."""
        path = Path(file_path)
        if path.suffix.lower() not in self.extensions:
            return False

        try:
            relative = path.resolve().relative_to(self.root)
        except ValueError:
            return False

        if any(part in IGNORED_DIRECTORIES for part in relative.parts[:-1]):
            return False

        if any(fnmatch.fnmatch(path.name, pattern) for pattern in self.patterns):
            return False

        if self.gitignore_matcher and self.gitignore_matcher(str(path.resolve())):
            return False

        return True

    def walk(self) -> List[str]:
        """Return every eligible file under the root, sorted, as absolute paths."""
        files = []
        for dirpath, dirnames, filenames in os.walk(self.root):
            # Prune ignored directories in place so os.walk never descends
            dirnames[:] = [d for d in dirnames if d not in IGNORED_DIRECTORIES]
            for filename in filenames:
                file_path = os.path.join(dirpath, filename)
                if self.is_eligible(file_path):
                    files.append(file_path)

        files.sort()
        logger.debug(f"Found {len(files)} eligible files under {self.root}")
        return files
