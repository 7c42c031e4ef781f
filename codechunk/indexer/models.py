"""Data models for code indexing."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

CHUNK_TYPES = ("function", "class", "type", "constant")


@dataclass
class SymbolSpan:
    """A named declaration found in a source file."""

    kind: str  # function, class, type, constant
    name: str
    line_start: int  # 1-based, inclusive
    line_end: int  # 1-based, inclusive
    node_type: str = ""  # tree-sitter node type the span came from
    node: Optional[Any] = field(default=None, repr=False, compare=False)


@dataclass
class CodeChunk:
    """Represents a symbol-scoped unit of indexed code."""

    id: str
    project_id: str
    path: str  # relative to the project root
    code: str
    type: str  # one of CHUNK_TYPES
    name: str
    line_start: int
    line_end: int
    dependencies: List[str] = field(default_factory=list)
    dependents: List[str] = field(default_factory=list)
    embedding: Optional[List[float]] = field(default=None, repr=False)
    created_at: Optional[float] = None
    updated_at: Optional[float] = None

    @property
    def key(self) -> tuple:
        """Uniqueness key within a project."""
        return (self.path, self.name)

    def to_payload(self) -> Dict[str, Any]:
        """Serialize everything except the id and the embedding."""
        return {
            "project_id": self.project_id,
            "path": self.path,
            "code": self.code,
            "type": self.type,
            "name": self.name,
            "line_start": self.line_start,
            "line_end": self.line_end,
            "dependencies": list(self.dependencies),
            "dependents": list(self.dependents),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_payload(
        cls, chunk_id: str, payload: Dict[str, Any], embedding: Optional[List[float]] = None
    ) -> "CodeChunk":
        return cls(
            id=str(chunk_id),
            project_id=payload.get("project_id", ""),
            path=payload.get("path", ""),
            code=payload.get("code", ""),
            type=payload.get("type", "constant"),
            name=payload.get("name", ""),
            line_start=payload.get("line_start", 1),
            line_end=payload.get("line_end", 1),
            dependencies=list(payload.get("dependencies") or []),
            dependents=list(payload.get("dependents") or []),
            embedding=embedding,
            created_at=payload.get("created_at"),
            updated_at=payload.get("updated_at"),
        )


@dataclass
class Project:
    """An indexing scope rooted at an absolute directory."""

    id: str
    name: str
    path: str  # absolute
    description: Optional[str] = None
    last_commit_hash: Optional[str] = None
    created_at: Optional[float] = None
    updated_at: Optional[float] = None


class ChangeStatus(str, Enum):
    """Outcome of comparing the stored revision with the working copy."""

    NOT_APPLICABLE = "not_applicable"
    FIRST_RUN = "first_run"
    NO_CHANGES = "no_changes"
    CHANGED = "changed"


@dataclass
class ChangeSet:
    """Result of change detection for one project."""

    status: ChangeStatus
    current_revision: Optional[str] = None
    changed_files: List[str] = field(default_factory=list)  # absolute paths

    @property
    def has_changes(self) -> bool:
        return self.status in (ChangeStatus.FIRST_RUN, ChangeStatus.CHANGED)


class RunMode(str, Enum):
    """Which extraction pass the orchestrator performs."""

    FULL = "full"
    INCREMENTAL = "incremental"
    SKIP = "skip"


@dataclass
class FileChunkResult:
    """Chunks extracted from one file, or the reason extraction failed."""

    file_path: str
    chunks: List[CodeChunk] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class AnalysisResult:
    """Summary of one analyze run."""

    project_id: str
    mode: RunMode
    analyzed_files: int = 0
    indexed_chunks: int = 0
    removed_chunks: int = 0
    total_chunks: int = 0
    current_revision: Optional[str] = None
    changed_files: List[str] = field(default_factory=list)
    failed_files: List[str] = field(default_factory=list)
    transitive_dependencies: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project_id": self.project_id,
            "mode": self.mode.value,
            "analyzed_files": self.analyzed_files,
            "indexed_chunks": self.indexed_chunks,
            "removed_chunks": self.removed_chunks,
            "total_chunks": self.total_chunks,
            "current_revision": self.current_revision,
            "changed_files": self.changed_files,
            "failed_files": self.failed_files,
            "transitive_dependencies": self.transitive_dependencies,
        }
