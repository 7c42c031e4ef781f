"""Exceptions raised by the indexing pipeline and its collaborators."""


class CodeChunkError(Exception):
    """Base class for all codechunk errors."""


class InvalidProjectError(CodeChunkError, ValueError):
    """Rejected input: bad project path, missing argument, path outside the root."""


class ProjectNotFoundError(CodeChunkError, LookupError):
    """No project is registered under the given id."""

    def __init__(self, project_id: str):
        super().__init__(f"Project not found: {project_id}")
        self.project_id = project_id


class ChunkNotFoundError(CodeChunkError, LookupError):
    """No chunk with the requested name exists in the project."""


class EmbeddingError(CodeChunkError):
    """Embedding generation failed; fatal for the indexing run."""


class PersistenceError(CodeChunkError):
    """Reading or writing the chunk or project store failed."""
