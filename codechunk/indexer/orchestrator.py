"""Analyze a project: detect changes, extract chunks, embed, reconcile and persist."""

import asyncio
import logging
import os
from typing import Dict, List, Optional, Protocol, Set, Tuple

from .change_detector import ChangeDetector
from .chunk_builder import ChunkBuilder, relative_chunk_path
from .errors import ChunkNotFoundError, EmbeddingError, InvalidProjectError
from .graph import DependencyGraphReconciler, count_transitive_dependencies, transitive_dependencies
from .ignore import IgnoreRules
from .models import AnalysisResult, ChangeSet, ChangeStatus, CodeChunk, Project, RunMode
from .preprocess import chunk_embedding_text
from .project_store import ProjectStore

logger = logging.getLogger(__name__)


class Embedder(Protocol):
    async def embed_batch(self, texts: List[str]) -> List[List[float]]: ...


def decide_mode(change_set: ChangeSet, force_full: bool = False) -> RunMode:
    """Pick the run mode from the detected change state."""
    if force_full:
        return RunMode.FULL
    if change_set.status in (ChangeStatus.NOT_APPLICABLE, ChangeStatus.FIRST_RUN):
        return RunMode.FULL
    if change_set.status == ChangeStatus.NO_CHANGES:
        return RunMode.SKIP
    return RunMode.INCREMENTAL


def dedupe_chunks(chunks: List[CodeChunk]) -> List[CodeChunk]:
    """Keep the first chunk for each (path, name)."""
    seen = set()
    unique = []
    for chunk in chunks:
        if chunk.key in seen:
            logger.debug(f"Dropping duplicate symbol {chunk.name} in {chunk.path}")
            continue
        seen.add(chunk.key)
        unique.append(chunk)
    return unique


class ChunkingOrchestrator:
    """Run full, incremental or skipped analysis passes for a project."""

    def __init__(
        self,
        project_store: ProjectStore,
        chunk_store,
        embedder: Embedder,
        builder: ChunkBuilder,
        change_detector: ChangeDetector,
        reconciler: DependencyGraphReconciler,
        embed_include_path: bool = False,
        max_embedding_chars: Optional[int] = None,
    ):
        """Initialize orchestrator.

        Args:
            project_store: Project registry
            chunk_store: CodeChunkStore (or any object with the same methods)
            embedder: Object with an async embed_batch(texts) method
            builder: Chunk builder for single files
            change_detector: Revision-based change detector
            reconciler: Dependency graph reconciler
            embed_include_path: Prefix embedding text with the file path
            max_embedding_chars: Hard truncation of embedding text
        """
        self.project_store = project_store
        self.chunk_store = chunk_store
        self.embedder = embedder
        self.builder = builder
        self.change_detector = change_detector
        self.reconciler = reconciler
        self.embed_include_path = embed_include_path
        self.max_embedding_chars = max_embedding_chars

    def _ignore_rules(self, project: Project) -> IgnoreRules:
        extensions = self.builder.extractor.registry.get_supported_extensions()
        return IgnoreRules(project.path, extensions)

    def select_files(self, project: Project, mode: RunMode, change_set: ChangeSet) -> List[str]:
        """Absolute paths to process for this run."""
        rules = self._ignore_rules(project)
        if mode == RunMode.FULL:
            return rules.walk()
        if mode == RunMode.SKIP:
            return []

        files = []
        for file_path in change_set.changed_files:
            if not os.path.isfile(file_path):
                # Deleted or renamed away; its stored chunks are pruned
                logger.info(f"Changed file no longer exists, skipping: {file_path}")
                continue
            if not rules.is_eligible(file_path):
                logger.debug(f"Changed file not indexed: {file_path}")
                continue
            files.append(file_path)
        return files

    async def collect_chunks(self, project: Project, files: List[str]) -> Tuple[List[CodeChunk], List[str]]:
        """Build chunks for every file concurrently.

        Returns:
            (chunks in file order, paths of files that failed)
        """
        tasks = [
            asyncio.to_thread(self.builder.build_file, project.id, project.path, file_path)
            for file_path in files
        ]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        chunks: List[CodeChunk] = []
        failed: List[str] = []
        for file_path, result in zip(files, results):
            if isinstance(result, BaseException):
                logger.error(f"Error chunking {file_path}: {result}")
                failed.append(file_path)
            elif result.error:
                failed.append(file_path)
            else:
                chunks.extend(result.chunks)

        return dedupe_chunks(chunks), failed

    def stale_keys(
        self,
        project: Project,
        mode: RunMode,
        change_set: ChangeSet,
        files: List[str],
        failed: List[str],
        chunks: List[CodeChunk],
    ) -> Set[Tuple[str, str]]:
        """Stored (path, name) keys that this run shows no longer exist.

        A full run accounts for every path except files that failed to
        extract. An incremental run accounts only for the files it
        re-extracted and for changed files that were deleted.
        """
        produced = {chunk.key for chunk in chunks}
        failed_paths = {relative_chunk_path(f, project.path) for f in failed}

        if mode == RunMode.FULL:
            def owned(path: str) -> bool:
                return path not in failed_paths
        else:
            paths = {relative_chunk_path(f, project.path) for f in files} - failed_paths
            paths.update(
                relative_chunk_path(f, project.path)
                for f in change_set.changed_files
                if not os.path.exists(f)
            )

            def owned(path: str) -> bool:
                return path in paths

        return {
            chunk.key
            for chunk in self.chunk_store.get_chunks_by_project(project.id)
            if owned(chunk.path) and chunk.key not in produced
        }

    async def embed_chunks(self, chunks: List[CodeChunk]) -> None:
        """Assign an embedding to every chunk, in order.

        Raises:
            EmbeddingError: If the embedder fails or returns the wrong number of vectors
        """
        texts = [
            chunk_embedding_text(chunk, self.embed_include_path, self.max_embedding_chars)
            for chunk in chunks
        ]
        vectors = await self.embedder.embed_batch(texts)
        if len(vectors) != len(chunks):
            raise EmbeddingError(f"Expected {len(chunks)} embeddings, got {len(vectors)}")

        for chunk, vector in zip(chunks, vectors):
            chunk.embedding = vector

    async def analyze(self, project_id: str, force_full: bool = False) -> AnalysisResult:
        """Index a project and return a summary.

        Args:
            project_id: Project to analyze
            force_full: Re-extract every file regardless of revision state

        Raises:
            ProjectNotFoundError: Unknown project
            InvalidProjectError: Project root is gone
            EmbeddingError: Embedding failed; nothing was persisted
            PersistenceError: Storage failed
        """
        project = self.project_store.get_project(project_id)
        if not os.path.isdir(project.path):
            raise InvalidProjectError(f"Project root no longer exists: {project.path}")

        change_set = await asyncio.to_thread(
            self.change_detector.detect, project.path, project.last_commit_hash
        )
        mode = decide_mode(change_set, force_full)
        logger.info(f"Analyzing project {project.name} ({project_id}): {change_set.status.value}, mode={mode.value}")

        result = AnalysisResult(
            project_id=project_id,
            mode=mode,
            current_revision=change_set.current_revision,
            changed_files=[os.path.relpath(f, project.path) for f in change_set.changed_files],
        )

        if mode == RunMode.SKIP:
            result.total_chunks = self.chunk_store.count_chunks(project_id)
            logger.info(f"No changes since {project.last_commit_hash}; {result.total_chunks} chunks stored")
            return result

        files = self.select_files(project, mode, change_set)
        chunks, failed = await self.collect_chunks(project, files)
        result.analyzed_files = len(files) - len(failed)
        result.failed_files = [os.path.relpath(f, project.path) for f in failed]
        stale = self.stale_keys(project, mode, change_set, files, failed, chunks)

        if chunks:
            await self.embed_chunks(chunks)

            stored = None
            if self.reconciler.resolve_against_stored:
                stored = [
                    c
                    for c in self.chunk_store.get_chunks_by_project(project_id, with_vectors=True)
                    if c.key not in stale
                ]
            modified = self.reconciler.reconcile(chunks, stored)

            written = self.chunk_store.upsert_chunks(project_id, chunks + modified)
            result.indexed_chunks = len(written) - len(modified)
            result.transitive_dependencies = count_transitive_dependencies(chunks)
        else:
            logger.info(f"No chunks extracted from {len(files)} files")

        if stale:
            result.removed_chunks = self.chunk_store.delete_chunks(project_id, stale)

        if change_set.current_revision:
            self.project_store.update_last_revision(project_id, change_set.current_revision)

        result.total_chunks = self.chunk_store.count_chunks(project_id)
        logger.info(
            f"Indexed {result.indexed_chunks} chunks from {result.analyzed_files} files "
            f"({len(failed)} failed); {result.total_chunks} chunks stored"
        )
        return result

    def dependency_graph(self, project_id: str, name: str) -> Dict[str, object]:
        """Resolved dependencies, dependents and transitive count for a chunk name."""
        self.project_store.get_project(project_id)
        chunks = self.chunk_store.get_chunks_by_project(project_id)
        matches = [c for c in chunks if c.name == name]
        if not matches:
            raise ChunkNotFoundError(f"No chunk named {name} in project {project_id}")

        closure = transitive_dependencies(chunks)
        return {
            "name": name,
            "chunks": [
                {
                    "path": c.path,
                    "type": c.type,
                    "line_start": c.line_start,
                    "line_end": c.line_end,
                    "dependencies": c.dependencies,
                    "dependents": c.dependents,
                }
                for c in matches
            ],
            "transitive_dependencies": sorted(closure.get(name, set())),
        }
