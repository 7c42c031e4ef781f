"""Shared fixtures: deterministic embedder, scriptable git, in-memory stores."""

import shutil
import subprocess
from pathlib import Path
from typing import List, Optional

import blake3
import pytest

from codechunk.config import get_env_config
from codechunk.context import create_app_context
from codechunk.indexer.change_detector import ChangeDetector
from codechunk.indexer.chunk_builder import ChunkBuilder
from codechunk.indexer.dependency_analyzer import DependencyAnalyzer
from codechunk.indexer.errors import EmbeddingError
from codechunk.indexer.graph import DependencyGraphReconciler
from codechunk.indexer.orchestrator import ChunkingOrchestrator
from codechunk.indexer.project_store import ProjectStore
from codechunk.indexer.symbol_extractor import SymbolExtractor
from codechunk.vector_db.chunk_store import CodeChunkStore

VECTOR_SIZE = 8


class FakeEmbedder:
    """Maps text to a stable non-zero vector derived from its hash."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: List[List[str]] = []

    @staticmethod
    def vector_for(text: str) -> List[float]:
        digest = blake3.blake3(text.encode()).digest()
        return [b / 255.0 + 0.01 for b in digest[:VECTOR_SIZE]]

    async def embed_batch(self, texts: List[str], use_cache: bool = True) -> List[List[float]]:
        self.calls.append(list(texts))
        if self.fail:
            raise EmbeddingError("embedding service unavailable")
        return [self.vector_for(text) for text in texts]

    async def embed_query(self, text: str) -> List[float]:
        return self.vector_for(text)

    async def health_check(self) -> bool:
        return True

    def get_cache_stats(self) -> dict:
        return {"enabled": False}

    async def close(self) -> None:
        pass


class FakeGit:
    """Scriptable stand-in for GitClient."""

    def __init__(self, working_copy: bool = True, revision: Optional[str] = "rev1"):
        self.working_copy = working_copy
        self.revision = revision
        self.changed: List[str] = []
        self.diff_fails = False
        self.diff_calls = []

    def is_working_copy(self, path: str) -> bool:
        return self.working_copy

    def current_revision(self, path: str) -> Optional[str]:
        return self.revision

    def changed_paths(self, path: str, from_revision: str, to_revision: str) -> Optional[List[str]]:
        self.diff_calls.append((from_revision, to_revision))
        if self.diff_fails:
            return None
        return list(self.changed)


@pytest.fixture
def fake_git():
    return FakeGit()


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def extractor():
    return SymbolExtractor()


@pytest.fixture
def chunk_store():
    store = CodeChunkStore(location=":memory:", collection_name="test_chunks", vector_size=VECTOR_SIZE)
    yield store
    store.close()


@pytest.fixture
def project_store(tmp_path, fake_git):
    return ProjectStore(tmp_path / "index", git=fake_git)


@pytest.fixture
def project_dir(tmp_path):
    root = tmp_path / "project"
    root.mkdir()
    return root


def make_orchestrator(
    project_store,
    chunk_store,
    embedder,
    git,
    extractor=None,
    resolve_against_stored: bool = False,
) -> ChunkingOrchestrator:
    extractor = extractor or SymbolExtractor()
    return ChunkingOrchestrator(
        project_store=project_store,
        chunk_store=chunk_store,
        embedder=embedder,
        builder=ChunkBuilder(extractor, DependencyAnalyzer()),
        change_detector=ChangeDetector(git),
        reconciler=DependencyGraphReconciler(resolve_against_stored),
    )


@pytest.fixture
def orchestrator(project_store, chunk_store, embedder, fake_git, extractor):
    return make_orchestrator(project_store, chunk_store, embedder, fake_git, extractor)


@pytest.fixture
def app_context(tmp_path, monkeypatch, chunk_store, embedder, fake_git):
    monkeypatch.setenv("INDEX_PATH", str(tmp_path / "index"))
    monkeypatch.setenv("CACHE_PATH", "")
    config = get_env_config()
    return create_app_context(config, embeddings=embedder, chunk_store=chunk_store, git=fake_git)


def write_file(root: Path, relative: str, content: str) -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


def git(root: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", "-c", "user.email=test@example.com", "-c", "user.name=Test", *args],
        cwd=root,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


def init_repo(root: Path) -> None:
    git(root, "init", "-q")
    git(root, "config", "commit.gpgsign", "false")


def commit_all(root: Path, message: str = "commit") -> str:
    git(root, "add", "-A")
    git(root, "commit", "-q", "-m", message)
    return git(root, "rev-parse", "HEAD")
