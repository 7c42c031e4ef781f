"""Explicit construction of every component the server and CLI use."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .indexer.change_detector import ChangeDetector
from .indexer.chunk_builder import ChunkBuilder
from .indexer.dependency_analyzer import DependencyAnalyzer
from .indexer.embeddings import OllamaEmbeddings
from .indexer.git_client import GitClient
from .indexer.graph import DependencyGraphReconciler
from .indexer.orchestrator import ChunkingOrchestrator
from .indexer.project_store import ProjectStore
from .indexer.symbol_extractor import SymbolExtractor
from .tools.index_tool import IndexingTool
from .tools.project_tool import ProjectTool
from .tools.search_tool import SearchTool
from .tools.symbol_tool import SymbolTool
from .vector_db.chunk_store import CodeChunkStore

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Wired components for one process."""

    config: Dict[str, Any]
    project_store: ProjectStore
    chunk_store: CodeChunkStore
    embeddings: OllamaEmbeddings
    extractor: SymbolExtractor
    orchestrator: ChunkingOrchestrator
    project_tool: ProjectTool
    index_tool: IndexingTool
    search_tool: SearchTool
    symbol_tool: SymbolTool

    async def health_check(self) -> dict:
        """Check health status of all components."""
        return {
            "success": True,
            "components": {
                "server": True,
                "vector_db": self.chunk_store.health_check(),
                "embeddings": await self.embeddings.health_check(),
            },
            "cache": self.embeddings.get_cache_stats(),
        }

    async def close(self) -> None:
        await self.embeddings.close()
        self.chunk_store.close()


def create_app_context(
    config: Dict[str, Any],
    embeddings: Optional[Any] = None,
    chunk_store: Optional[CodeChunkStore] = None,
    git: Optional[GitClient] = None,
) -> AppContext:
    """Build every component from a config dict (see get_env_config).

    Args:
        config: Configuration dictionary
        embeddings: Embedder to use instead of an Ollama client
        chunk_store: Chunk store to use instead of connecting to Qdrant
        git: Git client shared by project validation and change detection

    Returns:
        AppContext with all components wired together
    """
    git = git or GitClient(
        max_attempts=config["max_retries"], base_delay=config["retry_base_delay"]
    )

    if chunk_store is None:
        if config["qdrant_location"]:
            logger.info(f"Opening Qdrant at {config['qdrant_location']}")
        else:
            logger.info(f"Connecting to Qdrant at {config['qdrant_host']}:{config['qdrant_port']}")
        chunk_store = CodeChunkStore(
            host=config["qdrant_host"],
            port=config["qdrant_port"],
            collection_name=config["collection_name"],
            vector_size=config["vector_size"],
            location=config["qdrant_location"],
        )

    if embeddings is None:
        logger.info(f"Using Ollama at {config['ollama_host']}")
        embeddings = OllamaEmbeddings(
            host=config["ollama_host"],
            model=config["embedding_model"],
            cache_dir=config["cache_path"],
            batch_size=config["batch_size"],
            max_concurrent=config["max_concurrent"],
            max_retries=config["max_retries"],
            retry_base_delay=config["retry_base_delay"],
        )

    logger.info(f"Initializing project index at {config['index_path']}")
    project_store = ProjectStore(config["index_path"], git=git)

    extractor = SymbolExtractor()
    builder = ChunkBuilder(extractor, DependencyAnalyzer(config["dependency_strategy"]))
    orchestrator = ChunkingOrchestrator(
        project_store=project_store,
        chunk_store=chunk_store,
        embedder=embeddings,
        builder=builder,
        change_detector=ChangeDetector(git),
        reconciler=DependencyGraphReconciler(config["resolve_against_stored"]),
        embed_include_path=config["embed_include_path"],
        max_embedding_chars=config["max_embedding_chars"],
    )

    return AppContext(
        config=config,
        project_store=project_store,
        chunk_store=chunk_store,
        embeddings=embeddings,
        extractor=extractor,
        orchestrator=orchestrator,
        project_tool=ProjectTool(project_store, chunk_store),
        index_tool=IndexingTool(orchestrator),
        search_tool=SearchTool(
            chunk_store,
            embeddings,
            project_store,
            default_threshold=config["similarity_threshold"],
        ),
        symbol_tool=SymbolTool(extractor),
    )
