"""Qdrant-backed storage for code chunks keyed by (project, path, name)."""

import logging
import time
from typing import Any, Dict, Iterable, List, Optional, Tuple

from qdrant_client import QdrantClient
from qdrant_client.http import models
from qdrant_client.http.models import Distance, PointStruct, VectorParams

from ..indexer.errors import PersistenceError
from ..indexer.models import CodeChunk

logger = logging.getLogger(__name__)

SCROLL_PAGE_SIZE = 256
UPSERT_BATCH_SIZE = 256


def format_chunk(chunk: CodeChunk, score: Optional[float] = None) -> Dict[str, Any]:
    """Result dictionary for tools and the CLI (no embedding)."""
    result = {"id": chunk.id, **chunk.to_payload()}
    if score is not None:
        result["score"] = score
    return result


class CodeChunkStore:
    """Wrapper for Qdrant operations on one chunk collection."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6333,
        collection_name: str = "code_chunks",
        vector_size: int = 768,  # Default for nomic-embed-text
        location: Optional[str] = None,
        client: Optional[QdrantClient] = None,
    ):
        """Initialize Qdrant client.

        Args:
            host: Qdrant server host
            port: Qdrant server port
            collection_name: Name of the collection to use
            vector_size: Dimension of embedding vectors
            location: Qdrant location such as ":memory:" or a local path; overrides host/port
            client: Preconfigured client, overrides everything above
        """
        if client is not None:
            self.client = client
        elif location:
            self.client = QdrantClient(location=location)
        else:
            self.client = QdrantClient(host=host, port=port)
        self.collection_name = collection_name
        self.vector_size = vector_size
        self._ensure_collection()

    def _ensure_collection(self) -> None:
        """Create collection if it doesn't exist."""
        try:
            collections = self.client.get_collections().collections
            collection_names = [col.name for col in collections]

            if self.collection_name not in collection_names:
                logger.info(f"Creating collection: {self.collection_name}")
                self.client.create_collection(
                    collection_name=self.collection_name,
                    vectors_config=VectorParams(
                        size=self.vector_size,
                        distance=Distance.COSINE,
                    ),
                )
            else:
                logger.info(f"Collection {self.collection_name} already exists")
        except Exception as e:
            logger.error(f"Error ensuring collection: {e}")
            raise PersistenceError(f"Cannot prepare collection {self.collection_name}: {e}") from e

    @staticmethod
    def _project_filter(project_id: str, **conditions: Any) -> models.Filter:
        must = [
            models.FieldCondition(key="project_id", match=models.MatchValue(value=project_id))
        ]
        for key, value in conditions.items():
            must.append(models.FieldCondition(key=key, match=models.MatchValue(value=value)))
        return models.Filter(must=must)

    def _scroll_all(self, scroll_filter: models.Filter, with_vectors: bool = False) -> List[CodeChunk]:
        """Read every point matching a filter, page by page."""
        chunks = []
        offset = None
        try:
            while True:
                records, offset = self.client.scroll(
                    collection_name=self.collection_name,
                    scroll_filter=scroll_filter,
                    limit=SCROLL_PAGE_SIZE,
                    offset=offset,
                    with_payload=True,
                    with_vectors=with_vectors,
                )
                for record in records:
                    vector = record.vector if with_vectors else None
                    chunks.append(CodeChunk.from_payload(record.id, record.payload or {}, vector))
                if offset is None:
                    break
        except Exception as e:
            logger.error(f"Error reading chunks: {e}")
            raise PersistenceError(f"Error reading chunks: {e}") from e

        chunks.sort(key=lambda c: (c.path, c.line_start, c.name))
        return chunks

    def get_chunks_by_project(self, project_id: str, with_vectors: bool = False) -> List[CodeChunk]:
        return self._scroll_all(self._project_filter(project_id), with_vectors=with_vectors)

    def get_chunks_by_type(self, project_id: str, chunk_type: str) -> List[CodeChunk]:
        return self._scroll_all(self._project_filter(project_id, type=chunk_type))

    def get_chunks_by_name(self, project_id: str, name: str) -> List[CodeChunk]:
        return self._scroll_all(self._project_filter(project_id, name=name))

    def count_chunks(self, project_id: str) -> int:
        try:
            result = self.client.count(
                collection_name=self.collection_name,
                count_filter=self._project_filter(project_id),
                exact=True,
            )
        except Exception as e:
            logger.error(f"Error counting chunks: {e}")
            raise PersistenceError(f"Error counting chunks: {e}") from e
        return result.count

    def upsert_chunks(self, project_id: str, chunks: List[CodeChunk]) -> List[CodeChunk]:
        """Insert or update chunks keyed by (project, path, name).

        Duplicate keys within the batch keep their first occurrence. Existing
        keys keep their stored id and created_at; every other field is
        overwritten.

        Args:
            project_id: Project every chunk must belong to
            chunks: Chunks with embeddings assigned

        Returns:
            The chunks actually written, with final ids and timestamps

        Raises:
            PersistenceError: On a chunk without embedding, a foreign chunk, or a storage failure
        """
        unique: Dict[tuple, CodeChunk] = {}
        for chunk in chunks:
            if chunk.project_id != project_id:
                raise PersistenceError(f"Chunk {chunk.name} belongs to project {chunk.project_id}, not {project_id}")
            if chunk.embedding is None:
                raise PersistenceError(f"Chunk {chunk.path}:{chunk.name} has no embedding")
            if chunk.key not in unique:
                unique[chunk.key] = chunk

        if len(unique) < len(chunks):
            logger.info(f"Dropped {len(chunks) - len(unique)} duplicate chunks before upsert")

        existing = {c.key: c for c in self.get_chunks_by_project(project_id)}
        now = time.time()
        points = []
        for key, chunk in unique.items():
            stored = existing.get(key)
            if stored is not None:
                chunk.id = stored.id
                chunk.created_at = stored.created_at
            else:
                chunk.created_at = now
            chunk.updated_at = now

            points.append(PointStruct(id=chunk.id, vector=chunk.embedding, payload=chunk.to_payload()))

        try:
            for i in range(0, len(points), UPSERT_BATCH_SIZE):
                self.client.upsert(
                    collection_name=self.collection_name,
                    points=points[i : i + UPSERT_BATCH_SIZE],
                )
        except Exception as e:
            logger.error(f"Error upserting chunks: {e}")
            raise PersistenceError(f"Error upserting chunks: {e}") from e

        logger.info(f"Upserted {len(points)} chunks for project {project_id}")
        return list(unique.values())

    def delete_by_project(self, project_id: str) -> int:
        """Delete all chunks of a project and return how many there were."""
        count = self.count_chunks(project_id)
        try:
            self.client.delete(
                collection_name=self.collection_name,
                points_selector=models.FilterSelector(filter=self._project_filter(project_id)),
            )
        except Exception as e:
            logger.error(f"Error deleting chunks: {e}")
            raise PersistenceError(f"Error deleting chunks: {e}") from e

        logger.info(f"Deleted {count} chunks for project {project_id}")
        return count

    def delete_chunks(self, project_id: str, keys: Iterable[Tuple[str, str]]) -> int:
        """Delete chunks by (path, name) key.

        Args:
            project_id: Project owning the chunks
            keys: (path, name) pairs; unknown keys are ignored

        Returns:
            Number of distinct keys requested for deletion
        """
        names_by_path: Dict[str, List[str]] = {}
        for path, name in set(keys):
            names_by_path.setdefault(path, []).append(name)

        try:
            for path, names in sorted(names_by_path.items()):
                selector = self._project_filter(project_id, path=path)
                selector.must.append(
                    models.FieldCondition(key="name", match=models.MatchAny(any=sorted(names)))
                )
                self.client.delete(
                    collection_name=self.collection_name,
                    points_selector=models.FilterSelector(filter=selector),
                )
        except Exception as e:
            logger.error(f"Error deleting chunks: {e}")
            raise PersistenceError(f"Error deleting chunks: {e}") from e

        count = sum(len(names) for names in names_by_path.values())
        if count:
            logger.info(f"Deleted {count} stale chunks for project {project_id}")
        return count

    def search(
        self,
        project_id: str,
        query_vector: List[float],
        limit: int = 10,
        threshold: Optional[float] = None,
    ) -> List[Dict[str, Any]]:
        """Search for similar chunks within a project.

        Args:
            project_id: Project to search
            query_vector: Embedding vector of the search query
            limit: Maximum number of results to return
            threshold: Minimum cosine similarity, if any

        Returns:
            Chunk dictionaries with a score, best first
        """
        try:
            response = self.client.query_points(
                collection_name=self.collection_name,
                query=query_vector,
                query_filter=self._project_filter(project_id),
                limit=limit,
                with_payload=True,
                score_threshold=threshold,
            )
        except Exception as e:
            logger.error(f"Error searching: {e}")
            raise PersistenceError(f"Error searching: {e}") from e

        results = [
            format_chunk(CodeChunk.from_payload(point.id, point.payload or {}), score=point.score)
            for point in response.points
        ]
        logger.info(f"Found {len(results)} results")
        return results

    def keyword_search(self, project_id: str, query: str, limit: int = 10) -> List[Dict[str, Any]]:
        """Case-insensitive substring search over names and code; name matches first."""
        needle = query.lower()
        name_matches = []
        code_matches = []
        for chunk in self.get_chunks_by_project(project_id):
            if needle in chunk.name.lower():
                name_matches.append(chunk)
            elif needle in chunk.code.lower():
                code_matches.append(chunk)

        return [format_chunk(chunk) for chunk in (name_matches + code_matches)[:limit]]

    def health_check(self) -> bool:
        try:
            self.client.get_collections()
            return True
        except Exception as e:
            logger.error(f"Qdrant health check failed: {e}")
            return False

    def close(self) -> None:
        self.client.close()
