"""Turn one source file into CodeChunk records."""

import logging
import uuid
from pathlib import Path
from typing import List

from .dependency_analyzer import DependencyAnalyzer
from .errors import InvalidProjectError
from .models import CodeChunk, FileChunkResult, SymbolSpan
from .symbol_extractor import SymbolExtractor

logger = logging.getLogger(__name__)


def relative_chunk_path(file_path: str, project_root: str) -> str:
    """Return file_path relative to project_root in POSIX form.

    Raises:
        InvalidProjectError: If the file is not inside the project root
    """
    root = Path(project_root).resolve()
    try:
        relative = Path(file_path).resolve().relative_to(root)
    except ValueError:
        raise InvalidProjectError(f"{file_path} is outside project root {project_root}")
    return relative.as_posix()


class ChunkBuilder:
    """Combine symbol spans and their references into chunk records."""

    def __init__(self, extractor: SymbolExtractor, analyzer: DependencyAnalyzer):
        self.extractor = extractor
        self.analyzer = analyzer

    def build_chunks(
        self,
        project_id: str,
        relative_path: str,
        text: str,
        spans: List[SymbolSpan],
    ) -> List[CodeChunk]:
        """Build chunks for already-extracted spans of one file. No I/O.

        Args:
            project_id: Owning project
            relative_path: File path relative to the project root
            text: Full file text
            spans: Symbol spans from SymbolExtractor

        Returns:
            One chunk per span, with raw dependencies and no dependents
        """
        lines = text.split("\n")
        chunks = []

        for span in spans:
            line_end = min(span.line_end, len(lines))
            code = "\n".join(lines[span.line_start - 1 : line_end])
            dependencies = self.analyzer.analyze(code, span.name, span.node)

            chunks.append(
                CodeChunk(
                    id=str(uuid.uuid4()),
                    project_id=project_id,
                    path=relative_path,
                    code=code,
                    type=span.kind,
                    name=span.name,
                    line_start=span.line_start,
                    line_end=line_end,
                    dependencies=dependencies,
                    dependents=[],
                )
            )

        return chunks

    def build_file(self, project_id: str, project_root: str, file_path: str) -> FileChunkResult:
        """Read, parse and chunk one file.

        Read and parse failures are reported on the result, not raised.
        """
        language = self.extractor.registry.detect_language(file_path)
        if not language:
            return FileChunkResult(file_path=file_path, error="unsupported file type")

        try:
            relative_path = relative_chunk_path(file_path, project_root)
            with open(file_path, "rb") as f:
                source_code = f.read()
            spans = self.extractor.extract_symbols(source_code, language)
            text = source_code.decode("utf-8", errors="replace")
            chunks = self.build_chunks(project_id, relative_path, text, spans)
        except Exception as e:
            logger.error(f"Error chunking {file_path}: {e}")
            return FileChunkResult(file_path=file_path, error=str(e))

        logger.debug(f"Extracted {len(chunks)} chunks from {file_path}")
        return FileChunkResult(file_path=file_path, chunks=chunks)
