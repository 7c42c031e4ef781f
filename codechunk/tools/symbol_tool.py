"""MCP tool for extracting symbols from code files."""

import logging
from pathlib import Path
from typing import Optional

from ..indexer.symbol_extractor import SymbolExtractor

logger = logging.getLogger(__name__)


class SymbolTool:
    """Tool for AST-based symbol extraction."""

    def __init__(self, extractor: SymbolExtractor):
        """Initialize symbol tool.

        Args:
            extractor: Symbol extractor for parsing code
        """
        self.extractor = extractor

    def get_symbols(
        self,
        file_path: str,
        symbol_type: Optional[str] = None,
    ) -> dict:
        """Extract symbols (functions, classes, types, constants) from a file.

        Args:
            file_path: Path to the file
            symbol_type: Filter by symbol type (function, class, type, constant)

        Returns:
            Dictionary with extracted symbols
        """
        language = self.extractor.registry.detect_language(file_path)
        if not language:
            return {"success": False, "error": f"Unsupported file type: {file_path}"}

        try:
            logger.info(f"Extracting symbols from: {file_path}")
            source_code = Path(file_path).read_bytes()
            spans = self.extractor.extract_symbols(source_code, language)
        except (OSError, ValueError) as e:
            logger.error(f"Error extracting symbols: {e}")
            return {"success": False, "error": str(e)}

        if symbol_type:
            spans = [s for s in spans if s.kind == symbol_type.lower()]

        symbols = [
            {
                "name": span.name,
                "type": span.kind,
                "node_type": span.node_type,
                "start_line": span.line_start,
                "end_line": span.line_end,
            }
            for span in spans
        ]

        return {
            "success": True,
            "file_path": file_path,
            "language": language,
            "total_symbols": len(symbols),
            "symbols": symbols,
            "filter": symbol_type,
        }
