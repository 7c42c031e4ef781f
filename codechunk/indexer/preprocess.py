"""Text preparation for embedding requests."""

import re
from typing import Optional

from .models import CodeChunk

# "://" is left alone so URLs inside strings survive
LINE_COMMENT = re.compile(r"(?<!:)//.*$", re.MULTILINE)
BLOCK_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)
WHITESPACE = re.compile(r"\s+")


def preprocess_code(code: str, max_chars: Optional[int] = None) -> str:
    """Strip comments, collapse whitespace and truncate."""
    text = BLOCK_COMMENT.sub(" ", code)
    text = LINE_COMMENT.sub(" ", text)
    text = WHITESPACE.sub(" ", text).strip()
    if max_chars is not None and len(text) > max_chars:
        text = text[:max_chars]
    return text


def chunk_embedding_text(
    chunk: CodeChunk, include_path: bool = False, max_chars: Optional[int] = None
) -> str:
    """Build the text sent to the embedding model for one chunk.

    Args:
        chunk: Chunk to embed
        include_path: Prefix the text with the chunk's file path
        max_chars: Hard limit on the returned text length

    Returns:
        Preprocessed text; never empty (falls back to the symbol name)
    """
    text = preprocess_code(chunk.code)
    if not text:
        text = chunk.name
    if include_path:
        text = f"File: {chunk.path} {text}"
    if max_chars is not None and len(text) > max_chars:
        text = text[:max_chars]
    return text
