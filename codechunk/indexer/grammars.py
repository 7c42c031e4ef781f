"""Language grammar configuration and detection for tree-sitter."""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "languages.json"


class LanguageConfig:
    """Configuration for a programming language."""

    def __init__(
        self,
        name: str,
        extensions: List[str],
        tree_sitter_language: str,
        chunk_types: Dict[str, Dict],
    ):
        """Initialize language configuration.

        Args:
            name: Language name (typescript, tsx, javascript)
            extensions: List of file extensions
            tree_sitter_language: Tree-sitter language identifier
            chunk_types: Mapping of AST node types to their name field and symbol category
        """
        self.name = name
        self.extensions = extensions
        self.tree_sitter_language = tree_sitter_language
        self.chunk_types = chunk_types

    def is_chunkable_node(self, node_type: str) -> bool:
        """Check if a node type is a symbol declaration candidate."""
        return node_type in self.chunk_types

    def get_name_field(self, node_type: str) -> Optional[str]:
        """Get the field name that holds the identifier for this node type.

        Returns None for node types that never carry a name (arrow functions).
        """
        if node_type in self.chunk_types:
            return self.chunk_types[node_type].get("name_field")
        return None

    def get_category(self, node_type: str) -> Optional[str]:
        """Get the symbol category (function, class, type, binding, property)."""
        if node_type in self.chunk_types:
            return self.chunk_types[node_type].get("category")
        return None


class LanguageRegistry:
    """Registry of language configurations."""

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize language registry.

        Args:
            config_path: Path to a languages.json file (defaults to the bundled one)
        """
        self.config_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
        self.languages: Dict[str, LanguageConfig] = {}
        self.extension_map: Dict[str, str] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load language configurations from JSON file."""
        try:
            with open(self.config_path, "r") as f:
                config_data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Error loading language config from {self.config_path}: {e}")
            raise

        for lang_name, lang_config in config_data.items():
            language = LanguageConfig(
                name=lang_name,
                extensions=lang_config["extensions"],
                tree_sitter_language=lang_config["tree_sitter_language"],
                chunk_types=lang_config["chunk_types"],
            )
            self.languages[lang_name] = language

            for ext in language.extensions:
                self.extension_map[ext] = lang_name

        logger.debug(f"Loaded {len(self.languages)} language configurations")

    def detect_language(self, file_path: str) -> Optional[str]:
        """Detect language from file extension, or None if unsupported."""
        extension = Path(file_path).suffix.lower()
        return self.extension_map.get(extension)

    def get_language_config(self, language: str) -> Optional[LanguageConfig]:
        return self.languages.get(language)

    def get_supported_languages(self) -> List[str]:
        return list(self.languages.keys())

    def get_supported_extensions(self) -> List[str]:
        return list(self.extension_map.keys())

    def is_supported_file(self, file_path: str) -> bool:
        return self.detect_language(file_path) is not None
