"""Symbol extraction from TypeScript/JavaScript sources using tree-sitter."""

import logging
from typing import Any, Dict, List, Optional

import tree_sitter_javascript as tsjavascript
import tree_sitter_typescript as tstypescript
from tree_sitter import Language, Parser

from .grammars import LanguageConfig, LanguageRegistry
from .models import SymbolSpan

logger = logging.getLogger(__name__)

# Node types a declaration name may have; anything else (destructuring
# patterns, computed keys, string keys) is discarded.
NAME_NODE_TYPES = {
    "identifier",
    "type_identifier",
    "property_identifier",
    "private_property_identifier",
}

FUNCTION_VALUE_TYPES = {
    "arrow_function",
    "function_expression",
    "function",
    "generator_function",
}

# Declarations whose bodies are one line are still real symbols; the
# minimum span only applies to bindings and class fields.
MIN_BINDING_LINES = 2


class SymbolExtractor:
    """Find named declarations in a parsed file and classify them."""

    # Grammar module and language function per tree-sitter language
    LANGUAGE_MODULES = {
        "typescript": (tstypescript, "language_typescript"),
        "tsx": (tstypescript, "language_tsx"),
        "javascript": (tsjavascript, "language"),
    }

    def __init__(self, registry: Optional[LanguageRegistry] = None):
        """Initialize the extractor.

        Args:
            registry: Language registry (defaults to the bundled languages.json)
        """
        self.registry = registry or LanguageRegistry()
        self.languages: Dict[str, Language] = {}
        self._init_languages()

    def _init_languages(self) -> None:
        """Load tree-sitter languages for every registered language."""
        for lang_name in self.registry.get_supported_languages():
            lang_config = self.registry.get_language_config(lang_name)
            entry = self.LANGUAGE_MODULES.get(lang_config.tree_sitter_language)
            if not entry:
                logger.warning(f"No grammar module for language: {lang_config.tree_sitter_language}")
                continue

            module, func_name = entry
            self.languages[lang_name] = Language(getattr(module, func_name)())
            logger.debug(f"Initialized grammar for {lang_name}")

    def create_parser(self, language: str) -> Parser:
        """Create a fresh parser; parsers are not shared between threads."""
        parser = Parser()
        parser.language = self.languages[language]
        return parser

    def parse(self, source_code: bytes, language: str) -> Any:
        """Parse source bytes and return the tree-sitter tree."""
        if language not in self.languages:
            raise ValueError(f"Parser not available for {language}")
        return self.create_parser(language).parse(source_code)

    def extract_symbols(self, source_code: bytes, language: str) -> List[SymbolSpan]:
        """Parse a file's bytes and return its symbol spans in pre-order.

        Args:
            source_code: Raw file contents
            language: Registered language name (see LanguageRegistry.detect_language)

        Returns:
            List of symbol spans; each keeps a reference to its AST node
        """
        lang_config = self.registry.get_language_config(language)
        if not lang_config:
            raise ValueError(f"Unsupported language: {language}")

        tree = self.parse(source_code, language)
        if tree.root_node.has_error:
            logger.warning(f"Parse errors in {language} source; extracting what parsed")

        return self.extract_from_tree(tree.root_node, lang_config)

    def extract_from_tree(self, root: Any, lang_config: LanguageConfig) -> List[SymbolSpan]:
        """Walk every descendant of root, including those inside emitted symbols."""
        spans = []
        stack = [root]

        while stack:
            node = stack.pop()

            if node.is_named and lang_config.is_chunkable_node(node.type):
                span = self._build_span(node, lang_config)
                if span:
                    spans.append(span)

            # Reverse so the leftmost child is visited first
            stack.extend(reversed(node.children))

        return spans

    def _build_span(self, node: Any, lang_config: LanguageConfig) -> Optional[SymbolSpan]:
        category = lang_config.get_category(node.type)
        name = self._extract_node_name(node, lang_config)
        if not name:
            return None

        line_start = node.start_point[0] + 1
        line_end = node.end_point[0] + 1

        if category == "binding":
            if not self._is_indexed_binding(node):
                return None
            kind = self._classify_value(node.child_by_field_name("value"))
        elif category == "property":
            kind = self._classify_value(node.child_by_field_name("value"))
        elif category in ("function", "class", "type"):
            kind = category
        else:
            return None

        if category in ("binding", "property") and line_end - line_start + 1 < MIN_BINDING_LINES:
            return None

        return SymbolSpan(
            kind=kind,
            name=name,
            line_start=line_start,
            line_end=line_end,
            node_type=node.type,
            node=node,
        )

    def _extract_node_name(self, node: Any, lang_config: LanguageConfig) -> Optional[str]:
        """Extract the identifier of a declaration node, or None if it has none."""
        name_field = lang_config.get_name_field(node.type)
        if not name_field:
            return None

        name_node = node.child_by_field_name(name_field)
        if not name_node or name_node.type not in NAME_NODE_TYPES:
            return None

        name = name_node.text.decode("utf-8", errors="replace")
        if not any(ch.isalnum() for ch in name):
            return None
        return name

    def _is_indexed_binding(self, declarator: Any) -> bool:
        """const bindings count at any depth; let/var only at module level."""
        declaration = declarator.parent
        if declaration is None:
            return False

        keyword = declaration.children[0].type if declaration.children else ""
        if keyword == "const":
            return True

        scope = declaration.parent
        if scope is not None and scope.type == "export_statement":
            scope = scope.parent
        return scope is not None and scope.type == "program"

    def _classify_value(self, value: Optional[Any]) -> str:
        # Parenthesized and type-asserted initializers wrap the real value
        while value is not None and value.type in ("parenthesized_expression", "as_expression", "satisfies_expression"):
            inner = value.named_children[0] if value.named_children else None
            value = inner
        if value is not None and value.type in FUNCTION_VALUE_TYPES:
            return "function"
        return "constant"
