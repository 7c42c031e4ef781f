"""Referenced-name extraction for code chunks using a strategy pattern.

The structural strategy walks a chunk's AST subtree; the lexical strategy
pattern-matches the chunk text and is used when no subtree is available.
Both exclude well-known built-ins and the chunk's own name.
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

BUILTIN_NAMES = frozenset(
    {
        # globals
        "console", "window", "document", "globalThis", "process", "require",
        "module", "exports", "undefined", "null", "this", "super", "arguments",
        "setTimeout", "clearTimeout", "setInterval", "clearInterval", "fetch",
        "Buffer", "NaN", "Infinity", "parseInt", "parseFloat", "isNaN",
        # standard objects
        "Object", "Array", "String", "Number", "Boolean", "Symbol", "BigInt",
        "Function", "Math", "JSON", "Date", "RegExp", "Error", "TypeError",
        "RangeError", "SyntaxError", "Promise", "Map", "Set", "WeakMap",
        "WeakSet", "Reflect", "Proxy", "Intl",
        # TypeScript utility and primitive types
        "Record", "Partial", "Required", "Readonly", "Pick", "Omit", "Exclude",
        "Extract", "NonNullable", "ReturnType", "Parameters", "InstanceType",
        "Awaited", "Promise", "Array", "ReadonlyArray", "string", "number",
        "boolean", "any", "unknown", "never", "void", "object", "bigint",
        "symbol",
    }
)

REFERENCE_NODE_TYPES = {"identifier", "type_identifier", "shorthand_property_identifier"}


class DependencyStrategy(ABC):
    """Base class for reference collection strategies."""

    name = ""

    @abstractmethod
    def collect(self, code: str, node: Optional[Any], out: List[str]) -> None:
        """Append referenced names to out in first-seen order.

        Appending as names are found lets the caller keep a partial result
        when collection fails halfway.
        """
        pass


class StructuralStrategy(DependencyStrategy):
    """Collect identifier and type references from the AST subtree."""

    name = "structural"

    def collect(self, code: str, node: Optional[Any], out: List[str]) -> None:
        if node is None:
            raise ValueError("structural analysis needs an AST node")

        stack = [node]
        while stack:
            current = stack.pop()
            if current.type in REFERENCE_NODE_TYPES:
                out.append(current.text.decode("utf-8", errors="replace"))
            elif current.type == "property_identifier":
                # obj.method references; object literal keys are not references
                parent = current.parent
                if parent is not None and parent.type == "member_expression":
                    out.append(current.text.decode("utf-8", errors="replace"))
            stack.extend(reversed(current.children))


class LexicalStrategy(DependencyStrategy):
    """Pattern-match imports, heritage clauses and type annotations."""

    name = "lexical"

    IMPORT_BRACES = re.compile(r"import\s+(?:type\s+)?(?:[A-Za-z_$][\w$]*\s*,\s*)?\{([^}]*)\}")
    IMPORT_DEFAULT = re.compile(r"import\s+(?:type\s+)?([A-Za-z_$][\w$]*)\s*(?:,|\s+from\b)")
    CLASS_EXTENDS = re.compile(r"class\s+[A-Za-z_$][\w$]*(?:\s*<[^>]*>)?\s+extends\s+([A-Za-z_$][\w$]*)")
    INTERFACE_EXTENDS = re.compile(
        r"interface\s+[A-Za-z_$][\w$]*(?:\s*<[^>]*>)?\s+extends\s+([^{]+)\{"
    )
    TYPE_ANNOTATION = re.compile(r":\s*([A-Z][\w$]*)")
    IDENTIFIER = re.compile(r"^[A-Za-z_$][\w$]*$")

    def collect(self, code: str, node: Optional[Any], out: List[str]) -> None:
        for match in self.IMPORT_BRACES.finditer(code):
            for part in match.group(1).split(","):
                # "a as b" imports a
                imported = part.strip().split(" as ")[0].strip()
                if imported.startswith("type "):
                    imported = imported[len("type "):].strip()
                if self.IDENTIFIER.match(imported):
                    out.append(imported)

        for match in self.IMPORT_DEFAULT.finditer(code):
            out.append(match.group(1))

        for match in self.CLASS_EXTENDS.finditer(code):
            out.append(match.group(1))

        for match in self.INTERFACE_EXTENDS.finditer(code):
            for part in match.group(1).split(","):
                base = part.strip().split("<")[0].strip()
                if self.IDENTIFIER.match(base):
                    out.append(base)

        for match in self.TYPE_ANNOTATION.finditer(code):
            out.append(match.group(1))


STRATEGIES: Dict[str, DependencyStrategy] = {
    StructuralStrategy.name: StructuralStrategy(),
    LexicalStrategy.name: LexicalStrategy(),
}


class DependencyAnalyzer:
    """Return the distinct external names a chunk references."""

    def __init__(self, strategy: str = "structural"):
        """Initialize analyzer.

        Args:
            strategy: "structural" (AST walk, lexical when no node is given)
                or "lexical" (always pattern-match)
        """
        if strategy not in STRATEGIES:
            raise ValueError(f"Unknown dependency strategy: {strategy}")
        self.strategy = strategy

    def analyze(self, code: str, own_name: str, node: Optional[Any] = None) -> List[str]:
        """Collect referenced names for one chunk.

        Args:
            code: Chunk source text
            own_name: The chunk's symbol name, always excluded
            node: AST subtree of the chunk, if available

        Returns:
            Deduplicated names in first-seen order; partial on failure
        """
        if self.strategy == "structural" and node is not None:
            strategy = STRATEGIES["structural"]
        else:
            strategy = STRATEGIES["lexical"]

        found: List[str] = []
        try:
            strategy.collect(code, node, found)
        except Exception as e:
            logger.warning(f"Dependency analysis of '{own_name}' failed after {len(found)} names: {e}")

        return self._filter(found, own_name)

    @staticmethod
    def _filter(names: List[str], own_name: str) -> List[str]:
        seen = set()
        result = []
        for name in names:
            if name == own_name or name in BUILTIN_NAMES or name in seen:
                continue
            seen.add(name)
            result.append(name)
        return result
