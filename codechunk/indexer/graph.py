"""Dependency graph reconciliation between chunks of one project."""

import logging
from typing import Dict, Iterable, List, Optional, Set

from .models import CodeChunk

logger = logging.getLogger(__name__)


class DependencyGraphReconciler:
    """Resolve raw dependency names to chunks and build the inverse index.

    By default names resolve only against the chunks of the current run, so
    an incremental run cannot link to or from chunks in unchanged files. With
    resolve_against_stored=True the lookup also covers persisted chunks of
    files the run did not touch.
    """

    def __init__(self, resolve_against_stored: bool = False):
        self.resolve_against_stored = resolve_against_stored

    def reconcile(
        self,
        chunks: List[CodeChunk],
        stored_chunks: Optional[Iterable[CodeChunk]] = None,
    ) -> List[CodeChunk]:
        """Filter dependencies to resolvable names and fill in dependents.

        Mutates chunks in place.

        Args:
            chunks: Chunks built in the current run
            stored_chunks: Persisted chunks of the project; only used when
                resolving against stored chunks

        Returns:
            Persisted chunks whose dependents changed and must be re-saved
        """
        touched_paths = {chunk.path for chunk in chunks}
        others: List[CodeChunk] = []
        if self.resolve_against_stored and stored_chunks is not None:
            others = [c for c in stored_chunks if c.path not in touched_paths]

        # Later entries win for duplicate names; current-run chunks win over stored ones
        lookup: Dict[str, CodeChunk] = {c.name: c for c in others}
        lookup.update({c.name: c for c in chunks})
        other_ids = {c.id for c in others}
        modified: Dict[str, CodeChunk] = {}

        for chunk in chunks:
            resolved = []
            for name in chunk.dependencies:
                target = lookup.get(name)
                if target is None or target.id == chunk.id:
                    continue
                if name not in resolved:
                    resolved.append(name)
                if chunk.name not in target.dependents:
                    target.dependents.append(chunk.name)
                    if target.id in other_ids:
                        modified[target.id] = target
            chunk.dependencies = resolved

        if others:
            current = {c.name: c for c in chunks}
            for other in others:
                for name in other.dependencies:
                    target = current.get(name)
                    if target is not None and other.name not in target.dependents:
                        target.dependents.append(other.name)

        resolved_count = sum(len(c.dependencies) for c in chunks)
        logger.info(
            f"Reconciled {len(chunks)} chunks: {resolved_count} resolved dependencies, "
            f"{len(modified)} stored chunks updated"
        )
        return list(modified.values())


def transitive_dependencies(chunks: Iterable[CodeChunk]) -> Dict[str, Set[str]]:
    """Map each chunk name to every name reachable through its dependencies.

    The root itself is never part of its own set, even on a cycle.
    """
    graph: Dict[str, List[str]] = {}
    for chunk in chunks:
        graph.setdefault(chunk.name, [])
        for name in chunk.dependencies:
            if name not in graph[chunk.name]:
                graph[chunk.name].append(name)

    closure: Dict[str, Set[str]] = {}
    for root in graph:
        visited: Set[str] = set()
        stack = list(graph[root])
        while stack:
            name = stack.pop()
            if name == root or name in visited:
                continue
            visited.add(name)
            stack.extend(graph.get(name, []))
        closure[root] = visited

    return closure


def count_transitive_dependencies(chunks: Iterable[CodeChunk]) -> int:
    """Total size of all per-chunk transitive dependency sets."""
    return sum(len(names) for names in transitive_dependencies(chunks).values())
