"""Reference graph over the declared types of a universe."""

import networkx as nx

from convgen.core.types import Kind, TypeDescriptor, Universe
from convgen.utils.logging_utils import get_logger

logger = get_logger(__name__)


class TypeGraph:
    """
    Directed graph of "type A mentions type B" relations.

    Nodes are declared types (struct, interface and alias declarations).
    Anonymous composites such as ``*T`` or ``map[K][]V`` are walked through,
    so an edge always connects two declarations.
    """

    def __init__(self, universe: Universe):
        self.logger = get_logger(self.__class__.__name__)
        self.graph = self._build(universe)
        self._recursive: set[TypeDescriptor] | None = None

    def _build(self, universe: Universe) -> nx.DiGraph:
        G = nx.DiGraph()
        for pkg in universe:
            for t in pkg.types.values():
                G.add_node(t, kind=t.kind.value, package=pkg.path)

        for t in list(G.nodes):
            for referenced in self._referenced_declarations(t):
                G.add_edge(t, referenced)

        self.logger.debug(
            f"Type graph: {G.number_of_nodes()} nodes, {G.number_of_edges()} edges"
        )
        return G

    @staticmethod
    def _referenced_declarations(t: TypeDescriptor) -> set[TypeDescriptor]:
        roots = [m.type for m in t.members]
        if t.kind == Kind.ALIAS and t.underlying is not None:
            roots.append(t.underlying)

        found: set[TypeDescriptor] = set()
        seen: set[int] = set()
        stack = list(roots)
        while stack:
            current = stack.pop()
            if id(current) in seen:
                continue
            seen.add(id(current))
            if current.package:
                found.add(current)
                continue
            for child in (current.elem, current.key, current.underlying):
                if child is not None:
                    stack.append(child)
        return found

    def recursive_types(self) -> set[TypeDescriptor]:
        """Declarations that can reach themselves through their members."""
        if self._recursive is None:
            recursive: set[TypeDescriptor] = set()
            for component in nx.strongly_connected_components(self.graph):
                if len(component) > 1:
                    recursive.update(component)
                else:
                    (node,) = component
                    if self.graph.has_edge(node, node):
                        recursive.add(node)
            self._recursive = recursive
        return self._recursive
