"""The state shared by every step of one generation run."""

from dataclasses import dataclass
from typing import Optional

from convgen.core.manual_registry import ManualConversionRegistry
from convgen.core.memory_equivalence import MemoryEquivalence, NoEquality, TypeEquality
from convgen.core.runtime_types import RuntimeTypes
from convgen.core.tags import TagExtractor
from convgen.core.type_graph import TypeGraph
from convgen.core.types import Universe


@dataclass
class GenerationContext:
    """
    Everything a generator needs besides the package it works on.

    One context exists per run and is passed explicitly to the selector and
    the synthesizer. The manual registry and the equivalence cache only grow
    while the run is in progress.
    """

    universe: Universe
    runtime: RuntimeTypes
    tags: TagExtractor
    manual: ManualConversionRegistry
    equivalence: TypeEquality
    type_graph: Optional[TypeGraph] = None

    @classmethod
    def create(
        cls,
        universe: Universe,
        runtime: RuntimeTypes,
        tag_name: str = "convgen",
        skip_unsafe: bool = False,
        build_type_graph: bool = True,
    ) -> "GenerationContext":
        """Build a fresh context for ``universe``."""
        tags = TagExtractor(tag_name)
        return cls(
            universe=universe,
            runtime=runtime,
            tags=tags,
            manual=ManualConversionRegistry(tags, runtime),
            equivalence=NoEquality() if skip_unsafe else MemoryEquivalence(),
            type_graph=TypeGraph(universe) if build_type_graph else None,
        )

    @property
    def unsafe_enabled(self) -> bool:
        return not isinstance(self.equivalence, NoEquality)
