"""Selection of the type pairs conversions are generated for."""

from dataclasses import dataclass, field
from typing import Optional, Sequence

from convgen.core.context import GenerationContext
from convgen.core.naming import public_name
from convgen.core.types import (
    ConversionPair,
    Kind,
    TypeDescriptor,
    is_private_name,
    unwrap_alias,
)
from convgen.utils.logging_utils import get_logger

SUPPORTED_KINDS = frozenset({Kind.BUILTIN, Kind.MAP, Kind.SLICE, Kind.STRUCT, Kind.POINTER})


@dataclass
class Selection:
    """Pairs admitted for one types package, in generation order."""

    peer_pairs: list[ConversionPair] = field(default_factory=list)
    explicit_conversions: list[ConversionPair] = field(default_factory=list)

    @property
    def types(self) -> list[TypeDescriptor]:
        return [pair.in_type for pair in self.peer_pairs]


class PairSelector:
    """
    Matches the types of one package with their peers.

    A type's peer is the same-named type in the first peer package that
    declares one. Types declaring an explicit-from source are admitted as
    adapter targets independently of peer matching.
    """

    def __init__(
        self,
        context: GenerationContext,
        types_package: str,
        peer_packages: Sequence[str],
    ):
        self.context = context
        self.types_package = types_package
        self.peer_packages = list(peer_packages)
        self.logger = get_logger(self.__class__.__name__)

    def peer_type_for(self, t: TypeDescriptor) -> Optional[TypeDescriptor]:
        for path in self.peer_packages:
            pkg = self.context.universe.package(path)
            if pkg is None:
                continue
            if pkg.has(t.name.name):
                return pkg.type(t.name.name)
        return None

    def convertible_only_within_package(
        self, in_type: TypeDescriptor, out_type: TypeDescriptor
    ) -> bool:
        """
        Whether a ``Convert_<in>_To_<out>`` function is wanted for the pair.

        That is the case when one side belongs to the types package and has
        not opted out, both sides are exported, and both resolve to the same
        supported kind. Such a function is either generated here or must be
        written by hand.
        """
        if in_type.package == self.types_package:
            t, other = in_type, out_type
        else:
            t, other = out_type, in_type

        if t.package != self.types_package:
            return False

        if self.context.tags.type_directives(t).opt_out:
            self.logger.debug(f"type {t} requests no conversion generation, skipping")
            return False

        if is_private_name(t.name.name) or is_private_name(other.name.name):
            return False

        t, other = unwrap_alias(t), unwrap_alias(other)
        if t.kind != other.kind:
            return False

        return t.kind in SUPPORTED_KINDS

    def explicit_from_types(self, t: TypeDescriptor) -> list[TypeDescriptor]:
        """Resolve the explicit-from sources of ``t`` in the universe."""
        sources = []
        for name in self.context.tags.type_directives(t).explicit_from:
            source = self.context.universe.get_type(name)
            if source is None:
                self.logger.error(f"Unrecognized explicit-from source for {t}: {name}")
                continue
            sources.append(source)
        return sources

    def select(self, candidates: Sequence[TypeDescriptor]) -> Selection:
        """
        Admit candidate types, ordered by their public name.

        Args:
            candidates: Types of the types package

        Returns:
            Selection with the peer pairs and explicit conversions
        """
        selection = Selection()
        for t in sorted(candidates, key=public_name):
            peer = self.peer_type_for(t)
            if peer is not None and self.convertible_only_within_package(t, peer):
                selection.peer_pairs.append(ConversionPair(t, peer))

            for source in self.explicit_from_types(t):
                selection.explicit_conversions.append(ConversionPair(source, t))

        self.logger.info(
            f"Selected {len(selection.peer_pairs)} peer pairs and "
            f"{len(selection.explicit_conversions)} explicit conversions "
            f"in {self.types_package}"
        )
        return selection
