"""Memory-layout equivalence between types.

Two types are memory-equivalent when their in-memory layouts are identical,
which lets generated code reinterpret one as the other instead of copying
field by field.

Self-referential types are handled with an optimistic cycle guard: a pair
that is already being compared further up the recursion is assumed equal.
A positive verdict that rests on such an assumption is provisional and is
only cached once the assumed pair itself has been decided, so a divergent
enclosing pair never leaves an equal verdict behind for its members. Pairs
where the guard fired are recorded in ``cycle_guarded`` so callers can
report them.
"""

from abc import ABC, abstractmethod

from convgen.core.types import ConversionPair, Kind, TypeDescriptor, unwrap_alias
from convgen.utils.logging_utils import get_logger

NO_ASSUMPTIONS: frozenset[ConversionPair] = frozenset()


class TypeEquality(ABC):
    """Decides whether two types can be reinterpreted as each other."""

    @abstractmethod
    def equal(self, a: TypeDescriptor, b: TypeDescriptor) -> bool:
        pass


class NoEquality(TypeEquality):
    """Used when unsafe reinterpretation is disabled."""

    def equal(self, a: TypeDescriptor, b: TypeDescriptor) -> bool:
        return False


class MemoryEquivalence(TypeEquality):
    """Memoized structural comparison of type layouts."""

    def __init__(self):
        self.logger = get_logger(self.__class__.__name__)
        self._cache: dict[ConversionPair, bool] = {}
        self.cycle_guarded: set[ConversionPair] = set()

    def equal(self, a: TypeDescriptor, b: TypeDescriptor) -> bool:
        result, _ = self._caching_equal(a, b, frozenset())
        return result

    def cached(self) -> dict[ConversionPair, bool]:
        """Snapshot of every decision made so far (both orderings)."""
        return dict(self._cache)

    def _caching_equal(
        self, a: TypeDescriptor, b: TypeDescriptor, visited: frozenset[ConversionPair]
    ) -> tuple[bool, frozenset[ConversionPair]]:
        """
        Compare ``a`` and ``b``.

        Returns:
            The verdict and the pairs on the recursion path it assumed equal
        """
        if a is b:
            return True, NO_ASSUMPTIONS
        pair = ConversionPair(a, b)
        if pair in self._cache:
            return self._cache[pair], NO_ASSUMPTIONS
        result, assumed = self._equal(a, b, visited)
        # a negative verdict holds under any assumption
        if not result or not assumed:
            self._cache[pair] = result
            self._cache[pair.reversed()] = result
        return result, assumed

    def _equal(
        self, a: TypeDescriptor, b: TypeDescriptor, visited: frozenset[ConversionPair]
    ) -> tuple[bool, frozenset[ConversionPair]]:
        in_type, out_type = unwrap_alias(a), unwrap_alias(b)
        if in_type is out_type:
            return True, NO_ASSUMPTIONS
        if in_type.kind != out_type.kind:
            return False, NO_ASSUMPTIONS

        pair = ConversionPair(in_type, out_type)
        if pair in visited:
            self.cycle_guarded.add(pair)
            return True, frozenset({pair})
        visited = visited | {pair}

        kind = in_type.kind
        if kind == Kind.STRUCT:
            if len(in_type.members) != len(out_type.members):
                return False, NO_ASSUMPTIONS
            children = [
                (in_member.type, out_member.type)
                for in_member, out_member in zip(in_type.members, out_type.members)
            ]
        elif kind in (Kind.POINTER, Kind.SLICE):
            children = [(in_type.elem, out_type.elem)]
        elif kind == Kind.MAP:
            children = [(in_type.key, out_type.key), (in_type.elem, out_type.elem)]
        elif kind == Kind.INTERFACE:
            return not in_type.methods and not out_type.methods, NO_ASSUMPTIONS
        elif kind == Kind.BUILTIN:
            return in_type.name.name == out_type.name.name, NO_ASSUMPTIONS
        else:
            # func, array and chan layouts are not modeled
            return False, NO_ASSUMPTIONS

        assumed = NO_ASSUMPTIONS
        for in_child, out_child in children:
            result, child_assumed = self._caching_equal(in_child, out_child, visited)
            if not result:
                return False, NO_ASSUMPTIONS
            assumed |= child_assumed
        # assumptions about this pair are settled now that it is decided
        return True, assumed - {pair}
