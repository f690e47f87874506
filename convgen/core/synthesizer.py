"""Synthesis of conversion bodies.

For a pair of types the synthesizer picks the cheapest safe strategy, in
this order:

1. call an existing function (manual, or the generated one for the pair),
2. reinterpret memory when the layouts are equivalent,
3. copy when both sides are the same type,
4. convert when the underlying types are identical,
5. recurse into maps, slices, structs and pointers (a pair met again while
   its own body is being built ends in a marker),
6. give up with a marker that does not compile.

Strategy 6 never produces a silently wrong conversion: the generated file
fails to build until someone provides the missing function.
"""

from dataclasses import dataclass, field
from typing import Optional

from convgen.core.context import GenerationContext
from convgen.core.manual_registry import ManualConversionEntry
from convgen.core.naming import conversion_function_name, internal_function_name
from convgen.core.operations import (
    AllocateMap,
    AllocatePointer,
    AllocateSlice,
    AssignFirstValue,
    BulkCopy,
    Call,
    CallWithValues,
    ConversionFunction,
    Convert,
    Copy,
    FailMarker,
    FunctionRef,
    IterateMap,
    IterateSlice,
    MemberScope,
    NilGuard,
    Note,
    Operation,
    Operations,
    Reinterpret,
    ReinterpretValues,
    SetZero,
    Severity,
    ValuesLookup,
    ZeroKind,
    ZeroValue,
    count_failures,
)
from convgen.core.pair_selector import PairSelector
from convgen.core.types import (
    FLOAT_NAMES,
    INTEGER_NAMES,
    ConversionPair,
    Kind,
    Member,
    TypeDescriptor,
    lookup_struct_tag,
    unwrap_alias,
)
from convgen.utils.logging_utils import get_logger

REINTERPRETABLE_KINDS = frozenset({Kind.POINTER, Kind.MAP, Kind.SLICE, Kind.STRUCT})


@dataclass
class GeneratedConversion:
    """Result of generating one direction of a pair."""

    pair: ConversionPair
    internal: ConversionFunction
    public: Optional[ConversionFunction] = None
    manual: Optional[ManualConversionEntry] = None
    skipped_fields: list[str] = field(default_factory=list)
    adapter: bool = False

    @property
    def functions(self) -> list[ConversionFunction]:
        if self.public is None:
            return [self.internal]
        return [self.internal, self.public]

    @property
    def failures(self) -> int:
        return count_failures(self.internal.body)


def serialized_name(member: Member) -> str:
    """The ``json`` tag name of a member, empty when it has none."""
    tag = lookup_struct_tag(member.tags, "json") or ""
    return tag.split(",", 1)[0]


# ---------------------------------------------------------------------- #
# Type identity checks
# ---------------------------------------------------------------------- #
def is_directly_assignable(in_type: TypeDescriptor, out_type: TypeDescriptor) -> bool:
    return in_type is out_type


def is_directly_convertible(in_type: TypeDescriptor, out_type: TypeDescriptor) -> bool:
    """True when ``OutType(in)`` is a valid conversion: identical underlying types."""
    return have_identical_underlying_type(out_type, in_type, cmp_tags=False)


def have_identical_type(out_type: TypeDescriptor, in_type: TypeDescriptor, cmp_tags: bool) -> bool:
    if cmp_tags:
        return out_type is in_type
    if out_type.name != in_type.name or out_type.kind != in_type.kind:
        return False
    return have_identical_underlying_type(out_type, in_type, cmp_tags)


def have_identical_underlying_type(
    out_type: TypeDescriptor, in_type: TypeDescriptor, cmp_tags: bool
) -> bool:
    out_type, in_type = unwrap_alias(out_type), unwrap_alias(in_type)
    if out_type is in_type:
        return True
    if in_type.kind != out_type.kind:
        return False

    kind = in_type.kind
    if kind == Kind.BUILTIN:
        return in_type.name == out_type.name
    if kind == Kind.STRUCT:
        if len(in_type.members) != len(out_type.members):
            return False
        for in_member, out_member in zip(in_type.members, out_type.members):
            if not (
                in_member.name == out_member.name
                and in_member.embedded == out_member.embedded
                and have_identical_type(in_member.type, out_member.type, cmp_tags)
            ):
                return False
            if cmp_tags and in_member.tags != out_member.tags:
                return False
        return True
    if kind == Kind.MAP:
        return have_identical_type(in_type.elem, out_type.elem, cmp_tags) and have_identical_type(
            in_type.key, out_type.key, cmp_tags
        )
    if kind in (Kind.SLICE, Kind.POINTER):
        return have_identical_type(in_type.elem, out_type.elem, cmp_tags)
    if kind == Kind.INTERFACE:
        # two interfaces with the same methods may still need a run time conversion
        return not in_type.methods and not out_type.methods
    if kind == Kind.FUNC:
        return _identical_signatures(out_type, in_type, cmp_tags)
    # array lengths and channel directions are not modeled
    return False


def _identical_signatures(out_type: TypeDescriptor, in_type: TypeDescriptor, cmp_tags: bool) -> bool:
    out_sig, in_sig = out_type.signature, in_type.signature
    if out_sig is None or in_sig is None:
        return False
    out_params = ((out_sig.receiver,) if out_sig.receiver else ()) + out_sig.parameters
    in_params = ((in_sig.receiver,) if in_sig.receiver else ()) + in_sig.parameters
    if len(out_params) != len(in_params) or out_sig.variadic != in_sig.variadic:
        return False
    if len(out_sig.results) != len(in_sig.results):
        return False
    return all(
        have_identical_type(o, i, cmp_tags) for o, i in zip(out_params, in_params)
    ) and all(have_identical_type(o, i, cmp_tags) for o, i in zip(out_sig.results, in_sig.results))


class ConversionSynthesizer:
    """Builds conversion functions for the pairs of one output package."""

    def __init__(self, context: GenerationContext, selector: PairSelector, output_package: str):
        self.context = context
        self.selector = selector
        self.output_package = output_package
        self.logger = get_logger(self.__class__.__name__)
        self.skipped_fields: dict[TypeDescriptor, list[str]] = {}

    # ------------------------------------------------------------------ #
    # Whole functions
    # ------------------------------------------------------------------ #
    def generate_conversion(self, in_type: TypeDescriptor, out_type: TypeDescriptor) -> GeneratedConversion:
        """
        Generate ``autoConvert_<in>_To_<out>`` and, when safe, its public wrapper.

        The wrapper is omitted when a manual function already claims the
        pair, or when members of ``in_type`` had no counterpart and therefore
        need a hand-written conversion.
        """
        self.logger.debug(f"generating for pair {in_type} -> {out_type}")
        body = self.synthesize(in_type, out_type, allow_shortcut=False)
        result = GeneratedConversion(
            pair=ConversionPair(in_type, out_type),
            internal=ConversionFunction(
                name=internal_function_name(in_type, out_type),
                in_type=in_type,
                out_type=out_type,
                body=body,
            ),
            manual=self.context.manual.get(in_type, out_type),
            skipped_fields=list(self.skipped_fields.get(in_type, [])),
        )

        if result.manual is not None:
            pass
        elif result.skipped_fields:
            self.logger.error(
                f"Warning: could not find nor generate a final Conversion function for "
                f"{in_type} -> {out_type}"
            )
            self.logger.error("  the following fields need manual conversion:")
            for name in result.skipped_fields:
                self.logger.error(f"      - {name}")
        else:
            result.public = self._public_wrapper(in_type, out_type, result.internal)
        return result

    def generate_adapter(self, in_type: TypeDescriptor, out_type: TypeDescriptor) -> GeneratedConversion:
        """
        Generate a conversion from the flat multimap source into ``out_type``.

        Every output member is looked up by its serialized (``json``) name.
        The first value is assigned when present; otherwise the member is
        reset to its zero value. Members without a serialized name are
        skipped with a warning.
        """
        values_type = unwrap_alias(in_type).elem
        ops: list[Operation] = []
        for member in unwrap_alias(out_type).members:
            if self.context.tags.member_directives(member).opt_out:
                ops.append(Note(Severity.INFO, f"in.{member.name} opted out of conversion generation"))
                continue
            key = serialized_name(member)
            if not key:
                self.logger.warning(f"{out_type}: field {member.name} does not have json tag, skipping")
                ops.append(Note(Severity.WARNING, f"Field {member.name} does not have json tag, skipping."))
                continue
            ops.append(
                ValuesLookup(
                    key=key,
                    member=member,
                    present=self._from_values_entry(values_type, member),
                    absent=(self._zero_value(member),),
                )
            )

        internal = ConversionFunction(
            name=internal_function_name(in_type, out_type),
            in_type=in_type,
            out_type=out_type,
            body=tuple(ops),
        )
        result = GeneratedConversion(
            pair=ConversionPair(in_type, out_type),
            internal=internal,
            manual=self.context.manual.get(in_type, out_type),
            adapter=True,
        )
        if result.manual is None:
            result.public = self._public_wrapper(in_type, out_type, internal)
        return result

    @staticmethod
    def _public_wrapper(
        in_type: TypeDescriptor, out_type: TypeDescriptor, internal: ConversionFunction
    ) -> ConversionFunction:
        name = conversion_function_name(in_type, out_type)
        return ConversionFunction(
            name=name,
            in_type=in_type,
            out_type=out_type,
            delegate=internal.name,
            doc=[f"{name} is an autogenerated conversion function."],
        )

    # ------------------------------------------------------------------ #
    # Strategy selection
    # ------------------------------------------------------------------ #
    def synthesize(
        self,
        in_type: TypeDescriptor,
        out_type: TypeDescriptor,
        allow_shortcut: bool,
        in_progress: frozenset[ConversionPair] = frozenset(),
    ) -> Operations:
        """
        Operations converting ``in`` (of ``in_type``) into ``out`` (of ``out_type``).

        Args:
            in_type: Source type
            out_type: Destination type
            allow_shortcut: Whether an existing function for the pair may be
                called instead of synthesizing the body
            in_progress: Pairs whose bodies are being synthesized further up;
                re-entering one of them yields a FailMarker

        Returns:
            Operation sequence; unresolvable pairs yield a FailMarker
        """
        in_resolved, out_resolved = unwrap_alias(in_type), unwrap_alias(out_type)
        equivalence = self.context.equivalence

        # (1) existing function
        if allow_shortcut:
            entry = self.context.manual.get(in_type, out_type)
            if entry is not None:
                if self.context.manual.is_copy_only(in_type, out_type) and (
                    is_directly_convertible(in_type, out_type)
                    or equivalence.equal(in_type, out_type)
                ):
                    self.logger.debug(
                        f"Skipped function {entry.function} because it is copy-only and we "
                        f"can use direct assignment or unsafe casting"
                    )
                else:
                    return (Call(FunctionRef.from_descriptor(entry.function)),)
            elif in_type is not out_type and self.selector.convertible_only_within_package(
                in_type, out_type
            ):
                return (
                    Call(FunctionRef(self.output_package, conversion_function_name(in_type, out_type))),
                )

        # (2) unsafe reinterpretation; identical types are plain copies
        if (
            in_type is not out_type
            and in_resolved.kind in REINTERPRETABLE_KINDS
            and equivalence.equal(in_type, out_type)
        ):
            return (Reinterpret(in_resolved.kind, out_type),)

        # (3) direct assignment
        if is_directly_assignable(in_type, out_type):
            return (Copy(),)

        # (4) direct conversion
        if is_directly_convertible(in_type, out_type):
            return (Convert(out_type),)

        # (5) generated code
        pair = ConversionPair(in_type, out_type)
        if pair in in_progress:
            self.logger.warning(
                f"{in_type} -> {out_type} is recursive and has no conversion function; "
                f"a manual {conversion_function_name(in_type, out_type)} is required"
            )
            return (self._missing_conversion(in_type, out_type),)
        in_progress = in_progress | {pair}
        if in_resolved.kind == out_resolved.kind:
            if in_resolved.kind == Kind.MAP:
                return self._do_map(in_resolved, out_type, out_resolved, in_progress)
            if in_resolved.kind == Kind.SLICE:
                return self._do_slice(in_resolved, out_type, out_resolved, in_progress)
            if in_resolved.kind == Kind.STRUCT:
                return self._do_struct(in_type, in_resolved, out_resolved, in_progress)
            if in_resolved.kind == Kind.POINTER:
                return self._do_pointer(in_resolved, out_resolved, in_progress)

        # (6) fail
        return (self._missing_conversion(in_type, out_type),)

    def _missing_conversion(self, in_type: TypeDescriptor, out_type: TypeDescriptor) -> FailMarker:
        hints = tuple(
            f"{entry.function}() ({entry.pair.in_type} to {entry.pair.out_type})"
            for entry in self.context.manual.entries()
        )
        self.logger.debug(f"no conversion available for {in_type} -> {out_type}")
        return FailMarker(in_type, out_type, hints)

    # ------------------------------------------------------------------ #
    # Composite kinds
    # ------------------------------------------------------------------ #
    def _do_map(
        self,
        in_type: TypeDescriptor,
        out_type: TypeDescriptor,
        out_resolved: TypeDescriptor,
        in_progress: frozenset[ConversionPair] = frozenset(),
    ) -> Operations:
        body = (
            AllocateMap(out_type),
            IterateMap(
                key_type=out_resolved.key,
                value_type=out_resolved.elem,
                key_ops=self.synthesize(in_type.key, out_resolved.key, True, in_progress),
                value_ops=self.synthesize(in_type.elem, out_resolved.elem, True, in_progress),
            ),
        )
        return (NilGuard(body),)

    def _do_slice(
        self,
        in_type: TypeDescriptor,
        out_type: TypeDescriptor,
        out_resolved: TypeDescriptor,
        in_progress: frozenset[ConversionPair] = frozenset(),
    ) -> Operations:
        if in_type.elem is out_resolved.elem and in_type.elem.kind == Kind.BUILTIN:
            fill: Operation = BulkCopy()
        else:
            fill = IterateSlice(self.synthesize(in_type.elem, out_resolved.elem, True, in_progress))
        return (NilGuard((AllocateSlice(out_type), fill)),)

    def _do_struct(
        self,
        in_type: TypeDescriptor,
        in_resolved: TypeDescriptor,
        out_resolved: TypeDescriptor,
        in_progress: frozenset[ConversionPair] = frozenset(),
    ) -> Operations:
        ops: list[Operation] = []
        for in_member in in_resolved.members:
            directives = self.context.tags.member_directives(in_member)
            if directives.opt_out:
                ops.append(
                    Note(
                        Severity.INFO,
                        f"in.{in_member.name} opted out of conversion generation via "
                        f"+{self.context.tags.names.base}=false",
                    )
                )
                continue

            out_member = self.find_member(out_resolved, in_member.name, *directives.renames)
            if out_member is None:
                ops.append(
                    Note(
                        Severity.WARNING,
                        f"in.{in_member.name} requires manual conversion: does not exist in peer-type",
                    )
                )
                self.skipped_fields.setdefault(in_type, []).append(in_member.name)
                continue

            if self.context.manual.is_drop(in_member.type, out_member.type):
                continue

            ops.append(
                MemberScope(
                    in_member=in_member,
                    out_member=out_member,
                    body=self.synthesize(in_member.type, out_member.type, True, in_progress),
                )
            )
        return tuple(ops)

    def _do_pointer(
        self,
        in_type: TypeDescriptor,
        out_resolved: TypeDescriptor,
        in_progress: frozenset[ConversionPair] = frozenset(),
    ) -> Operations:
        body = self.synthesize(in_type.elem, out_resolved.elem, True, in_progress)
        return (NilGuard((AllocatePointer(out_resolved.elem, body),)),)

    def find_member(self, t: TypeDescriptor, *names: str) -> Optional[Member]:
        """First member of ``t`` whose name, or one of its rename aliases, is in ``names``."""
        if t.kind != Kind.STRUCT:
            return None
        for member in t.members:
            aliases = self.context.tags.member_directives(member).renames
            for name in names:
                if member.name == name or name in aliases:
                    return member
        return None

    # ------------------------------------------------------------------ #
    # Flat multimap adapters
    # ------------------------------------------------------------------ #
    def _from_values_entry(self, values_type: TypeDescriptor, member: Member) -> Operations:
        entry = self.context.manual.get(values_type, member.type)
        if entry is not None:
            return (CallWithValues(member, FunctionRef.from_descriptor(entry.function)),)
        if member.type is self.context.universe.builtin("string"):
            return (AssignFirstValue(member),)
        if self.context.equivalence.equal(values_type, member.type):
            if values_type.kind in (Kind.POINTER, Kind.MAP, Kind.SLICE):
                return (ReinterpretValues(member, values_type.kind),)
        self.logger.warning(
            f"out.{member.name} is of not yet supported type {member.type} and requires manual conversion"
        )
        return (
            Note(
                Severity.FIXME,
                f"out.{member.name} is of not yet supported type and requires manual conversion",
            ),
        )

    def _zero_value(self, member: Member) -> Operation:
        resolved = unwrap_alias(member.type)
        kind = resolved.kind
        if kind == Kind.BUILTIN:
            name = resolved.name.name
            if name == "string":
                return SetZero(member, ZeroValue(ZeroKind.EMPTY_STRING))
            if name in INTEGER_NAMES or name in FLOAT_NAMES:
                return SetZero(member, ZeroValue(ZeroKind.ZERO))
            if name == "bool":
                return SetZero(member, ZeroValue(ZeroKind.FALSE))
        elif kind == Kind.STRUCT:
            alias = member.type if member.type is not resolved else None
            return SetZero(member, ZeroValue(ZeroKind.STRUCT_LITERAL, type=resolved, alias=alias))
        elif kind in (Kind.MAP, Kind.SLICE, Kind.POINTER, Kind.INTERFACE, Kind.ARRAY):
            return SetZero(member, ZeroValue(ZeroKind.NIL))
        return Note(
            Severity.FIXME,
            f"out.{member.name} is of unsupported type and requires manual conversion",
        )
