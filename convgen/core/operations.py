"""Typed operations produced by the synthesizer.

A conversion body is a sequence of operations working on an ``in`` and an
``out`` reference. Nested operations (members, map entries, slice elements,
pointees) rebind ``in`` and ``out`` to the nested values, so the same
operation means the same thing at any depth. Renderers turn these sequences
into source text.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from convgen.core.types import FunctionDescriptor, Kind, Member, TypeDescriptor


class Severity(str, Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    FIXME = "FIXME"


@dataclass(frozen=True)
class FunctionRef:
    """A function to call: a manual one, or a generated one in the output package."""

    package: str
    name: str
    manual: bool = False

    @classmethod
    def from_descriptor(cls, fn: FunctionDescriptor) -> "FunctionRef":
        return cls(package=fn.name.package, name=fn.name.name, manual=True)

    def __str__(self) -> str:
        return f"{self.package}.{self.name}" if self.package else self.name


@dataclass(frozen=True)
class Operation:
    """Base class of all operations."""


@dataclass(frozen=True)
class Call(Operation):
    """``if err := fn(in, out, s); err != nil { return err }``"""

    function: FunctionRef


@dataclass(frozen=True)
class Reinterpret(Operation):
    """Reuse the memory of ``in`` as ``out``; ``kind`` selects pointer, header or value form."""

    kind: Kind
    out_type: TypeDescriptor


@dataclass(frozen=True)
class Copy(Operation):
    """``*out = *in``"""


@dataclass(frozen=True)
class Convert(Operation):
    """``*out = OutType(*in)``"""

    out_type: TypeDescriptor


@dataclass(frozen=True)
class NilGuard(Operation):
    """Nil ``in`` produces nil ``out``; otherwise ``body`` runs."""

    body: tuple[Operation, ...]


@dataclass(frozen=True)
class AllocateMap(Operation):
    """Allocate ``out`` with the length of ``in`` as size hint."""

    out_type: TypeDescriptor


@dataclass(frozen=True)
class IterateMap(Operation):
    """Convert every key and value into fresh temporaries and insert them."""

    key_type: TypeDescriptor
    value_type: TypeDescriptor
    key_ops: tuple[Operation, ...]
    value_ops: tuple[Operation, ...]


@dataclass(frozen=True)
class AllocateSlice(Operation):
    """Allocate ``out`` with the length of ``in``."""

    out_type: TypeDescriptor


@dataclass(frozen=True)
class BulkCopy(Operation):
    """``copy(*out, *in)``"""


@dataclass(frozen=True)
class IterateSlice(Operation):
    """Convert ``in[i]`` into ``out[i]`` for every index."""

    elem_ops: tuple[Operation, ...]


@dataclass(frozen=True)
class AllocatePointer(Operation):
    """Allocate the pointee of ``out`` and convert the pointee of ``in`` into it."""

    elem_type: TypeDescriptor
    body: tuple[Operation, ...]


@dataclass(frozen=True)
class MemberScope(Operation):
    """Rebind ``in``/``out`` to one struct member each and run ``body``."""

    in_member: Member
    out_member: Member
    body: tuple[Operation, ...]


@dataclass(frozen=True)
class Note(Operation):
    """A comment in the generated code; no behavior."""

    severity: Severity
    message: str


@dataclass(frozen=True)
class FailMarker(Operation):
    """Deliberately non-compiling marker for a pair that could not be converted."""

    in_type: TypeDescriptor
    out_type: TypeDescriptor
    hints: tuple[str, ...] = ()


# --------------------------------------------------------------------- #
# Flat multimap adapters
# --------------------------------------------------------------------- #
class ZeroKind(str, Enum):
    EMPTY_STRING = "empty-string"
    ZERO = "zero"
    FALSE = "false"
    STRUCT_LITERAL = "struct-literal"
    NIL = "nil"


@dataclass(frozen=True)
class ZeroValue:
    kind: ZeroKind
    type: Optional[TypeDescriptor] = None
    alias: Optional[TypeDescriptor] = None


@dataclass(frozen=True)
class ValuesLookup(Operation):
    """Look ``key`` up in the flat multimap; run ``present`` when it has values."""

    key: str
    member: Member
    present: tuple[Operation, ...]
    absent: tuple[Operation, ...]


@dataclass(frozen=True)
class AssignFirstValue(Operation):
    member: Member


@dataclass(frozen=True)
class CallWithValues(Operation):
    member: Member
    function: FunctionRef


@dataclass(frozen=True)
class ReinterpretValues(Operation):
    member: Member
    kind: Kind


@dataclass(frozen=True)
class SetZero(Operation):
    member: Member
    value: ZeroValue


Operations = tuple[Operation, ...]


def children(op: Operation) -> list[Operations]:
    """Nested operation sequences of ``op``."""
    if isinstance(op, (NilGuard, AllocatePointer, MemberScope)):
        return [op.body]
    if isinstance(op, IterateMap):
        return [op.key_ops, op.value_ops]
    if isinstance(op, IterateSlice):
        return [op.elem_ops]
    if isinstance(op, ValuesLookup):
        return [op.present, op.absent]
    return []


def walk(ops: Operations):
    """Depth-first iteration over ``ops`` and everything nested in them."""
    for op in ops:
        yield op
        for nested in children(op):
            yield from walk(nested)


def count_failures(ops: Operations) -> int:
    return sum(1 for op in walk(ops) if isinstance(op, FailMarker))


@dataclass
class ConversionFunction:
    """A generated function: ``name(in *In, out *Out, s Scope) error``."""

    name: str
    in_type: TypeDescriptor
    out_type: TypeDescriptor
    body: Operations = ()
    delegate: Optional[str] = None
    doc: list[str] = field(default_factory=list)
