"""Renders generated files as an indented listing of operations.

Meant for reviewing what the synthesizer decided without reading Go code.
"""

from convgen.core.generated_file import GeneratedFile
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
    ValuesLookup,
    children,
)
from convgen.exceptions import RenderError
from convgen.renderers.base import Renderer

INDENT = "  "


class ListingRenderer(Renderer):
    """One line per operation, nested operations indented below their parent."""

    name = "listing"
    extension = ".txt"

    def render(self, generated: GeneratedFile) -> str:
        lines = [
            f"# package {generated.package_path} ({generated.package_name})",
            f"# types package: {generated.types_package or generated.package_path}",
            f"# peer packages: {', '.join(generated.peer_packages) or '-'}",
            f"# failure markers: {generated.failures}",
            "",
            "registrations:",
        ]
        for entry in generated.registration:
            lines.append(f"{INDENT}{entry.kind.value} {entry.pair} via {entry.function}")

        for conversion in generated.conversions:
            for fn in conversion.functions:
                lines.append("")
                lines.extend(self._function(fn))
        return "\n".join(lines) + "\n"

    def _function(self, fn: ConversionFunction) -> list[str]:
        lines = [f"{fn.name}: {fn.in_type} -> {fn.out_type}"]
        if fn.delegate is not None:
            lines.append(f"{INDENT}delegate {fn.delegate}")
        else:
            lines.extend(self._ops(fn.body, 1))
        return lines

    def _ops(self, ops: Operations, depth: int) -> list[str]:
        lines = []
        for op in ops:
            lines.append(INDENT * depth + self.describe(op))
            nested = children(op)
            if isinstance(op, (IterateMap, ValuesLookup)):
                labels = ("key", "value") if isinstance(op, IterateMap) else ("present", "absent")
                for label, seq in zip(labels, nested):
                    lines.append(INDENT * (depth + 1) + f"{label}:")
                    lines.extend(self._ops(seq, depth + 2))
            else:
                for seq in nested:
                    lines.extend(self._ops(seq, depth + 1))
        return lines

    @staticmethod
    def describe(op: Operation) -> str:
        """Single-line description of ``op`` without its nested operations."""
        if isinstance(op, Call):
            return f"call {op.function}"
        if isinstance(op, Reinterpret):
            return f"reinterpret {op.kind.value} as {op.out_type}"
        if isinstance(op, Copy):
            return "copy"
        if isinstance(op, Convert):
            return f"convert to {op.out_type}"
        if isinstance(op, NilGuard):
            return "nil guard"
        if isinstance(op, AllocateMap):
            return f"allocate map {op.out_type}"
        if isinstance(op, IterateMap):
            return f"for each entry ({op.key_type}, {op.value_type})"
        if isinstance(op, AllocateSlice):
            return f"allocate slice {op.out_type}"
        if isinstance(op, BulkCopy):
            return "bulk copy"
        if isinstance(op, IterateSlice):
            return "for each element"
        if isinstance(op, AllocatePointer):
            return f"allocate {op.elem_type}"
        if isinstance(op, MemberScope):
            return f"member {op.in_member.name} -> {op.out_member.name}"
        if isinstance(op, Note):
            return f"{op.severity.value}: {op.message}"
        if isinstance(op, FailMarker):
            return f"FAIL: no conversion from {op.in_type} to {op.out_type}"
        if isinstance(op, ValuesLookup):
            return f"lookup {op.key!r} into {op.member.name}"
        if isinstance(op, AssignFirstValue):
            return f"assign first value to {op.member.name}"
        if isinstance(op, CallWithValues):
            return f"call {op.function} with values into {op.member.name}"
        if isinstance(op, ReinterpretValues):
            return f"reinterpret values as {op.member.type} into {op.member.name}"
        if isinstance(op, SetZero):
            return f"zero {op.member.name} ({op.value.kind.value})"
        raise RenderError(f"cannot render operation {type(op).__name__}")
