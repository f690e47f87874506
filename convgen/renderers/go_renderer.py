"""Renders generated files as Go source."""

import re
from contextlib import contextmanager
from typing import Optional

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
    ValuesLookup,
    ZeroKind,
)
from convgen.core.registration import RegistrationEntry, RegistrationKind
from convgen.core.types import Kind, Signature, TypeDescriptor
from convgen.exceptions import RenderError
from convgen.renderers.base import Renderer

UNSAFE_PACKAGE = "unsafe"
GENERATED_BY = "// Code generated by convgen. DO NOT EDIT."

_NON_IDENTIFIER = re.compile(r"[^A-Za-z0-9_]")


class ImportTracker:
    """
    Assigns a local name to every package referenced from one file.

    The default name is the last path segment. When two packages share it,
    the later one is prefixed with its parent segments until it is unique
    (``v1`` and ``otherv1``).
    """

    def __init__(self, local_package: str):
        self.local_package = local_package
        self._aliases: dict[str, str] = {}

    def alias_for(self, package_path: str) -> Optional[str]:
        if package_path == self.local_package:
            return None
        alias = self._aliases.get(package_path)
        if alias is None:
            alias = self._unique_alias(package_path)
            self._aliases[package_path] = alias
        return alias

    def _unique_alias(self, package_path: str) -> str:
        taken = set(self._aliases.values())
        segments = [_NON_IDENTIFIER.sub("", s) for s in package_path.split("/") if s]
        candidate = ""
        for segment in reversed(segments):
            candidate = segment + candidate
            if candidate and not candidate[0].isdigit() and candidate not in taken:
                return candidate
        base = candidate if candidate and not candidate[0].isdigit() else f"pkg{candidate}"
        n = 2
        while f"{base}{n}" in taken:
            n += 1
        return f"{base}{n}"

    def import_lines(self) -> list[str]:
        lines = []
        for path in sorted(self._aliases):
            alias = self._aliases[path]
            if alias == path.rstrip("/").rsplit("/", 1)[-1]:
                lines.append(f'"{path}"')
            else:
                lines.append(f'{alias} "{path}"')
        return lines


class _Writer:
    """Accumulates tab-indented lines."""

    def __init__(self):
        self.lines: list[str] = []
        self.depth = 0

    def line(self, text: str = ""):
        self.lines.append(("\t" * self.depth + text) if text else "")

    @contextmanager
    def block(self, opening: str, closing: str = "}"):
        self.line(opening)
        self.depth += 1
        try:
            yield
        finally:
            self.depth -= 1
            self.line(closing)

    def text(self) -> str:
        return "\n".join(self.lines)


class GoRenderer(Renderer):
    """Renders a generated file as Go source using shadowed ``in``/``out`` scopes."""

    name = "go"
    extension = ".go"

    def __init__(self):
        super().__init__()
        self.imports: Optional[ImportTracker] = None

    # ------------------------------------------------------------------ #
    # Names
    # ------------------------------------------------------------------ #
    def type_name(self, t: TypeDescriptor) -> str:
        """Go spelling of ``t`` as seen from the file's package."""
        if t.kind == Kind.BUILTIN:
            return t.name.name
        if t.package:
            return self._qualified(t.package, t.name.name)
        if t.kind == Kind.POINTER:
            return "*" + self.type_name(t.elem)
        if t.kind == Kind.SLICE:
            return "[]" + self.type_name(t.elem)
        if t.kind == Kind.ARRAY:
            return f"[{t.length}]{self.type_name(t.elem)}"
        if t.kind == Kind.MAP:
            return f"map[{self.type_name(t.key)}]{self.type_name(t.elem)}"
        if t.kind == Kind.CHAN:
            return "chan " + self.type_name(t.elem)
        if t.kind == Kind.INTERFACE:
            return "interface{}"
        if t.kind == Kind.FUNC:
            return self._func_type(t.signature)
        raise RenderError(f"cannot name type {t!r}")

    def _func_type(self, signature: Optional[Signature]) -> str:
        if signature is None:
            return "func()"
        params = [self.type_name(p) for p in signature.parameters]
        if signature.variadic and params:
            params[-1] = "..." + params[-1].removeprefix("[]")
        results = [self.type_name(r) for r in signature.results]
        text = f"func({', '.join(params)})"
        if len(results) == 1:
            text += f" {results[0]}"
        elif results:
            text += f" ({', '.join(results)})"
        return text

    def _qualified(self, package_path: str, name: str) -> str:
        alias = self.imports.alias_for(package_path)
        return name if alias is None else f"{alias}.{name}"

    def function_name(self, fn: FunctionRef) -> str:
        return self._qualified(fn.package, fn.name)

    def _conversion_target(self, t: TypeDescriptor) -> str:
        name = self.type_name(t)
        if name.startswith(("*", "func", "chan", "<-")):
            return f"({name})"
        return name

    def _unsafe_pointer(self) -> str:
        return f"{self.imports.alias_for(UNSAFE_PACKAGE)}.Pointer"

    # ------------------------------------------------------------------ #
    # File
    # ------------------------------------------------------------------ #
    def render(self, generated: GeneratedFile) -> str:
        self.imports = ImportTracker(generated.package_path)
        scope = self.type_name(generated.runtime.scope)
        scheme = self.type_name(generated.runtime.scheme)

        body = _Writer()
        self._render_registration(body, generated, scope, scheme)
        for conversion in generated.conversions:
            for fn in conversion.functions:
                body.line()
                self._render_function(body, fn, scope)

        self.logger.debug(
            f"Rendered {len(generated.conversions)} conversions for {generated.package_path}"
        )
        return self._header(generated) + body.text() + "\n"

    def _header(self, generated: GeneratedFile) -> str:
        out = _Writer()
        if generated.build_tag:
            out.line(f"// +build !{generated.build_tag}")
            out.line()
        out.line(GENERATED_BY)
        out.line()
        out.line(f"package {generated.package_name}")
        out.line()
        import_lines = self.imports.import_lines()
        if import_lines:
            with out.block("import (", ")"):
                for line in import_lines:
                    out.line(line)
            out.line()
        return out.text() + "\n"

    def _render_registration(self, w: _Writer, generated: GeneratedFile, scope: str, scheme: str):
        with w.block("func init() {"):
            w.line("localSchemeBuilder.Register(RegisterConversions)")
        w.line()
        w.line("// RegisterConversions adds conversion functions to the given scheme.")
        w.line("// Public to allow building arbitrary schemes.")
        with w.block(f"func RegisterConversions(s *{scheme}) error {{"):
            for entry in generated.registration:
                self._render_registration_entry(w, entry, scope)
            w.line("return nil")

    def _render_registration_entry(self, w: _Writer, entry: RegistrationEntry, scope: str):
        in_name = self.type_name(entry.pair.in_type)
        out_name = self.type_name(entry.pair.out_type)
        method = (
            "AddConversionFunc" if entry.kind == RegistrationKind.MANUAL else "AddGeneratedConversionFunc"
        )
        with w.block(
            f"if err := s.{method}((*{in_name})(nil), (*{out_name})(nil), "
            f"func(a, b interface{{}}, scope {scope}) error {{",
            "}); err != nil {",
        ):
            w.line(f"return {self.function_name(entry.function)}(a.(*{in_name}), b.(*{out_name}), scope)")
        w.depth += 1
        w.line("return err")
        w.depth -= 1
        w.line("}")

    def _render_function(self, w: _Writer, fn: ConversionFunction, scope: str):
        for doc in fn.doc:
            w.line(f"// {doc}")
        signature = (
            f"func {fn.name}(in *{self.type_name(fn.in_type)}, "
            f"out *{self.type_name(fn.out_type)}, s {scope}) error {{"
        )
        with w.block(signature):
            if fn.delegate is not None:
                w.line(f"return {fn.delegate}(in, out, s)")
            else:
                self._render_ops(w, fn.body)
                w.line("return nil")

    # ------------------------------------------------------------------ #
    # Operations
    # ------------------------------------------------------------------ #
    def _render_ops(self, w: _Writer, ops: Operations):
        for op in ops:
            self._render_op(w, op)

    def _render_call(self, w: _Writer, call: str):
        with w.block(f"if err := {call}; err != nil {{"):
            w.line("return err")

    def _render_op(self, w: _Writer, op: Operation):
        if isinstance(op, Call):
            self._render_call(w, f"{self.function_name(op.function)}(in, out, s)")
        elif isinstance(op, Reinterpret):
            target = self.type_name(op.out_type)
            if op.kind == Kind.POINTER:
                w.line(f"*out = ({target})({self._unsafe_pointer()}(*in))")
            else:
                w.line(f"*out = *(*{target})({self._unsafe_pointer()}(in))")
        elif isinstance(op, Copy):
            w.line("*out = *in")
        elif isinstance(op, Convert):
            w.line(f"*out = {self._conversion_target(op.out_type)}(*in)")
        elif isinstance(op, NilGuard):
            w.line("if *in == nil {")
            w.depth += 1
            w.line("*out = nil")
            w.depth -= 1
            with w.block("} else {"):
                self._render_ops(w, op.body)
        elif isinstance(op, (AllocateMap, AllocateSlice)):
            w.line(f"*out = make({self.type_name(op.out_type)}, len(*in))")
        elif isinstance(op, IterateMap):
            with w.block("for inKey, inVal := range *in {"):
                w.line(f"outKey := new({self.type_name(op.key_type)})")
                with w.block("if true {"):
                    w.line("in, out := &inKey, outKey")
                    self._render_ops(w, op.key_ops)
                w.line(f"outVal := new({self.type_name(op.value_type)})")
                with w.block("if true {"):
                    w.line("in, out := &inVal, outVal")
                    self._render_ops(w, op.value_ops)
                w.line("(*out)[*outKey] = *outVal")
        elif isinstance(op, BulkCopy):
            w.line("copy(*out, *in)")
        elif isinstance(op, IterateSlice):
            with w.block("for i := range *in {"):
                w.line("in, out := &(*in)[i], &(*out)[i]")
                self._render_ops(w, op.elem_ops)
        elif isinstance(op, AllocatePointer):
            w.line(f"*out = new({self.type_name(op.elem_type)})")
            w.line("in, out := *in, *out")
            self._render_ops(w, op.body)
        elif isinstance(op, MemberScope):
            with w.block("if true {"):
                w.line(f"in, out := &in.{op.in_member.name}, &out.{op.out_member.name}")
                self._render_ops(w, op.body)
        elif isinstance(op, Note):
            w.line(f"// {op.severity.value}: {op.message}")
        elif isinstance(op, FailMarker):
            self._render_fail_marker(w, op)
        else:
            self._render_adapter_op(w, op)

    def _render_fail_marker(self, w: _Writer, op: FailMarker):
        w.line(
            f"// FIXME: Provide conversion function to convert "
            f"{self.type_name(op.in_type)} to {self.type_name(op.out_type)};"
        )
        if op.hints:
            w.line("// the currently provided manual conversion functions are")
            for hint in op.hints:
                w.line(f"//  - {hint}")
        else:
            w.line("// no manual conversion functions are currently provided.")
        w.line("compileErrorOnMissingConversion()")

    def _render_adapter_op(self, w: _Writer, op: Operation):
        if isinstance(op, ValuesLookup):
            w.line(f'if values, ok := map[string][]string(*in)["{op.key}"]; ok && len(values) > 0 {{')
            w.depth += 1
            self._render_ops(w, op.present)
            w.depth -= 1
            with w.block("} else {"):
                self._render_ops(w, op.absent)
        elif isinstance(op, AssignFirstValue):
            w.line(f"out.{op.member.name} = values[0]")
        elif isinstance(op, CallWithValues):
            self._render_call(w, f"{self.function_name(op.function)}(&values, &out.{op.member.name}, s)")
        elif isinstance(op, ReinterpretValues):
            target = self.type_name(op.member.type)
            if op.kind == Kind.POINTER:
                w.line(f"out.{op.member.name} = ({target})({self._unsafe_pointer()}(&values))")
            else:
                w.line(f"out.{op.member.name} = *(*{target})({self._unsafe_pointer()}(&values))")
        elif isinstance(op, SetZero):
            w.line(f"out.{op.member.name} = {self._zero_literal(op)}")
        else:
            raise RenderError(f"cannot render operation {type(op).__name__}")

    def _zero_literal(self, op: SetZero) -> str:
        value = op.value
        if value.kind == ZeroKind.EMPTY_STRING:
            return '""'
        if value.kind == ZeroKind.ZERO:
            return "0"
        if value.kind == ZeroKind.FALSE:
            return "false"
        if value.kind == ZeroKind.NIL:
            return "nil"
        literal = f"{self.type_name(value.type)}{{}}"
        if value.alias is not None:
            return f"{self.type_name(value.alias)}({literal})"
        return literal
