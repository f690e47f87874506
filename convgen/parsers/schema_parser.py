"""YAML schema loader that builds a type universe.

Schema files declare packages with their annotation comments, types and
functions. Type references use a small expression language::

    string  Pod  example.com/apis/v1.Pod  *T  []T  [4]T  map[K]V  chan T
    interface{}  func(A, ...B) R  func() (A, error)

Local names are resolved in the declaring package first, then among the
builtins. Every file is loaded in two passes so that declarations may refer
to each other (and to themselves) in any order.
"""

from pathlib import Path
from typing import Iterable, Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from convgen.core.types import (
    FunctionDescriptor,
    Kind,
    Member,
    Signature,
    TypeDescriptor,
    TypeName,
    Universe,
    split_qualified_name,
)
from convgen.exceptions import SchemaError
from convgen.utils.logging_utils import get_logger

logger = get_logger(__name__)


class MemberSpec(BaseModel):
    """A struct member declaration."""

    name: str
    type: str
    tags: str = ""
    embedded: bool = False
    comments: list[str] = Field(default_factory=list)

    model_config = {"extra": "forbid"}


class TypeSpec(BaseModel):
    """A type declaration."""

    name: str
    kind: Literal["struct", "interface", "alias"]
    members: list[MemberSpec] = Field(default_factory=list)
    underlying: Optional[str] = None
    methods: list[str] = Field(default_factory=list)
    comments: list[str] = Field(default_factory=list)
    second_comments: list[str] = Field(default_factory=list)

    model_config = {"extra": "forbid"}

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v or not (v[0].isalpha() or v[0] == "_") or not v.replace("_", "").isalnum():
            raise ValueError(f"type name must be an identifier, got: {v!r}")
        return v


class FunctionSpec(BaseModel):
    """A function declaration; only the signature matters to the generator."""

    name: str
    params: list[str] = Field(default_factory=list)
    results: list[str] = Field(default_factory=list)
    receiver: Optional[str] = None
    variadic: bool = False
    comments: list[str] = Field(default_factory=list)

    model_config = {"extra": "forbid"}


class PackageSpec(BaseModel):
    path: str = Field(min_length=1)
    comments: list[str] = Field(default_factory=list)
    types: list[TypeSpec] = Field(default_factory=list)
    functions: list[FunctionSpec] = Field(default_factory=list)

    model_config = {"extra": "forbid"}


class SchemaDocument(BaseModel):
    packages: list[PackageSpec] = Field(default_factory=list)

    model_config = {"extra": "forbid"}


def split_top_level(text: str, separator: str = ",") -> list[str]:
    """Split ``text`` at separators that are not nested in brackets."""
    parts, depth, current = [], 0, []
    for ch in text:
        if ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth -= 1
        if ch == separator and depth == 0:
            parts.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
    tail = "".join(current).strip()
    if tail:
        parts.append(tail)
    return parts


def _closing_index(text: str, start: int) -> int:
    """Index of the bracket closing the one at ``start``."""
    depth = 0
    for idx in range(start, len(text)):
        if text[idx] in "([{":
            depth += 1
        elif text[idx] in ")]}":
            depth -= 1
            if depth == 0:
                return idx
    raise SchemaError(f"unbalanced brackets in type expression: {text!r}")


class TypeExpressionParser:
    """Resolves type expressions relative to one package."""

    def __init__(self, universe: Universe, package_path: str):
        self.universe = universe
        self.package_path = package_path

    def parse(self, text: str) -> TypeDescriptor:
        expr = text.strip()
        if not expr:
            raise SchemaError(f"empty type expression in package {self.package_path}")

        if expr.startswith("*"):
            return self.universe.pointer_to(self.parse(expr[1:]))
        if expr.startswith("[]"):
            return self.universe.slice_of(self.parse(expr[2:]))
        if expr.startswith("["):
            end = _closing_index(expr, 0)
            try:
                length = int(expr[1:end])
            except ValueError:
                raise SchemaError(f"invalid array length in {expr!r}")
            return self.universe.array_of(self.parse(expr[end + 1 :]), length)
        if expr.startswith("map["):
            end = _closing_index(expr, 3)
            return self.universe.map_of(self.parse(expr[4:end]), self.parse(expr[end + 1 :]))
        for prefix in ("<-chan ", "chan<- ", "chan "):
            if expr.startswith(prefix):
                return self.universe.chan_of(self.parse(expr[len(prefix) :]))
        if expr.replace(" ", "") == "interface{}":
            return self.universe.empty_interface()
        if expr.startswith("func("):
            return self.universe.func_of(self._parse_func(expr))
        return self._named(expr)

    def _parse_func(self, expr: str) -> Signature:
        end = _closing_index(expr, 4)
        params, variadic = [], False
        for param in split_top_level(expr[5:end]):
            if param.startswith("..."):
                variadic = True
                params.append(self.universe.slice_of(self.parse(param[3:])))
            else:
                params.append(self.parse(param))
        rest = expr[end + 1 :].strip()
        if rest.startswith("("):
            results = [self.parse(r) for r in split_top_level(rest[1:_closing_index(rest, 0)])]
        elif rest:
            results = [self.parse(rest)]
        else:
            results = []
        return Signature(parameters=tuple(params), results=tuple(results), variadic=variadic)

    def _named(self, expr: str) -> TypeDescriptor:
        qualified = split_qualified_name(expr)
        if qualified is not None:
            found = self.universe.get_type(qualified)
            if found is None:
                raise SchemaError(f"unknown type {expr!r} referenced from {self.package_path}")
            return found

        local = self.universe.get_type(TypeName(self.package_path, expr))
        if local is not None:
            return local
        if self.universe.is_builtin_name(expr):
            return self.universe.builtin(expr)
        raise SchemaError(f"unknown type {expr!r} referenced from {self.package_path}")


class SchemaParser:
    """Loads schema files into a universe."""

    def __init__(self, universe: Optional[Universe] = None):
        self.universe = universe if universe is not None else Universe()
        self.logger = get_logger(self.__class__.__name__)

    def parse_files(self, paths: Iterable[str | Path]) -> Universe:
        """
        Load several schema files as one document.

        The files are merged before any reference is resolved, so a file may
        refer to packages declared in any other file of the same call.

        Raises:
            SchemaError: If a file is missing, malformed or inconsistent
        """
        merged: list = []
        sources = []
        for path in paths:
            raw = self._read(path)
            if not isinstance(raw, dict):
                raise SchemaError(f"Invalid schema {path}: top level must be a mapping")
            merged.extend(raw.get("packages") or [])
            sources.append(str(path))
        return self.parse_document({"packages": merged}, source=", ".join(sources))

    def parse_file(self, path: str | Path) -> Universe:
        """
        Load one schema file.

        Args:
            path: Path to a YAML schema file

        Returns:
            The universe, extended with the file's declarations

        Raises:
            SchemaError: If the file is missing, malformed or inconsistent
        """
        return self.parse_document(self._read(path), source=str(path))

    def _read(self, path: str | Path):
        schema_path = Path(path)
        if not schema_path.exists():
            raise SchemaError(f"Schema file not found: {schema_path}")
        self.logger.info(f"Loading schema: {schema_path}")
        return self._load_yaml(schema_path.read_text(encoding="utf-8"), str(schema_path))

    @staticmethod
    def _load_yaml(text: str, source: str):
        try:
            return yaml.safe_load(text) or {}
        except yaml.YAMLError as e:
            raise SchemaError(f"Failed to parse YAML schema {source}: {e}")

    def parse_string(self, text: str, source: str = "<string>") -> Universe:
        return self.parse_document(self._load_yaml(text, source), source=source)

    def parse_document(self, raw: dict, source: str = "<document>") -> Universe:
        try:
            document = SchemaDocument(**raw)
        except ValidationError as e:
            raise SchemaError(f"Invalid schema {source}: {e}")
        except TypeError as e:
            raise SchemaError(f"Invalid schema {source}: {e}")

        declared: list[tuple[PackageSpec, TypeSpec, TypeDescriptor]] = []
        for pkg_spec in document.packages:
            pkg = self.universe.add_package(pkg_spec.path, tuple(pkg_spec.comments))
            for type_spec in pkg_spec.types:
                if pkg.has(type_spec.name) or self.universe.is_builtin_name(type_spec.name):
                    raise SchemaError(f"duplicate declaration of {pkg_spec.path}.{type_spec.name}")
                t = TypeDescriptor(
                    name=TypeName(pkg_spec.path, type_spec.name),
                    kind=Kind(type_spec.kind),
                    methods=tuple(type_spec.methods),
                    comment_lines=tuple(type_spec.comments),
                    second_closest_comment_lines=tuple(type_spec.second_comments),
                )
                pkg.types[type_spec.name] = t
                declared.append((pkg_spec, type_spec, t))

        for pkg_spec, type_spec, t in declared:
            self._fill_type(pkg_spec.path, type_spec, t)

        for _, _, t in declared:
            self._check_alias_chain(t)

        for pkg_spec in document.packages:
            self._declare_functions(pkg_spec)

        self.logger.debug(
            f"Loaded {len(declared)} types from {len(document.packages)} packages ({source})"
        )
        return self.universe

    def _fill_type(self, package_path: str, spec: TypeSpec, t: TypeDescriptor):
        expressions = TypeExpressionParser(self.universe, package_path)
        if t.kind == Kind.ALIAS:
            if not spec.underlying:
                raise SchemaError(f"alias {t} needs an underlying type")
            if spec.members:
                raise SchemaError(f"alias {t} cannot declare members")
            t.underlying = expressions.parse(spec.underlying)
        elif t.kind == Kind.STRUCT:
            seen = set()
            for member_spec in spec.members:
                if member_spec.name in seen:
                    raise SchemaError(f"duplicate member {member_spec.name} in {t}")
                seen.add(member_spec.name)
                t.members.append(
                    Member(
                        name=member_spec.name,
                        type=expressions.parse(member_spec.type),
                        embedded=member_spec.embedded,
                        tags=member_spec.tags,
                        comment_lines=tuple(member_spec.comments),
                    )
                )
        elif spec.members:
            raise SchemaError(f"interface {t} cannot declare members")

    @staticmethod
    def _check_alias_chain(t: TypeDescriptor):
        seen = set()
        current = t
        while current.kind == Kind.ALIAS:
            if id(current) in seen:
                raise SchemaError(f"alias cycle through {t}")
            seen.add(id(current))
            current = current.underlying

    def _declare_functions(self, pkg_spec: PackageSpec):
        pkg = self.universe.package(pkg_spec.path)
        expressions = TypeExpressionParser(self.universe, pkg_spec.path)
        for fn_spec in pkg_spec.functions:
            if fn_spec.name in pkg.functions:
                raise SchemaError(f"duplicate function {pkg_spec.path}.{fn_spec.name}")
            params = [expressions.parse(p) for p in fn_spec.params]
            if fn_spec.variadic and params:
                params[-1] = self.universe.slice_of(params[-1])
            pkg.functions[fn_spec.name] = FunctionDescriptor(
                name=TypeName(pkg_spec.path, fn_spec.name),
                signature=Signature(
                    parameters=tuple(params),
                    results=tuple(expressions.parse(r) for r in fn_spec.results),
                    receiver=expressions.parse(fn_spec.receiver) if fn_spec.receiver else None,
                    variadic=fn_spec.variadic,
                ),
                comment_lines=tuple(fn_spec.comments),
            )
