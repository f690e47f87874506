"""Type universe: the queryable set of declarations the generator works on.

Type descriptors use identity semantics. Two descriptors denote the same
type only when they are the same object, which is why the universe interns
anonymous composites (``*T``, ``[]T``, ``map[K]V``) instead of building a new
descriptor for every reference. Descriptors are filled in while a universe is
loaded and are treated as read-only afterwards.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Optional


class Kind(str, Enum):
    """Kinds of types known to the universe."""

    BUILTIN = "builtin"
    STRUCT = "struct"
    POINTER = "pointer"
    MAP = "map"
    SLICE = "slice"
    INTERFACE = "interface"
    ALIAS = "alias"
    FUNC = "func"
    ARRAY = "array"
    CHAN = "chan"


BUILTIN_NAMES = frozenset(
    {
        "bool",
        "string",
        "error",
        "byte",
        "rune",
        "uintptr",
        "int",
        "int8",
        "int16",
        "int32",
        "int64",
        "uint",
        "uint8",
        "uint16",
        "uint32",
        "uint64",
        "float32",
        "float64",
        "complex64",
        "complex128",
    }
)

INTEGER_NAMES = frozenset(
    {
        "int", "int8", "int16", "int32", "int64",
        "uint", "uint8", "uint16", "uint32", "uint64",
        "uintptr", "byte", "rune",
    }
)
FLOAT_NAMES = frozenset({"float32", "float64"})


@dataclass(frozen=True)
class TypeName:
    """Qualified name of a type or function. Builtins live in package ''."""

    package: str
    name: str

    def __str__(self) -> str:
        if self.package:
            return f"{self.package}.{self.name}"
        return self.name


@dataclass(frozen=True)
class Member:
    """A struct member."""

    name: str
    type: "TypeDescriptor"
    embedded: bool = False
    tags: str = ""
    comment_lines: tuple[str, ...] = ()


@dataclass(frozen=True)
class Signature:
    """Parameters and results of a function or function type."""

    parameters: tuple["TypeDescriptor", ...] = ()
    results: tuple["TypeDescriptor", ...] = ()
    receiver: Optional["TypeDescriptor"] = None
    variadic: bool = False


@dataclass(eq=False, repr=False)
class TypeDescriptor:
    """A single type of the universe."""

    name: TypeName
    kind: Kind
    members: list[Member] = field(default_factory=list)
    key: Optional["TypeDescriptor"] = None
    elem: Optional["TypeDescriptor"] = None
    underlying: Optional["TypeDescriptor"] = None
    methods: tuple[str, ...] = ()
    signature: Optional[Signature] = None
    length: Optional[int] = None
    comment_lines: tuple[str, ...] = ()
    second_closest_comment_lines: tuple[str, ...] = ()

    def __repr__(self) -> str:
        return f"<{self.kind.value} {self.name}>"

    def __str__(self) -> str:
        return str(self.name)

    @property
    def package(self) -> str:
        return self.name.package


@dataclass(eq=False, repr=False)
class FunctionDescriptor:
    """A declared function, e.g. a hand-written conversion."""

    name: TypeName
    signature: Optional[Signature]
    comment_lines: tuple[str, ...] = ()

    def __repr__(self) -> str:
        return f"<func {self.name}>"

    def __str__(self) -> str:
        return str(self.name)


@dataclass(frozen=True)
class ConversionPair:
    """Ordered (in, out) pair of types; usable as a dict key."""

    in_type: TypeDescriptor
    out_type: TypeDescriptor

    def reversed(self) -> "ConversionPair":
        return ConversionPair(self.out_type, self.in_type)

    def __str__(self) -> str:
        return f"{self.in_type} -> {self.out_type}"


@dataclass
class Package:
    """A package of the universe."""

    path: str
    comment_lines: tuple[str, ...] = ()
    types: dict[str, TypeDescriptor] = field(default_factory=dict)
    functions: dict[str, FunctionDescriptor] = field(default_factory=dict)

    @property
    def name(self) -> str:
        """Local package name: the last path segment."""
        return self.path.rstrip("/").rsplit("/", 1)[-1]

    def has(self, type_name: str) -> bool:
        return type_name in self.types

    def type(self, type_name: str) -> Optional[TypeDescriptor]:
        return self.types.get(type_name)


def split_qualified_name(reference: str) -> Optional[TypeName]:
    """Split ``example.com/pkg/v1.Name`` into its package path and name.

    The separating dot is the last one after the final slash, so dots inside
    host names are kept in the package path. Returns None when there is no
    package part.
    """
    slash = reference.rfind("/")
    dot = reference.rfind(".")
    if dot <= slash or dot == len(reference) - 1:
        return None
    return TypeName(reference[:dot], reference[dot + 1 :])


_STRUCT_TAG = re.compile(r'([^\s:"]+):"((?:[^"\\]|\\.)*)"')


def lookup_struct_tag(tags: str, key: str) -> Optional[str]:
    """Value stored under ``key`` in a ``key:"value" other:"value"`` tag string."""
    for match in _STRUCT_TAG.finditer(tags or ""):
        if match.group(1) == key:
            return match.group(2)
    return None


def unwrap_alias(t: TypeDescriptor) -> TypeDescriptor:
    """Follow alias chains down to the bedrock type."""
    while t.kind == Kind.ALIAS:
        t = t.underlying
    return t


def is_private_name(name: str) -> bool:
    """Names starting with a lower-case letter or an underscore are not exported."""
    if not name:
        return True
    first = name[0]
    return first == "_" or first.islower()


class Universe:
    """All packages, builtins and interned anonymous types of one run."""

    def __init__(self):
        self.packages: dict[str, Package] = {}
        self._builtins: dict[str, TypeDescriptor] = {
            name: TypeDescriptor(TypeName("", name), Kind.BUILTIN) for name in BUILTIN_NAMES
        }
        self._anonymous: dict[str, TypeDescriptor] = {}

    def __contains__(self, path: str) -> bool:
        return path in self.packages

    def __iter__(self) -> Iterator[Package]:
        return iter(self.packages[path] for path in sorted(self.packages))

    def package(self, path: str) -> Optional[Package]:
        return self.packages.get(path)

    def add_package(self, path: str, comment_lines: tuple[str, ...] = ()) -> Package:
        """Return the package for ``path``, creating it if needed.

        Comment lines given for an existing package are appended, so several
        schema files can contribute to one package.
        """
        pkg = self.packages.get(path)
        if pkg is None:
            pkg = Package(path=path, comment_lines=tuple(comment_lines))
            self.packages[path] = pkg
        elif comment_lines:
            pkg.comment_lines = pkg.comment_lines + tuple(comment_lines)
        return pkg

    def get_type(self, name: TypeName) -> Optional[TypeDescriptor]:
        if not name.package:
            return self._builtins.get(name.name) or self._anonymous.get(name.name)
        pkg = self.packages.get(name.package)
        if pkg is None:
            return None
        return pkg.type(name.name)

    def builtin(self, name: str) -> TypeDescriptor:
        return self._builtins[name]

    def is_builtin_name(self, name: str) -> bool:
        return name in self._builtins

    # ------------------------------------------------------------------ #
    # Interned anonymous composites
    # ------------------------------------------------------------------ #
    def _intern(self, display: str, factory) -> TypeDescriptor:
        existing = self._anonymous.get(display)
        if existing is None:
            existing = factory(TypeName("", display))
            self._anonymous[display] = existing
        return existing

    def pointer_to(self, elem: TypeDescriptor) -> TypeDescriptor:
        return self._intern(f"*{elem.name}", lambda n: TypeDescriptor(n, Kind.POINTER, elem=elem))

    def slice_of(self, elem: TypeDescriptor) -> TypeDescriptor:
        return self._intern(f"[]{elem.name}", lambda n: TypeDescriptor(n, Kind.SLICE, elem=elem))

    def array_of(self, elem: TypeDescriptor, length: int) -> TypeDescriptor:
        return self._intern(
            f"[{length}]{elem.name}",
            lambda n: TypeDescriptor(n, Kind.ARRAY, elem=elem, length=length),
        )

    def map_of(self, key: TypeDescriptor, elem: TypeDescriptor) -> TypeDescriptor:
        return self._intern(
            f"map[{key.name}]{elem.name}",
            lambda n: TypeDescriptor(n, Kind.MAP, key=key, elem=elem),
        )

    def chan_of(self, elem: TypeDescriptor) -> TypeDescriptor:
        return self._intern(f"chan {elem.name}", lambda n: TypeDescriptor(n, Kind.CHAN, elem=elem))

    def empty_interface(self) -> TypeDescriptor:
        return self._intern("interface{}", lambda n: TypeDescriptor(n, Kind.INTERFACE))

    def func_of(self, signature: Signature) -> TypeDescriptor:
        params = ", ".join(str(p.name) for p in signature.parameters)
        if signature.variadic and signature.parameters:
            *head, last = [str(p.name) for p in signature.parameters]
            params = ", ".join(head + [f"...{last.removeprefix('[]')}"])
        results = ", ".join(str(r.name) for r in signature.results)
        display = f"func({params})"
        if len(signature.results) == 1:
            display += f" {results}"
        elif signature.results:
            display += f" ({results})"
        return self._intern(display, lambda n: TypeDescriptor(n, Kind.FUNC, signature=signature))
