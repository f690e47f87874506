"""Types the generated code depends on but no schema declares.

Generated conversions take a conversion ``Scope`` argument and register
themselves with a ``Scheme``; explicit-from adapters read from the built-in
flat multimap source (``net/url.Values``, a ``map[string][]string``). These
declarations are installed into a universe before schema files are loaded so
that schemas can reference them.
"""

from dataclasses import dataclass

from convgen.core.types import Kind, TypeDescriptor, TypeName, Universe

DEFAULT_CONVERSION_PACKAGE = "k8s.io/apimachinery/pkg/conversion"
DEFAULT_RUNTIME_PACKAGE = "k8s.io/apimachinery/pkg/runtime"

SCOPE_TYPE_NAME = "Scope"
SCHEME_TYPE_NAME = "Scheme"

FLAT_MULTIMAP_SOURCE = TypeName("net/url", "Values")
SUPPORTED_EXPLICIT_SOURCES = frozenset({FLAT_MULTIMAP_SOURCE})


@dataclass(frozen=True)
class RuntimeTypes:
    """Handles to the runtime declarations of a universe."""

    scope: TypeDescriptor
    scheme: TypeDescriptor
    flat_multimap: TypeDescriptor

    @property
    def conversion_package(self) -> str:
        return self.scope.package

    @property
    def runtime_package(self) -> str:
        return self.scheme.package


def _declare(universe: Universe, name: TypeName, factory) -> TypeDescriptor:
    existing = universe.get_type(name)
    if existing is not None:
        return existing
    pkg = universe.add_package(name.package)
    t = factory(name)
    pkg.types[name.name] = t
    return t


def install_runtime_types(
    universe: Universe,
    conversion_package: str = DEFAULT_CONVERSION_PACKAGE,
    runtime_package: str = DEFAULT_RUNTIME_PACKAGE,
) -> RuntimeTypes:
    """Declare the scope, scheme and flat multimap types unless already present."""
    scope = _declare(
        universe,
        TypeName(conversion_package, SCOPE_TYPE_NAME),
        lambda n: TypeDescriptor(n, Kind.INTERFACE, methods=("Convert", "Meta")),
    )
    scheme = _declare(
        universe,
        TypeName(runtime_package, SCHEME_TYPE_NAME),
        lambda n: TypeDescriptor(n, Kind.STRUCT),
    )
    string = universe.builtin("string")
    values = _declare(
        universe,
        FLAT_MULTIMAP_SOURCE,
        lambda n: TypeDescriptor(
            n, Kind.ALIAS, underlying=universe.map_of(string, universe.slice_of(string))
        ),
    )
    return RuntimeTypes(scope=scope, scheme=scheme, flat_multimap=values)
