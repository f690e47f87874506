"""Annotation parsing.

Annotations are comment lines of the form ``+key=value`` (or ``+key`` for an
empty value). They are turned into typed directive objects here. Parsing
validates every value, and ``validate_package`` parses every type and member
directive of a package up front so that malformed input is reported before
synthesis starts.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from convgen.core.runtime_types import SUPPORTED_EXPLICIT_SOURCES
from convgen.core.types import (
    FunctionDescriptor,
    Member,
    Package,
    TypeDescriptor,
    TypeName,
    split_qualified_name,
)
from convgen.exceptions import DirectiveError, UnsupportedExplicitSourceError
from convgen.utils.logging_utils import get_logger

TAG_MARKER = "+"
OPT_OUT_VALUE = "false"


def extract_comment_tags(lines: Iterable[str], marker: str = TAG_MARKER) -> dict[str, list[str]]:
    """
    Collect ``+key=value`` annotations from comment lines.

    Repeated keys accumulate their values in order; a key without ``=`` gets
    the empty string as its value.

    Args:
        lines: Comment lines attached to a declaration
        marker: Prefix that introduces an annotation

    Returns:
        Mapping from annotation key to its values
    """
    tags: dict[str, list[str]] = {}
    for raw in lines:
        line = raw.strip()
        if line.startswith("//"):
            line = line[2:].strip()
        if not line.startswith(marker) or len(line) == len(marker):
            continue
        key, _, value = line[len(marker) :].partition("=")
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] == '"':
            value = value[1:-1]
        tags.setdefault(key.strip(), []).append(value)
    return tags


class DirectiveKind(str, Enum):
    """Annotation keys understood by the generator."""

    GENERATE = "generate"
    EXTERNAL_TYPES = "external-types"
    EXPLICIT_FROM = "explicit-from"
    RENAME = "rename"
    CONVERSION_FN = "conversion-fn"


class FunctionClass(str, Enum):
    """Classification of a hand-written conversion function."""

    COPY_ONLY = "copy-only"
    DROP = "drop"


@dataclass(frozen=True)
class TagNames:
    """Concrete annotation keys derived from a base tag name."""

    base: str = "convgen"

    def key(self, kind: DirectiveKind) -> str:
        return {
            DirectiveKind.GENERATE: self.base,
            DirectiveKind.EXTERNAL_TYPES: f"{self.base}-external-types",
            DirectiveKind.EXPLICIT_FROM: f"{self.base}:explicit-from",
            DirectiveKind.RENAME: f"{self.base}:rename",
            DirectiveKind.CONVERSION_FN: f"{self.base}-fn",
        }[kind]


@dataclass(frozen=True)
class PackageDirectives:
    """Package-level settings.

    ``requested`` is False when the package carries no generation tag at all,
    in which case nothing is generated for it. ``explicit_only`` means the tag
    was ``false``: only explicit-from adapters are generated.
    """

    requested: bool = False
    peer_packages: tuple[str, ...] = ()
    explicit_only: bool = False
    external_types: Optional[str] = None


@dataclass(frozen=True)
class TypeDirectives:
    opt_out: bool = False
    explicit_from: tuple[TypeName, ...] = ()


@dataclass(frozen=True)
class MemberDirectives:
    opt_out: bool = False
    renames: tuple[str, ...] = ()


@dataclass(frozen=True)
class FunctionDirectives:
    classification: Optional[FunctionClass] = None

    @property
    def copy_only(self) -> bool:
        return self.classification == FunctionClass.COPY_ONLY

    @property
    def drop(self) -> bool:
        return self.classification == FunctionClass.DROP


class TagExtractor:
    """Turns annotation lines into validated directives."""

    def __init__(self, tag_name: str = "convgen"):
        self.names = TagNames(tag_name)
        self.logger = get_logger(self.__class__.__name__)
        self._cache: dict[tuple[str, ...], dict[str, list[str]]] = {}

    def _tags(self, lines: Iterable[str]) -> dict[str, list[str]]:
        key = tuple(lines)
        if key not in self._cache:
            self._cache[key] = extract_comment_tags(key)
        return self._cache[key]

    def _values(self, lines: Iterable[str], kind: DirectiveKind) -> Optional[list[str]]:
        return self._tags(lines).get(self.names.key(kind))

    # ------------------------------------------------------------------ #
    # Scopes
    # ------------------------------------------------------------------ #
    def package_directives(self, pkg: Package) -> PackageDirectives:
        """Parse the peer-package list and external-types setting of a package."""
        values = self._values(pkg.comment_lines, DirectiveKind.GENERATE)
        external = self._values(pkg.comment_lines, DirectiveKind.EXTERNAL_TYPES)

        external_types = None
        if external is not None:
            if len(external) != 1 or not external[0]:
                raise DirectiveError(
                    f"package {pkg.path}: expect only one value for "
                    f"{self.names.key(DirectiveKind.EXTERNAL_TYPES)!r} tag, got: {external}"
                )
            external_types = external[0]

        if values is None:
            return PackageDirectives(requested=False, external_types=external_types)

        if values == [OPT_OUT_VALUE]:
            return PackageDirectives(
                requested=True, explicit_only=True, external_types=external_types
            )

        for value in values:
            if not value or value == OPT_OUT_VALUE:
                raise DirectiveError(
                    f"package {pkg.path}: unsupported {self.names.base} value: {value!r}"
                )
        return PackageDirectives(
            requested=True, peer_packages=tuple(values), external_types=external_types
        )

    def type_directives(self, t: TypeDescriptor) -> TypeDirectives:
        """Parse opt-out and explicit-from directives of a type."""
        values = self._values(t.comment_lines, DirectiveKind.GENERATE)
        opt_out = False
        if values is not None:
            if values[0] != OPT_OUT_VALUE:
                raise DirectiveError(
                    f"type {t}: unsupported {self.names.base} value: {values[0]!r}"
                )
            opt_out = True

        comments = tuple(t.second_closest_comment_lines) + tuple(t.comment_lines)
        sources = []
        for reference in self._values(comments, DirectiveKind.EXPLICIT_FROM) or []:
            source = split_qualified_name(reference)
            if source is None:
                raise DirectiveError(
                    f"type {t}: unexpected {self.names.key(DirectiveKind.EXPLICIT_FROM)} "
                    f"tag: {reference!r}"
                )
            if source not in SUPPORTED_EXPLICIT_SOURCES:
                raise UnsupportedExplicitSourceError(
                    f"type {t}: not supported {self.names.key(DirectiveKind.EXPLICIT_FROM)} "
                    f"tag: {reference}"
                )
            sources.append(source)
        return TypeDirectives(opt_out=opt_out, explicit_from=tuple(sources))

    def member_directives(self, member: Member) -> MemberDirectives:
        """Parse opt-out and rename directives of a struct member."""
        values = self._values(member.comment_lines, DirectiveKind.GENERATE)
        opt_out = False
        if values is not None:
            if values[0] != OPT_OUT_VALUE:
                raise DirectiveError(
                    f"member {member.name}: unsupported {self.names.base} value: {values[0]!r}"
                )
            opt_out = True

        renames = self._values(member.comment_lines, DirectiveKind.RENAME) or []
        for rename in renames:
            if not rename:
                raise DirectiveError(
                    f"member {member.name}: empty {self.names.key(DirectiveKind.RENAME)} value"
                )
        return MemberDirectives(opt_out=opt_out, renames=tuple(renames))

    def function_directives(self, fn: FunctionDescriptor) -> FunctionDirectives:
        """Parse the copy-only / drop classification of a conversion function."""
        values = self._values(fn.comment_lines, DirectiveKind.CONVERSION_FN)
        if values is None:
            return FunctionDirectives()
        key = self.names.key(DirectiveKind.CONVERSION_FN)
        if len(values) != 1:
            raise DirectiveError(f"function {fn}: expect only one value for {key!r}, got: {values}")
        try:
            return FunctionDirectives(classification=FunctionClass(values[0]))
        except ValueError:
            raise DirectiveError(f"function {fn}: unsupported {key} value: {values[0]!r}")

    def validate_package(self, pkg: Package) -> None:
        """
        Parse the directives of every type and struct member declared in ``pkg``.

        Raises:
            DirectiveError: On the first malformed or unsupported directive
        """
        for t in pkg.types.values():
            self.type_directives(t)
            for member in t.members:
                self.member_directives(member)
