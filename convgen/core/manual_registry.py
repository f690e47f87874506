"""Registry of hand-written conversion functions."""

from dataclasses import dataclass
from typing import Optional

from convgen.core.naming import CONVERT_PREFIX, conversion_function_name
from convgen.core.runtime_types import RuntimeTypes
from convgen.core.tags import FunctionDirectives, TagExtractor
from convgen.core.types import (
    ConversionPair,
    FunctionDescriptor,
    Kind,
    Package,
    TypeDescriptor,
)
from convgen.exceptions import DuplicateConversionError
from convgen.utils.logging_utils import get_logger


@dataclass(frozen=True)
class ManualConversionEntry:
    """A hand-written conversion function and its classification."""

    pair: ConversionPair
    function: FunctionDescriptor
    directives: FunctionDirectives

    @property
    def copy_only(self) -> bool:
        return self.directives.copy_only

    @property
    def drop(self) -> bool:
        return self.directives.drop


class ManualConversionRegistry:
    """
    Indexes manual conversion functions by the pair of types they convert.

    A function qualifies when it has the shape
    ``Convert_<in>_To_<out>(in *In, out *Out, s Scope) error`` and no receiver.
    The registry is append-only for the duration of a run.
    """

    def __init__(self, extractor: TagExtractor, runtime: RuntimeTypes):
        self.extractor = extractor
        self.runtime = runtime
        self.logger = get_logger(self.__class__.__name__)
        self._entries: dict[ConversionPair, ManualConversionEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, pair: ConversionPair) -> bool:
        return pair in self._entries

    def scan_package(self, pkg: Optional[Package]) -> int:
        """
        Register every conversion function declared in ``pkg``.

        Scanning the same package twice is harmless; a pair already claimed
        by a function from another package is fatal.

        Args:
            pkg: Package to scan

        Returns:
            Number of conversion functions found in the package

        Raises:
            DuplicateConversionError: If another package already registered the pair
        """
        if pkg is None:
            self.logger.warning("Skipping nil package passed to scan_package")
            return 0

        self.logger.debug(f"Scanning for conversion functions in {pkg.path}")
        found = 0
        for fn in pkg.functions.values():
            pair = self._conversion_pair(fn)
            if pair is None:
                continue

            existing = self._entries.get(pair)
            if existing is not None and existing.function.name.package != pkg.path:
                raise DuplicateConversionError(
                    pair.in_type, pair.out_type, existing.function.name, fn.name
                )

            self._entries[pair] = ManualConversionEntry(
                pair=pair,
                function=fn,
                directives=self.extractor.function_directives(fn),
            )
            self.logger.debug(f"Found conversion function {fn.name}")
            found += 1
        return found

    def _conversion_pair(self, fn: FunctionDescriptor) -> Optional[ConversionPair]:
        """Return the pair converted by ``fn``, or None when it is no conversion function."""
        signature = fn.signature
        if signature is None:
            self.logger.error(f"Function without signature: {fn}")
            return None
        if signature.receiver is not None:
            self.logger.debug(f"{fn} has a receiver")
            return None
        params = signature.parameters
        if len(params) != 3 or params[2] is not self.runtime.scope:
            self.logger.debug(f"{fn} has wrong parameters")
            return None
        results = signature.results
        if len(results) != 1 or results[0].kind != Kind.BUILTIN or results[0].name.name != "error":
            self.logger.debug(f"{fn} has wrong results")
            return None
        in_ptr, out_ptr = params[0], params[1]
        if in_ptr.kind != Kind.POINTER or out_ptr.kind != Kind.POINTER:
            self.logger.debug(f"{fn} has wrong parameter types")
            return None

        expected = conversion_function_name(in_ptr.elem, out_ptr.elem)
        if fn.name.name != expected:
            if fn.name.name.startswith(CONVERT_PREFIX):
                self.logger.error(
                    f"Rename function {fn.name.package} {fn.name.name} -> {expected} "
                    f"to match expected conversion signature"
                )
            self.logger.debug(f"{fn} has wrong name")
            return None
        return ConversionPair(in_ptr.elem, out_ptr.elem)

    # ------------------------------------------------------------------ #
    # Lookup
    # ------------------------------------------------------------------ #
    def get(self, in_type: TypeDescriptor, out_type: TypeDescriptor) -> Optional[ManualConversionEntry]:
        return self._entries.get(ConversionPair(in_type, out_type))

    def preexists(self, in_type: TypeDescriptor, out_type: TypeDescriptor) -> bool:
        return ConversionPair(in_type, out_type) in self._entries

    def is_copy_only(self, in_type: TypeDescriptor, out_type: TypeDescriptor) -> bool:
        entry = self.get(in_type, out_type)
        return entry is not None and entry.copy_only

    def is_drop(self, in_type: TypeDescriptor, out_type: TypeDescriptor) -> bool:
        """True when a manual function marks the pair as not to be converted at all."""
        entry = self.get(in_type, out_type)
        return entry is not None and entry.drop

    def entries(self) -> list[ManualConversionEntry]:
        """All entries, sorted by the qualified name of their function."""
        return sorted(self._entries.values(), key=lambda e: str(e.function.name))

    def entries_in_package(self, package_path: str) -> list[ManualConversionEntry]:
        """Entries whose function is declared in ``package_path``, sorted by function name."""
        return sorted(
            (e for e in self._entries.values() if e.function.name.package == package_path),
            key=lambda e: e.function.name.name,
        )
