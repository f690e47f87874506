"""The registration table of a generated file."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Optional

from convgen.core.context import GenerationContext
from convgen.core.naming import conversion_function_name
from convgen.core.operations import FunctionRef
from convgen.core.pair_selector import Selection
from convgen.core.types import ConversionPair, TypeDescriptor
from convgen.exceptions import DuplicateConversionError
from convgen.utils.logging_utils import get_logger


class RegistrationKind(str, Enum):
    GENERATED = "generated"
    MANUAL = "manual"


@dataclass(frozen=True)
class RegistrationEntry:
    pair: ConversionPair
    function: FunctionRef
    kind: RegistrationKind


@dataclass
class RegistrationTable:
    """
    Every conversion a generated file registers, keyed by type pair.

    Manual functions take precedence over generated ones on lookup, which is
    how a caller converting through the table gets the hand-written logic
    without knowing about it at compile time.
    """

    package: str
    entries: list[RegistrationEntry] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[RegistrationEntry]:
        return iter(self.entries)

    def add(self, entry: RegistrationEntry):
        for existing in self.entries:
            if existing.pair != entry.pair or existing.kind != entry.kind:
                continue
            if existing.function == entry.function:
                return
            if entry.kind == RegistrationKind.MANUAL:
                raise DuplicateConversionError(
                    entry.pair.in_type, entry.pair.out_type, existing.function, entry.function
                )
            return
        self.entries.append(entry)

    def lookup(self, in_type: TypeDescriptor, out_type: TypeDescriptor) -> Optional[RegistrationEntry]:
        pair = ConversionPair(in_type, out_type)
        found = None
        for entry in self.entries:
            if entry.pair != pair:
                continue
            if entry.kind == RegistrationKind.MANUAL:
                return entry
            found = entry
        return found

    @property
    def generated(self) -> list[RegistrationEntry]:
        return [e for e in self.entries if e.kind == RegistrationKind.GENERATED]

    @property
    def manual(self) -> list[RegistrationEntry]:
        return [e for e in self.entries if e.kind == RegistrationKind.MANUAL]


class RegistrationEmitter:
    """Collects generated, adapter and manual conversions into one table."""

    def __init__(self, context: GenerationContext, output_package: str):
        self.context = context
        self.output_package = output_package
        self.logger = get_logger(self.__class__.__name__)

    def _generated(self, pair: ConversionPair) -> RegistrationEntry:
        return RegistrationEntry(
            pair=pair,
            function=FunctionRef(
                self.output_package, conversion_function_name(pair.in_type, pair.out_type)
            ),
            kind=RegistrationKind.GENERATED,
        )

    def emit(self, selection: Selection) -> RegistrationTable:
        """
        Build the registration table for one output package.

        Order: both directions of each peer pair (skipping directions with a
        manual function), then explicit conversions, then the manual
        functions declared in the output package sorted by name.

        Raises:
            DuplicateConversionError: If two manual functions claim the same pair
        """
        table = RegistrationTable(package=self.output_package)
        manual = self.context.manual

        for pair in selection.peer_pairs:
            for direction in (pair, pair.reversed()):
                if not manual.preexists(direction.in_type, direction.out_type):
                    table.add(self._generated(direction))

        for pair in selection.explicit_conversions:
            table.add(self._generated(pair))

        for entry in manual.entries_in_package(self.output_package):
            table.add(
                RegistrationEntry(
                    pair=entry.pair,
                    function=FunctionRef.from_descriptor(entry.function),
                    kind=RegistrationKind.MANUAL,
                )
            )

        self.logger.debug(
            f"Registration table for {self.output_package}: "
            f"{len(table.generated)} generated, {len(table.manual)} manual"
        )
        return table
