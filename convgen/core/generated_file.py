"""The per-package result handed to a renderer."""

from dataclasses import dataclass, field

from convgen.core.registration import RegistrationTable
from convgen.core.runtime_types import RuntimeTypes
from convgen.core.synthesizer import GeneratedConversion


@dataclass
class GeneratedFile:
    """
    Everything generated for one input package.

    ``conversions`` are in emission order: for every admitted type its two
    peer directions, then its explicit-from adapters.
    """

    package_path: str
    package_name: str
    file_base_name: str
    build_tag: str
    runtime: RuntimeTypes
    registration: RegistrationTable
    types_package: str = ""
    peer_packages: list[str] = field(default_factory=list)
    conversions: list[GeneratedConversion] = field(default_factory=list)

    @property
    def failures(self) -> int:
        """Number of non-compiling markers left in the file."""
        return sum(c.failures for c in self.conversions)

    @property
    def skipped_fields(self) -> dict[str, list[str]]:
        return {
            str(c.pair.in_type): c.skipped_fields for c in self.conversions if c.skipped_fields
        }

    def file_name(self, extension: str) -> str:
        return f"{self.file_base_name}{extension}"

    def output_path(self, extension: str) -> str:
        """Relative path of the rendered file: the package path plus the file name."""
        return f"{self.package_path.rstrip('/')}/{self.file_name(extension)}"
