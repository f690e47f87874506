"""Custom exceptions for convgen.

Every exception raised here aborts the whole generation run. Problems that
only affect a single conversion (a member without a peer, an unresolvable
nested pair) are not exceptions: they are recorded in the generated output.
"""


class ConvgenError(Exception):
    """Base exception for all convgen errors."""

    pass


# Configuration Errors
class ConfigurationError(ConvgenError):
    """Raised when configuration is invalid or cannot be loaded."""

    pass


# Input Errors
class SchemaError(ConvgenError):
    """Raised when a schema file cannot be turned into a type universe."""

    pass


class DirectiveError(ConvgenError):
    """Raised when an annotation carries a malformed or unsupported value."""

    pass


# Analysis Errors
class DuplicateConversionError(ConvgenError):
    """Raised when two packages declare a manual conversion for the same pair."""

    def __init__(self, in_type, out_type, first, second):
        self.in_type = in_type
        self.out_type = out_type
        self.first = first
        self.second = second
        super().__init__(
            f"duplicate static conversion defined: {in_type} -> {out_type} from:\n"
            f"{first}\n{second}"
        )


class PeerPackageNotFoundError(ConvgenError):
    """Raised when a peer, extra or external-types package is not in the universe."""

    def __init__(self, package_path: str):
        self.package_path = package_path
        super().__init__(f"failed to find pkg: {package_path}")


class UnsupportedExplicitSourceError(DirectiveError):
    """Raised when an explicit-from directive names an unsupported source type."""

    pass


# Output Errors
class RenderError(ConvgenError):
    """Raised when a renderer cannot produce output for a generated file."""

    pass
