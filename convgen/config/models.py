"""
Pydantic models for convgen configuration.

Provides type-safe, validated configuration with clear error messages
and automatic validation of all configuration values.
"""

import re
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator

from convgen.core.runtime_types import DEFAULT_CONVERSION_PACKAGE, DEFAULT_RUNTIME_PACKAGE
from convgen.exceptions import ConfigurationError

_TAG_NAME = re.compile(r"^[A-Za-z][A-Za-z0-9_.:/-]*$")


class GenerationConfig(BaseModel):
    """Configuration for conversion generation."""

    skip_unsafe: bool = Field(
        default=False,
        description="Never reinterpret memory, even for memory-equivalent types.",
    )
    base_peer_dirs: list[str] = Field(
        default_factory=list,
        description="Peer packages appended to every package that names peers of its own.",
    )
    extra_peer_dirs: list[str] = Field(
        default_factory=list,
        description="Additional peer packages appended after base_peer_dirs.",
    )
    extra_dirs: list[str] = Field(
        default_factory=list,
        description="Packages scanned for manual conversion functions only.",
    )
    output_file_base_name: str = Field(
        default="zz_generated.conversion",
        min_length=1,
        description="Base name (without extension) of generated files.",
    )
    generated_build_tag: str = Field(
        default="ignore_autogenerated",
        description="Build tag that excludes generated files when set.",
    )

    @field_validator("output_file_base_name")
    @classmethod
    def validate_output_file_base_name(cls, v: str) -> str:
        """Validate that the base name is a plain file name."""
        if "/" in v or "\\" in v:
            raise ValueError(f"output_file_base_name must not contain a path separator, got: {v}")
        return v


class TagConfig(BaseModel):
    """Configuration for annotation names."""

    name: str = Field(
        default="convgen",
        description="Base annotation name, e.g. 'convgen' for '+convgen=<peer-pkg>'.",
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate the annotation base name."""
        if not _TAG_NAME.match(v):
            raise ValueError(f"name must start with a letter and contain no spaces or '=', got: {v!r}")
        return v


class RuntimeConfig(BaseModel):
    """Packages providing the conversion scope and the scheme."""

    conversion_package: str = Field(
        default=DEFAULT_CONVERSION_PACKAGE, min_length=1, description="Package declaring Scope."
    )
    runtime_package: str = Field(
        default=DEFAULT_RUNTIME_PACKAGE, min_length=1, description="Package declaring Scheme."
    )


class RenderConfig(BaseModel):
    """Configuration for rendering generated files."""

    renderer: str = Field(default="go", description="Renderer used for generated files.")

    @field_validator("renderer")
    @classmethod
    def validate_renderer(cls, v: str) -> str:
        """Validate renderer name."""
        allowed = {"go", "listing"}
        if v not in allowed:
            raise ValueError(f"renderer must be one of {allowed}, got: {v}")
        return v


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = Field(default="INFO", description="Logging level.")
    file: str | None = Field(default=None, description="Optional log file path.")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate logging level."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"level must be one of {allowed}, got: {v}")
        return v_upper


class ConvgenConfig(BaseModel):
    """Main convgen configuration."""

    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    tags: TagConfig = Field(default_factory=TagConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)
    render: RenderConfig = Field(default_factory=RenderConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {
        "extra": "forbid",  # Raise error on unknown fields
        "validate_assignment": True,  # Validate on attribute assignment
    }


def load_config(config_file: str = "config/convgen.yaml") -> ConvgenConfig:
    """
    Load and validate convgen configuration from YAML file.

    Args:
        config_file: Path to YAML configuration file

    Returns:
        Validated ConvgenConfig instance

    Raises:
        ConfigurationError: If the file is missing, unparsable or invalid
    """
    config_path = Path(config_file)

    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_file}")

    try:
        with open(config_path) as f:
            config_dict = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse YAML configuration: {e}")

    if config_dict is None:
        config_dict = {}

    try:
        return ConvgenConfig(**config_dict)
    except Exception as e:
        raise ConfigurationError(f"Invalid configuration: {e}")


def save_config(config: ConvgenConfig, config_file: str = "config/convgen.yaml") -> None:
    """
    Save convgen configuration to YAML file.

    Args:
        config: ConvgenConfig instance to save
        config_file: Path to YAML configuration file
    """
    config_path = Path(config_file)
    config_path.parent.mkdir(parents=True, exist_ok=True)

    # Convert to dict and remove None values for cleaner output
    config_dict = config.model_dump(exclude_none=True)

    with open(config_path, "w") as f:
        yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)
