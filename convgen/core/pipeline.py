"""Main convgen pipeline orchestration."""

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional, Sequence

from pydantic import ValidationError

from convgen.config.models import ConvgenConfig, load_config
from convgen.core.context import GenerationContext
from convgen.core.generated_file import GeneratedFile
from convgen.core.memory_equivalence import MemoryEquivalence
from convgen.core.naming import public_name
from convgen.core.pair_selector import PairSelector, Selection
from convgen.core.registration import RegistrationEmitter
from convgen.core.runtime_types import RuntimeTypes, install_runtime_types
from convgen.core.synthesizer import ConversionSynthesizer, GeneratedConversion
from convgen.core.types import Package, TypeDescriptor, Universe
from convgen.exceptions import ConfigurationError, PeerPackageNotFoundError
from convgen.parsers.schema_parser import SchemaParser
from convgen.renderers import create_renderer
from convgen.utils.logging_utils import ROOT_LOGGER_NAME, get_logger, setup_logger

logger = get_logger(__name__)


@dataclass
class PackagePlan:
    """What one input package generates, decided before any synthesis runs."""

    package: Package
    types_package: Package
    peer_packages: list[str] = field(default_factory=list)


@dataclass
class PipelineResult:
    """Result of running the convgen pipeline."""

    files: list[GeneratedFile] = field(default_factory=list)
    rendered: dict[str, str] = field(default_factory=dict)
    skipped_packages: list[str] = field(default_factory=list)
    manual_conversions: int = 0
    recursive_types: list[str] = field(default_factory=list)
    extension: str = ""
    execution_time: float = 0.0

    @property
    def failures(self) -> int:
        return sum(f.failures for f in self.files)

    @property
    def conversions(self) -> int:
        return sum(len(f.conversions) for f in self.files)

    def write(self, output_dir: str | Path) -> list[Path]:
        """
        Write every rendered file below ``output_dir``.

        Returns:
            Paths of the written files
        """
        written = []
        for relative, content in self.rendered.items():
            path = Path(output_dir) / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
            written.append(path)
        return written


class ConversionPipeline:
    """Loads schemas, plans every input package, synthesizes and renders."""

    def __init__(self, config_file: Optional[str] = None, config_overrides: Optional[dict] = None):
        """
        Initialize convgen pipeline.

        Args:
            config_file: Path to configuration file (defaults are used when None)
            config_overrides: Dictionary of configuration overrides

        Raises:
            ConfigurationError: If the configuration or an override is invalid
        """
        self.config = load_config(config_file) if config_file else ConvgenConfig()

        if config_overrides:
            data = self.config.model_dump()
            self._apply_overrides(data, config_overrides)
            try:
                self.config = ConvgenConfig(**data)
            except ValidationError as e:
                raise ConfigurationError(f"Invalid configuration override: {e}")

        setup_logger(
            ROOT_LOGGER_NAME, level=self.config.logging.level, log_file=self.config.logging.file
        )
        self.logger = get_logger(self.__class__.__name__)
        self.renderer = create_renderer(self.config.render.renderer)

    def _apply_overrides(self, config: dict, overrides: dict):
        """Recursively apply configuration overrides."""
        for key, value in overrides.items():
            if isinstance(value, dict) and key in config and isinstance(config[key], dict):
                self._apply_overrides(config[key], value)
            else:
                config[key] = value

    # ------------------------------------------------------------------ #
    # Entry points
    # ------------------------------------------------------------------ #
    def load_universe(self, schema_paths: Iterable[str | Path]) -> Universe:
        """Build a universe from schema files, runtime declarations included."""
        universe = Universe()
        self._install_runtime(universe)
        SchemaParser(universe).parse_files(schema_paths)
        return universe

    def run(
        self, schema_paths: Iterable[str | Path], input_packages: Optional[Sequence[str]] = None
    ) -> PipelineResult:
        """
        Run the complete pipeline on schema files.

        Args:
            schema_paths: YAML schema files, merged into one universe
            input_packages: Packages to generate for; None selects every
                package carrying a generation directive

        Returns:
            PipelineResult with generated and rendered files
        """
        return self.run_universe(self.load_universe(schema_paths), input_packages)

    def run_universe(
        self, universe: Universe, input_packages: Optional[Sequence[str]] = None
    ) -> PipelineResult:
        """Run the pipeline on an already loaded universe."""
        start_time = time.time()
        result = PipelineResult(extension=self.renderer.extension)

        runtime = self._install_runtime(universe)
        context = GenerationContext.create(
            universe,
            runtime,
            tag_name=self.config.tags.name,
            skip_unsafe=self.config.generation.skip_unsafe,
        )

        inputs = self._input_packages(context, input_packages)
        self.logger.info(f"Generating conversions for {len(inputs)} input packages")

        # every manual function must be known before the first body is synthesized
        plans = []
        for path in inputs:
            plan = self.plan_package(context, path)
            if plan is None:
                result.skipped_packages.append(path)
            else:
                plans.append(plan)

        for plan in plans:
            generated = self.generate_package(context, plan)
            result.files.append(generated)
            result.rendered[generated.output_path(self.renderer.extension)] = self.renderer.render(
                generated
            )

        result.manual_conversions = len(context.manual)
        result.recursive_types = self._report_equivalence(context)
        result.execution_time = time.time() - start_time

        self.logger.info(
            f"Generated {result.conversions} conversions in {len(result.files)} files "
            f"({result.failures} failure markers) in {result.execution_time:.2f}s"
        )
        return result

    def _install_runtime(self, universe: Universe) -> RuntimeTypes:
        return install_runtime_types(
            universe,
            conversion_package=self.config.runtime.conversion_package,
            runtime_package=self.config.runtime.runtime_package,
        )

    def _input_packages(
        self, context: GenerationContext, input_packages: Optional[Sequence[str]]
    ) -> list[str]:
        if input_packages is None:
            return [
                pkg.path
                for pkg in context.universe
                if context.tags.package_directives(pkg).requested
            ]
        seen, inputs = set(), []
        for path in input_packages:
            if path not in seen:
                seen.add(path)
                inputs.append(path)
        return inputs

    # ------------------------------------------------------------------ #
    # Per package
    # ------------------------------------------------------------------ #
    def plan_package(self, context: GenerationContext, path: str) -> Optional[PackagePlan]:
        """
        Resolve the peers and the types package of one input package.

        Manual conversions of the package, its peers and the extra
        directories are registered as a side effect.

        Returns:
            The plan, or None when the package requests no generation

        Raises:
            PeerPackageNotFoundError: If a peer, extra or external-types
                package is not part of the universe
            DirectiveError: If a type or member directive of the types
                package is malformed
        """
        self.logger.debug(f"considering pkg {path!r}")
        pkg = context.universe.package(path)
        if pkg is None:
            self.logger.warning(f"Input package {path} is not declared in any schema, skipping")
            return None

        context.manual.scan_package(pkg)

        directives = context.tags.package_directives(pkg)
        if not directives.requested:
            self.logger.debug(f"  no tag on {path}, skipping")
            return None

        generation = self.config.generation
        peers = list(directives.peer_packages)
        if peers:
            peers += generation.base_peer_dirs + generation.extra_peer_dirs

        types_pkg = pkg
        if directives.external_types:
            types_pkg = context.universe.package(directives.external_types)
            if types_pkg is None:
                raise PeerPackageNotFoundError(directives.external_types)
            self.logger.debug(f"  external types package: {types_pkg.path}")
        context.tags.validate_package(types_pkg)

        for peer_path in peers + list(generation.extra_dirs):
            peer = context.universe.package(peer_path)
            if peer is None:
                raise PeerPackageNotFoundError(peer_path)
            context.manual.scan_package(peer)

        return PackagePlan(package=pkg, types_package=types_pkg, peer_packages=peers)

    def generate_package(self, context: GenerationContext, plan: PackagePlan) -> GeneratedFile:
        """Select pairs, synthesize every direction and build the registration table."""
        output_package = plan.package.path
        selector = PairSelector(context, plan.types_package.path, plan.peer_packages)
        selection = selector.select(list(plan.types_package.types.values()))

        synthesizer = ConversionSynthesizer(context, selector, output_package)
        conversions = self._synthesize(synthesizer, selection)
        registration = RegistrationEmitter(context, output_package).emit(selection)

        return GeneratedFile(
            package_path=output_package,
            package_name=plan.package.name,
            file_base_name=self.config.generation.output_file_base_name,
            build_tag=self.config.generation.generated_build_tag,
            runtime=context.runtime,
            registration=registration,
            types_package=plan.types_package.path,
            peer_packages=plan.peer_packages,
            conversions=conversions,
        )

    @staticmethod
    def _synthesize(
        synthesizer: ConversionSynthesizer, selection: Selection
    ) -> list[GeneratedConversion]:
        """Conversions in emission order: per admitted type, peers first, then adapters."""
        admitted: list[TypeDescriptor] = []
        for t in selection.types + [pair.out_type for pair in selection.explicit_conversions]:
            if not any(t is a for a in admitted):
                admitted.append(t)
        admitted.sort(key=public_name)

        conversions = []
        for t in admitted:
            for pair in selection.peer_pairs:
                if pair.in_type is t:
                    conversions.append(synthesizer.generate_conversion(pair.in_type, pair.out_type))
                    conversions.append(synthesizer.generate_conversion(pair.out_type, pair.in_type))
            for pair in selection.explicit_conversions:
                if pair.out_type is t:
                    conversions.append(synthesizer.generate_adapter(pair.in_type, pair.out_type))
        return conversions

    # ------------------------------------------------------------------ #
    # Diagnostics
    # ------------------------------------------------------------------ #
    def _report_equivalence(self, context: GenerationContext) -> list[str]:
        """Log equivalence decisions; return the names of recursive types."""
        recursive = set()
        if context.type_graph is not None:
            recursive = context.type_graph.recursive_types()

        equivalence = context.equivalence
        if isinstance(equivalence, MemoryEquivalence):
            cached = equivalence.cached()
            lines = sorted(
                f"  {pair.in_type} -> {pair.out_type} = False"
                for pair, equal in cached.items()
                if not equal
            )
            if lines:
                self.logger.debug("All objects without identical memory layout:")
                for line in lines:
                    self.logger.debug(line)

            # pairs that closed a cycle were assumed equal while being compared
            reported = set()
            for pair in sorted(equivalence.cycle_guarded, key=str):
                if pair.reversed() in reported:
                    continue
                if equivalence.equal(pair.in_type, pair.out_type):
                    reported.add(pair)
                    self.logger.warning(
                        f"{pair.in_type} and {pair.out_type} are recursive; their memory "
                        f"equivalence was assumed while comparing them recursively"
                    )
        return sorted(str(t) for t in recursive)
