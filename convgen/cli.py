import argparse
import json
import signal
import sys
from pathlib import Path

from dotenv import load_dotenv

from convgen import __version__
from convgen.core.pipeline import ConversionPipeline, PipelineResult
from convgen.exceptions import ConvgenError
from convgen.utils.logging_utils import ROOT_LOGGER_NAME, get_logger, setup_logger

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="convgen", description="convgen: structural type-conversion synthesizer"
    )
    parser.add_argument("--version", action="version", version=f"convgen {__version__}")

    parser.add_argument(
        "--schema",
        required=True,
        action="append",
        metavar="FILE",
        help="YAML schema file declaring packages and types (repeatable)",
    )
    parser.add_argument(
        "--input",
        action="append",
        metavar="PKG",
        help="Package to generate conversions for (repeatable; default: every tagged package)",
    )
    parser.add_argument(
        "--config",
        default="config/convgen.yaml",
        help="Path to configuration file (default: config/convgen.yaml)",
    )
    parser.add_argument(
        "--output-dir", default=".", help="Directory generated files are written below"
    )
    parser.add_argument(
        "--skip-unsafe",
        action="store_true",
        help="Never reinterpret memory, even for memory-equivalent types",
    )
    parser.add_argument(
        "--renderer", choices=["go", "listing"], help="Renderer for generated files"
    )
    parser.add_argument("--json", action="store_true", help="Output results in JSON format")
    parser.add_argument(
        "--verbose", action="store_true", help="Enable verbose logging (DEBUG level)"
    )
    parser.add_argument(
        "--dry-run", action="store_true", help="Show what WOULD be written without writing files"
    )
    return parser


def _summary(result: PipelineResult, written: list[Path], dry_run: bool) -> dict:
    return {
        "status": "success",
        "dry_run": dry_run,
        "runtime": f"{result.execution_time:.2f}s",
        "manual_conversions": result.manual_conversions,
        "failure_markers": result.failures,
        "skipped_packages": result.skipped_packages,
        "recursive_types": result.recursive_types,
        "files": [
            {
                "package": f.package_path,
                "path": f.output_path(result.extension),
                "conversions": len(f.conversions),
                "registrations": len(f.registration),
                "failure_markers": f.failures,
                "skipped_fields": f.skipped_fields,
            }
            for f in result.files
        ],
        "written": [str(p) for p in written],
    }


def main(argv=None):
    # Load .env file
    load_dotenv()

    _cancellation_requested = False

    def handle_sigint(signum, frame):
        """Handle SIGINT (Ctrl+C) gracefully."""
        nonlocal _cancellation_requested
        if _cancellation_requested:
            # Second Ctrl+C, force exit
            sys.exit(130)
        _cancellation_requested = True
        raise KeyboardInterrupt("Cancellation requested")

    signal.signal(signal.SIGINT, handle_sigint)
    signal.signal(signal.SIGTERM, handle_sigint)

    args = build_parser().parse_args(argv)

    # Logs always go to stderr so JSON on stdout stays parseable
    log_level = "DEBUG" if args.verbose else "INFO"
    cli_logger = setup_logger(ROOT_LOGGER_NAME, level=log_level, stream=sys.stderr)

    config_path = Path(args.config).resolve()

    config_overrides = {}
    if args.verbose:
        config_overrides["logging"] = {"level": "DEBUG"}
    if args.skip_unsafe:
        config_overrides["generation"] = {"skip_unsafe": True}
    if args.renderer:
        config_overrides["render"] = {"renderer": args.renderer}

    try:
        pipeline = ConversionPipeline(
            config_file=str(config_path) if config_path.exists() else None,
            config_overrides=config_overrides,
        )

        if not args.json:
            cli_logger.info(f"Running convgen on {', '.join(args.schema)}...")

        result = pipeline.run(args.schema, input_packages=args.input)

        written = [] if args.dry_run else result.write(args.output_dir)

        if args.json:
            print(json.dumps(_summary(result, written, args.dry_run), indent=2))
        else:
            print("\n" + "=" * 50)
            if args.dry_run:
                print("DRY-RUN SUMMARY - No files were written")
            else:
                print(f"Generation Completed (Runtime: {result.execution_time:.2f}s)")
            print("=" * 50)
            print(f"Files: {len(result.files)}")
            print(f"Conversions: {result.conversions}")
            print(f"Manual conversion functions: {result.manual_conversions}")
            print(f"Failure markers: {result.failures}")
            for f in result.files:
                print(f"  {f.package_path}: {len(f.conversions)} conversions, {f.failures} markers")
                for type_name, fields in f.skipped_fields.items():
                    print(f"    {type_name} needs manual conversion of: {', '.join(fields)}")
            if args.dry_run:
                for relative in result.rendered:
                    print(f"Would write: {Path(args.output_dir) / relative}")
            else:
                for path in written:
                    print(f"Wrote: {path}")

    except KeyboardInterrupt:
        if args.json:
            print(json.dumps({"status": "cancelled", "error": "Operation cancelled by user"}))
        else:
            print("\nOperation cancelled by user.")
        sys.exit(130)
    except ConvgenError as e:
        if args.json:
            print(json.dumps({"status": "error", "error": str(e)}))
        else:
            cli_logger.error(f"Error running convgen: {e}")
        sys.exit(1)

    return 0


if __name__ == "__main__":
    main()
