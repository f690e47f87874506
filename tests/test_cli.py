"""Tests for the command line interface."""

import json

import pytest

from conftest import API_SCHEMA, INTERNAL
from convgen import __version__
from convgen.cli import build_parser, main


@pytest.fixture
def cli_args(write_schema, tmp_path):
    """Common arguments: one schema, no config file, a temporary output dir."""
    schema = write_schema(API_SCHEMA)
    output_dir = tmp_path / "out"
    return output_dir, [
        "--schema",
        str(schema),
        "--config",
        str(tmp_path / "missing.yaml"),
        "--output-dir",
        str(output_dir),
    ]


class TestParser:
    def test_schema_is_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_repeatable_options(self):
        args = build_parser().parse_args(
            ["--schema", "a.yaml", "--schema", "b.yaml", "--input", "x", "--renderer", "listing"]
        )
        assert args.schema == ["a.yaml", "b.yaml"]
        assert args.input == ["x"]
        assert args.renderer == "listing"
        assert args.dry_run is False

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])
        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out


class TestMain:
    def test_json_summary(self, cli_args, capsys):
        output_dir, args = cli_args

        assert main(args + ["--json"]) == 0

        summary = json.loads(capsys.readouterr().out)
        assert summary["status"] == "success"
        assert summary["dry_run"] is False
        assert summary["failure_markers"] == 0
        (file_summary,) = summary["files"]
        assert file_summary["package"] == INTERNAL
        assert file_summary["path"] == f"{INTERNAL}/zz_generated.conversion.go"
        assert file_summary["conversions"] == 8
        assert file_summary["registrations"] == 8
        assert file_summary["skipped_fields"] == {f"{INTERNAL}.Container": ["WorkingDir"]}
        assert (output_dir / INTERNAL / "zz_generated.conversion.go").exists()
        assert summary["written"] == [str(output_dir / INTERNAL / "zz_generated.conversion.go")]

    def test_dry_run_writes_nothing(self, cli_args, capsys):
        output_dir, args = cli_args

        assert main(args + ["--dry-run"]) == 0

        out = capsys.readouterr().out
        assert "DRY-RUN SUMMARY - No files were written" in out
        assert "Would write:" in out
        assert "needs manual conversion of: WorkingDir" in out
        assert not output_dir.exists()

    def test_text_summary(self, cli_args, capsys):
        output_dir, args = cli_args

        assert main(args + ["--renderer", "listing", "--skip-unsafe"]) == 0

        out = capsys.readouterr().out
        assert "Generation Completed" in out
        assert "Wrote:" in out
        written = output_dir / INTERNAL / "zz_generated.conversion.txt"
        assert written.exists()
        assert "reinterpret" not in written.read_text()

    def test_error_exits_with_status_one(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(
                [
                    "--schema",
                    str(tmp_path / "missing.yaml"),
                    "--config",
                    str(tmp_path / "missing-config.yaml"),
                    "--json",
                ]
            )
        assert exc_info.value.code == 1
        error = json.loads(capsys.readouterr().out)
        assert error["status"] == "error"
        assert "Schema file not found" in error["error"]

    def test_config_file_is_used(self, write_schema, tmp_path, capsys):
        config_file = tmp_path / "convgen.yaml"
        config_file.write_text("render:\n  renderer: listing\n")
        args = [
            "--schema",
            str(write_schema(API_SCHEMA)),
            "--config",
            str(config_file),
            "--output-dir",
            str(tmp_path / "out"),
            "--json",
            "--dry-run",
        ]

        assert main(args) == 0

        summary = json.loads(capsys.readouterr().out)
        assert summary["files"][0]["path"].endswith(".txt")
        assert summary["written"] == []
