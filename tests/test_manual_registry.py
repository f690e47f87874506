"""Tests for the manual conversion registry."""

import logging

import pytest

from conftest import INTERNAL, SCOPE, V1
from convgen.exceptions import DuplicateConversionError

TYPES = f"""
packages:
  - path: {V1}
    types:
      - {{name: Time, kind: struct, members: [{{name: Seconds, type: int64}}]}}
  - path: {INTERNAL}
    types:
      - {{name: Time, kind: struct, members: [{{name: Seconds, type: int64}}]}}
"""


def _schema(functions_v1="", functions_internal=""):
    return f"""
packages:
  - path: {V1}
    types:
      - {{name: Time, kind: struct, members: [{{name: Seconds, type: int64}}]}}
    functions: {functions_v1 or "[]"}
  - path: {INTERNAL}
    types:
      - {{name: Time, kind: struct, members: [{{name: Seconds, type: int64}}]}}
    functions: {functions_internal or "[]"}
"""


def _fn(name, in_type, out_type, comments="[]", extra=""):
    return (
        f'[{{name: {name}, params: ["*{in_type}", "*{out_type}", "{SCOPE}"], '
        f"results: [error], comments: {comments}{extra}}}]"
    )


class TestManualConversionRegistry:
    def test_registers_well_formed_function(self, build_context):
        context = build_context(
            _schema(functions_v1=_fn("Convert_v1_Time_To_internal_Time", f"{V1}.Time", f"{INTERNAL}.Time"))
        )
        v1 = context.universe.package(V1)

        assert context.manual.scan_package(v1) == 1

        v1_time = v1.type("Time")
        internal_time = context.universe.package(INTERNAL).type("Time")
        entry = context.manual.get(v1_time, internal_time)
        assert entry is not None
        assert str(entry.function.name) == f"{V1}.Convert_v1_Time_To_internal_Time"
        assert context.manual.preexists(v1_time, internal_time)
        assert not context.manual.preexists(internal_time, v1_time)

    def test_copy_only_flag(self, build_context):
        context = build_context(
            _schema(
                functions_v1=_fn(
                    "Convert_v1_Time_To_internal_Time",
                    f"{V1}.Time",
                    f"{INTERNAL}.Time",
                    comments='["+convgen-fn=copy-only"]',
                )
            )
        )
        context.manual.scan_package(context.universe.package(V1))
        (entry,) = context.manual.entries()
        assert entry.copy_only is True
        assert entry.drop is False
        assert context.manual.is_copy_only(entry.pair.in_type, entry.pair.out_type)
        assert not context.manual.is_drop(entry.pair.in_type, entry.pair.out_type)
        assert not context.manual.is_copy_only(entry.pair.out_type, entry.pair.in_type)

    def test_wrong_name_is_rejected_and_reported(self, build_context, caplog):
        context = build_context(
            _schema(functions_v1=_fn("Convert_Time_To_Time", f"{V1}.Time", f"{INTERNAL}.Time"))
        )
        with caplog.at_level(logging.ERROR):
            found = context.manual.scan_package(context.universe.package(V1))

        assert found == 0
        assert len(context.manual) == 0
        assert "Rename function" in caplog.text
        assert "Convert_v1_Time_To_internal_Time" in caplog.text

    def test_receiver_is_rejected(self, build_context):
        context = build_context(
            _schema(
                functions_v1=_fn(
                    "Convert_v1_Time_To_internal_Time",
                    f"{V1}.Time",
                    f"{INTERNAL}.Time",
                    extra=", receiver: '*Time'",
                )
            )
        )
        assert context.manual.scan_package(context.universe.package(V1)) == 0

    def test_wrong_shape_is_rejected(self, build_context):
        functions = (
            f'[{{name: Convert_v1_Time_To_internal_Time, params: ["*Time", "*{INTERNAL}.Time"], '
            f"results: [error]}}, "
            f'{{name: Convert_v1_Time_To_internal_Time2, params: ["*Time", "*{INTERNAL}.Time", "{SCOPE}"], '
            f"results: [int]}}, "
            f'{{name: Convert_v1_Time_To_internal_Time3, params: ["Time", "{INTERNAL}.Time", "{SCOPE}"], '
            f"results: [error]}}]"
        )
        context = build_context(_schema(functions_v1=functions))
        assert context.manual.scan_package(context.universe.package(V1)) == 0

    def test_nil_package_is_skipped(self, build_context, caplog):
        context = build_context(TYPES)
        with caplog.at_level(logging.WARNING):
            assert context.manual.scan_package(None) == 0
        assert "nil package" in caplog.text

    def test_rescanning_same_package_is_harmless(self, build_context):
        context = build_context(
            _schema(functions_v1=_fn("Convert_v1_Time_To_internal_Time", f"{V1}.Time", f"{INTERNAL}.Time"))
        )
        v1 = context.universe.package(V1)
        context.manual.scan_package(v1)
        context.manual.scan_package(v1)
        assert len(context.manual) == 1

    def test_duplicate_from_other_package_is_fatal(self, build_context):
        fn = _fn("Convert_v1_Time_To_internal_Time", f"{V1}.Time", f"{INTERNAL}.Time")
        context = build_context(_schema(functions_v1=fn, functions_internal=fn))
        context.manual.scan_package(context.universe.package(V1))

        with pytest.raises(DuplicateConversionError) as exc_info:
            context.manual.scan_package(context.universe.package(INTERNAL))
        assert "duplicate static conversion defined" in str(exc_info.value)

    def test_entries_sorted_by_function_name(self, build_context):
        functions = (
            f'[{{name: Convert_v1_Time_To_internal_Time, params: ["*Time", "*{INTERNAL}.Time", "{SCOPE}"], '
            f"results: [error]}}, "
            f'{{name: Convert_internal_Time_To_v1_Time, params: ["*{INTERNAL}.Time", "*Time", "{SCOPE}"], '
            f"results: [error]}}]"
        )
        context = build_context(_schema(functions_v1=functions))
        context.manual.scan_package(context.universe.package(V1))

        names = [e.function.name.name for e in context.manual.entries_in_package(V1)]
        assert names == ["Convert_internal_Time_To_v1_Time", "Convert_v1_Time_To_internal_Time"]
        assert context.manual.entries_in_package(INTERNAL) == []
