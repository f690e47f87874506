"""Tests for the Go and listing renderers."""

import pytest

from conftest import API_SCHEMA, INTERNAL, V1, load_universe
from convgen.core.operations import (
    AllocateMap,
    Call,
    Copy,
    FailMarker,
    FunctionRef,
    IterateMap,
    NilGuard,
    Operation,
    Reinterpret,
)
from convgen.core.pipeline import ConversionPipeline
from convgen.core.synthesizer import ConversionSynthesizer
from convgen.core.pair_selector import PairSelector
from convgen.core.types import Kind
from convgen.exceptions import RenderError
from convgen.renderers import available_renderers, create_renderer
from convgen.renderers.go_renderer import GoRenderer, ImportTracker, _Writer
from convgen.renderers.listing_renderer import ListingRenderer

ADAPTER_SCHEMA = f"""
packages:
  - path: {INTERNAL}
    types:
      - name: ListOptions
        kind: struct
        comments: ["+convgen:explicit-from=net/url.Values"]
        members:
          - {{name: Page, type: string, tags: 'json:"page"'}}
          - {{name: Limit, type: int64, tags: 'json:"limit"'}}
          - {{name: Tags, type: "[]string", tags: 'json:"tags"'}}
"""


@pytest.fixture
def generated():
    universe, _ = load_universe(API_SCHEMA)
    result = ConversionPipeline().run_universe(universe)
    (generated,) = result.files
    return generated


def _render_ops(ops, package=INTERNAL):
    renderer = GoRenderer()
    renderer.imports = ImportTracker(package)
    w = _Writer()
    for op in ops:
        renderer._render_op(w, op)
    return w.text()


def _block(*lines):
    """Lines given as (depth, text) pairs, joined with tab indentation."""
    return "\n".join("\t" * depth + text for depth, text in lines)


class TestRendererFactory:
    def test_available_renderers(self):
        assert available_renderers() == ["go", "listing"]

    def test_create_renderer(self):
        assert isinstance(create_renderer("go"), GoRenderer)
        assert isinstance(create_renderer("listing"), ListingRenderer)

    def test_unknown_renderer(self):
        with pytest.raises(RenderError) as exc_info:
            create_renderer("rust")
        assert "renderer must be one of" in str(exc_info.value)


class TestImportTracker:
    def test_local_package_needs_no_alias(self):
        tracker = ImportTracker(INTERNAL)
        assert tracker.alias_for(INTERNAL) is None
        assert tracker.import_lines() == []

    def test_conflicting_names_get_parent_prefix(self):
        tracker = ImportTracker(INTERNAL)
        assert tracker.alias_for(V1) == "v1"
        assert tracker.alias_for("example.com/other/v1") == "otherv1"
        assert tracker.alias_for(V1) == "v1"
        assert tracker.import_lines() == [
            '"example.com/apis/v1"',
            'otherv1 "example.com/other/v1"',
        ]

    def test_segments_are_reduced_to_identifiers(self):
        tracker = ImportTracker(INTERNAL)
        assert tracker.alias_for("example.com/go-lib") == "golib"
        assert tracker.import_lines() == ['golib "example.com/go-lib"']


class TestGoRenderer:
    def test_header(self, generated):
        text = GoRenderer().render(generated)
        assert text.startswith(
            "// +build !ignore_autogenerated\n\n"
            "// Code generated by convgen. DO NOT EDIT.\n\n"
            "package internal\n\n"
            "import (\n"
            '\t"example.com/apis/v1"\n'
            '\t"k8s.io/apimachinery/pkg/conversion"\n'
            '\t"k8s.io/apimachinery/pkg/runtime"\n'
            '\t"unsafe"\n'
            ")\n"
        )

    def test_no_build_tag(self, generated):
        generated.build_tag = ""
        text = GoRenderer().render(generated)
        assert text.startswith("// Code generated by convgen. DO NOT EDIT.\n")

    def test_registration(self, generated):
        text = GoRenderer().render(generated)
        assert "func init() {\n\tlocalSchemeBuilder.Register(RegisterConversions)\n}" in text
        assert _block(
            (0, "func RegisterConversions(s *runtime.Scheme) error {"),
            (1, "if err := s.AddGeneratedConversionFunc((*Container)(nil), (*v1.Container)(nil), "
                "func(a, b interface{}, scope conversion.Scope) error {"),
            (2, "return Convert_internal_Container_To_v1_Container(a.(*Container), b.(*v1.Container), scope)"),
            (1, "}); err != nil {"),
            (2, "return err"),
            (1, "}"),
        ) in text
        assert text.count("AddGeneratedConversionFunc") == 8

    def test_public_wrapper(self, generated):
        text = GoRenderer().render(generated)
        assert _block(
            (0, "// Convert_v1_Container_To_internal_Container is an autogenerated conversion function."),
            (0, "func Convert_v1_Container_To_internal_Container(in *v1.Container, out *Container, "
                "s conversion.Scope) error {"),
            (1, "return autoConvert_v1_Container_To_internal_Container(in, out, s)"),
            (0, "}"),
        ) in text
        # WorkingDir has no peer member, so no wrapper is generated for this direction
        assert "func Convert_internal_Container_To_v1_Container(" not in text
        assert "// WARNING: in.WorkingDir requires manual conversion: does not exist in peer-type" in text

    def test_slice_member(self, generated):
        text = GoRenderer().render(generated)
        assert _block(
            (1, "if true {"),
            (2, "in, out := &in.Containers, &out.Containers"),
            (2, "if *in == nil {"),
            (3, "*out = nil"),
            (2, "} else {"),
            (3, "*out = make([]v1.Container, len(*in))"),
            (3, "for i := range *in {"),
            (4, "in, out := &(*in)[i], &(*out)[i]"),
            (4, "if err := Convert_internal_Container_To_v1_Container(in, out, s); err != nil {"),
            (5, "return err"),
            (4, "}"),
            (3, "}"),
            (2, "}"),
            (1, "}"),
        ) in text

    def test_reinterpretation(self, generated):
        text = GoRenderer().render(generated)
        assert "*out = (*v1.PodSpec)(unsafe.Pointer(*in))" in text
        assert "*out = *(*v1.PodSpec)(unsafe.Pointer(in))" in text

    def test_alias_conversion(self, generated):
        assert "*out = v1.Phase(*in)" in GoRenderer().render(generated)

    def test_map_iteration(self):
        universe, _ = load_universe(API_SCHEMA)
        string = universe.builtin("string")
        v1_pod = universe.package(V1).type("Pod")
        ops = (
            NilGuard(
                (
                    AllocateMap(universe.map_of(string, v1_pod)),
                    IterateMap(
                        key_type=string,
                        value_type=v1_pod,
                        key_ops=(Copy(),),
                        value_ops=(Call(FunctionRef(INTERNAL, "Convert_internal_Pod_To_v1_Pod")),),
                    ),
                )
            ),
        )
        assert _render_ops(ops) == _block(
            (0, "if *in == nil {"),
            (1, "*out = nil"),
            (0, "} else {"),
            (1, "*out = make(map[string]v1.Pod, len(*in))"),
            (1, "for inKey, inVal := range *in {"),
            (2, "outKey := new(string)"),
            (2, "if true {"),
            (3, "in, out := &inKey, outKey"),
            (3, "*out = *in"),
            (2, "}"),
            (2, "outVal := new(v1.Pod)"),
            (2, "if true {"),
            (3, "in, out := &inVal, outVal"),
            (3, "if err := Convert_internal_Pod_To_v1_Pod(in, out, s); err != nil {"),
            (4, "return err"),
            (3, "}"),
            (2, "}"),
            (2, "(*out)[*outKey] = *outVal"),
            (1, "}"),
            (0, "}"),
        )

    def test_fail_marker(self):
        universe, _ = load_universe(API_SCHEMA)
        marker = FailMarker(universe.builtin("int64"), universe.builtin("int32"))
        assert _render_ops((marker,)) == _block(
            (0, "// FIXME: Provide conversion function to convert int64 to int32;"),
            (0, "// no manual conversion functions are currently provided."),
            (0, "compileErrorOnMissingConversion()"),
        )

    def test_fail_marker_with_hints(self):
        universe, _ = load_universe(API_SCHEMA)
        marker = FailMarker(
            universe.builtin("int64"), universe.builtin("int32"), ("a.Convert_x() (x to y)",)
        )
        assert "//  - a.Convert_x() (x to y)" in _render_ops((marker,))

    def test_reinterpret_pointer_of_foreign_type(self):
        universe, _ = load_universe(API_SCHEMA)
        target = universe.pointer_to(universe.package(V1).type("Pod"))
        assert _render_ops((Reinterpret(Kind.POINTER, target),)) == (
            "*out = (*v1.Pod)(unsafe.Pointer(*in))"
        )

    def test_adapter(self, build_context):
        context = build_context(ADAPTER_SCHEMA)
        synth = ConversionSynthesizer(context, PairSelector(context, INTERNAL, []), INTERNAL)
        result = synth.generate_adapter(
            context.runtime.flat_multimap, context.universe.package(INTERNAL).type("ListOptions")
        )
        text = _render_ops(result.internal.body)
        assert _block(
            (0, 'if values, ok := map[string][]string(*in)["page"]; ok && len(values) > 0 {'),
            (1, "out.Page = values[0]"),
            (0, "} else {"),
            (1, 'out.Page = ""'),
            (0, "}"),
        ) in text
        assert "out.Limit = 0" in text
        assert "out.Tags = *(*[]string)(unsafe.Pointer(&values))" in text

    def test_unknown_operation(self):
        class Bogus(Operation):
            pass

        with pytest.raises(RenderError):
            _render_ops((Bogus(),))


class TestListingRenderer:
    def test_header_and_registrations(self, generated):
        text = ListingRenderer().render(generated)
        lines = text.splitlines()
        assert lines[0] == f"# package {INTERNAL} (internal)"
        assert lines[2] == f"# peer packages: {V1}"
        assert "registrations:" in lines
        assert (
            f"  generated {INTERNAL}.Pod -> {V1}.Pod via {INTERNAL}.Convert_internal_Pod_To_v1_Pod"
            in lines
        )

    def test_functions(self, generated):
        text = ListingRenderer().render(generated)
        assert (
            f"autoConvert_internal_PodSpec_To_v1_PodSpec: {INTERNAL}.PodSpec -> {V1}.PodSpec\n"
            f"  reinterpret struct as {V1}.PodSpec\n"
        ) in text
        assert "  delegate autoConvert_internal_Pod_To_v1_Pod" in text
        assert "  member WorkingDir" not in text

    def test_nested_operations_are_indented(self, generated):
        text = ListingRenderer().render(generated)
        assert (
            "  member Containers -> Containers\n"
            "    nil guard\n"
            f"      allocate slice []{V1}.Container\n"
            "      for each element\n"
            f"        call {INTERNAL}.Convert_internal_Container_To_v1_Container\n"
        ) in text

    def test_describe(self):
        universe, _ = load_universe(API_SCHEMA)
        marker = FailMarker(universe.builtin("int64"), universe.builtin("int32"))
        assert ListingRenderer.describe(marker) == "FAIL: no conversion from int64 to int32"
        assert ListingRenderer.describe(Copy()) == "copy"
