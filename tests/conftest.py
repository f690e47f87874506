"""Shared fixtures: small universes built from inline YAML schemas."""

import textwrap

import pytest

from convgen.core.context import GenerationContext
from convgen.core.runtime_types import install_runtime_types
from convgen.core.types import Universe
from convgen.parsers.schema_parser import SchemaParser

SCOPE = "k8s.io/apimachinery/pkg/conversion.Scope"
V1 = "example.com/apis/v1"
INTERNAL = "example.com/apis/internal"


# Two versions of the same API. Pod and Container differ between versions,
# PodSpec and Time are structurally identical.
API_SCHEMA = f"""
packages:
  - path: {V1}
    types:
      - name: Pod
        kind: struct
        members:
          - {{name: Name, type: string, tags: 'json:"name"'}}
          - {{name: Replicas, type: int32}}
          - {{name: Labels, type: "map[string]string"}}
          - {{name: Containers, type: "[]Container"}}
          - {{name: Spec, type: "*PodSpec"}}
      - name: Container
        kind: struct
        members:
          - {{name: Image, type: string}}
          - {{name: Args, type: "[]string"}}
      - name: PodSpec
        kind: struct
        members:
          - {{name: NodeName, type: string}}
          - {{name: Priority, type: "*int32"}}
      - name: Phase
        kind: alias
        underlying: string
  - path: {INTERNAL}
    comments: ["+convgen={V1}"]
    types:
      - name: Pod
        kind: struct
        members:
          - {{name: Name, type: string, tags: 'json:"name"'}}
          - {{name: Replicas, type: int32}}
          - {{name: Labels, type: "map[string]string"}}
          - {{name: Containers, type: "[]Container"}}
          - {{name: Spec, type: "*PodSpec"}}
      - name: Container
        kind: struct
        members:
          - {{name: Image, type: string}}
          - {{name: Args, type: "[]string"}}
          - {{name: WorkingDir, type: string}}
      - name: PodSpec
        kind: struct
        members:
          - {{name: NodeName, type: string}}
          - {{name: Priority, type: "*int32"}}
      - name: Phase
        kind: alias
        underlying: string
"""


def load_universe(text: str):
    """Universe with runtime types installed, extended by ``text``."""
    universe = Universe()
    runtime = install_runtime_types(universe)
    SchemaParser(universe).parse_string(textwrap.dedent(text))
    return universe, runtime


@pytest.fixture
def build_context():
    """Factory: schema text -> GenerationContext."""

    def _build(text: str, skip_unsafe: bool = False, tag_name: str = "convgen") -> GenerationContext:
        universe, runtime = load_universe(text)
        return GenerationContext.create(
            universe, runtime, tag_name=tag_name, skip_unsafe=skip_unsafe
        )

    return _build


@pytest.fixture
def api_context(build_context):
    return build_context(API_SCHEMA)


@pytest.fixture
def write_schema(tmp_path):
    """Factory: schema text -> path of a YAML file in tmp_path."""

    def _write(text: str, name: str = "schema.yaml"):
        path = tmp_path / name
        path.write_text(textwrap.dedent(text))
        return path

    return _write
