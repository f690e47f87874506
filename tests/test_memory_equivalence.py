"""Tests for memory-layout equivalence and the type reference graph."""

from conftest import load_universe
from convgen.core.memory_equivalence import MemoryEquivalence, NoEquality
from convgen.core.type_graph import TypeGraph
from convgen.core.types import ConversionPair

PKG = "example.com/shapes"

SCHEMA = f"""
packages:
  - path: {PKG}
    types:
      - name: Source
        kind: struct
        members: [{{name: Name, type: string}}, {{name: Count, type: int}}]
      - name: Dest
        kind: struct
        members: [{{name: Label, type: string}}, {{name: Total, type: int}}]
      - name: Wider
        kind: struct
        members: [{{name: Name, type: string}}, {{name: Count, type: int64}}]
      - name: Shorter
        kind: struct
        members: [{{name: Name, type: string}}]
      - name: Node
        kind: struct
        members: [{{name: Value, type: string}}, {{name: Next, type: "*Node"}}]
      - name: Link
        kind: struct
        members: [{{name: Value, type: string}}, {{name: Next, type: "*Link"}}]
      - name: Cell
        kind: struct
        members: [{{name: Next, type: "*Cell"}}, {{name: Value, type: string}}]
      - name: Chain
        kind: struct
        members: [{{name: Next, type: "*Chain"}}, {{name: Value, type: int}}]
      - name: Ping
        kind: struct
        members: [{{name: Pong, type: "*Pong"}}]
      - name: Pong
        kind: struct
        members: [{{name: Ping, type: "*Ping"}}]
      - name: Name
        kind: alias
        underlying: string
      - name: Stringer
        kind: interface
        methods: [String]
      - name: Any
        kind: alias
        underlying: "interface{{}}"
"""


class TestMemoryEquivalence:
    def setup_method(self):
        self.universe, _ = load_universe(SCHEMA)
        self.pkg = self.universe.package(PKG)
        self.equivalence = MemoryEquivalence()

    def t(self, name):
        return self.pkg.type(name)

    def test_structurally_identical_structs(self):
        assert self.equivalence.equal(self.t("Source"), self.t("Dest"))

    def test_member_type_mismatch(self):
        assert not self.equivalence.equal(self.t("Source"), self.t("Wider"))

    def test_member_count_mismatch(self):
        assert not self.equivalence.equal(self.t("Source"), self.t("Shorter"))

    def test_alias_is_unwrapped(self):
        assert self.equivalence.equal(self.t("Name"), self.universe.builtin("string"))

    def test_kind_mismatch(self):
        assert not self.equivalence.equal(self.t("Source"), self.universe.builtin("string"))

    def test_interfaces_need_empty_method_sets(self):
        empty = self.universe.empty_interface()
        assert self.equivalence.equal(self.t("Any"), empty)
        assert not self.equivalence.equal(self.t("Stringer"), empty)

    def test_composites(self):
        u = self.universe
        string = u.builtin("string")
        assert self.equivalence.equal(u.slice_of(self.t("Source")), u.slice_of(self.t("Dest")))
        assert self.equivalence.equal(
            u.map_of(string, self.t("Source")), u.map_of(string, self.t("Dest"))
        )
        assert not self.equivalence.equal(
            u.pointer_to(self.t("Source")), u.pointer_to(self.t("Wider"))
        )

    def test_self_referential_types_use_cycle_guard(self):
        node, link = self.t("Node"), self.t("Link")
        assert self.equivalence.equal(node, link)
        assert ConversionPair(node, link) in self.equivalence.cycle_guarded

    def test_divergent_self_referential_types_are_not_equal(self):
        u = self.universe
        cell, chain = self.t("Cell"), self.t("Chain")
        assert not self.equivalence.equal(cell, chain)
        assert ConversionPair(cell, chain) in self.equivalence.cycle_guarded
        cached = self.equivalence.cached()
        assert cached[ConversionPair(cell, chain)] is False
        assert ConversionPair(u.pointer_to(cell), u.pointer_to(chain)) not in cached
        assert not self.equivalence.equal(u.pointer_to(cell), u.pointer_to(chain))

    def test_pointer_cycle_is_cached_once_decided(self):
        u = self.universe
        node, link = self.t("Node"), self.t("Link")
        assert self.equivalence.equal(u.pointer_to(node), u.pointer_to(link))
        cached = self.equivalence.cached()
        assert cached[ConversionPair(u.pointer_to(node), u.pointer_to(link))] is True
        assert ConversionPair(node, link) not in cached
        assert self.equivalence.equal(node, link)

    def test_results_are_cached_under_both_orders(self):
        source, dest = self.t("Source"), self.t("Dest")
        self.equivalence.equal(source, dest)
        cached = self.equivalence.cached()
        assert cached[ConversionPair(source, dest)] is True
        assert cached[ConversionPair(dest, source)] is True

    def test_no_equality(self):
        assert NoEquality().equal(self.t("Source"), self.t("Source")) is False


class TestTypeGraph:
    def setup_method(self):
        self.universe, _ = load_universe(SCHEMA)
        self.pkg = self.universe.package(PKG)
        self.graph = TypeGraph(self.universe)

    def test_edges_walk_through_composites(self):
        node = self.pkg.type("Node")
        assert set(self.graph.graph.successors(node)) == {node}
        assert set(self.graph.graph.successors(self.pkg.type("Source"))) == set()

    def test_recursive_types(self):
        recursive = self.graph.recursive_types()
        names = {t.name.name for t in recursive}
        assert names == {"Node", "Link", "Cell", "Chain", "Ping", "Pong"}
        assert self.pkg.type("Ping") in recursive
        assert self.pkg.type("Source") not in recursive
