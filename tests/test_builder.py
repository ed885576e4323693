"""Tests for the two-pass call graph builder."""

from __future__ import annotations

import asyncio

import pytest

from callgraph.core.builder import BuildCancelledError, BuildError, GraphBuilder, RelationSource
from callgraph.models.graph import CallDirection, Position, SymbolKind

from conftest import FakeRelationSource, child_names, iter_nodes, longest_path, make_ref

OUT = CallDirection.OUTGOING
IN = CallDirection.INCOMING


def _binary_tree(source: FakeRelationSource, levels: int):
    """Register a complete binary call tree and return its root symbol."""
    root = make_ref("n", line=0)
    frontier = [root]
    line = 1
    for _ in range(levels):
        next_frontier = []
        for parent in frontier:
            for suffix in ("0", "1"):
                child = make_ref(parent.name + suffix, line=line)
                line += 1
                source.add_call(parent, child, line=line)
                next_frontier.append(child)
        frontier = next_frontier
    return root


class TestProtocol:
    def test_fake_source_satisfies_protocol(self, source):
        assert isinstance(source, RelationSource)


class TestOrdering:
    """Sibling order of materialised children."""

    async def test_outgoing_children_sorted_by_call_site(self, source):
        main = make_ref("main")
        late, early, nowhere = make_ref("late", line=10), make_ref("early", line=20), make_ref("nowhere", line=30)
        source.add_call(main, nowhere)
        source.add_call(main, late, line=9, character=1)
        source.add_call(main, early, line=2, character=8)

        root = await GraphBuilder(source).build(main, OUT)

        assert child_names(root) == ["early", "late", "nowhere"]

    async def test_same_line_sorted_by_character(self, source):
        main = make_ref("main")
        source.add_call(main, make_ref("second", line=5), line=3, character=12)
        source.add_call(main, make_ref("first", line=6), line=3, character=2)

        root = await GraphBuilder(source).build(main, OUT)

        assert child_names(root) == ["first", "second"]

    async def test_incoming_keeps_source_order(self, source):
        target = make_ref("target")
        for name, line in (("c", 30), ("a", 10), ("b", 20)):
            source.add_call(make_ref(name, line=line), target, line=line + 1)

        root = await GraphBuilder(source).build(target, IN)

        assert child_names(root) == ["c", "a", "b"]


class TestDepth:
    """Depth bound."""

    @pytest.mark.parametrize("max_depth", [1, 2, 3, 4])
    async def test_no_path_longer_than_max_depth(self, source, max_depth):
        seed = _binary_tree(source, levels=5)

        root = await GraphBuilder(source).build(seed, OUT, max_depth=max_depth)

        assert longest_path(root) == max_depth

    async def test_zero_depth_is_unbounded(self, source):
        seed = _binary_tree(source, levels=5)

        root = await GraphBuilder(source).build(seed, OUT, max_depth=0)

        assert longest_path(root) == 5
        assert len(list(iter_nodes(root))) == 2**6 - 1

    async def test_leaves_at_bound_are_not_expanded(self, source):
        a, b, c = make_ref("a"), make_ref("b", line=3), make_ref("c", line=6)
        source.add_call(a, b, line=1)
        source.add_call(b, c, line=4)

        root = await GraphBuilder(source).build(a, OUT, max_depth=1)

        assert child_names(root) == ["b"]
        assert root.children[0].children == []
        assert source.lookups_of("b") == 0

    async def test_incoming_depth_bound(self, source):
        a, b, c = make_ref("a"), make_ref("b", line=3), make_ref("c", line=6)
        source.add_call(b, a, line=4)
        source.add_call(c, b, line=7)

        root = await GraphBuilder(source).build(a, IN, max_depth=1)

        assert child_names(root) == ["b"]
        assert root.children[0].children == []

    async def test_negative_arguments_rejected(self, source):
        builder = GraphBuilder(source)
        with pytest.raises(ValueError):
            await builder.build(make_ref("a"), OUT, max_depth=-1)
        with pytest.raises(ValueError):
            await builder.build(make_ref("a"), OUT, in_degree_threshold=-1)


class TestInDegree:
    """Census and hub pruning."""

    def _hub_graph(self, source):
        """``root`` calls a, b and c; each of them calls ``hub``, which calls ``deep``."""
        root = make_ref("root")
        hub = make_ref("hub", resource="/ws/util.ts", line=40)
        deep = make_ref("deep", resource="/ws/util.ts", line=50)
        for index, name in enumerate(("a", "b", "c")):
            caller = make_ref(name, resource="/ws/b.ts", line=index * 10)
            source.add_call(root, caller, line=index + 1)
            source.add_call(caller, hub, line=index * 10 + 1)
        source.add_call(hub, deep, line=41)
        return root

    async def test_hub_above_threshold_is_pruned_with_subtree(self, source):
        seed = self._hub_graph(source)

        root = await GraphBuilder(source).build(seed, OUT, in_degree_threshold=2)

        names = {node.name for node in iter_nodes(root)}
        assert names == {"root", "a", "b", "c"}

    async def test_hub_at_threshold_is_kept(self, source):
        seed = self._hub_graph(source)

        root = await GraphBuilder(source).build(seed, OUT, in_degree_threshold=3)

        hub = root.children[0].children[0]
        assert hub.name == "hub"
        assert hub.in_degree == 3
        assert child_names(hub) == ["deep"]

    @pytest.mark.parametrize("threshold", [1, 2, 3, 5])
    async def test_every_non_root_node_within_threshold(self, source, threshold):
        seed = self._hub_graph(source)

        root = await GraphBuilder(source).build(seed, OUT, in_degree_threshold=threshold)

        assert root.in_degree == 0
        for node in iter_nodes(root):
            if node is not root:
                assert node.in_degree is not None
                assert node.in_degree <= threshold

    async def test_zero_threshold_disables_census(self, source):
        seed = self._hub_graph(source)

        root = await GraphBuilder(source).build(seed, OUT, in_degree_threshold=0)

        assert all(node.in_degree is None for node in iter_nodes(root))
        assert "hub" in {node.name for node in iter_nodes(root)}
        # One lookup per distinct symbol: no census pass ran.
        assert source.lookups_of("root") == 1

    async def test_incoming_builds_never_prune(self, source):
        target = make_ref("target")
        for index in range(4):
            source.add_call(make_ref(f"caller{index}", line=index * 5), target, line=index)

        root = await GraphBuilder(source).build(target, IN, in_degree_threshold=1)

        assert len(root.children) == 4
        assert all(node.in_degree is None for node in iter_nodes(root))

    async def test_census_counts_edges_into_already_visited_nodes(self, source):
        a, b, c = make_ref("a"), make_ref("b", line=3), make_ref("c", line=6)
        source.add_call(a, b, line=1)
        source.add_call(a, c, line=2)
        source.add_call(c, b, line=7)

        root = await GraphBuilder(source).build(a, OUT, in_degree_threshold=1)

        assert child_names(root) == ["c"]

    async def test_call_site_is_earliest_census_position(self, source):
        a = make_ref("a")
        b, c = make_ref("b", line=10), make_ref("c", line=20)
        d = make_ref("d", resource="/ws/z.ts", line=0)
        source.add_call(a, b, line=1)
        source.add_call(a, c, line=2)
        source.add_call(b, d, line=15, character=9)
        source.add_call(c, d, line=11, character=3)

        root = await GraphBuilder(source).build(a, OUT, in_degree_threshold=5)

        d_node = root.children[0].children[0]
        assert d_node.name == "d"
        assert d_node.in_degree == 2
        assert d_node.call_site == Position(line=11, character=3)

    async def test_call_site_without_census_uses_relation(self, source):
        a, b = make_ref("a"), make_ref("b", line=10)
        source.add_call(a, b, line=4, character=6)

        root = await GraphBuilder(source).build(a, OUT)

        assert root.children[0].call_site == Position(line=4, character=6)
        assert root.call_site is None


class TestSharing:
    """Identity deduplication and termination."""

    async def test_shared_callee_is_same_instance(self, source):
        r, a, b = make_ref("r"), make_ref("a", line=5), make_ref("b", line=10)
        shared = make_ref("shared", resource="/ws/util.ts")
        source.add_call(r, a, line=1)
        source.add_call(r, b, line=2)
        source.add_call(a, shared, line=6)
        source.add_call(b, shared, line=11)

        root = await GraphBuilder(source).build(r, OUT)

        a_node, b_node = root.children
        assert a_node.children[0] is b_node.children[0]
        assert source.lookups_of("shared") == 1

    async def test_concurrent_siblings_share_first_node(self, source):
        r, s = make_ref("r"), make_ref("s", line=10)
        source.add_call(r, s, line=1)
        source.add_call(r, s, line=2)

        root = await GraphBuilder(source).build(r, OUT)

        assert len(root.children) == 2
        assert root.children[0] is root.children[1]
        assert source.lookups_of("s") == 1

    async def test_same_name_different_kind_is_distinct(self, source):
        r = make_ref("r")
        as_function = make_ref("x", line=10)
        as_method = make_ref("x", line=10, kind=SymbolKind.METHOD)
        source.add_call(r, as_function, line=1)
        source.add_call(r, as_method, line=2)

        root = await GraphBuilder(source).build(r, OUT)

        assert root.children[0] is not root.children[1]

    async def test_recursion_terminates(self, source):
        a = make_ref("a")
        source.add_call(a, a, line=1)

        root = await GraphBuilder(source).build(a, OUT)

        assert root.children == [root]

    async def test_mutual_recursion_terminates(self, source):
        a, b, c = make_ref("a"), make_ref("b", line=5), make_ref("c", line=10)
        source.add_call(a, b, line=1)
        source.add_call(b, c, line=6)
        source.add_call(c, a, line=11)
        source.add_call(c, b, line=12)

        root = await GraphBuilder(source).build(a, OUT, max_depth=0, in_degree_threshold=5)

        b_node = root.children[0]
        c_node = b_node.children[0]
        assert c_node.children == [root, b_node]
        assert len(list(iter_nodes(root))) == 3

    async def test_incoming_cycle_terminates(self, source):
        a, b = make_ref("a"), make_ref("b", line=5)
        source.add_call(a, b, line=1)
        source.add_call(b, a, line=6)

        root = await GraphBuilder(source).build(a, IN)

        assert root.children[0].children == [root]


class TestIgnore:
    async def test_ignored_symbol_drops_subtree(self, source):
        main = make_ref("main")
        vendor = make_ref("vendored", resource="/ws/vendor/lib.ts")
        inner = make_ref("inner", resource="/ws/b.ts", line=30)
        kept = make_ref("kept", resource="/ws/b.ts", line=10)
        source.add_call(main, vendor, line=1)
        source.add_call(main, kept, line=2)
        source.add_call(vendor, inner, line=3)

        root = await GraphBuilder(source).build(
            main, OUT, ignore=lambda ref: ref.resource.startswith("/ws/vendor/")
        )

        assert {node.name for node in iter_nodes(root)} == {"main", "kept"}

    async def test_ignored_symbol_not_counted(self, source):
        main, a = make_ref("main"), make_ref("a", line=5)
        hub = make_ref("hub", line=10)
        skipped = make_ref("skipped", resource="/ws/vendor/x.ts")
        source.add_call(main, a, line=1)
        source.add_call(main, skipped, line=2)
        source.add_call(a, hub, line=6)
        source.add_call(skipped, hub, line=1)

        root = await GraphBuilder(source).build(
            main, OUT, in_degree_threshold=1, ignore=lambda ref: "vendor" in ref.resource
        )

        assert root.children[0].children[0].name == "hub"


class TestFailures:
    async def test_source_failure_aborts_build(self, source):
        a, b, c = make_ref("a"), make_ref("b", line=5), make_ref("c", line=10)
        source.add_call(a, b, line=1)
        source.add_call(b, c, line=6)
        source.fail_on.add("b")

        with pytest.raises(BuildError) as excinfo:
            await GraphBuilder(source).build(a, OUT)

        assert isinstance(excinfo.value.__cause__, RuntimeError)

    async def test_failure_during_census_aborts_build(self, source):
        a, b = make_ref("a"), make_ref("b", line=5)
        source.add_call(a, b, line=1)
        source.fail_on.add("b")

        with pytest.raises(BuildError):
            await GraphBuilder(source).build(a, OUT, in_degree_threshold=3)

    @pytest.mark.parametrize("threshold", [0, 3])
    async def test_failure_stops_sibling_branches(self, source, threshold):
        root, bad = make_ref("root"), make_ref("bad", line=5)
        source.add_call(root, bad, line=1)
        previous = root
        for index in range(8):
            slow = make_ref(f"slow{index}", line=10 + index)
            source.add_call(previous, slow, line=2 + index)
            source.delays[slow.name] = 0.01
            previous = slow
        source.fail_on.add("bad")

        with pytest.raises(BuildError):
            await GraphBuilder(source).build(root, OUT, in_degree_threshold=threshold)
        looked_up = len(source.lookups)
        await asyncio.sleep(0.2)

        assert len(source.lookups) == looked_up
        assert source.lookups_of("slow1") == 0
        assert source.in_flight == 0

    async def test_cancel_before_start(self, source):
        event = asyncio.Event()
        event.set()

        with pytest.raises(BuildCancelledError):
            await GraphBuilder(source).build(make_ref("a"), OUT, cancel_event=event)
        assert source.lookups == []

    async def test_cancel_mid_build_discards_results(self, source):
        a, b, c = make_ref("a"), make_ref("b", line=5), make_ref("c", line=10)
        source.add_call(a, b, line=1)
        source.add_call(b, c, line=6)
        event = asyncio.Event()
        source.cancel_on = ("b", event)

        with pytest.raises(BuildCancelledError):
            await GraphBuilder(source).build(a, OUT, cancel_event=event)
        assert source.lookups_of("c") == 0

    async def test_cancelled_error_is_a_build_error(self):
        assert issubclass(BuildCancelledError, BuildError)


class TestConcurrency:
    async def test_siblings_are_requested_concurrently(self, source):
        root = make_ref("root")
        for index in range(4):
            source.add_call(root, make_ref(f"child{index}", line=index + 10), line=index + 1)

        await GraphBuilder(source).build(root, OUT)

        assert source.max_in_flight == 4

    async def test_output_is_deterministic(self):
        def populate(source):
            return _binary_tree(source, levels=3)

        first_source, second_source = FakeRelationSource(), FakeRelationSource()
        first = await GraphBuilder(first_source).build(populate(first_source), OUT, in_degree_threshold=2)
        second = await GraphBuilder(second_source).build(populate(second_source), OUT, in_degree_threshold=2)

        assert [n.name for n in iter_nodes(first)] == [n.name for n in iter_nodes(second)]
