"""
Tests for the vector graph: shared edges, containment and render order.
"""

import numpy as np
import pytest

from vectorsmith.color import Color
from vectorsmith.graph import VectorGraph

LEFT = [(0, 0), (50, 0), (50, 100), (0, 100)]
RIGHT = [(50.6, 0), (100, 0), (100, 100), (50.6, 100)]


def square(x0, y0, size):
    return [(x0, y0), (x0 + size, y0), (x0 + size, y0 + size), (x0, y0 + size)]


class TestNodes:
    """Spatial index bookkeeping."""

    def test_neighbors_by_grid(self):
        graph = VectorGraph(grid_size=10)
        a = graph.add_shape(square(0, 0, 5))
        b = graph.add_shape(square(12, 0, 5))
        c = graph.add_shape(square(200, 200, 5))
        assert graph.neighbors(a) == [b]
        assert graph.neighbors(c) == []

    def test_update_and_remove(self):
        graph = VectorGraph(grid_size=10)
        a = graph.add_shape(square(0, 0, 5))
        b = graph.add_shape(square(100, 100, 5))
        graph.update_contour(b, square(8, 0, 5))
        assert graph.neighbors(a) == [b]
        graph.remove_shape(b)
        assert b not in graph.nodes
        assert graph.neighbors(a) == []


class TestSharedEdges:
    """Coincident outline points."""

    def test_adjacent_squares_share_edge(self):
        graph = VectorGraph()
        a = graph.add_shape(LEFT)
        b = graph.add_shape(RIGHT)
        assert graph.build_shared_edges(2.0) == 1
        edge = next(iter(graph.edges.values()))
        assert {edge.node1, edge.node2} == {a, b}
        assert len(edge) == 2
        assert np.allclose(edge.points[:, 0], 50.3)

    def test_enforce_moves_both_sides(self):
        graph = VectorGraph()
        a = graph.add_shape(LEFT)
        b = graph.add_shape(RIGHT)
        graph.build_shared_edges(2.0)
        assert graph.enforce_edge_consistency() == 4
        assert graph.nodes[a].contour[1].tolist() == pytest.approx([50.3, 0])
        assert graph.nodes[b].contour[0].tolist() == pytest.approx([50.3, 0])

    def test_enforce_is_idempotent(self):
        graph = VectorGraph()
        graph.add_shape(LEFT)
        graph.add_shape(RIGHT)
        graph.build_shared_edges(2.0)
        graph.enforce_edge_consistency()
        before = [n.contour.copy() for n in graph.nodes.values()]
        assert graph.enforce_edge_consistency() == 0
        for node, contour in zip(graph.nodes.values(), before):
            assert np.array_equal(node.contour, contour)

    def test_pinned_side_wins(self):
        graph = VectorGraph()
        a = graph.add_shape(LEFT, pinned=True)
        b = graph.add_shape(RIGHT)
        graph.build_shared_edges(2.0)
        graph.enforce_edge_consistency()
        assert graph.nodes[a].contour[1].tolist() == [50, 0]
        assert graph.nodes[b].contour[0].tolist() == [50, 0]

    def test_both_pinned_skipped(self):
        graph = VectorGraph()
        graph.add_shape(LEFT, pinned=True)
        graph.add_shape(RIGHT, pinned=True)
        assert graph.build_shared_edges(2.0) == 0

    def test_far_shapes_no_edge(self):
        graph = VectorGraph()
        graph.add_shape(square(0, 0, 10))
        graph.add_shape(square(15, 0, 10))
        assert graph.build_shared_edges(2.0) == 0

    def test_single_point_contact_is_not_an_edge(self):
        graph = VectorGraph()
        graph.add_shape(square(0, 0, 10))
        graph.add_shape(square(10, 10, 10))
        assert graph.build_shared_edges(2.0) == 0

    def test_remove_drops_edges(self):
        graph = VectorGraph()
        a = graph.add_shape(LEFT)
        b = graph.add_shape(RIGHT)
        graph.build_shared_edges(2.0)
        graph.remove_shape(a)
        assert graph.edges == {}
        assert graph.nodes[b].edges == set()


class TestJunctions:
    """Three outlines meeting at one point."""

    A = [(0, 0), (50, 0), (50, 50), (50, 100), (0, 100)]
    B = [(50.6, 0), (100, 0), (100, 50), (50.8, 50.4)]
    C = [(50.4, 50.8), (100, 50.6), (100, 100), (50.4, 100)]

    def build(self, **pins):
        graph = VectorGraph()
        ids = [graph.add_shape(contour, pinned=pins.get(name, False))
               for name, contour in (("a", self.A), ("b", self.B), ("c", self.C))]
        return graph, ids

    def test_every_edge_agrees_on_the_junction(self):
        graph, (a, b, c) = self.build()
        assert graph.build_shared_edges(2.0) == 3
        assert graph.merge_junctions() == 1
        graph.enforce_edge_consistency()
        corner_a = graph.nodes[a].contour[2]
        assert corner_a.tolist() == pytest.approx([50.4, 50.4])
        assert np.array_equal(corner_a, graph.nodes[b].contour[3])
        assert np.array_equal(corner_a, graph.nodes[c].contour[0])

    def test_enforce_is_idempotent_at_a_junction(self):
        graph, _ = self.build()
        graph.build_shared_edges(2.0)
        graph.enforce_edge_consistency()
        before = [n.contour.copy() for n in graph.nodes.values()]
        assert graph.enforce_edge_consistency() == 0
        for node, contour in zip(graph.nodes.values(), before):
            assert np.array_equal(node.contour, contour)

    def test_pinned_member_fixes_the_junction(self):
        graph, (a, b, c) = self.build(c=True)
        graph.build_shared_edges(2.0)
        graph.enforce_edge_consistency()
        assert graph.nodes[a].contour[2].tolist() == [50.4, 50.8]
        assert graph.nodes[b].contour[3].tolist() == [50.4, 50.8]
        assert graph.nodes[c].contour[0].tolist() == [50.4, 50.8]


class TestContainment:
    """Parents, layers and render order."""

    def test_nested_squares(self):
        graph = VectorGraph()
        inner = graph.add_shape(square(20, 20, 10))
        outer = graph.add_shape(square(0, 0, 100))
        middle = graph.add_shape(square(10, 10, 50))
        assert graph.build_containment_hierarchy() == 2
        assert graph.nodes[middle].parent == outer
        assert graph.nodes[inner].parent == outer
        assert graph.render_order()[0] == outer
        assert graph.depth(inner) == 1

    def test_holes_are_ignored(self):
        graph = VectorGraph()
        outer = graph.add_shape(square(0, 0, 100))
        hole = graph.add_shape(square(10, 10, 20), hole=True)
        graph.build_containment_hierarchy()
        assert graph.nodes[hole].parent is None
        assert graph.render_order() == [outer]

    def test_layers(self):
        graph = VectorGraph()
        outer = graph.add_shape(square(0, 0, 100))
        a = graph.add_shape(square(10, 10, 10))
        b = graph.add_shape(square(50, 50, 10))
        graph.build_containment_hierarchy()
        assert graph.shapes_by_layer() == [[outer], [a, b]]

    def test_merge_shapes(self):
        graph = VectorGraph()
        a = graph.add_shape(square(0, 0, 10), color=Color(1, 2, 3))
        b = graph.add_shape(square(20, 0, 10))
        merged = graph.merge_shapes(a, b)
        node = graph.nodes[merged]
        assert set(graph.nodes) == {merged}
        assert node.color == Color(1, 2, 3)
        assert (node.bounds.x0, node.bounds.x1) == (0, 30)

    def test_to_dict(self):
        graph = VectorGraph()
        graph.add_shape(LEFT, color=Color(255, 0, 0))
        graph.add_shape(RIGHT)
        graph.build_shared_edges(2.0)
        data = graph.to_dict()
        assert len(data["nodes"]) == 2
        assert data["nodes"][0]["color"] == "#ff0000"
        assert data["edges"][0]["points"] == 2
