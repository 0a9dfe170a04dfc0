"""
Vectorsmith Vector Graph

Shapes as nodes, shared boundaries as edges. The graph keeps adjacent
shapes on identical coordinates where their outlines run together, derives
containment (which shape sits inside which) and from that the back-to-front
render order.

Nodes are found through a uniform spatial grid over their bounding boxes;
point matching between two outlines uses a KD-tree.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple

import numpy as np
from scipy.spatial import cKDTree

from .color import Color
from .geometry import BoundingBox, as_points, convex_hull

logger = logging.getLogger(__name__)

ENFORCE_FACTOR = 3.0


@dataclass(eq=False)
class ShapeNode:
    """
    One outline in the graph.

    ``contour`` holds the outline's anchor points. Pinned nodes (exact
    primitives) never move; their neighbours adopt their coordinates.
    """
    id: int
    contour: np.ndarray
    bounds: BoundingBox
    color: Optional[Color] = None
    pinned: bool = False
    hole: bool = False
    payload: Any = None
    parent: Optional[int] = None
    children: List[int] = field(default_factory=list)
    edges: Set[int] = field(default_factory=set)


@dataclass(eq=False)
class SharedEdge:
    id: int
    node1: int
    node2: int
    points: np.ndarray
    indices1: np.ndarray
    indices2: np.ndarray

    def __len__(self) -> int:
        return len(self.points)


class VectorGraph:
    def __init__(self, grid_size: float = 10.0):
        self.grid_size = float(grid_size)
        self.nodes: Dict[int, ShapeNode] = {}
        self.edges: Dict[int, SharedEdge] = {}
        self.spatial_index: Dict[Tuple[int, int], Set[int]] = {}
        self.tolerance = 2.0
        self._next_node = 0
        self._next_edge = 0

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def add_shape(self, contour, color: Optional[Color] = None, pinned: bool = False,
                  hole: bool = False, payload: Any = None) -> int:
        pts = as_points(contour).copy()
        node = ShapeNode(self._next_node, pts, BoundingBox.of(pts), color, pinned, hole, payload)
        self._next_node += 1
        self.nodes[node.id] = node
        self._index(node)
        return node.id

    def _cells(self, bounds: BoundingBox, margin: int = 0):
        g = self.grid_size
        x0, x1 = int(np.floor(bounds.x0 / g)) - margin, int(np.floor(bounds.x1 / g)) + margin
        y0, y1 = int(np.floor(bounds.y0 / g)) - margin, int(np.floor(bounds.y1 / g)) + margin
        for cy in range(y0, y1 + 1):
            for cx in range(x0, x1 + 1):
                yield (cx, cy)

    def _index(self, node: ShapeNode) -> None:
        for cell in self._cells(node.bounds):
            self.spatial_index.setdefault(cell, set()).add(node.id)

    def _unindex(self, node: ShapeNode) -> None:
        for cell in self._cells(node.bounds):
            members = self.spatial_index.get(cell)
            if members is not None:
                members.discard(node.id)
                if not members:
                    del self.spatial_index[cell]

    def update_contour(self, node_id: int, contour) -> None:
        node = self.nodes[node_id]
        self._unindex(node)
        node.contour = as_points(contour).copy()
        node.bounds = BoundingBox.of(node.contour)
        self._index(node)

    def remove_shape(self, node_id: int) -> None:
        """Drop a node with its shared edges; its children move up to its parent."""
        node = self.nodes.get(node_id)
        if node is None:
            return
        for edge_id in list(node.edges):
            edge = self.edges.pop(edge_id, None)
            if edge is not None:
                other = edge.node2 if edge.node1 == node_id else edge.node1
                if other in self.nodes:
                    self.nodes[other].edges.discard(edge_id)
        if node.parent is not None and node.parent in self.nodes:
            parent = self.nodes[node.parent]
            parent.children = [c for c in parent.children if c != node_id]
            parent.children.extend(node.children)
        for child_id in node.children:
            if child_id in self.nodes:
                self.nodes[child_id].parent = node.parent
        self._unindex(node)
        del self.nodes[node_id]

    def neighbors(self, node_id: int) -> List[int]:
        """Nodes sharing a grid cell with ``node_id``'s bounds grown by one cell."""
        node = self.nodes.get(node_id)
        if node is None:
            return []
        found: Set[int] = set()
        for cell in self._cells(node.bounds, margin=1):
            found.update(self.spatial_index.get(cell, ()))
        found.discard(node_id)
        return sorted(found)

    # ------------------------------------------------------------------
    # Shared edges
    # ------------------------------------------------------------------

    def build_shared_edges(self, tolerance: float = 2.0) -> int:
        """
        Detect runs of points shared by neighbouring outlines.

        Every unordered neighbour pair is examined once. Returns the number
        of shared edges created.
        """
        self.tolerance = float(tolerance)
        seen: Set[Tuple[int, int]] = set()
        created = 0
        for node_id in sorted(self.nodes):
            for other_id in self.neighbors(node_id):
                pair = (min(node_id, other_id), max(node_id, other_id))
                if pair in seen:
                    continue
                seen.add(pair)
                edge = self.find_shared_edge(self.nodes[pair[0]], self.nodes[pair[1]], tolerance)
                if edge is not None:
                    created += 1
        junctions = self.merge_junctions()
        logger.debug("Vector graph: %d shared edges among %d shapes (%d junction points)",
                     created, len(self.nodes), junctions)
        return created

    def merge_junctions(self) -> int:
        """
        Give every matched outline point a single coordinate across all edges.

        Where three or more shapes meet, one point takes part in several
        edges. Matched ``(node, index)`` pairs are grouped with union-find;
        each group gets one coordinate (the lowest-id pinned member's point,
        otherwise the mean) which is stored on every edge touching it.
        Returns the number of groups joining more than two outlines.
        """
        parent: Dict[Tuple[int, int], Tuple[int, int]] = {}

        def find(key):
            parent.setdefault(key, key)
            while parent[key] != key:
                parent[key] = parent[parent[key]]
                key = parent[key]
            return key

        def union(a, b):
            ra, rb = find(a), find(b)
            if ra != rb:
                parent[max(ra, rb)] = min(ra, rb)

        for edge in self.edges.values():
            for i, j in zip(edge.indices1, edge.indices2):
                union((edge.node1, int(i)), (edge.node2, int(j)))

        groups: Dict[Tuple[int, int], List[Tuple[int, int]]] = {}
        for key in parent:
            groups.setdefault(find(key), []).append(key)

        coords: Dict[Tuple[int, int], np.ndarray] = {}
        for root, members in groups.items():
            members.sort()
            members[:] = [(n, i) for n, i in members if i < len(self.nodes[n].contour)]
            if not members:
                continue
            pinned = [m for m in members if self.nodes[m[0]].pinned]
            if pinned:
                node_id, idx = pinned[0]
                coords[root] = self.nodes[node_id].contour[idx].copy()
            else:
                coords[root] = np.mean([self.nodes[n].contour[i] for n, i in members], axis=0)

        for edge in self.edges.values():
            for k, i in enumerate(edge.indices1):
                root = find((edge.node1, int(i)))
                if root in coords:
                    edge.points[k] = coords[root]
        return sum(1 for members in groups.values() if len({n for n, _ in members}) > 2)

    def find_shared_edge(self, node1: ShapeNode, node2: ShapeNode,
                         tolerance: float) -> Optional[SharedEdge]:
        """
        Pair points of two outlines closer than ``tolerance``.

        Pairs are matched one-to-one, nearest first. The merged coordinate is
        the midpoint, or the pinned node's point when exactly one side is
        pinned. Fewer than two pairs is not an edge.
        """
        c1, c2 = node1.contour, node2.contour
        if len(c1) < 2 or len(c2) < 2 or (node1.pinned and node2.pinned):
            return None
        if not node1.bounds.intersects(node2.bounds, margin=tolerance):
            return None

        tree1, tree2 = cKDTree(c1), cKDTree(c2)
        close = tree1.sparse_distance_matrix(tree2, tolerance, output_type="ndarray")
        close = close[close["v"] < tolerance]
        if len(close) < 2:
            return None

        order = np.lexsort((close["j"], close["i"], close["v"]))
        used1: Set[int] = set()
        used2: Set[int] = set()
        matches = []
        for k in order:
            i, j = int(close["i"][k]), int(close["j"][k])
            if i in used1 or j in used2:
                continue
            used1.add(i)
            used2.add(j)
            matches.append((i, j))
        if len(matches) < 2:
            return None

        matches.sort()
        idx1 = np.array([m[0] for m in matches])
        idx2 = np.array([m[1] for m in matches])
        if node1.pinned:
            points = c1[idx1].copy()
        elif node2.pinned:
            points = c2[idx2].copy()
        else:
            points = (c1[idx1] + c2[idx2]) / 2.0

        edge = SharedEdge(self._next_edge, node1.id, node2.id, points, idx1, idx2)
        self._next_edge += 1
        self.edges[edge.id] = edge
        node1.edges.add(edge.id)
        node2.edges.add(edge.id)
        return edge

    def enforce_edge_consistency(self) -> int:
        """
        Write every shared edge's merged coordinates into both outlines.

        Only recorded points within three times the matching tolerance are
        moved, so running this again changes nothing. Returns the number of
        points moved.
        """
        limit = ENFORCE_FACTOR * self.tolerance
        moved = 0
        for edge in self.edges.values():
            for node_id, indices in ((edge.node1, edge.indices1), (edge.node2, edge.indices2)):
                node = self.nodes.get(node_id)
                if node is None or node.pinned:
                    continue
                for point, idx in zip(edge.points, indices):
                    if idx >= len(node.contour):
                        continue
                    delta = float(np.hypot(*(node.contour[idx] - point)))
                    if 0 < delta < limit:
                        node.contour[idx] = point
                        moved += 1
        for node in self.nodes.values():
            node.bounds = BoundingBox.of(node.contour)
        logger.debug("Vector graph: moved %d points onto shared edges", moved)
        return moved

    # ------------------------------------------------------------------
    # Containment and ordering
    # ------------------------------------------------------------------

    def build_containment_hierarchy(self) -> int:
        """
        Assign each shape the largest shape whose bounding box contains it.

        Shapes are visited by bounding-box area, largest first; a shape keeps
        the first container found. Hole outlines take no part. Returns the
        number of contained shapes.
        """
        shapes = [n for n in self.nodes.values() if not n.hole]
        for node in shapes:
            node.parent = None
            node.children = []
        shapes.sort(key=lambda n: (-n.bounds.area, n.id))
        for i, outer in enumerate(shapes):
            for inner in shapes[i + 1:]:
                if inner.parent is None and outer.bounds.contains(inner.bounds):
                    inner.parent = outer.id
                    outer.children.append(inner.id)
        contained = sum(1 for n in shapes if n.parent is not None)
        logger.debug("Vector graph: %d contained shapes", contained)
        return contained

    def shapes_by_layer(self) -> List[List[int]]:
        """Node ids grouped by containment depth, roots first."""
        layers = []
        current = sorted(n.id for n in self.nodes.values() if not n.hole and n.parent is None)
        while current:
            layers.append(current)
            nxt = []
            for node_id in current:
                nxt.extend(self.nodes[node_id].children)
            current = nxt
        return layers

    def render_order(self) -> List[int]:
        """Back-to-front order: containers before their contents."""
        return [node_id for layer in self.shapes_by_layer() for node_id in layer]

    def depth(self, node_id: int) -> int:
        depth = 0
        node = self.nodes[node_id]
        while node.parent is not None:
            depth += 1
            node = self.nodes[node.parent]
        return depth

    def merge_shapes(self, node_id1: int, node_id2: int) -> Optional[int]:
        """Replace two shapes with one whose outline is the hull of both; keeps the first color."""
        n1, n2 = self.nodes.get(node_id1), self.nodes.get(node_id2)
        if n1 is None or n2 is None:
            return None
        hull = convex_hull(np.vstack([n1.contour, n2.contour]))
        color = n1.color
        self.remove_shape(node_id1)
        self.remove_shape(node_id2)
        return self.add_shape(hull, color=color)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [
                {
                    "id": n.id,
                    "parent": n.parent,
                    "children": list(n.children),
                    "edges": sorted(n.edges),
                    "hole": n.hole,
                    "pinned": n.pinned,
                    "color": n.color.to_hex() if n.color is not None else None,
                    "bounds": [n.bounds.x0, n.bounds.y0, n.bounds.x1, n.bounds.y1],
                }
                for n in self.nodes.values()
            ],
            "edges": [
                {"id": e.id, "node1": e.node1, "node2": e.node2, "points": len(e.points)}
                for e in self.edges.values()
            ],
        }
