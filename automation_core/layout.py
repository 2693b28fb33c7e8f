"""
Layout algorithm for workflow nodes.

Nodes are arranged by graph distance from the trigger nodes: triggers form
level 0, and every other node sits one level past the first predecessor
that reaches it in a breadth-first walk. Positions are purely visual, so
layout never runs implicitly and never affects validation.

The layout function modifies node positions in-place and returns the
modified list.
"""

from collections import defaultdict, deque
from typing import TYPE_CHECKING

from .models import NodeKind

if TYPE_CHECKING:
    from .models import Edge, Node


# Default layout parameters
DEFAULT_LEVEL_SPACING = 300
DEFAULT_SIBLING_SPACING = 200
DEFAULT_START_X = 0
DEFAULT_START_Y = 0

ORIENTATIONS = ("horizontal", "vertical")
ORDERINGS = ("insertion", "position")


def assign_levels(nodes: list["Node"], edges: list["Edge"]) -> dict[str, int]:
    """
    Compute BFS levels from the trigger nodes.

    Every trigger is level 0. A node is visited at most once, so the first
    predecessor to reach it fixes its level (the shallowest one). The
    visited set also stops the walk on loop back-edges.

    Args:
        nodes: Nodes of the workflow
        edges: Edges of the workflow (edges with a missing endpoint are ignored)

    Returns:
        Mapping of node id to level, for nodes reachable from a trigger only
    """
    # Build adjacency list (source -> targets), preserving edge order
    children: dict[str, list[str]] = {n.id: [] for n in nodes}
    for edge in edges:
        if edge.source in children and edge.target in children:
            children[edge.source].append(edge.target)

    levels: dict[str, int] = {}
    queue: deque[str] = deque()
    for node in nodes:
        if node.kind == NodeKind.TRIGGER:
            levels[node.id] = 0
            queue.append(node.id)

    while queue:
        node_id = queue.popleft()
        for child in children[node_id]:
            if child in levels:
                continue
            levels[child] = levels[node_id] + 1
            queue.append(child)

    return levels


def workflow_layout(
    nodes: list["Node"],
    edges: list["Edge"],
    level_spacing: float = DEFAULT_LEVEL_SPACING,
    sibling_spacing: float = DEFAULT_SIBLING_SPACING,
    start_x: float = DEFAULT_START_X,
    start_y: float = DEFAULT_START_Y,
    orientation: str = "horizontal",
    order: str = "insertion"
) -> list["Node"]:
    """
    Arrange nodes in columns (or rows) by distance from the triggers.

    Nodes that no trigger reaches share the level 0 column, after the
    triggers, so they never overlap a positioned node. Running the layout
    twice on an unchanged graph yields the same coordinates.

    Args:
        nodes: List of nodes to arrange
        edges: List of edges defining the flow
        level_spacing: Distance between consecutive levels
        sibling_spacing: Distance between nodes of the same level
        start_x: X coordinate of level 0 (horizontal) or the centre line (vertical)
        start_y: Y coordinate of the centre line (horizontal) or level 0 (vertical)
        orientation: "horizontal" (levels left-to-right) or "vertical" (top-to-bottom)
        order: "insertion" keeps node order within a level, "position" keeps
            the previous on-canvas order to minimise visual churn

    Returns:
        The same list of nodes (modified in-place)
    """
    if orientation not in ORIENTATIONS:
        raise ValueError(f"Unknown orientation: {orientation}")
    if order not in ORDERINGS:
        raise ValueError(f"Unknown order: {order}")

    if not nodes:
        return nodes

    levels = assign_levels(nodes, edges)

    # Group by level; unreached nodes join level 0 behind the triggers
    level_nodes: dict[int, list["Node"]] = defaultdict(list)
    detached: list["Node"] = []
    for node in nodes:
        if node.id in levels:
            level_nodes[levels[node.id]].append(node)
        else:
            detached.append(node)

    if order == "position":
        # list.sort is stable, so ties keep insertion order
        def cross(n: "Node") -> float:
            return n.position.y if orientation == "horizontal" else n.position.x

        for level in level_nodes:
            level_nodes[level].sort(key=cross)
        detached.sort(key=cross)

    level_nodes[0].extend(detached)

    for level, members in level_nodes.items():
        # Centre each level on the cross axis
        offset = (len(members) - 1) * sibling_spacing / 2
        for idx, node in enumerate(members):
            along = level * level_spacing
            across = idx * sibling_spacing - offset
            if orientation == "horizontal":
                node.position.x = start_x + along
                node.position.y = start_y + across
            else:  # vertical
                node.position.x = start_x + across
                node.position.y = start_y + along

    return nodes
