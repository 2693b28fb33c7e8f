"""
Workflow Editor - Graph mutation API for one editing session.

This module implements:
- Single workflow ownership (the editor is the only mutator of its graph)
- O(1) node/edge lookups via index dictionaries
- Referential integrity under edits (node removal cascades to its edges)
- Session-unique ids that are never reused, imported ids included
- Dirty tracking, synchronous re-validation and change callbacks
"""

import copy
import logging
from typing import Any, Callable, Optional

from .errors import UnknownEdgeError, UnknownNodeError
from .layout import workflow_layout
from .models import (
    Edge,
    Node,
    NodeKind,
    Position,
    Workflow,
    default_config,
    generate_edge_id,
    generate_node_id,
)
from .serialization import export_workflow, import_workflow
from .validation import ValidationResult, validate_workflow

logger = logging.getLogger(__name__)

# Offset applied to a duplicated node so it does not cover the original
DUPLICATE_OFFSET = (100, 100)

_EDGE_FIELDS = ("source", "target", "source_handle", "target_handle", "label")


class WorkflowEditor:
    """
    Owns a single workflow and applies every edit to it.

    Features:
    - O(1) node/edge lookups via index dictionaries
    - Cascading node removal, so no edge ever references a missing node
    - Re-validation after each effective mutation (`last_validation`)
    - Change callbacks for real-time sync

    Node and edge objects handed out by the editor are copies; changing
    them has no effect on the graph. Use the mutation methods instead.
    """

    def __init__(self, workflow: Optional[Workflow] = None):
        self._workflow = workflow.model_copy(deep=True) if workflow is not None else Workflow()
        self._dirty = False
        self._on_change_callbacks: list[Callable[[], None]] = []
        self._used_ids: set[str] = set()  # Every id seen this session, never reissued

        # O(1) lookup indexes
        self._node_index: dict[str, Node] = {}          # node_id -> Node
        self._edge_index: dict[str, Edge] = {}          # edge_id -> Edge
        self._edges_by_node: dict[str, set[str]] = {}   # node_id -> set of edge_ids

        self._rebuild_indexes()
        self._last_validation = validate_workflow(self._workflow)

    @classmethod
    def from_document(cls, document: Any) -> "WorkflowEditor":
        """Open an editor on an imported document (raises MalformedDocumentError)."""
        return cls(import_workflow(document))

    # --- Index Management ---

    def _rebuild_indexes(self):
        """Rebuild all indexes from the current workflow state."""
        self._node_index.clear()
        self._edge_index.clear()
        self._edges_by_node.clear()

        for node in self._workflow.nodes:
            self._node_index[node.id] = node
            self._used_ids.add(node.id)

        for edge in self._workflow.edges:
            self._index_edge(edge)
            self._used_ids.add(edge.id)

    def _index_edge(self, edge: Edge):
        """Add an edge to the indexes."""
        self._edge_index[edge.id] = edge
        self._edges_by_node.setdefault(edge.source, set()).add(edge.id)
        self._edges_by_node.setdefault(edge.target, set()).add(edge.id)

    def _unindex_edge(self, edge: Edge):
        """Remove an edge from the indexes."""
        self._edge_index.pop(edge.id, None)
        if edge.source in self._edges_by_node:
            self._edges_by_node[edge.source].discard(edge.id)
        if edge.target in self._edges_by_node:
            self._edges_by_node[edge.target].discard(edge.id)

    def _new_id(self, factory: Callable[[], str]) -> str:
        new_id = factory()
        while new_id in self._used_ids:
            new_id = factory()
        self._used_ids.add(new_id)
        return new_id

    # --- Properties ---

    @property
    def workflow(self) -> Workflow:
        """Get a snapshot copy of the current workflow."""
        return self._workflow.model_copy(deep=True)

    @property
    def nodes(self) -> list[Node]:
        return [n.model_copy(deep=True) for n in self._workflow.nodes]

    @property
    def edges(self) -> list[Edge]:
        return [e.model_copy(deep=True) for e in self._workflow.edges]

    @property
    def is_dirty(self) -> bool:
        """Check if there are changes not yet saved or exported."""
        return self._dirty

    @property
    def last_validation(self) -> ValidationResult:
        """Validation result of the current graph."""
        return self._last_validation

    def mark_clean(self):
        """Reset the dirty flag after the workflow has been persisted."""
        self._dirty = False

    # --- Change Callbacks ---

    def on_change(self, callback: Callable[[], None]):
        """Register a callback for workflow changes."""
        self._on_change_callbacks.append(callback)

    def _commit(self):
        """Mark dirty, re-validate and notify after an effective mutation."""
        self._dirty = True
        self._last_validation = validate_workflow(self._workflow)
        for callback in self._on_change_callbacks:
            callback()

    # --- Node Operations ---

    def add_node(
        self,
        kind: NodeKind | str,
        position: Optional[Position | dict] = None,
        config: Optional[dict[str, Any]] = None
    ) -> Node:
        """
        Add a new node; `config` is layered over the kind's defaults.

        No validation happens here: a half-configured node may exist while
        the user is still filling it in.
        """
        kind = NodeKind(kind)
        if isinstance(position, dict):
            position = Position(**position)

        node = Node(
            id=self._new_id(lambda: generate_node_id(kind)),
            kind=kind,
            position=position.model_copy() if position else Position(),
            config={**default_config(kind), **copy.deepcopy(config or {})},
        )
        self._workflow.nodes.append(node)
        self._node_index[node.id] = node
        logger.debug("Added %s node %s", kind.value, node.id)
        self._commit()
        return node.model_copy(deep=True)

    def add_trigger(self, trigger_type: str, position: Optional[Position | dict] = None) -> Node:
        return self.add_node(NodeKind.TRIGGER, position, {"triggerType": trigger_type})

    def add_action(
        self,
        action_type: str,
        position: Optional[Position | dict] = None,
        parameters: Optional[dict[str, Any]] = None
    ) -> Node:
        return self.add_node(NodeKind.ACTION, position,
                             {"actionType": action_type, "parameters": parameters or {}})

    def add_condition(self, position: Optional[Position | dict] = None, condition_type: str = "if") -> Node:
        return self.add_node(NodeKind.CONDITION, position, {"conditionType": condition_type})

    def add_delay(self, position: Optional[Position | dict] = None, delay_ms: int = 1000) -> Node:
        return self.add_node(NodeKind.DELAY, position, {"delayMs": delay_ms})

    def add_loop(
        self,
        position: Optional[Position | dict] = None,
        loop_type: str = "for_each",
        max_iterations: int = 10
    ) -> Node:
        return self.add_node(NodeKind.LOOP, position,
                             {"loopType": loop_type, "maxIterations": max_iterations})

    def remove_node(self, node_id: str) -> bool:
        """Delete a node and all connected edges."""
        node = self._node_index.get(node_id)
        if node is None:
            return False

        # Edges go first so no observer can see a dangling edge
        connected_edge_ids = self._edges_by_node.pop(node_id, set())
        if connected_edge_ids:
            self._workflow.edges = [e for e in self._workflow.edges if e.id not in connected_edge_ids]
            for edge_id in connected_edge_ids:
                edge = self._edge_index.get(edge_id)
                if edge:
                    self._unindex_edge(edge)

        self._workflow.nodes = [n for n in self._workflow.nodes if n.id != node_id]
        self._node_index.pop(node_id, None)

        logger.debug("Removed node %s and %d edge(s)", node_id, len(connected_edge_ids))
        self._commit()
        return True

    def update_node_config(self, node_id: str, partial_config: dict[str, Any]) -> Optional[Node]:
        """
        Shallow-merge `partial_config` into a node's config.

        A missing node is a silent no-op returning None: UI events can race
        with deletions and the editor should keep going.
        """
        node = self._node_index.get(node_id)
        if node is None:
            logger.debug("Ignoring config update for missing node %s", node_id)
            return None

        node.config = {**node.config, **copy.deepcopy(partial_config)}
        self._commit()
        return node.model_copy(deep=True)

    def move_node(self, node_id: str, position: Position | dict) -> Optional[Node]:
        """Set a node's canvas position (missing node is a no-op)."""
        node = self._node_index.get(node_id)
        if node is None:
            return None

        if isinstance(position, dict):
            position = Position(**position)
        node.position = position.model_copy()
        self._commit()
        return node.model_copy(deep=True)

    def duplicate_node(self, node_id: str) -> Optional[Node]:
        """
        Copy a node's kind and config to a new, offset node without edges.

        The config is copied as-is; kind defaults are not filled in.
        """
        node = self._node_index.get(node_id)
        if node is None:
            return None

        dx, dy = DUPLICATE_OFFSET
        duplicate = Node(
            id=self._new_id(lambda: generate_node_id(node.kind)),
            kind=node.kind,
            position=Position(x=node.position.x + dx, y=node.position.y + dy),
            config=copy.deepcopy(node.config),
        )
        self._workflow.nodes.append(duplicate)
        self._node_index[duplicate.id] = duplicate
        logger.debug("Duplicated node %s as %s", node_id, duplicate.id)
        self._commit()
        return duplicate.model_copy(deep=True)

    def get_node(self, node_id: str) -> Optional[Node]:
        """Get a copy of a node by ID (O(1) lookup)."""
        node = self._node_index.get(node_id)
        return node.model_copy(deep=True) if node else None

    # --- Edge Operations ---

    def connect(
        self,
        source: str,
        target: str,
        source_handle: Optional[str] = None,
        target_handle: Optional[str] = None,
        label: Optional[str] = None
    ) -> Edge:
        """
        Add a new edge between two existing nodes.

        Raises:
            UnknownNodeError: if either endpoint is not in the workflow
        """
        for node_id in (source, target):
            if node_id not in self._node_index:
                raise UnknownNodeError(node_id)

        edge = Edge(
            id=self._new_id(generate_edge_id),
            source=source,
            target=target,
            source_handle=source_handle,
            target_handle=target_handle,
            label=label
        )
        self._workflow.edges.append(edge)
        self._index_edge(edge)
        logger.debug("Connected %s -> %s (%s)", source, target, edge.id)
        self._commit()
        return edge.model_copy()

    def update_edge(self, edge_id: str, **changes) -> Edge:
        """
        Update fields of an existing edge.

        Only source, target, source_handle, target_handle and label can be
        changed; passing None clears a handle or label.

        Raises:
            UnknownEdgeError: if the edge is not in the workflow
            UnknownNodeError: if a new endpoint is not in the workflow
        """
        edge = self._edge_index.get(edge_id)
        if edge is None:
            raise UnknownEdgeError(edge_id)

        unknown = set(changes) - set(_EDGE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update edge field(s): {', '.join(sorted(unknown))}")
        for key in ("source", "target"):
            if key in changes and changes[key] not in self._node_index:
                raise UnknownNodeError(changes[key])

        self._unindex_edge(edge)
        for key, value in changes.items():
            setattr(edge, key, value)
        self._index_edge(edge)

        self._commit()
        return edge.model_copy()

    def remove_edge(self, edge_id: str) -> bool:
        """Delete an edge."""
        edge = self._edge_index.get(edge_id)
        if edge is None:
            return False

        self._workflow.edges = [e for e in self._workflow.edges if e.id != edge_id]
        self._unindex_edge(edge)
        self._commit()
        return True

    def get_edge(self, edge_id: str) -> Optional[Edge]:
        """Get a copy of an edge by ID (O(1) lookup)."""
        edge = self._edge_index.get(edge_id)
        return edge.model_copy() if edge else None

    def get_edges_for_node(self, node_id: str) -> list[Edge]:
        """Get all edges connected to a node (O(1) index lookup)."""
        return [
            self._edge_index[eid].model_copy()
            for eid in self._edges_by_node.get(node_id, ())
            if eid in self._edge_index
        ]

    # --- Whole-graph Operations ---

    def rename(self, name: str):
        self._workflow.name = name
        self._commit()

    def clear(self):
        """Remove every node and edge. Their ids stay retired."""
        self._workflow.nodes = []
        self._workflow.edges = []
        self._rebuild_indexes()
        self._commit()

    def auto_layout(self, **options) -> bool:
        """Arrange nodes by distance from the triggers (see layout.workflow_layout)."""
        if not self._workflow.nodes:
            return False

        workflow_layout(self._workflow.nodes, self._workflow.edges, **options)
        self._commit()
        return True

    def validate(self) -> ValidationResult:
        """Validate the current graph."""
        return self._last_validation

    def export(self) -> dict:
        """Export the current graph as a document."""
        return export_workflow(self._workflow)

    def load_document(self, document: Any) -> Workflow:
        """
        Replace the graph with an imported document.

        The import is atomic: on MalformedDocumentError the current graph
        is left untouched.
        """
        workflow = import_workflow(document)
        self._workflow = workflow
        self._rebuild_indexes()
        logger.debug("Loaded workflow %s (%d nodes, %d edges)",
                     workflow.id, len(workflow.nodes), len(workflow.edges))
        self._commit()
        return self.workflow

    def get_state(self) -> dict:
        """Get the full current state for API responses."""
        return {
            "workflow": self.export(),
            "is_dirty": self._dirty,
            "validation": self._last_validation.to_dict(),
        }
