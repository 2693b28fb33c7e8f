"""
Exceptions raised by the workflow core.

Structural problems in a graph (no trigger, ambiguous branches, ...) are
never raised; they are reported by the validator. Exceptions are reserved
for caller bugs (stale ids) and documents that cannot be imported.
"""


class WorkflowError(ValueError):
    """Base class for workflow core errors."""


class UnknownNodeError(WorkflowError):
    """A mutation referenced a node id that is not in the workflow."""

    def __init__(self, node_id: str):
        super().__init__(f"Node not found: {node_id}")
        self.node_id = node_id


class UnknownEdgeError(WorkflowError):
    """A mutation referenced an edge id that is not in the workflow."""

    def __init__(self, edge_id: str):
        super().__init__(f"Edge not found: {edge_id}")
        self.edge_id = edge_id


class MalformedDocumentError(WorkflowError):
    """A serialized workflow document is malformed or internally inconsistent."""
