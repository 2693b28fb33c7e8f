"""
Workflow serialization - Export/import between Workflow and documents.

A document is the transport-safe form handed to persistence and to any
execution engine:

    {
      "id": str, "name": str,
      "nodes": [{"id", "kind", "config", "position": {"x", "y"}}, ...],
      "edges": [{"id", "source", "target", "sourceHandle", "targetHandle", "label"}, ...]
    }

Import is all-or-nothing: a document that is malformed or internally
inconsistent raises MalformedDocumentError instead of yielding a partial
graph.
"""

import json
from typing import Any

from pydantic import ValidationError

from .errors import MalformedDocumentError
from .models import Edge, Node, Workflow, generate_workflow_id


def export_workflow(workflow: Workflow) -> dict:
    """Convert a workflow to a plain document."""
    return workflow.to_json_dict()


def _parse_items(raw: list, model: type, what: str) -> list:
    items = []
    for index, data in enumerate(raw):
        if not isinstance(data, dict):
            raise MalformedDocumentError(f"{what} #{index} is not an object")
        try:
            items.append(model.model_validate(data))
        except ValidationError as e:
            raise MalformedDocumentError(f"Invalid {what.lower()} #{index}: {e}") from e
    return items


def import_workflow(document: Any) -> Workflow:
    """
    Rebuild a workflow from a document.

    Raises:
        MalformedDocumentError: if the document is not an object, a node or
            edge does not parse, ids repeat, or an edge references a node
            that is not in the document
    """
    if not isinstance(document, dict):
        raise MalformedDocumentError("Workflow document must be an object")

    raw_nodes = document.get("nodes", [])
    raw_edges = document.get("edges", [])
    if not isinstance(raw_nodes, list):
        raise MalformedDocumentError("'nodes' must be a list")
    if not isinstance(raw_edges, list):
        raise MalformedDocumentError("'edges' must be a list")

    nodes: list[Node] = _parse_items(raw_nodes, Node, "Node")
    edges: list[Edge] = _parse_items(raw_edges, Edge, "Edge")

    node_ids: set[str] = set()
    for node in nodes:
        if node.id in node_ids:
            raise MalformedDocumentError(f"Duplicate node id: {node.id}")
        node_ids.add(node.id)

    edge_ids: set[str] = set()
    for edge in edges:
        if edge.id in edge_ids:
            raise MalformedDocumentError(f"Duplicate edge id: {edge.id}")
        edge_ids.add(edge.id)
        missing = [nid for nid in (edge.source, edge.target) if nid not in node_ids]
        if missing:
            raise MalformedDocumentError(
                f"Edge {edge.id} references missing node(s): {', '.join(missing)}"
            )

    name = document.get("name", "Untitled Workflow")
    workflow_id = document.get("id") or generate_workflow_id()
    if not isinstance(name, str) or not isinstance(workflow_id, str):
        raise MalformedDocumentError("'id' and 'name' must be strings")

    return Workflow(id=workflow_id, name=name, nodes=nodes, edges=edges)


def dumps(workflow: Workflow, indent: int | None = 2) -> str:
    """Serialize a workflow to JSON text."""
    return json.dumps(export_workflow(workflow), indent=indent)


def loads(text: str) -> Workflow:
    """Parse JSON text into a workflow."""
    try:
        document = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedDocumentError(f"Invalid JSON: {e}") from e
    return import_workflow(document)
