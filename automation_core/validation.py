"""
Workflow validation - Check workflow graphs for structural issues.

Validation is a pure pass over a snapshot of the graph: it never mutates
nodes or edges and never raises for a bad graph. Errors mean the workflow
cannot be run; warnings point at suspicious but structurally sound graphs
and never affect `is_valid`.
"""

from collections import defaultdict, deque
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Iterable, Optional

from .models import INPUT_HANDLES, OUTPUT_HANDLES, NodeKind

if TYPE_CHECKING:
    from .models import Edge, Node, Workflow


class IssueSeverity(str, Enum):
    """Severity levels for validation issues."""
    ERROR = "error"      # Invalid state, blocks running the workflow
    WARNING = "warning"  # Potential problem, should review


class IssueCode(str, Enum):
    """One category per structural check, so callers can branch on it."""
    DANGLING_EDGE = "dangling_edge"
    MISSING_TRIGGER = "missing_trigger"
    UNREACHABLE_NODE = "unreachable_node"
    AMBIGUOUS_BRANCH = "ambiguous_branch"
    DANGLING_DEFAULT_PATH = "dangling_default_path"
    INVALID_LOOP_BOUND = "invalid_loop_bound"
    ORPHAN_STEP = "orphan_step"
    INVALID_HANDLE = "invalid_handle"
    INVALID_DELAY = "invalid_delay"
    UNCONFIGURED_NODE = "unconfigured_node"
    SELF_LOOP = "self_loop"


@dataclass
class ValidationIssue:
    """A single validation issue found in a workflow."""
    severity: IssueSeverity
    code: IssueCode
    message: str
    node_id: str | None = None
    edge_id: str | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {
            "type": self.severity.value,
            "code": self.code.value,
            "message": self.message
        }
        if self.node_id:
            result["node_id"] = self.node_id
        if self.edge_id:
            result["edge_id"] = self.edge_id
        return result


@dataclass
class ValidationResult:
    """Outcome of validating a workflow."""
    issues: list[ValidationIssue] = field(default_factory=list)

    @property
    def errors(self) -> list[str]:
        return [i.message for i in self.issues if i.severity == IssueSeverity.ERROR]

    @property
    def warnings(self) -> list[str]:
        return [i.message for i in self.issues if i.severity == IssueSeverity.WARNING]

    @property
    def is_valid(self) -> bool:
        return not any(i.severity == IssueSeverity.ERROR for i in self.issues)

    def by_code(self, code: IssueCode) -> list[ValidationIssue]:
        return [i for i in self.issues if i.code == code]

    def to_dict(self) -> dict:
        return {
            "isValid": self.is_valid,
            "errors": self.errors,
            "warnings": self.warnings,
            "issues": [i.to_dict() for i in self.issues],
        }


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _describe_handle(handle: Optional[str]) -> str:
    return f"'{handle}' output" if handle is not None else "unnamed output"


def reachable_from_triggers(nodes: Iterable["Node"], edges: Iterable["Edge"]) -> set[str]:
    """
    Collect the ids of every node reachable by a directed path from a trigger.

    Edges with a missing endpoint are ignored. Loop back-edges are handled
    by the visited set.
    """
    nodes = list(nodes)
    node_ids = {n.id for n in nodes}

    successors: dict[str, list[str]] = defaultdict(list)
    for edge in edges:
        if edge.source in node_ids and edge.target in node_ids:
            successors[edge.source].append(edge.target)

    visited = {n.id for n in nodes if n.kind == NodeKind.TRIGGER}
    queue = deque(visited)
    while queue:
        current = queue.popleft()
        for child in successors[current]:
            if child not in visited:
                visited.add(child)
                queue.append(child)
    return visited


def validate(nodes: list["Node"], edges: list["Edge"]) -> ValidationResult:
    """
    Validate a workflow graph and return every issue found.

    Checks, in order:
    - Edges referencing missing nodes - ERROR
    - No trigger node - ERROR
    - Nodes not reachable from any trigger - WARNING
    - Condition nodes with two outgoing edges on the same handle - ERROR
    - Condition default path pointing at a missing node - ERROR
    - Loop nodes without a positive maxIterations - ERROR
    - Action/delay nodes with no incoming edge - WARNING
    - Handles the node kind does not expose, edges into triggers - ERROR
    - Delay nodes without a non-negative delayMs - ERROR
    - Triggers/actions with no type selected yet - WARNING
    - Self-referencing edges - WARNING

    Args:
        nodes: Nodes of the workflow
        edges: Edges of the workflow

    Returns:
        ValidationResult holding the issues
    """
    issues: list[ValidationIssue] = []

    # Quick lookups
    node_map = {n.id: n for n in nodes}
    node_ids = set(node_map)

    def error(code, message, node_id=None, edge_id=None):
        issues.append(ValidationIssue(IssueSeverity.ERROR, code, message, node_id, edge_id))

    def warning(code, message, node_id=None, edge_id=None):
        issues.append(ValidationIssue(IssueSeverity.WARNING, code, message, node_id, edge_id))

    # Dangling edges
    for edge in edges:
        if edge.source not in node_ids:
            error(IssueCode.DANGLING_EDGE,
                  f"Edge {edge.id} references non-existent source node: {edge.source}",
                  edge_id=edge.id)
        if edge.target not in node_ids:
            error(IssueCode.DANGLING_EDGE,
                  f"Edge {edge.id} references non-existent target node: {edge.target}",
                  edge_id=edge.id)

    # A workflow must start somewhere
    has_trigger = any(n.kind == NodeKind.TRIGGER for n in nodes)
    if not has_trigger:
        error(IssueCode.MISSING_TRIGGER, "Workflow has no trigger node; add a trigger to start it")

    # Unreachable nodes (all non-trigger nodes when there is no trigger)
    reached = reachable_from_triggers(nodes, edges)
    for node in nodes:
        if node.id not in reached:
            warning(IssueCode.UNREACHABLE_NODE,
                    f"Node {node.id} is not reachable from any trigger and will never run",
                    node_id=node.id)

    # Ambiguous condition branching
    outgoing: dict[str, list["Edge"]] = defaultdict(list)
    for edge in edges:
        outgoing[edge.source].append(edge)

    for node in nodes:
        if node.kind != NodeKind.CONDITION:
            continue
        by_handle: dict[Optional[str], list[str]] = defaultdict(list)
        for edge in outgoing[node.id]:
            by_handle[edge.source_handle].append(edge.id)
        for handle, edge_ids in by_handle.items():
            if len(edge_ids) > 1:
                error(IssueCode.AMBIGUOUS_BRANCH,
                      f"Condition node {node.id} has {len(edge_ids)} edges leaving its "
                      f"{_describe_handle(handle)} ({', '.join(edge_ids)}); "
                      f"cannot tell which branch to follow",
                      node_id=node.id)

    # Dangling default path
    for node in nodes:
        if node.kind != NodeKind.CONDITION:
            continue
        default_path = node.config.get("defaultPath")
        if default_path is None:
            continue
        if not isinstance(default_path, str) or default_path not in node_ids:
            error(IssueCode.DANGLING_DEFAULT_PATH,
                  f"Condition node {node.id} default path references non-existent node: {default_path}",
                  node_id=node.id)

    # Loops must be bounded
    for node in nodes:
        if node.kind != NodeKind.LOOP:
            continue
        max_iterations = node.config.get("maxIterations")
        if not _is_int(max_iterations) or max_iterations <= 0:
            error(IssueCode.INVALID_LOOP_BOUND,
                  f"Loop node {node.id} needs a positive maxIterations (got {max_iterations!r})",
                  node_id=node.id)

    # Orphan steps
    has_incoming = {e.target for e in edges if e.source in node_ids}
    for node in nodes:
        if node.kind in (NodeKind.ACTION, NodeKind.DELAY) and node.id not in has_incoming:
            warning(IssueCode.ORPHAN_STEP,
                    f"{node.kind.value.capitalize()} node {node.id} has no incoming connection",
                    node_id=node.id)

    # Ports
    for edge in edges:
        source = node_map.get(edge.source)
        target = node_map.get(edge.target)
        if source is None or target is None:
            continue
        if edge.source_handle not in OUTPUT_HANDLES[source.kind]:
            error(IssueCode.INVALID_HANDLE,
                  f"Edge {edge.id} leaves {source.kind.value} node {source.id} through "
                  f"unknown handle '{edge.source_handle}'",
                  node_id=source.id, edge_id=edge.id)
        if target.kind == NodeKind.TRIGGER:
            error(IssueCode.INVALID_HANDLE,
                  f"Edge {edge.id} points into trigger node {target.id}; triggers accept no input",
                  node_id=target.id, edge_id=edge.id)
        elif edge.target_handle not in INPUT_HANDLES[target.kind]:
            error(IssueCode.INVALID_HANDLE,
                  f"Edge {edge.id} enters {target.kind.value} node {target.id} through "
                  f"unknown handle '{edge.target_handle}'",
                  node_id=target.id, edge_id=edge.id)

    # Delays
    for node in nodes:
        if node.kind != NodeKind.DELAY:
            continue
        delay_ms = node.config.get("delayMs")
        if not _is_int(delay_ms) or delay_ms < 0:
            error(IssueCode.INVALID_DELAY,
                  f"Delay node {node.id} needs a non-negative integer delayMs (got {delay_ms!r})",
                  node_id=node.id)

    # Unconfigured triggers/actions
    for node in nodes:
        if node.kind == NodeKind.TRIGGER and not node.config.get("triggerType"):
            warning(IssueCode.UNCONFIGURED_NODE,
                    f"Trigger node {node.id} has no trigger type selected",
                    node_id=node.id)
        elif node.kind == NodeKind.ACTION and not node.config.get("actionType"):
            warning(IssueCode.UNCONFIGURED_NODE,
                    f"Action node {node.id} has no action type selected",
                    node_id=node.id)

    # Self-referencing edges
    for edge in edges:
        if edge.source == edge.target:
            warning(IssueCode.SELF_LOOP,
                    f"Self-referencing edge {edge.id} (node points to itself)",
                    node_id=edge.source, edge_id=edge.id)

    return ValidationResult(issues)


def validate_workflow(workflow: "Workflow") -> ValidationResult:
    """Validate a Workflow aggregate."""
    return validate(workflow.nodes, workflow.edges)


def validation_summary(result: ValidationResult) -> dict:
    """
    Create a summary of validation issues.

    Args:
        result: Result of a validation pass

    Returns:
        Dictionary with counts by severity
    """
    return {
        "total": len(result.issues),
        "errors": len(result.errors),
        "warnings": len(result.warnings),
        "valid": result.is_valid
    }
