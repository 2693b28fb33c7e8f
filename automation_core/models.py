"""
Core data models for automation workflows.

These models define the canonical schema for a workflow graph:
- Nodes tagged by kind (trigger, action, condition, delay, loop) with an
  opaque, kind-specific config payload and a canvas position
- Edges connecting nodes, optionally through named ports (handles)
- The Workflow aggregate that owns both

Field Naming Convention:
- Python attributes are snake_case (`source_handle`, `max_iterations`)
- JSON documents use camelCase (`sourceHandle`, `maxIterations`)
- For backward compatibility, documents written by the earlier editor
  (`type`/`data` on nodes, snake_case config keys) are accepted on input
  and converted
"""

import uuid
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class NodeKind(str, Enum):
    """Discriminant for the node variants."""
    TRIGGER = "trigger"
    ACTION = "action"
    CONDITION = "condition"
    DELAY = "delay"
    LOOP = "loop"


class RuleOperator(str, Enum):
    """Comparison operators available to condition rules."""
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    IN = "in"
    NOT_IN = "not_in"


# Event classes offered by the palette (advisory, not enforced)
TRIGGER_TYPES = (
    "lead_created",
    "lead_status_changed",
    "message_received",
    "schedule",
    "webhook",
)

ACTION_TYPES = (
    "send_message",
    "update_lead",
    "add_tag",
    "create_task",
    "send_webhook",
    "execute_code",
)

# Named ports
HANDLE_TRUE = "true"
HANDLE_FALSE = "false"
HANDLE_DEFAULT = "default"
HANDLE_LOOP_BODY = "loop-body"
HANDLE_LOOP_EXIT = "loop-exit"

# None is the unnamed port every kind exposes on its output side
OUTPUT_HANDLES: dict[NodeKind, tuple[Optional[str], ...]] = {
    NodeKind.TRIGGER: (None,),
    NodeKind.ACTION: (None,),
    NodeKind.CONDITION: (None, HANDLE_TRUE, HANDLE_FALSE, HANDLE_DEFAULT),
    NodeKind.DELAY: (None,),
    NodeKind.LOOP: (None, HANDLE_LOOP_BODY, HANDLE_LOOP_EXIT),
}

# Triggers start a run, so they expose no input port at all
INPUT_HANDLES: dict[NodeKind, tuple[Optional[str], ...]] = {
    NodeKind.TRIGGER: (),
    NodeKind.ACTION: (None,),
    NodeKind.CONDITION: (None,),
    NodeKind.DELAY: (None,),
    NodeKind.LOOP: (None,),
}


def generate_node_id(kind: NodeKind | str) -> str:
    """Generate a node ID prefixed with its kind."""
    return f"{NodeKind(kind).value}_{uuid.uuid4().hex[:8]}"


def generate_edge_id() -> str:
    """Generate an edge ID."""
    return f"e{uuid.uuid4().hex[:8]}"


def generate_workflow_id() -> str:
    """Generate a workflow ID."""
    return f"workflow-{uuid.uuid4().hex[:8]}"


# --- Kind-specific config payloads ---

class _KindConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")


class TriggerConfig(_KindConfig):
    """Names the event class that starts a run."""
    trigger_type: str = Field(default="", alias="triggerType")


class ActionConfig(_KindConfig):
    """A single side-effecting step."""
    action_type: str = Field(default="", alias="actionType")
    parameters: dict[str, Any] = Field(default_factory=dict)


class ConditionRule(BaseModel):
    """One predicate evaluated by a condition node."""
    field: str
    operator: RuleOperator = RuleOperator.EQUALS
    value: Any = None


class ConditionConfig(_KindConfig):
    """Branching rules plus the fallback target when none match."""
    condition_type: str = Field(default="if", alias="conditionType")
    rules: list[ConditionRule] = Field(default_factory=list)
    default_path: Optional[str] = Field(default=None, alias="defaultPath")


class DelayConfig(_KindConfig):
    """Suspends a run before continuing."""
    delay_ms: int = Field(default=1000, alias="delayMs")


class LoopConfig(_KindConfig):
    """Repeats the outgoing sub-graph up to a bound."""
    loop_type: str = Field(default="for_each", alias="loopType")
    max_iterations: int = Field(default=10, alias="maxIterations")


CONFIG_MODELS: dict[NodeKind, type[_KindConfig]] = {
    NodeKind.TRIGGER: TriggerConfig,
    NodeKind.ACTION: ActionConfig,
    NodeKind.CONDITION: ConditionConfig,
    NodeKind.DELAY: DelayConfig,
    NodeKind.LOOP: LoopConfig,
}

# Key that held the sub-type in legacy `data` payloads, per kind
_LEGACY_TYPE_KEYS = {
    NodeKind.TRIGGER: "triggerType",
    NodeKind.ACTION: "actionType",
    NodeKind.CONDITION: "conditionType",
    NodeKind.LOOP: "loopType",
}

_LEGACY_CONFIG_KEYS = {
    "delay": "delayMs",
    "max_iterations": "maxIterations",
    "default_path": "defaultPath",
    "conditions": "rules",
}


def default_config(kind: NodeKind | str) -> dict[str, Any]:
    """Initial config payload for a freshly added node of `kind`."""
    return CONFIG_MODELS[NodeKind(kind)]().model_dump(by_alias=True, mode="json")


def _convert_legacy_config(kind: Any, data: dict) -> dict:
    """Map a legacy `data` payload onto canonical config keys."""
    config = {}
    try:
        type_key = _LEGACY_TYPE_KEYS.get(NodeKind(kind))
    except ValueError:
        type_key = None
    for key, value in data.items():
        if key == "type" and type_key:
            config.setdefault(type_key, value)
        elif key in _LEGACY_CONFIG_KEYS:
            config.setdefault(_LEGACY_CONFIG_KEYS[key], value)
        else:
            config[key] = value
    return config


class Position(BaseModel):
    """2D canvas coordinate. Only used for rendering."""
    x: float = 0
    y: float = 0


class Node(BaseModel):
    """
    A vertex in the automation graph.

    `config` is kept as a plain mapping so unknown keys survive a round
    trip; use `typed_config()` for a kind-specific view.
    """
    id: str
    kind: NodeKind
    position: Position = Field(default_factory=Position)
    config: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        """Convert legacy 'type'/'data' fields to 'kind'/'config'."""
        if isinstance(data, dict):
            data = dict(data)
            if "type" in data and "kind" not in data:
                data["kind"] = data.pop("type")
            if "data" in data and "config" not in data:
                legacy = data.pop("data")
                if isinstance(legacy, dict):
                    legacy = _convert_legacy_config(data.get("kind"), legacy)
                data["config"] = legacy
        return data

    def typed_config(self) -> BaseModel:
        """Parse `config` into its kind-specific model (raises ValidationError)."""
        return CONFIG_MODELS[self.kind].model_validate(self.config)

    def to_json_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        return {
            "id": self.id,
            "kind": self.kind.value,
            "config": self.model_dump(mode="json")["config"],
            "position": {"x": self.position.x, "y": self.position.y},
        }


class Edge(BaseModel):
    """
    A directed connection between two nodes.

    Handles name the port used on each end; `None` is the unnamed port.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=generate_edge_id)
    source: str
    target: str
    source_handle: Optional[str] = Field(default=None, alias="sourceHandle")
    target_handle: Optional[str] = Field(default=None, alias="targetHandle")
    label: Optional[str] = None

    def to_json_dict(self) -> dict:
        """Convert to JSON-serializable dict (unset handles are emitted as null)."""
        return {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "sourceHandle": self.source_handle,
            "targetHandle": self.target_handle,
            "label": self.label,
        }


class Workflow(BaseModel):
    """
    The complete workflow graph.
    This is what gets exported to and imported from documents.
    """
    id: str = Field(default_factory=generate_workflow_id)
    name: str = "Untitled Workflow"
    nodes: list[Node] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)

    def to_json_dict(self) -> dict:
        """Convert to JSON-serializable dict with document field names."""
        return {
            "id": self.id,
            "name": self.name,
            "nodes": [n.to_json_dict() for n in self.nodes],
            "edges": [e.to_json_dict() for e in self.edges],
        }

    def get_node(self, node_id: str) -> Optional[Node]:
        """Get a node by ID (O(n) - use WorkflowEditor for indexed access)."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def get_edge(self, edge_id: str) -> Optional[Edge]:
        """Get an edge by ID (O(n) - use WorkflowEditor for indexed access)."""
        for edge in self.edges:
            if edge.id == edge_id:
                return edge
        return None

    def triggers(self) -> list[Node]:
        return [n for n in self.nodes if n.kind == NodeKind.TRIGGER]

    def outgoing(self, node_id: str) -> list[Edge]:
        return [e for e in self.edges if e.source == node_id]

    def incoming(self, node_id: str) -> list[Edge]:
        return [e for e in self.edges if e.target == node_id]


# --- API Request/Response Models ---

class CreateNodeRequest(BaseModel):
    """Request to create a new node."""
    kind: NodeKind
    position: Optional[Position] = None
    config: dict[str, Any] = Field(default_factory=dict)


class UpdateNodeConfigRequest(BaseModel):
    """Request to shallow-merge keys into a node's config."""
    config: dict[str, Any]


class MoveNodeRequest(BaseModel):
    """Request to move a node on the canvas."""
    x: float
    y: float


class CreateEdgeRequest(BaseModel):
    """Request to connect two nodes."""
    model_config = ConfigDict(populate_by_name=True)

    source: str
    target: str
    source_handle: Optional[str] = Field(default=None, alias="sourceHandle")
    target_handle: Optional[str] = Field(default=None, alias="targetHandle")
    label: Optional[str] = None


class UpdateEdgeRequest(BaseModel):
    """Request to update an existing edge (only fields that are sent change)."""
    model_config = ConfigDict(populate_by_name=True)

    source: Optional[str] = None
    target: Optional[str] = None
    source_handle: Optional[str] = Field(default=None, alias="sourceHandle")
    target_handle: Optional[str] = Field(default=None, alias="targetHandle")
    label: Optional[str] = None


class CreateSessionRequest(BaseModel):
    """Request to open an editing session."""
    workflow_id: Optional[str] = None  # Load from the store
    document: Optional[dict[str, Any]] = None  # Or import a document directly
    name: Optional[str] = None


class ImportDocumentRequest(BaseModel):
    """Request to replace a session's graph with a document."""
    document: dict[str, Any]


class AutoLayoutRequest(BaseModel):
    """Request to arrange nodes by distance from the triggers."""
    orientation: Optional[str] = None  # horizontal, vertical
    order: str = "insertion"  # insertion, position
