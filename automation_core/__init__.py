"""
Automation Workflow Core - Graph model, editing, validation, layout and serialization.

This module provides the core functionality used by both the backend API
and the command-line tool, ensuring a single source of truth for all
workflow graph logic. Nothing here performs I/O.
"""

from .models import (
    # Enums
    NodeKind,
    RuleOperator,
    # Core models
    Position,
    Node,
    Edge,
    Workflow,
    # Kind-specific config
    TriggerConfig,
    ActionConfig,
    ConditionRule,
    ConditionConfig,
    DelayConfig,
    LoopConfig,
    default_config,
    # Ports
    OUTPUT_HANDLES,
    INPUT_HANDLES,
    TRIGGER_TYPES,
    ACTION_TYPES,
)

from .errors import WorkflowError, UnknownNodeError, UnknownEdgeError, MalformedDocumentError
from .validation import (
    validate,
    validate_workflow,
    validation_summary,
    ValidationIssue,
    ValidationResult,
    IssueSeverity,
    IssueCode,
)
from .layout import assign_levels, workflow_layout
from .serialization import export_workflow, import_workflow, dumps, loads
from .editor import WorkflowEditor

__all__ = [
    # Enums
    "NodeKind",
    "RuleOperator",
    # Models
    "Position",
    "Node",
    "Edge",
    "Workflow",
    "TriggerConfig",
    "ActionConfig",
    "ConditionRule",
    "ConditionConfig",
    "DelayConfig",
    "LoopConfig",
    "default_config",
    "OUTPUT_HANDLES",
    "INPUT_HANDLES",
    "TRIGGER_TYPES",
    "ACTION_TYPES",
    # Errors
    "WorkflowError",
    "UnknownNodeError",
    "UnknownEdgeError",
    "MalformedDocumentError",
    # Validation
    "validate",
    "validate_workflow",
    "validation_summary",
    "ValidationIssue",
    "ValidationResult",
    "IssueSeverity",
    "IssueCode",
    # Layout
    "assign_levels",
    "workflow_layout",
    # Serialization
    "export_workflow",
    "import_workflow",
    "dumps",
    "loads",
    # Editing
    "WorkflowEditor",
]
