"""Shared test fixtures for the workflow builder."""

import pytest
from fastapi.testclient import TestClient

from automation_backend.main import create_app
from automation_backend.settings import Settings
from automation_core import Edge, Node, WorkflowEditor


def make_node(node_id, kind, x=0, y=0, **config):
    return Node(id=node_id, kind=kind, position={"x": x, "y": y}, config=config)


def make_edge(edge_id, source, target, source_handle=None, target_handle=None, label=None):
    return Edge(
        id=edge_id,
        source=source,
        target=target,
        source_handle=source_handle,
        target_handle=target_handle,
        label=label,
    )


@pytest.fixture
def editor() -> WorkflowEditor:
    return WorkflowEditor()


@pytest.fixture
def lead_welcome_document() -> dict:
    """Trigger -> condition -> (true: message, false: delay -> tag)."""
    return {
        "id": "workflow-welcome",
        "name": "Welcome new leads",
        "nodes": [
            {"id": "T1", "kind": "trigger", "config": {"triggerType": "lead_created"},
             "position": {"x": 0, "y": 0}},
            {"id": "C1", "kind": "condition",
             "config": {"conditionType": "if",
                        "rules": [{"field": "source", "operator": "equals", "value": "whatsapp"}],
                        "defaultPath": "D1"},
             "position": {"x": 300, "y": 0}},
            {"id": "A1", "kind": "action",
             "config": {"actionType": "send_message", "parameters": {"template": "welcome"}},
             "position": {"x": 600, "y": -100}},
            {"id": "D1", "kind": "delay", "config": {"delayMs": 60000},
             "position": {"x": 600, "y": 100.5}},
            {"id": "A2", "kind": "action",
             "config": {"actionType": "add_tag", "parameters": {"tag": "nurture"}},
             "position": {"x": 900, "y": 100.5}},
        ],
        "edges": [
            {"id": "e1", "source": "T1", "target": "C1", "sourceHandle": None, "targetHandle": None, "label": None},
            {"id": "e2", "source": "C1", "target": "A1", "sourceHandle": "true", "targetHandle": None, "label": "yes"},
            {"id": "e3", "source": "C1", "target": "D1", "sourceHandle": "false", "targetHandle": None, "label": "no"},
            {"id": "e4", "source": "D1", "target": "A2", "sourceHandle": None, "targetHandle": None, "label": None},
        ],
    }


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(storage_dir=tmp_path / "workflows")


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as test_client:
        yield test_client
