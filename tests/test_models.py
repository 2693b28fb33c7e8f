"""Tests for the workflow graph models."""

import pytest
from pydantic import ValidationError

from automation_core import (
    ConditionConfig,
    Edge,
    LoopConfig,
    Node,
    NodeKind,
    RuleOperator,
    Workflow,
    default_config,
)
from automation_core.models import generate_node_id


class TestDefaultConfig:

    def test_defaults_per_kind(self):
        assert default_config(NodeKind.TRIGGER) == {"triggerType": ""}
        assert default_config("action") == {"actionType": "", "parameters": {}}
        assert default_config("condition") == {"conditionType": "if", "rules": [], "defaultPath": None}
        assert default_config("delay") == {"delayMs": 1000}
        assert default_config("loop") == {"loopType": "for_each", "maxIterations": 10}

    def test_defaults_are_fresh_objects(self):
        first = default_config("action")
        first["parameters"]["x"] = 1
        assert default_config("action")["parameters"] == {}

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValueError):
            default_config("webhook")


class TestNode:

    def test_kind_parsed_from_string(self):
        node = Node(id="n1", kind="delay")
        assert node.kind is NodeKind.DELAY
        assert node.position.x == 0 and node.position.y == 0
        assert node.config == {}

    def test_unknown_kind_is_a_validation_error(self):
        with pytest.raises(ValidationError):
            Node(id="n1", kind="webhook")

    def test_typed_config_view(self):
        node = Node(id="c1", kind="condition", config={
            "conditionType": "if",
            "rules": [{"field": "status", "operator": "not_equals", "value": "lost"}],
            "defaultPath": "a1",
        })
        typed = node.typed_config()
        assert isinstance(typed, ConditionConfig)
        assert typed.rules[0].operator is RuleOperator.NOT_EQUALS
        assert typed.default_path == "a1"

    def test_typed_config_keeps_unknown_keys(self):
        node = Node(id="l1", kind="loop", config={"maxIterations": 3, "label": "Retry"})
        typed = node.typed_config()
        assert isinstance(typed, LoopConfig)
        assert typed.max_iterations == 3
        assert typed.model_dump(by_alias=True)["label"] == "Retry"

    def test_legacy_fields_converted(self):
        """Documents from the earlier editor used type/data and snake_case keys."""
        node = Node.model_validate({
            "id": "loop_3",
            "type": "loop",
            "data": {"type": "for_each", "label": "Loop: for_each", "max_iterations": 5},
            "position": {"x": 10, "y": 20},
        })
        assert node.kind is NodeKind.LOOP
        assert node.config == {"loopType": "for_each", "label": "Loop: for_each", "maxIterations": 5}

    def test_legacy_condition_and_delay(self):
        condition = Node.model_validate({
            "id": "condition_1", "type": "condition",
            "data": {"type": "if", "conditions": [], "default_path": None},
        })
        assert condition.config == {"conditionType": "if", "rules": [], "defaultPath": None}

        delay = Node.model_validate({"id": "delay_1", "type": "delay", "data": {"delay": 500}})
        assert delay.config == {"delayMs": 500}

    def test_to_json_dict(self):
        node = Node(id="t1", kind="trigger", position={"x": 1.5, "y": -2}, config={"triggerType": "webhook"})
        assert node.to_json_dict() == {
            "id": "t1",
            "kind": "trigger",
            "config": {"triggerType": "webhook"},
            "position": {"x": 1.5, "y": -2.0},
        }

    def test_generated_ids_carry_kind(self):
        assert generate_node_id(NodeKind.ACTION).startswith("action_")
        assert generate_node_id("loop").startswith("loop_")


class TestEdge:

    def test_accepts_camel_and_snake_case(self):
        camel = Edge.model_validate({"id": "e1", "source": "a", "target": "b", "sourceHandle": "true"})
        snake = Edge(id="e1", source="a", target="b", source_handle="true")
        assert camel == snake
        assert camel.target_handle is None

    def test_to_json_dict_emits_nulls(self):
        edge = Edge(id="e1", source="a", target="b")
        assert edge.to_json_dict() == {
            "id": "e1",
            "source": "a",
            "target": "b",
            "sourceHandle": None,
            "targetHandle": None,
            "label": None,
        }

    def test_generated_id(self):
        assert Edge(source="a", target="b").id.startswith("e")


class TestWorkflow:

    def test_lookups(self):
        workflow = Workflow(
            nodes=[Node(id="t", kind="trigger"), Node(id="a", kind="action")],
            edges=[Edge(id="e", source="t", target="a")],
        )
        assert workflow.get_node("a").kind is NodeKind.ACTION
        assert workflow.get_node("missing") is None
        assert workflow.get_edge("e").target == "a"
        assert [n.id for n in workflow.triggers()] == ["t"]
        assert [e.id for e in workflow.outgoing("t")] == ["e"]
        assert [e.id for e in workflow.incoming("a")] == ["e"]
        assert workflow.incoming("t") == []
