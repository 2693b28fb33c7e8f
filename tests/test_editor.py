"""Tests for the workflow editor mutation API."""

import pytest

import automation_core.editor as editor_module
from automation_core import (
    IssueCode,
    MalformedDocumentError,
    NodeKind,
    UnknownEdgeError,
    UnknownNodeError,
    WorkflowEditor,
)
from automation_core.editor import DUPLICATE_OFFSET


@pytest.fixture
def linked(editor):
    """Editor with T -> A -> D already connected."""
    trigger = editor.add_trigger("lead_created")
    action = editor.add_action("send_message")
    delay = editor.add_delay({"x": 600, "y": 0})
    editor.connect(trigger.id, action.id)
    editor.connect(action.id, delay.id)
    editor.mark_clean()
    return editor, trigger, action, delay


class TestAddNode:

    def test_defaults_merged_with_overrides(self, editor):
        node = editor.add_node("loop", {"x": 5, "y": 6}, {"maxIterations": 3, "label": "Retry"})
        assert node.kind is NodeKind.LOOP
        assert node.config == {"loopType": "for_each", "maxIterations": 3, "label": "Retry"}
        assert (node.position.x, node.position.y) == (5, 6)

    def test_unknown_kind(self, editor):
        with pytest.raises(ValueError):
            editor.add_node("webhook")
        assert editor.nodes == []
        assert not editor.is_dirty

    def test_ids_are_unique(self, editor):
        ids = {editor.add_action("send_message").id for _ in range(50)}
        assert len(ids) == 50
        assert all(node_id.startswith("action_") for node_id in ids)

    def test_kind_helpers(self, editor):
        assert editor.add_trigger("form_submitted").config["triggerType"] == "form_submitted"
        assert editor.add_condition().config["conditionType"] == "if"
        assert editor.add_delay(delay_ms=0).config["delayMs"] == 0
        assert editor.add_loop(max_iterations=2).config["maxIterations"] == 2
        action = editor.add_action("http_request", parameters={"url": "https://example.com"})
        assert action.config == {"actionType": "http_request", "parameters": {"url": "https://example.com"}}

    def test_imported_ids_are_never_reissued(self, monkeypatch, lead_welcome_document):
        editor = WorkflowEditor.from_document(lead_welcome_document)
        candidates = iter(["A1", "T1", "action_fresh"])
        monkeypatch.setattr(editor_module, "generate_node_id", lambda kind: next(candidates))

        node = editor.add_action("send_message")
        assert node.id == "action_fresh"

    def test_removed_ids_are_never_reissued(self, monkeypatch, editor):
        candidates = iter(["action_a", "action_a", "action_b"])
        monkeypatch.setattr(editor_module, "generate_node_id", lambda kind: next(candidates))

        first = editor.add_action("send_message")
        editor.remove_node(first.id)
        second = editor.add_action("send_message")
        assert (first.id, second.id) == ("action_a", "action_b")


class TestRemoveNode:

    def test_cascades_to_edges(self, linked):
        editor, trigger, action, delay = linked
        assert editor.remove_node(action.id) is True

        assert editor.get_node(action.id) is None
        assert editor.edges == []
        assert editor.get_edges_for_node(trigger.id) == []
        assert editor.get_edges_for_node(delay.id) == []

    def test_observers_never_see_dangling_edges(self, linked):
        editor, _, action, _ = linked
        seen = []

        def check():
            node_ids = {n.id for n in editor.nodes}
            seen.append(all(e.source in node_ids and e.target in node_ids for e in editor.edges))

        editor.on_change(check)
        editor.remove_node(action.id)
        assert seen == [True]
        assert editor.last_validation.by_code(IssueCode.DANGLING_EDGE) == []

    def test_missing_node(self, editor):
        assert editor.remove_node("nope") is False
        assert not editor.is_dirty


class TestUpdateNodeConfig:

    def test_shallow_merge(self, editor):
        node = editor.add_action("send_message", parameters={"template": "a", "channel": "sms"})
        updated = editor.update_node_config(node.id, {"parameters": {"template": "b"}, "label": "Hi"})
        # Top-level keys are replaced, not deep-merged
        assert updated.config == {
            "actionType": "send_message",
            "parameters": {"template": "b"},
            "label": "Hi",
        }
        assert editor.get_node(node.id).config == updated.config

    def test_missing_node_is_a_noop(self, linked):
        editor, *_ = linked
        before = editor.export()
        assert editor.update_node_config("ghost", {"delayMs": 5}) is None
        assert editor.export() == before
        assert not editor.is_dirty

    def test_change_revalidates(self, editor):
        trigger = editor.add_trigger("lead_created")
        loop = editor.add_loop()
        editor.connect(trigger.id, loop.id)
        assert editor.last_validation.is_valid

        editor.update_node_config(loop.id, {"maxIterations": 0})
        assert not editor.last_validation.is_valid
        assert editor.last_validation.by_code(IssueCode.INVALID_LOOP_BOUND)


class TestMoveAndDuplicate:

    def test_move(self, editor):
        node = editor.add_delay()
        moved = editor.move_node(node.id, {"x": -20.5, "y": 40})
        assert (moved.position.x, moved.position.y) == (-20.5, 40)
        assert editor.move_node("ghost", {"x": 1, "y": 1}) is None

    def test_duplicate(self, linked):
        editor, _, action, _ = linked
        editor.update_node_config(action.id, {"parameters": {"template": "welcome"}})
        original = editor.get_node(action.id)

        copy = editor.duplicate_node(action.id)
        assert copy.id != action.id
        assert copy.kind is NodeKind.ACTION
        assert copy.config == original.config
        assert copy.position.x == original.position.x + DUPLICATE_OFFSET[0]
        assert copy.position.y == original.position.y + DUPLICATE_OFFSET[1]
        assert editor.get_edges_for_node(copy.id) == []

    def test_duplicate_config_is_independent(self, editor):
        node = editor.add_action("send_message", parameters={"template": "a"})
        copy = editor.duplicate_node(node.id)
        editor.update_node_config(copy.id, {"parameters": {"template": "b"}})
        assert editor.get_node(node.id).config["parameters"] == {"template": "a"}

    def test_duplicate_keeps_incomplete_config(self):
        editor = WorkflowEditor.from_document({
            "nodes": [{"id": "D1", "kind": "delay", "config": {}}],
            "edges": [],
        })
        copy = editor.duplicate_node("D1")
        assert copy.config == {}
        invalid = {i.node_id for i in editor.last_validation.by_code(IssueCode.INVALID_DELAY)}
        assert invalid == {"D1", copy.id}

    def test_duplicate_marks_dirty(self, linked):
        editor, _, action, _ = linked
        calls = []
        editor.on_change(lambda: calls.append(True))
        editor.duplicate_node(action.id)
        assert editor.is_dirty
        assert calls == [True]

    def test_duplicate_missing(self, editor):
        assert editor.duplicate_node("ghost") is None


class TestEdges:

    def test_connect_unknown_node_leaves_graph_unchanged(self, linked):
        editor, trigger, *_ = linked
        before = editor.export()
        with pytest.raises(UnknownNodeError) as excinfo:
            editor.connect(trigger.id, "ghost")
        assert excinfo.value.node_id == "ghost"
        assert editor.export() == before
        assert not editor.is_dirty

    def test_connect_with_handles(self, editor):
        condition = editor.add_condition()
        action = editor.add_action("send_message")
        edge = editor.connect(condition.id, action.id, source_handle="true", label="yes")
        assert edge.source_handle == "true"
        assert edge.label == "yes"
        assert editor.get_edge(edge.id) == edge

    def test_update_edge_retargets(self, linked):
        editor, trigger, action, delay = linked
        edge = editor.get_edges_for_node(trigger.id)[0]

        updated = editor.update_edge(edge.id, target=delay.id, label="skip")
        assert updated.target == delay.id
        assert updated.label == "skip"
        assert edge.id not in {e.id for e in editor.get_edges_for_node(action.id)}
        assert edge.id in {e.id for e in editor.get_edges_for_node(delay.id)}
        assert editor.is_dirty

    def test_update_edge_errors(self, linked):
        editor, trigger, *_ = linked
        edge = editor.get_edges_for_node(trigger.id)[0]
        with pytest.raises(UnknownEdgeError):
            editor.update_edge("nope", label="x")
        with pytest.raises(UnknownNodeError):
            editor.update_edge(edge.id, source="ghost")
        with pytest.raises(ValueError):
            editor.update_edge(edge.id, id="other")
        assert editor.get_edge(edge.id) == edge
        assert not editor.is_dirty

    def test_remove_edge(self, linked):
        editor, trigger, action, _ = linked
        edge = editor.get_edges_for_node(trigger.id)[0]
        assert editor.remove_edge(edge.id) is True
        assert editor.get_edge(edge.id) is None
        assert editor.get_node(action.id) is not None
        assert editor.remove_edge(edge.id) is False


class TestOwnership:

    def test_returned_objects_are_copies(self, linked):
        editor, trigger, action, _ = linked
        node = editor.get_node(action.id)
        node.config["actionType"] = "tampered"
        node.position.x = 9999
        editor.nodes[0].config.clear()
        editor.workflow.nodes.clear()
        edge = editor.get_edges_for_node(trigger.id)[0]
        edge.target = "ghost"

        assert editor.get_node(action.id).config["actionType"] == "send_message"
        assert editor.get_node(action.id).position.x != 9999
        assert len(editor.nodes) == 3
        assert editor.get_edge(edge.id).target == action.id

    def test_constructor_copies_workflow(self, lead_welcome_document):
        from automation_core import import_workflow

        workflow = import_workflow(lead_welcome_document)
        editor = WorkflowEditor(workflow)
        workflow.nodes.clear()
        assert len(editor.nodes) == 5


class TestStateTracking:

    def test_new_editor_is_clean(self, editor):
        assert not editor.is_dirty
        assert not editor.last_validation.is_valid  # empty graph has no trigger

    def test_dirty_and_clean(self, editor):
        editor.add_trigger("lead_created")
        assert editor.is_dirty
        editor.mark_clean()
        assert not editor.is_dirty
        editor.rename("Follow up")
        assert editor.is_dirty
        assert editor.workflow.name == "Follow up"

    def test_callbacks_run_after_each_mutation(self, editor):
        calls = []
        editor.on_change(lambda: calls.append(editor.last_validation.is_valid))
        trigger = editor.add_trigger("lead_created")
        action = editor.add_action("send_message")
        editor.connect(trigger.id, action.id)
        assert calls == [True, True, True]

    def test_get_state(self, linked):
        editor, *_ = linked
        state = editor.get_state()
        assert state["is_dirty"] is False
        assert state["validation"]["isValid"] is True
        assert len(state["workflow"]["nodes"]) == 3


class TestWholeGraph:

    def test_clear_retires_ids(self, monkeypatch, linked):
        editor, trigger, *_ = linked
        editor.clear()
        assert editor.nodes == [] and editor.edges == []
        assert editor.is_dirty

        candidates = iter([trigger.id, "trigger_new"])
        monkeypatch.setattr(editor_module, "generate_node_id", lambda kind: next(candidates))
        assert editor.add_trigger("lead_created").id == "trigger_new"

    def test_auto_layout(self, linked):
        editor, trigger, action, delay = linked
        assert editor.auto_layout() is True
        coords = {n.id: (n.position.x, n.position.y) for n in editor.nodes}
        assert coords == {trigger.id: (0, 0), action.id: (300, 0), delay.id: (600, 0)}
        assert editor.is_dirty

    def test_auto_layout_empty(self, editor):
        assert editor.auto_layout() is False
        assert not editor.is_dirty

    def test_auto_layout_bad_option(self, linked):
        editor, *_ = linked
        with pytest.raises(ValueError):
            editor.auto_layout(orientation="diagonal")

    def test_load_document_is_atomic(self, linked, lead_welcome_document):
        editor, *_ = linked
        before = editor.export()
        bad = dict(lead_welcome_document, edges=[{"id": "e1", "source": "T1", "target": "ghost"}])
        with pytest.raises(MalformedDocumentError):
            editor.load_document(bad)
        assert editor.export() == before
        assert not editor.is_dirty

        workflow = editor.load_document(lead_welcome_document)
        assert workflow.id == "workflow-welcome"
        assert editor.export() == lead_welcome_document
        assert editor.get_edges_for_node("C1")
        assert editor.is_dirty

    def test_from_document(self, lead_welcome_document):
        editor = WorkflowEditor.from_document(lead_welcome_document)
        assert editor.export() == lead_welcome_document
        assert editor.validate().is_valid
        assert not editor.is_dirty
