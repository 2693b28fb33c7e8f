"""
Session Registry - One WorkflowEditor per editing session.

Every session owns its editor exclusively; graphs are never shared between
sessions. Ending a session drops its editor.
"""

import logging
import uuid
from typing import Any, Callable, Optional

from automation_core import WorkflowEditor

logger = logging.getLogger(__name__)


def generate_session_id() -> str:
    return f"s{uuid.uuid4().hex[:12]}"


class SessionRegistry:
    """Maps session ids to their editors."""

    def __init__(self):
        self._sessions: dict[str, WorkflowEditor] = {}
        self._on_change_callbacks: list[Callable[[str], None]] = []

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def on_change(self, callback: Callable[[str], None]):
        """Register a callback receiving the id of each mutated session."""
        self._on_change_callbacks.append(callback)

    def _notify_change(self, session_id: str):
        for callback in self._on_change_callbacks:
            callback(session_id)

    def create(self, document: Optional[dict[str, Any]] = None, name: Optional[str] = None) -> tuple[str, WorkflowEditor]:
        """
        Open a session on a new or imported workflow.

        Raises:
            MalformedDocumentError: if `document` cannot be imported
        """
        editor = WorkflowEditor.from_document(document) if document is not None else WorkflowEditor()
        if name is not None:
            editor.rename(name)
            editor.mark_clean()

        session_id = generate_session_id()
        while session_id in self._sessions:
            session_id = generate_session_id()

        editor.on_change(lambda: self._notify_change(session_id))
        self._sessions[session_id] = editor
        logger.info("Opened session %s", session_id)
        return session_id, editor

    def get(self, session_id: str) -> WorkflowEditor:
        """Get a session's editor (KeyError if the session is unknown)."""
        return self._sessions[session_id]

    def close(self, session_id: str) -> bool:
        """End a session and discard its editor."""
        if self._sessions.pop(session_id, None) is None:
            return False
        logger.info("Closed session %s", session_id)
        return True
