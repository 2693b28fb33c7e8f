"""
Workflow Store - JSON file persistence for workflow documents.

Each workflow is stored as `<workflow id>.json` in one directory. The store
deals in documents only; turning a document back into an editable graph is
the job of automation_core.serialization.
"""

import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class WorkflowStore:
    """Store and retrieve workflow documents keyed by workflow id."""

    def __init__(self, directory: str | Path):
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def _path_for(self, workflow_id: str) -> Path:
        if (
            not workflow_id
            or workflow_id.startswith(".")
            or "/" in workflow_id
            or "\\" in workflow_id
        ):
            raise ValueError(f"Invalid workflow id: {workflow_id!r}")
        return self._directory / f"{workflow_id}.json"

    def save(self, document: dict) -> Path:
        """
        Save a document under its `id`.

        Raises:
            ValueError: if the document has no usable id
        """
        workflow_id = document.get("id")
        if not isinstance(workflow_id, str):
            raise ValueError("Document has no workflow id")
        path = self._path_for(workflow_id)

        # Ensure directory exists
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'w') as f:
            json.dump(document, f, indent=2)

        logger.info("Saved workflow %s to %s", workflow_id, path)
        return path

    def load(self, workflow_id: str) -> dict:
        """
        Load the document stored for `workflow_id`.

        Raises:
            FileNotFoundError: if nothing is stored under that id
        """
        path = self._path_for(workflow_id)
        if not path.exists():
            raise FileNotFoundError(f"Workflow not found: {workflow_id}")

        with open(path, 'r') as f:
            document = json.load(f)

        logger.info("Loaded workflow %s from %s", workflow_id, path)
        return document

    def delete(self, workflow_id: str) -> bool:
        """Delete a stored document."""
        path = self._path_for(workflow_id)
        if not path.exists():
            return False
        path.unlink()
        logger.info("Deleted workflow %s", workflow_id)
        return True

    def list_workflows(self) -> list[dict]:
        """List stored workflows with their names and node/edge counts."""
        if not self._directory.exists():
            return []

        workflows = []
        for f in sorted(self._directory.glob("*.json")):
            try:
                with open(f) as file:
                    data = json.load(file)
            except (OSError, json.JSONDecodeError):
                logger.warning("Skipping unreadable workflow file %s", f)
                continue
            if not isinstance(data, dict):
                continue
            workflows.append({
                "id": data.get("id", f.stem),
                "name": data.get("name", f.stem),
                "path": str(f),
                "nodes": len(data.get("nodes", [])),
                "edges": len(data.get("edges", []))
            })

        return workflows
