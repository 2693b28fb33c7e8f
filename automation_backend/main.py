"""
Workflow Builder Backend - FastAPI Application

This is the main entry point for the workflow builder backend.
It provides:
- REST API for editing sessions (node/edge mutations, layout, validation,
  import/export, save/load)
- WebSocket endpoint per session for real-time validation updates
- CORS configuration for local frontend development
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.websockets import WebSocketState

from automation_core import (
    ACTION_TYPES,
    INPUT_HANDLES,
    OUTPUT_HANDLES,
    TRIGGER_TYPES,
    MalformedDocumentError,
    NodeKind,
    UnknownEdgeError,
    UnknownNodeError,
    WorkflowEditor,
    validation_summary,
)
from automation_core.models import (
    AutoLayoutRequest,
    CreateEdgeRequest,
    CreateNodeRequest,
    CreateSessionRequest,
    ImportDocumentRequest,
    MoveNodeRequest,
    UpdateEdgeRequest,
    UpdateNodeConfigRequest,
)

from .sessions import SessionRegistry
from .settings import Settings, get_settings
from .store import WorkflowStore
from .websocket_manager import WebSocketManager

logger = logging.getLogger(__name__)


# --- Async change notification ---
# Bridge between sync editor callbacks and async WebSocket broadcasts

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup/shutdown tasks."""
    registry: SessionRegistry = app.state.registry
    ws_manager: WebSocketManager = app.state.ws_manager

    pending: set[str] = set()
    changed = asyncio.Event()

    def on_session_change(session_id: str):
        """Callback for session changes - sets event for async handler."""
        pending.add(session_id)
        changed.set()

    async def change_broadcaster():
        """Background task that broadcasts changes to WebSocket clients."""
        while True:
            await changed.wait()
            changed.clear()
            while pending:
                session_id = pending.pop()
                if session_id not in registry:
                    continue
                validation = registry.get(session_id).last_validation.to_dict()
                await ws_manager.notify_workflow_updated(session_id, validation)

    registry.on_change(on_session_change)
    broadcaster_task = asyncio.create_task(change_broadcaster())

    yield

    # Cleanup
    broadcaster_task.cancel()
    try:
        await broadcaster_task
    except asyncio.CancelledError:
        pass


# --- Dependencies ---

def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


def get_store(request: Request) -> WorkflowStore:
    return request.app.state.store


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_editor(session_id: str, registry: SessionRegistry = Depends(get_registry)) -> WorkflowEditor:
    try:
        return registry.get(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Session not found")


# --- Routes ---

def _register_routes(app: FastAPI):

    # --- Health Check ---

    @app.get("/api/health")
    async def health_check(request: Request):
        """Health check endpoint."""
        return {
            "status": "ok",
            "sessions": len(request.app.state.registry),
            "connections": request.app.state.ws_manager.connection_count
        }

    # --- Enums for Frontend ---

    @app.get("/api/enums/kinds")
    async def get_kinds():
        """Get node kinds and the ports each exposes."""
        return {"kinds": [
            {
                "kind": kind.value,
                "outputs": list(OUTPUT_HANDLES[kind]),
                "accepts_input": bool(INPUT_HANDLES[kind]),
            }
            for kind in NodeKind
        ]}

    @app.get("/api/enums/triggers")
    async def get_trigger_types():
        """Get the trigger types offered by the palette."""
        return {"triggers": list(TRIGGER_TYPES)}

    @app.get("/api/enums/actions")
    async def get_action_types():
        """Get the action types offered by the palette."""
        return {"actions": list(ACTION_TYPES)}

    # --- Sessions ---

    @app.post("/api/sessions")
    async def create_session(
        request: CreateSessionRequest,
        registry: SessionRegistry = Depends(get_registry),
        store: WorkflowStore = Depends(get_store)
    ):
        """Open an editing session on a new, stored or supplied workflow."""
        if request.workflow_id is not None and request.document is not None:
            raise HTTPException(status_code=400, detail="Pass either workflow_id or document, not both")

        document = request.document
        if request.workflow_id is not None:
            try:
                document = store.load(request.workflow_id)
            except FileNotFoundError as e:
                raise HTTPException(status_code=404, detail=str(e))
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))

        try:
            session_id, editor = registry.create(document=document, name=request.name)
        except MalformedDocumentError as e:
            raise HTTPException(status_code=400, detail=f"Failed to import workflow: {e}")

        return {"success": True, "session_id": session_id, **editor.get_state()}

    @app.get("/api/sessions/{session_id}")
    async def get_session(session_id: str, editor: WorkflowEditor = Depends(get_editor)):
        """Get the current state of a session."""
        return {"success": True, "session_id": session_id, **editor.get_state()}

    @app.delete("/api/sessions/{session_id}")
    async def close_session(session_id: str, request: Request, registry: SessionRegistry = Depends(get_registry)):
        """End a session, discarding unsaved changes."""
        if not registry.close(session_id):
            raise HTTPException(status_code=404, detail="Session not found")
        await request.app.state.ws_manager.notify_session_closed(session_id)
        return {"success": True}

    # --- Node Operations ---

    @app.post("/api/sessions/{session_id}/nodes")
    async def create_node(request: CreateNodeRequest, editor: WorkflowEditor = Depends(get_editor)):
        """Create a new node."""
        node = editor.add_node(request.kind, request.position, request.config)
        return {"success": True, "node": node.to_json_dict()}

    @app.get("/api/sessions/{session_id}/nodes/{node_id}")
    async def get_node(node_id: str, editor: WorkflowEditor = Depends(get_editor)):
        """Get a specific node."""
        node = editor.get_node(node_id)
        if node:
            return {"success": True, "node": node.to_json_dict()}
        raise HTTPException(status_code=404, detail="Node not found")

    @app.patch("/api/sessions/{session_id}/nodes/{node_id}/config")
    async def update_node_config(
        node_id: str,
        request: UpdateNodeConfigRequest,
        editor: WorkflowEditor = Depends(get_editor)
    ):
        """Merge keys into a node's config. A missing node is not an error."""
        node = editor.update_node_config(node_id, request.config)
        if node:
            return {"success": True, "node": node.to_json_dict()}
        return {"success": False, "message": "Node not found; update ignored"}

    @app.patch("/api/sessions/{session_id}/nodes/{node_id}/position")
    async def move_node(node_id: str, request: MoveNodeRequest, editor: WorkflowEditor = Depends(get_editor)):
        """Move a node on the canvas. A missing node is not an error."""
        node = editor.move_node(node_id, {"x": request.x, "y": request.y})
        if node:
            return {"success": True, "node": node.to_json_dict()}
        return {"success": False, "message": "Node not found; move ignored"}

    @app.post("/api/sessions/{session_id}/nodes/{node_id}/duplicate")
    async def duplicate_node(node_id: str, editor: WorkflowEditor = Depends(get_editor)):
        """Duplicate a node (without its edges)."""
        node = editor.duplicate_node(node_id)
        if node:
            return {"success": True, "node": node.to_json_dict()}
        raise HTTPException(status_code=404, detail="Node not found")

    @app.delete("/api/sessions/{session_id}/nodes/{node_id}")
    async def delete_node(node_id: str, editor: WorkflowEditor = Depends(get_editor)):
        """Delete a node and its connected edges."""
        if editor.remove_node(node_id):
            return {"success": True}
        raise HTTPException(status_code=404, detail="Node not found")

    # --- Edge Operations ---

    @app.post("/api/sessions/{session_id}/edges")
    async def create_edge(request: CreateEdgeRequest, editor: WorkflowEditor = Depends(get_editor)):
        """Connect two nodes."""
        try:
            edge = editor.connect(
                request.source,
                request.target,
                source_handle=request.source_handle,
                target_handle=request.target_handle,
                label=request.label
            )
        except UnknownNodeError as e:
            raise HTTPException(status_code=404, detail=str(e))
        return {"success": True, "edge": edge.to_json_dict()}

    @app.patch("/api/sessions/{session_id}/edges/{edge_id}")
    async def update_edge(edge_id: str, request: UpdateEdgeRequest, editor: WorkflowEditor = Depends(get_editor)):
        """Update an edge. Only the fields present in the body change."""
        try:
            edge = editor.update_edge(edge_id, **request.model_dump(exclude_unset=True))
        except (UnknownEdgeError, UnknownNodeError) as e:
            raise HTTPException(status_code=404, detail=str(e))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"success": True, "edge": edge.to_json_dict()}

    @app.delete("/api/sessions/{session_id}/edges/{edge_id}")
    async def delete_edge(edge_id: str, editor: WorkflowEditor = Depends(get_editor)):
        """Delete an edge."""
        if editor.remove_edge(edge_id):
            return {"success": True}
        raise HTTPException(status_code=404, detail="Edge not found")

    # --- Layout ---

    @app.post("/api/sessions/{session_id}/layout")
    async def auto_layout(
        request: AutoLayoutRequest,
        editor: WorkflowEditor = Depends(get_editor),
        settings: Settings = Depends(get_app_settings)
    ):
        """Arrange nodes by distance from the triggers."""
        options = settings.layout_options()
        if request.orientation is not None:
            options["orientation"] = request.orientation
        options["order"] = request.order
        try:
            success = editor.auto_layout(**options)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        if not success:
            raise HTTPException(status_code=400, detail="No nodes to layout")
        return {"success": True, "nodes": [n.to_json_dict() for n in editor.nodes]}

    # --- Validation & Serialization ---

    @app.get("/api/sessions/{session_id}/validate")
    async def validate_session(editor: WorkflowEditor = Depends(get_editor)):
        """
        Validate the session's workflow.

        Returns errors and warnings plus a summary.
        """
        result = editor.validate()
        return {
            "success": True,
            "validation": result.to_dict(),
            "summary": validation_summary(result)
        }

    @app.get("/api/sessions/{session_id}/export")
    async def export_session(editor: WorkflowEditor = Depends(get_editor)):
        """Export the session's workflow as a document."""
        return {"success": True, "document": editor.export()}

    @app.post("/api/sessions/{session_id}/import")
    async def import_into_session(request: ImportDocumentRequest, editor: WorkflowEditor = Depends(get_editor)):
        """Replace the session's workflow with a document."""
        try:
            editor.load_document(request.document)
        except MalformedDocumentError as e:
            raise HTTPException(status_code=400, detail=f"Failed to import workflow: {e}")
        return {"success": True, **editor.get_state()}

    @app.post("/api/sessions/{session_id}/clear")
    async def clear_session(editor: WorkflowEditor = Depends(get_editor)):
        """Remove every node and edge."""
        editor.clear()
        return {"success": True, **editor.get_state()}

    @app.post("/api/sessions/{session_id}/save")
    async def save_session(
        draft: bool = Query(default=False),
        editor: WorkflowEditor = Depends(get_editor),
        store: WorkflowStore = Depends(get_store)
    ):
        """
        Persist the session's workflow.

        A workflow with structural errors is refused unless `draft=true` is
        passed. Warnings never block saving.
        """
        validation = editor.validate()
        if not validation.is_valid and not draft:
            raise HTTPException(status_code=422, detail={
                "message": "Workflow is invalid; fix its errors or save it as a draft",
                "errors": validation.errors
            })

        try:
            path = store.save(editor.export())
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except OSError as e:
            raise HTTPException(status_code=500, detail=f"Failed to save: {e}")
        editor.mark_clean()
        return {
            "success": True,
            "workflow_id": editor.workflow.id,
            "path": str(path),
            "draft": not validation.is_valid,
            "validation": validation.to_dict()
        }

    # --- Stored Workflows ---

    @app.get("/api/workflows")
    async def list_workflows(store: WorkflowStore = Depends(get_store)):
        """List stored workflows."""
        return {"success": True, "workflows": store.list_workflows()}

    @app.delete("/api/workflows/{workflow_id}")
    async def delete_workflow(workflow_id: str, store: WorkflowStore = Depends(get_store)):
        """Delete a stored workflow."""
        try:
            deleted = store.delete(workflow_id)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        if deleted:
            return {"success": True}
        raise HTTPException(status_code=404, detail="Workflow not found")

    # --- WebSocket ---

    @app.websocket("/ws/{session_id}")
    async def websocket_endpoint(websocket: WebSocket, session_id: str):
        """
        WebSocket endpoint for real-time updates.

        Clients connect here to receive workflow_updated events for one session.
        """
        if session_id not in websocket.app.state.registry:
            await websocket.close(code=4404)
            return

        ws_manager: WebSocketManager = websocket.app.state.ws_manager
        await ws_manager.connect(session_id, websocket)

        try:
            # Closing the session closes this socket from the server side
            while websocket.application_state == WebSocketState.CONNECTED:
                data = await websocket.receive_text()
                if data == "ping" and websocket.application_state == WebSocketState.CONNECTED:
                    await websocket.send_text('{"type": "pong"}')
        except WebSocketDisconnect:
            pass
        finally:
            await ws_manager.disconnect(session_id, websocket)


# --- FastAPI App ---

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application with its own store, sessions and WebSocket manager."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Workflow Builder API",
        description="Backend API for the visual automation workflow builder",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.settings = settings
    app.state.store = WorkflowStore(settings.storage_dir)
    app.state.registry = SessionRegistry()
    app.state.ws_manager = WebSocketManager()

    # CORS for local development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_routes(app)
    return app


app = create_app()


# --- Run with uvicorn ---

if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    logging.basicConfig(level=settings.log_level)
    uvicorn.run(app, host=settings.host, port=settings.port)
