#!/usr/bin/env python3
"""Workflow builder CLI - validate, lay out and normalize workflow documents, or serve the API."""

import argparse
import json
import logging
import sys
from pathlib import Path

from automation_core import (
    MalformedDocumentError,
    WorkflowEditor,
    export_workflow,
    import_workflow,
    validate_workflow,
    validation_summary,
)
from automation_core.layout import ORDERINGS, ORIENTATIONS

from .settings import get_settings


def _json_out(data, code=0):
    print(json.dumps(data))
    sys.exit(code)


def _error_out(message):
    _json_out({"status": "error", "error": message}, code=1)


def _read_document(path):
    """Read a workflow document from a JSON file."""
    try:
        with open(path) as f:
            return json.load(f)
    except FileNotFoundError:
        _error_out(f"File not found: {path}")
    except json.JSONDecodeError as e:
        _error_out(f"Invalid JSON in {path}: {e}")


def _write_document(document, path):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w') as f:
        json.dump(document, f, indent=2)


# ── Documents ────────────────────────────────────────────────────────────────

def cmd_validate(args):
    try:
        workflow = import_workflow(_read_document(args.file))
    except MalformedDocumentError as e:
        _error_out(f"Malformed workflow document: {e}")

    result = validate_workflow(workflow)
    _json_out({
        "status": "valid" if result.is_valid else "invalid",
        "validation": result.to_dict(),
        "summary": validation_summary(result)
    }, code=0 if result.is_valid else 1)


def cmd_layout(args):
    settings = get_settings()
    try:
        editor = WorkflowEditor.from_document(_read_document(args.file))
    except MalformedDocumentError as e:
        _error_out(f"Malformed workflow document: {e}")

    options = settings.layout_options()
    if args.orientation:
        options["orientation"] = args.orientation
    editor.auto_layout(order=args.order, **options)

    document = editor.export()
    output = args.output or args.file
    _write_document(document, output)
    _json_out({"status": "ok", "file": str(output), "nodes": len(document["nodes"])})


def cmd_export(args):
    try:
        workflow = import_workflow(_read_document(args.file))
    except MalformedDocumentError as e:
        _error_out(f"Malformed workflow document: {e}")

    document = export_workflow(workflow)
    if args.output:
        _write_document(document, args.output)
        _json_out({"status": "ok", "file": str(args.output)})
    _json_out(document)


# ── Service ──────────────────────────────────────────────────────────────────

def cmd_serve(args):
    import uvicorn

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    uvicorn.run(
        "automation_backend.main:app",
        host=args.host or settings.host,
        port=args.port or settings.port
    )


# ── Main ─────────────────────────────────────────────────────────────────────

def build_parser():
    parser = argparse.ArgumentParser(description="Automation workflow builder CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("validate", help="Check a workflow document for structural issues")
    p.add_argument("file")

    p = sub.add_parser("layout", help="Arrange nodes by distance from the triggers")
    p.add_argument("file")
    p.add_argument("--output", default=None)
    p.add_argument("--orientation", choices=ORIENTATIONS, default=None)
    p.add_argument("--order", choices=ORDERINGS, default="insertion")

    p = sub.add_parser("export", help="Normalize a (possibly legacy) workflow document")
    p.add_argument("file")
    p.add_argument("--output", default=None)

    p = sub.add_parser("serve", help="Run the HTTP API")
    p.add_argument("--host", default=None)
    p.add_argument("--port", type=int, default=None)

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    cmd_map = {
        "validate": cmd_validate,
        "layout": cmd_layout,
        "export": cmd_export,
        "serve": cmd_serve,
    }
    cmd_map[args.command](args)


if __name__ == "__main__":
    main()
