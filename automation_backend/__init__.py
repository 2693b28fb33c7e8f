"""Outer surfaces for the workflow builder: persistence, sessions, HTTP API and CLI."""
