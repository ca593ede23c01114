"""Diagram editor backend - FastAPI surface over one EditorSession."""
