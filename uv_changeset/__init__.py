"""Changeset-driven releases for uv workspaces."""
