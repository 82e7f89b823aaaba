"""Temporal revision history for work items pulled from a remote tracking service."""
