"""Trello-driven marketing agents orchestrator."""

__version__ = "0.1.0"
