"""GUS work tracking and OmniFocus helpers for a notes vault."""

__version__ = "0.1.0"
