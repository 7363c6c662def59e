"""Narrative-to-action planning for relationship-management data."""
