"""Data models for the Tally events service."""

from tally_events.models.project import Project

__all__ = ["Project"]
