"""Repository layer for DynamoDB operations."""

from tally_events.repositories.project_repository import ProjectRepository

__all__ = ["ProjectRepository"]
