"""Project repository for DynamoDB reads."""

from typing import Optional

from tally_events.config import Settings, settings
from tally_events.models.project import Project
from tally_events.repositories.base import BaseRepository


class ProjectRepository(BaseRepository):
    """Read-only access to the projects table owned by the dashboard."""

    def __init__(self, config: Settings | None = None) -> None:
        """Initialize ProjectRepository with the projects table."""
        config = config or settings
        super().__init__(config.dynamodb_table_projects, config)

    async def get_status(self, project_id: str) -> Optional[str]:
        """
        Fetch only the status attribute of a project.

        Used as the backing query of the project activity cache.

        Args:
            project_id: Project partition key

        Returns:
            Status string, or None if the project does not exist

        Raises:
            ValidationError: If the stored status is not a string
        """
        item = await self.get_item({"id": project_id}, projection=["status"])
        if not item:
            return None
        return Project.model_validate({**item, "id": project_id}).status
