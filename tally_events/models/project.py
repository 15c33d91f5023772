"""Project model for DynamoDB."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Project(BaseModel):
    """
    A Tally project as stored by the dashboard.

    Only ``status`` matters to the events service: a project ingests events
    while its status is ``"active"``.

    Attributes:
        id: Project identifier (the ``project_id`` sent by the SDK)
        status: Lifecycle status ("active", "pending", "suspended", ...)
        name: Display name (usually the GitHub repository)
        created_at: ISO 8601 timestamp of record creation
        updated_at: ISO 8601 timestamp of last update
    """

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1, description="Project identifier")
    status: Optional[str] = Field(None, description="Project status")
    name: Optional[str] = Field(None, description="Display name")
    created_at: Optional[str] = Field(None, description="ISO 8601 creation timestamp")
    updated_at: Optional[str] = Field(None, description="ISO 8601 update timestamp")
