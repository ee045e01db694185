"""Relationship metadata shape."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class RelationshipMetadata(BaseModel):
    """Free-form edge metadata with the commonly used keys typed.

    Unknown keys are preserved so clients can attach their own annotations.
    """

    model_config = ConfigDict(extra="allow")

    description: str | None = None
    delay: float | None = Field(default=None, description="Delay in days")
    progress: float | None = Field(default=None, ge=0, le=100, description="Progress percentage")
    status: str | None = None

    def to_json(self) -> dict[str, Any]:
        """Serialize for storage, dropping unset keys."""
        return self.model_dump(mode="json", exclude_none=True)
