"""AI tool model for the tool rankings section."""

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from grading import TOOL_GRADE_KEYS


class ToolCategory(str, Enum):
    """Fixed set of tool listing categories."""

    TEXT_GENERATION = "Text Generation"
    IMAGE_GENERATION = "Image Generation"
    AUDIO_VIDEO = "Audio & Video"
    PRODUCTIVITY = "Productivity"
    RESEARCH = "Research"


RankChange = Literal["up", "down", "same", "new"]
Stage = Literal["Beta", "Early Access", "Limited Beta", "Public"]


class AITool(BaseModel):
    """An AI tool with its rank inside its category listing.

    `rank` is a derived projection of the popularity signal (stars):
    it is reassigned 1..N by ranking.assign_ranks on every refresh.
    """

    id: str
    name: str
    description: str = ""
    category: ToolCategory
    url: str
    rank: int = Field(default=1, ge=1)
    change: RankChange = "new"
    grades: dict[str, str] = Field(description="Letter per name in TOOL_GRADE_KEYS")
    github_url: str | None = None
    stars: int | None = None
    forks: int | None = None
    last_commit: datetime | None = None
    stage: Stage | None = None
    noteworthy: str | None = None

    @field_validator("grades")
    @classmethod
    def _require_all_grades(cls, value: dict[str, str]) -> dict[str, str]:
        missing = [key for key in TOOL_GRADE_KEYS if key not in value]
        if missing:
            raise ValueError(f"missing grades: {', '.join(missing)}")
        return {key: value[key] for key in TOOL_GRADE_KEYS}

    @property
    def popularity(self) -> int:
        """Generic popularity signal used for ranking."""
        return self.stars or 0

    def __str__(self) -> str:
        return f"AITool(#{self.rank} {self.name}, {self.category.value})"
