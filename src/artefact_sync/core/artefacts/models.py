"""
Content record models.

Defines Pydantic models for the three kinds of library content that are
published to a repository: prompts, skills and workflows.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ArtefactKind(str, Enum):
    """Kind of content record, which also selects its repository folder."""

    PROMPT = "prompt"
    SKILL = "skill"
    WORKFLOW = "workflow"

    @property
    def folder(self) -> str:
        """Repository folder holding this kind (plural name)."""
        return f"{self.value}s"

    @property
    def label(self) -> str:
        """Singular label used in commit messages."""
        return self.value


class ContentRecord(BaseModel):
    """
    Fields shared by every content record.

    Records are owned either by a single user or by a team. Team records keep
    the creating member in ``author_id``, so ownership is decided by
    ``team_id`` first.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    kind: ArtefactKind

    id: str = Field(..., min_length=1, description="Record identifier")
    title: str = Field(..., description="Record title (never empty)")
    slug: str | None = Field(default=None, description="Stable slug for the file name")
    description: str | None = Field(default=None)
    category: str | None = Field(default=None)
    tags: list[str] = Field(default_factory=list, description="Tags in display order")
    rating_avg: float | None = Field(default=None)
    rating_count: int | None = Field(default=None)
    created_at: datetime
    updated_at: datetime
    author_id: str | None = Field(default=None, description="Owning or creating user")
    team_id: str | None = Field(default=None, description="Owning team")

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("title must not be empty")
        return value

    @field_validator("tags", mode="before")
    @classmethod
    def _tags_default(cls, value: Any) -> Any:
        return [] if value is None else value

    @model_validator(mode="after")
    def _has_owner(self) -> ContentRecord:
        if not self.author_id and not self.team_id:
            raise ValueError("record must be owned by a user or a team")
        return self

    @property
    def owner(self) -> tuple[str, str]:
        """Owner reference as ``("team", id)`` or ``("user", id)``."""
        if self.team_id:
            return ("team", self.team_id)
        return ("user", self.author_id or "")

    @property
    def visibility(self) -> bool:
        """Whether the record is visible to others."""
        return False


class Prompt(ContentRecord):
    """A prompt: plain-text template plus metadata."""

    kind: ArtefactKind = ArtefactKind.PROMPT
    content: str = ""
    is_public: bool | None = None

    @property
    def visibility(self) -> bool:
        return bool(self.is_public)


class Skill(ContentRecord):
    """A skill: markdown instructions plus metadata."""

    kind: ArtefactKind = ArtefactKind.SKILL
    content: str = ""
    published: bool | None = None

    @property
    def visibility(self) -> bool:
        return bool(self.published)


class Workflow(ContentRecord):
    """A workflow: a structured JSON document plus metadata."""

    kind: ArtefactKind = ArtefactKind.WORKFLOW
    json_document: Any = Field(default_factory=dict, alias="json")
    published: bool | None = None

    @property
    def visibility(self) -> bool:
        return bool(self.published)


RECORD_TYPES: dict[ArtefactKind, type[ContentRecord]] = {
    ArtefactKind.PROMPT: Prompt,
    ArtefactKind.SKILL: Skill,
    ArtefactKind.WORKFLOW: Workflow,
}


def record_from_row(kind: ArtefactKind, row: dict[str, Any]) -> ContentRecord:
    """
    Build a typed record from a database row.

    Args:
        kind: Which table the row came from
        row: Column mapping as returned by the store

    Returns:
        Prompt, Skill or Workflow instance
    """
    data = {key: value for key, value in row.items() if key != "kind"}
    return RECORD_TYPES[kind].model_validate(data)


class SerializedFile(BaseModel):
    """
    One rendered record ready to be written as a blob.

    Paths are unique within a sync batch; the orchestrator resolves
    collisions before any blob is created.
    """

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="Repository path, relative to the root")
    content: str = Field(..., description="Complete file content (UTF-8 text)")
    kind: ArtefactKind
    record_id: str = Field(..., description="Record the file was rendered from")
