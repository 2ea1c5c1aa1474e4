"""
Pydantic schemas for the ticket API.

Request models validate and trim incoming fields; unknown fields are
ignored. Response models describe the canonical (client-facing) shape,
which always uses "id" rather than the storage "_id".
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ticket_shared.types import StepStatus, TicketPriority, TicketStatus

NOTE_BODY_REQUIRED = "Note body required"


def _require_text(value: Optional[str]) -> str:
    if value is None:
        raise ValueError("must not be null")
    value = value.strip()
    if not value:
        raise ValueError("must not be empty")
    return value


def _none_as_empty(value: Any) -> Any:
    return "" if value is None else value


def _reject_null(value: Any) -> Any:
    if value is None:
        raise ValueError("must not be null")
    return value


class StepIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    title: str = ""
    notes: str = ""
    status: StepStatus = StepStatus.TODO

    empty_text = field_validator("title", "notes", mode="before")(_none_as_empty)


class TicketCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    project: str
    title: str
    description: str = ""
    status: TicketStatus = TicketStatus.OPEN
    priority: TicketPriority = TicketPriority.MED
    assignee: str = ""
    steps: list[StepIn] = Field(default_factory=list)

    require_text = field_validator("project", "title")(_require_text)
    empty_text = field_validator("description", "assignee", mode="before")(
        _none_as_empty
    )

    @field_validator("steps", mode="before")
    @classmethod
    def missing_steps(cls, value: Any) -> Any:
        return [] if value is None else value


class TicketPatch(BaseModel):
    """Partial update; only fields present in the request are applied."""

    model_config = ConfigDict(extra="ignore")

    project: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[TicketStatus] = None
    priority: Optional[TicketPriority] = None
    assignee: Optional[str] = None
    steps: Optional[list[StepIn]] = None

    require_text = field_validator("project", "title")(_require_text)
    empty_text = field_validator("description", "assignee", mode="before")(
        _none_as_empty
    )
    not_null = field_validator("status", "priority", "steps")(_reject_null)


class StepCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = Field(default=None, validate_default=True)

    require_text = field_validator("title")(_require_text)


class StepPatch(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = None
    notes: Optional[str] = None
    status: Optional[StepStatus] = None

    empty_text = field_validator("title", "notes", mode="before")(_none_as_empty)
    not_null = field_validator("status")(_reject_null)


class NoteCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    body: str = Field(default="", validate_default=True)
    author: str = ""

    @field_validator("body", mode="before")
    @classmethod
    def body_text(cls, value: Any) -> str:
        return value if isinstance(value, str) else ""

    @field_validator("body")
    @classmethod
    def body_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError(NOTE_BODY_REQUIRED)
        return value

    empty_text = field_validator("author", mode="before")(_none_as_empty)


class NotePatch(BaseModel):
    """Only string-typed `body` and `author` values are applied."""

    model_config = ConfigDict(extra="ignore")

    body: Optional[str] = None
    author: Optional[str] = None

    @field_validator("body", "author", mode="before")
    @classmethod
    def strings_only(cls, value: Any) -> Optional[str]:
        return value if isinstance(value, str) else None

    @field_validator("body")
    @classmethod
    def body_required(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        if not value:
            raise ValueError(NOTE_BODY_REQUIRED)
        return value


class StepOut(BaseModel):
    id: str
    title: str = ""
    notes: str = ""
    status: StepStatus


class NoteOut(BaseModel):
    id: str
    body: str
    author: str = ""
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None


class TicketOut(BaseModel):
    id: str
    project: str
    title: str
    description: str = ""
    status: TicketStatus
    priority: TicketPriority
    assignee: str = ""
    steps: list[StepOut]
    notes: list[NoteOut]
    createdAt: str
    updatedAt: str


class TicketListResponse(BaseModel):
    items: list[TicketOut]
    total: int
    page: int
    pageSize: int


class OkResponse(BaseModel):
    ok: Literal[True] = True


class ErrorResponse(BaseModel):
    error: str
