"""
Ticket operations: listing, CRUD, and step/note management.

Every mutation validates its input before touching the document and then
writes the whole ticket back in one store call, so a failed call leaves no
partial change behind. Results are returned in canonical shape ("id" rather
than "_id" on the ticket and on every step and note).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ticket_api.db import TicketFilter, TicketStore
from ticket_api.documents import EmbeddedCollection, new_id, utc_timestamp
from ticket_api.errors import NotFoundError, ValidationError, from_pydantic
from ticket_api.schemas import (
    NoteCreate,
    NotePatch,
    StepCreate,
    StepIn,
    StepPatch,
    TicketCreate,
    TicketPatch,
)
from ticket_shared.json_utils import normalize_id
from ticket_shared.types import (
    DEFAULT_STEP_TITLES,
    StepStatus,
    TicketPriority,
    TicketStatus,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 50
MAX_PAGE = 1_000_000
MAX_PAGE_SIZE = 1_000

ModelT = TypeVar("ModelT", bound=BaseModel)


@dataclass
class TicketListPage:
    items: list[dict]
    total: int
    page: int
    page_size: int

    def as_dict(self) -> dict:
        return {
            "items": self.items,
            "total": self.total,
            "page": self.page,
            "pageSize": self.page_size,
        }


def _validate(model: type[ModelT], data: Any) -> ModelT:
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data if data is not None else {})
    except PydanticValidationError as exc:
        raise from_pydantic(exc) from exc


def _positive_int(value: Any, default: int, maximum: int) -> int:
    """Parses a paging parameter, falling back to the default when unusable."""
    if value is None or isinstance(value, bool):
        return default
    try:
        number = int(str(value).strip())
    except ValueError:
        return default
    return number if 0 < number <= maximum else default


def _enum_filter(value: Optional[str], allowed: type, field_name: str) -> Optional[str]:
    if value is None or value == "":
        return None
    if value not in {member.value for member in allowed}:
        raise ValidationError(f"{field_name}: unknown value '{value}'")
    return value


class TicketService:
    """CRUD operations over tickets and their embedded steps and notes."""

    def __init__(
        self,
        store: TicketStore,
        *,
        default_page_size: int = DEFAULT_PAGE_SIZE,
        clock: Callable[[], str] = utc_timestamp,
        id_factory: Callable[[], str] = new_id,
    ):
        self.store = store
        self.default_page_size = default_page_size
        self._clock = clock
        self._id_factory = id_factory

    # -- helpers ---------------------------------------------------------

    def _load(self, ticket_id: str) -> dict:
        doc = self.store.get_ticket(ticket_id)
        if doc is None:
            raise NotFoundError()
        return doc

    def _save(self, doc: dict) -> dict:
        doc["updatedAt"] = self._clock()
        if not self.store.replace_ticket(doc):
            # Deleted by another caller between load and save.
            raise NotFoundError()
        return normalize_id(doc)

    def _steps(self, doc: dict) -> EmbeddedCollection:
        return EmbeddedCollection(
            doc.setdefault("steps", []), "Step", id_factory=self._id_factory
        )

    def _notes(self, doc: dict) -> EmbeddedCollection:
        return EmbeddedCollection(
            doc.setdefault("notes", []), "Note", id_factory=self._id_factory
        )

    def _step_document(self, step: StepIn, keep_id: Optional[str] = None) -> dict:
        return {
            "_id": keep_id or self._id_factory(),
            "title": step.title,
            "notes": step.notes,
            "status": step.status.value,
        }

    def _default_steps(self) -> list[dict]:
        return [
            {
                "_id": self._id_factory(),
                "title": title,
                "notes": "",
                "status": StepStatus.TODO.value,
            }
            for title in DEFAULT_STEP_TITLES
        ]

    # -- tickets ---------------------------------------------------------

    def list_tickets(
        self,
        *,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        q: Optional[str] = None,
        page: Any = None,
        page_size: Any = None,
    ) -> TicketListPage:
        ticket_filter = TicketFilter(
            status=_enum_filter(status, TicketStatus, "status"),
            priority=_enum_filter(priority, TicketPriority, "priority"),
            q=q or None,
        )
        page = _positive_int(page, DEFAULT_PAGE, MAX_PAGE)
        page_size = _positive_int(page_size, self.default_page_size, MAX_PAGE_SIZE)
        docs = self.store.find_tickets(
            ticket_filter, skip=(page - 1) * page_size, limit=page_size
        )
        total = self.store.count_tickets(ticket_filter)
        return TicketListPage(
            items=[normalize_id(doc) for doc in docs],
            total=total,
            page=page,
            page_size=page_size,
        )

    def create_ticket(self, fields: TicketCreate | Mapping[str, Any]) -> dict:
        payload = _validate(TicketCreate, fields)
        now = self._clock()
        steps = [self._step_document(step) for step in payload.steps]
        doc = {
            "_id": self._id_factory(),
            "project": payload.project,
            "title": payload.title,
            "description": payload.description,
            "status": payload.status.value,
            "priority": payload.priority.value,
            "assignee": payload.assignee,
            "steps": steps or self._default_steps(),
            "notes": [],
            "createdAt": now,
            "updatedAt": now,
        }
        created = self.store.insert_ticket(doc)
        logger.info("Created ticket %s in project %r", doc["_id"], payload.project)
        return normalize_id(created)

    def get_ticket(self, ticket_id: str) -> dict:
        return normalize_id(self._load(ticket_id))

    def update_ticket(
        self, ticket_id: str, patch: TicketPatch | Mapping[str, Any]
    ) -> dict:
        changes = _validate(TicketPatch, patch).model_dump(
            exclude_unset=True, mode="json"
        )
        doc = self._load(ticket_id)
        new_steps = changes.pop("steps", None)
        if new_steps is not None:
            available = self._steps(doc).ids()
            steps = []
            for step in new_steps:
                # Each existing id is kept at most once; repeats get a new id.
                keep_id = step.get("id") if step.get("id") in available else None
                available.discard(keep_id)
                steps.append(self._step_document(StepIn.model_validate(step), keep_id))
            doc["steps"] = steps
        doc.update(changes)
        return self._save(doc)

    def delete_ticket(self, ticket_id: str) -> None:
        if not self.store.delete_ticket(ticket_id):
            raise NotFoundError()
        logger.info("Deleted ticket %s", ticket_id)

    # -- steps -----------------------------------------------------------

    def add_step(self, ticket_id: str, payload: StepCreate | Mapping[str, Any]) -> dict:
        step = _validate(StepCreate, payload)
        doc = self._load(ticket_id)
        self._steps(doc).append(
            {"title": step.title, "notes": "", "status": StepStatus.TODO.value}
        )
        return self._save(doc)

    def update_step(
        self, ticket_id: str, step_id: str, patch: StepPatch | Mapping[str, Any]
    ) -> dict:
        changes = _validate(StepPatch, patch).model_dump(
            exclude_unset=True, mode="json"
        )
        doc = self._load(ticket_id)
        self._steps(doc).update(step_id, changes)
        return self._save(doc)

    def delete_step(self, ticket_id: str, step_id: str) -> dict:
        doc = self._load(ticket_id)
        self._steps(doc).remove(step_id)
        return self._save(doc)

    # -- notes -----------------------------------------------------------

    def add_note(self, ticket_id: str, payload: NoteCreate | Mapping[str, Any]) -> dict:
        note = _validate(NoteCreate, payload)
        doc = self._load(ticket_id)
        now = self._clock()
        self._notes(doc).append(
            {"body": note.body, "author": note.author, "createdAt": now, "updatedAt": now}
        )
        return self._save(doc)

    def update_note(
        self, ticket_id: str, note_id: str, patch: NotePatch | Mapping[str, Any]
    ) -> dict:
        changes = _validate(NotePatch, patch).model_dump(exclude_none=True)
        doc = self._load(ticket_id)
        note = self._notes(doc).get(note_id)
        if changes:
            note.update(changes, updatedAt=self._clock())
        return self._save(doc)

    def delete_note(self, ticket_id: str, note_id: str) -> dict:
        doc = self._load(ticket_id)
        self._notes(doc).remove(note_id)
        return self._save(doc)
