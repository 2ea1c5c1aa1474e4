"""
Headless state controller for the ticket board.

The board keeps the last fetched ticket list, the active project filter and
the selected ticket. Everything shown to the user (the project picker, the
visible list, the selected ticket) is derived from that state by the pure
functions below and recomputed on every access.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from typing import Callable, Optional, TypeVar

import requests

from ticket_shared.types import ALL_PROJECTS, Ticket, normalize_project
from ticket_ui.api import ApiError, TicketApiClient

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ProjectOption:
    value: str
    label: str


@dataclass(frozen=True)
class BoardState:
    tickets: tuple[Ticket, ...] = field(default_factory=tuple)
    selected_id: Optional[str] = None
    project_filter: str = ALL_PROJECTS
    loading: bool = False
    error: Optional[str] = None


def project_options(tickets: tuple[Ticket, ...] | list[Ticket]) -> list[ProjectOption]:
    """
    Distinct projects across the tickets, keyed by normalized project and
    labelled with the first-seen (trimmed) spelling, sorted by label.
    """
    labels: dict[str, str] = {}
    for ticket in tickets:
        raw = (ticket.project or "").strip()
        if not raw:
            continue
        labels.setdefault(normalize_project(raw), raw)
    options = [ProjectOption(value=norm, label=raw) for norm, raw in labels.items()]
    return sorted(options, key=lambda option: (option.label.casefold(), option.label))


def visible_tickets(
    tickets: tuple[Ticket, ...] | list[Ticket], project_filter: str
) -> list[Ticket]:
    if project_filter == ALL_PROJECTS:
        return list(tickets)
    return [t for t in tickets if normalize_project(t.project) == project_filter]


def selected_ticket(
    tickets: tuple[Ticket, ...] | list[Ticket],
    project_filter: str,
    selected_id: Optional[str],
) -> Optional[Ticket]:
    for ticket in visible_tickets(tickets, project_filter):
        if ticket.id == selected_id:
            return ticket
    return None


def reconcile_selection(
    tickets: tuple[Ticket, ...] | list[Ticket],
    project_filter: str,
    selected_id: Optional[str],
) -> Optional[str]:
    """Keeps a visible selection, otherwise falls back to the first visible ticket."""
    visible = visible_tickets(tickets, project_filter)
    if any(ticket.id == selected_id for ticket in visible):
        return selected_id
    return visible[0].id if visible else None


class TicketBoard:
    """
    Drives the board: fetches tickets through the API client, applies user
    actions, and re-fetches the full list after every write.

    Failed calls record a message in `state.error` and leave the rest of the
    state as it was.
    """

    def __init__(self, client: TicketApiClient):
        self.client = client
        self._state = BoardState()
        self._lock = threading.Lock()
        self._generation = 0

    # -- derived views ---------------------------------------------------

    @property
    def state(self) -> BoardState:
        return self._state

    @property
    def projects(self) -> list[ProjectOption]:
        return project_options(self._state.tickets)

    @property
    def visible(self) -> list[Ticket]:
        return visible_tickets(self._state.tickets, self._state.project_filter)

    @property
    def selected(self) -> Optional[Ticket]:
        state = self._state
        return selected_ticket(state.tickets, state.project_filter, state.selected_id)

    # -- state plumbing --------------------------------------------------

    def _apply(self, **changes) -> BoardState:
        """Applies changes and reconciles the selection. Caller holds the lock."""
        state = replace(self._state, **changes)
        self._state = replace(
            state,
            selected_id=reconcile_selection(
                state.tickets, state.project_filter, state.selected_id
            ),
        )
        return self._state

    def _set(self, **changes) -> BoardState:
        with self._lock:
            return self._apply(**changes)

    def _call(self, action: str, fn: Callable[[], T]) -> Optional[T]:
        try:
            result = fn()
        except (ApiError, requests.RequestException) as exc:
            logger.warning("Failed to %s: %s", action, exc)
            with self._lock:
                self._state = replace(
                    self._state, loading=False, error=str(exc) or f"Failed to {action}"
                )
            return None
        return result

    # -- user actions ----------------------------------------------------

    def load(self) -> BoardState:
        """Initial load: every ticket, all projects, first ticket selected."""
        self._set(project_filter=ALL_PROJECTS, error=None)
        return self.refresh(preserve_selection=False)

    def refresh(self, preserve_selection: bool = True) -> BoardState:
        """
        Re-fetches the full list. When several refreshes overlap, only the
        most recently started one is applied.
        """
        with self._lock:
            self._generation += 1
            generation = self._generation
            self._state = replace(self._state, loading=True)
        try:
            tickets = self.client.list_all()
        except (ApiError, requests.RequestException) as exc:
            with self._lock:
                if generation != self._generation:
                    logger.debug("Ignoring failure of superseded refresh: %s", exc)
                    return self._state
                logger.warning("Failed to load tickets: %s", exc)
                self._state = replace(
                    self._state, loading=False, error=str(exc) or "Failed to load tickets"
                )
                return self._state
        with self._lock:
            if generation != self._generation:
                return self._state
            return self._apply(
                tickets=tuple(tickets),
                selected_id=self._state.selected_id if preserve_selection else None,
                loading=False,
                error=None,
            )

    def set_filter(self, project_filter: str) -> BoardState:
        if project_filter != ALL_PROJECTS:
            project_filter = normalize_project(project_filter)
        return self._set(project_filter=project_filter)

    def select(self, ticket_id: Optional[str]) -> BoardState:
        return self._set(selected_id=ticket_id)

    def create(self, fields: dict) -> Optional[Ticket]:
        created = self._call("create ticket", lambda: self.client.create_ticket(fields))
        if created is None:
            return None
        self._set(project_filter=normalize_project(created.project) or ALL_PROJECTS)
        self.refresh()
        self._set(selected_id=created.id)
        return created

    def update(self, ticket_id: str, patch: dict) -> Optional[Ticket]:
        updated = self._call(
            "update ticket", lambda: self.client.update_ticket(ticket_id, patch)
        )
        if updated is None:
            return None
        changes: dict = {"selected_id": updated.id, "error": None}
        if patch.get("project"):
            project = normalize_project(patch["project"])
            if project != self._state.project_filter:
                changes["project_filter"] = project
        self._set(**changes)
        self.refresh()
        self._set(selected_id=updated.id)
        return updated

    def delete(self, ticket_id: str) -> bool:
        def _delete() -> bool:
            self.client.delete_ticket(ticket_id)
            return True

        if self._call("delete ticket", _delete) is None:
            return False
        self.refresh(preserve_selection=False)
        return True

    def _mutate_ticket(self, action: str, fn: Callable[[], Ticket]) -> Optional[Ticket]:
        updated = self._call(action, fn)
        if updated is None:
            return None
        self.refresh()
        return updated

    def add_step(self, ticket_id: str, title: str) -> Optional[Ticket]:
        return self._mutate_ticket(
            "add step", lambda: self.client.add_step(ticket_id, title)
        )

    def update_step(self, ticket_id: str, step_id: str, patch: dict) -> Optional[Ticket]:
        return self._mutate_ticket(
            "update step", lambda: self.client.update_step(ticket_id, step_id, patch)
        )

    def delete_step(self, ticket_id: str, step_id: str) -> Optional[Ticket]:
        return self._mutate_ticket(
            "delete step", lambda: self.client.delete_step(ticket_id, step_id)
        )

    def add_note(self, ticket_id: str, body: str, author: str = "") -> Optional[Ticket]:
        body = (body or "").strip()
        if not body:
            self._set(error="Note body required")
            return None
        return self._mutate_ticket(
            "add note", lambda: self.client.add_note(ticket_id, body, author.strip())
        )

    def update_note(self, ticket_id: str, note_id: str, patch: dict) -> Optional[Ticket]:
        return self._mutate_ticket(
            "update note", lambda: self.client.update_note(ticket_id, note_id, patch)
        )

    def delete_note(self, ticket_id: str, note_id: str) -> Optional[Ticket]:
        return self._mutate_ticket(
            "delete note", lambda: self.client.delete_note(ticket_id, note_id)
        )
