"""
HTTP client for the ticket API.

Every response is normalized ("_id" renamed to "id" throughout) and parsed
into the canonical dataclasses from ticket_shared.types before it reaches
callers.
"""

from __future__ import annotations

import logging
import os
from enum import Enum
from typing import Any, Optional

import requests
from dacite import Config, from_dict

from ticket_shared.json_utils import convert_keys, normalize_id
from ticket_shared.types import Ticket, TicketPage

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:5000"
REQUEST_TIMEOUT = 30  # seconds
LIST_ALL_PAGE_SIZE = 100

_DACITE_CONFIG = Config(cast=[Enum])


class ApiError(Exception):
    """Raised when the API answers with a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def ticket_from_json(data: dict) -> Ticket:
    """Builds a Ticket from a wire document, in either storage or canonical shape."""
    return from_dict(
        data_class=Ticket,
        data=convert_keys(normalize_id(data), "camel_to_snake"),
        config=_DACITE_CONFIG,
    )


def _as_json(response) -> Any:
    if response.status_code >= 400:
        try:
            message = response.json().get("error")
        except (ValueError, AttributeError):
            message = None
        raise ApiError(
            message or response.text or f"HTTP {response.status_code}",
            status_code=response.status_code,
        )
    return response.json()


class TicketApiClient:
    """Thin wrapper over the ticket REST endpoints."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        session: Any = None,
        timeout: Optional[float] = REQUEST_TIMEOUT,
    ):
        base_url = base_url or os.environ.get("TICKETS_API_URL") or DEFAULT_BASE_URL
        self.base_url = base_url.rstrip("/")
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict] = None,
        json: Any = None,
    ) -> Any:
        kwargs: dict[str, Any] = {}
        if params:
            kwargs["params"] = {k: v for k, v in params.items() if v not in (None, "")}
        if json is not None:
            kwargs["json"] = json
        if self.timeout is not None:
            kwargs["timeout"] = self.timeout
        logger.debug("%s %s", method, path)
        response = self.session.request(method, f"{self.base_url}{path}", **kwargs)
        return _as_json(response)

    # -- tickets ---------------------------------------------------------

    def list_page(
        self,
        *,
        q: Optional[str] = None,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
    ) -> TicketPage:
        data = self._request(
            "GET",
            "/tickets",
            params={
                "q": q,
                "status": status,
                "priority": priority,
                "page": page,
                "pageSize": page_size,
            },
        )
        return TicketPage(
            items=[ticket_from_json(item) for item in data.get("items") or []],
            total=int(data.get("total", 0)),
            page=int(data.get("page", page or 1)),
            page_size=int(data.get("pageSize", page_size or 0)),
        )

    def list_tickets(self, **filters: Any) -> list[Ticket]:
        return self.list_page(**filters).items

    def list_all(self, *, page_size: int = LIST_ALL_PAGE_SIZE, **filters: Any) -> list[Ticket]:
        """Fetches every page of the (optionally filtered) list, newest first."""
        tickets: list[Ticket] = []
        page = 1
        while True:
            result = self.list_page(page=page, page_size=page_size, **filters)
            tickets.extend(result.items)
            if not result.items or len(tickets) >= result.total:
                return tickets
            page += 1

    def get_ticket(self, ticket_id: str) -> Ticket:
        return ticket_from_json(self._request("GET", f"/tickets/{ticket_id}"))

    def create_ticket(self, fields: dict) -> Ticket:
        return ticket_from_json(self._request("POST", "/tickets", json=fields))

    def update_ticket(self, ticket_id: str, patch: dict) -> Ticket:
        return ticket_from_json(
            self._request("PATCH", f"/tickets/{ticket_id}", json=patch)
        )

    def delete_ticket(self, ticket_id: str) -> None:
        self._request("DELETE", f"/tickets/{ticket_id}")

    # -- steps -----------------------------------------------------------

    def add_step(self, ticket_id: str, title: str) -> Ticket:
        return ticket_from_json(
            self._request("POST", f"/tickets/{ticket_id}/steps", json={"title": title})
        )

    def update_step(self, ticket_id: str, step_id: str, patch: dict) -> Ticket:
        return ticket_from_json(
            self._request("PATCH", f"/tickets/{ticket_id}/steps/{step_id}", json=patch)
        )

    def delete_step(self, ticket_id: str, step_id: str) -> Ticket:
        return ticket_from_json(
            self._request("DELETE", f"/tickets/{ticket_id}/steps/{step_id}")
        )

    # -- notes -----------------------------------------------------------

    def add_note(self, ticket_id: str, body: str, author: str = "") -> Ticket:
        return ticket_from_json(
            self._request(
                "POST",
                f"/tickets/{ticket_id}/notes",
                json={"body": body, "author": author},
            )
        )

    def update_note(self, ticket_id: str, note_id: str, patch: dict) -> Ticket:
        return ticket_from_json(
            self._request("PATCH", f"/tickets/{ticket_id}/notes/{note_id}", json=patch)
        )

    def delete_note(self, ticket_id: str, note_id: str) -> Ticket:
        return ticket_from_json(
            self._request("DELETE", f"/tickets/{ticket_id}/notes/{note_id}")
        )
