"""
HTTP routes for the ticket API.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ticket_api.dependencies import get_ticket_service
from ticket_api.schemas import (
    ErrorResponse,
    NoteCreate,
    NotePatch,
    OkResponse,
    StepCreate,
    StepPatch,
    TicketCreate,
    TicketListResponse,
    TicketOut,
    TicketPatch,
)
from ticket_api.service import TicketService

router = APIRouter(
    prefix="/tickets",
    tags=["tickets"],
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
)


@router.get("", response_model=TicketListResponse)
def list_tickets(
    status: Optional[str] = Query(None),
    priority: Optional[str] = Query(None),
    q: Optional[str] = Query(None, description="Case-insensitive title search"),
    page: Optional[str] = Query(None),
    page_size: Optional[str] = Query(None, alias="pageSize"),
    service: TicketService = Depends(get_ticket_service),
):
    """
    List tickets newest first. Paging values that are missing or not positive
    integers fall back to the defaults.
    """
    result = service.list_tickets(
        status=status, priority=priority, q=q, page=page, page_size=page_size
    )
    return result.as_dict()


@router.post("", response_model=TicketOut, status_code=201)
def create_ticket(
    payload: TicketCreate, service: TicketService = Depends(get_ticket_service)
):
    return service.create_ticket(payload)


@router.get("/{ticket_id}", response_model=TicketOut)
def get_ticket(ticket_id: str, service: TicketService = Depends(get_ticket_service)):
    return service.get_ticket(ticket_id)


@router.patch("/{ticket_id}", response_model=TicketOut)
def update_ticket(
    ticket_id: str,
    payload: TicketPatch,
    service: TicketService = Depends(get_ticket_service),
):
    return service.update_ticket(ticket_id, payload)


@router.delete("/{ticket_id}", response_model=OkResponse)
def delete_ticket(
    ticket_id: str, service: TicketService = Depends(get_ticket_service)
):
    service.delete_ticket(ticket_id)
    return OkResponse()


@router.post("/{ticket_id}/steps", response_model=TicketOut, status_code=201)
def add_step(
    ticket_id: str,
    payload: StepCreate,
    service: TicketService = Depends(get_ticket_service),
):
    return service.add_step(ticket_id, payload)


@router.patch("/{ticket_id}/steps/{step_id}", response_model=TicketOut)
def update_step(
    ticket_id: str,
    step_id: str,
    payload: StepPatch,
    service: TicketService = Depends(get_ticket_service),
):
    return service.update_step(ticket_id, step_id, payload)


@router.delete("/{ticket_id}/steps/{step_id}", response_model=TicketOut)
def delete_step(
    ticket_id: str,
    step_id: str,
    service: TicketService = Depends(get_ticket_service),
):
    return service.delete_step(ticket_id, step_id)


@router.post("/{ticket_id}/notes", response_model=TicketOut, status_code=201)
def add_note(
    ticket_id: str,
    payload: NoteCreate,
    service: TicketService = Depends(get_ticket_service),
):
    return service.add_note(ticket_id, payload)


@router.patch("/{ticket_id}/notes/{note_id}", response_model=TicketOut)
def update_note(
    ticket_id: str,
    note_id: str,
    payload: NotePatch,
    service: TicketService = Depends(get_ticket_service),
):
    return service.update_note(ticket_id, note_id, payload)


@router.delete("/{ticket_id}/notes/{note_id}", response_model=TicketOut)
def delete_note(
    ticket_id: str,
    note_id: str,
    service: TicketService = Depends(get_ticket_service),
):
    return service.delete_note(ticket_id, note_id)
