"""
Ticket document store: a SQLAlchemy-backed implementation and an in-memory
one for development and tests.

Tickets are stored as whole documents in storage shape: the ticket and each
embedded step and note carry an "_id" key. Every write replaces exactly one
document.
"""

from __future__ import annotations

import copy
import threading
from dataclasses import dataclass
from typing import Dict, Optional, Protocol

from sqlalchemy import JSON, Column, Integer, String, create_engine, func, select
from sqlalchemy.orm import Session, declarative_base, sessionmaker


@dataclass(frozen=True)
class TicketFilter:
    status: Optional[str] = None
    priority: Optional[str] = None
    q: Optional[str] = None

    def matches(self, doc: dict) -> bool:
        if self.status and doc.get("status") != self.status:
            return False
        if self.priority and doc.get("priority") != self.priority:
            return False
        if self.q and self.q.lower() not in (doc.get("title") or "").lower():
            return False
        return True


class TicketStore(Protocol):
    """Interface for ticket document persistence."""

    def insert_ticket(self, doc: dict) -> dict:
        ...

    def get_ticket(self, ticket_id: str) -> Optional[dict]:
        ...

    def find_tickets(
        self, ticket_filter: TicketFilter, *, skip: int = 0, limit: int = 50
    ) -> list[dict]:
        ...

    def count_tickets(self, ticket_filter: TicketFilter) -> int:
        ...

    def replace_ticket(self, doc: dict) -> bool:
        ...

    def delete_ticket(self, ticket_id: str) -> bool:
        ...


class InMemoryTicketStore:
    """
    Simple in-memory document store for development and tests. Safe to share
    across the request threadpool.
    """

    def __init__(self):
        self.docs: Dict[str, dict] = {}
        self.sequence: Dict[str, int] = {}
        self._next_seq = 0
        self._lock = threading.Lock()

    def insert_ticket(self, doc: dict) -> dict:
        ticket_id = doc["_id"]
        with self._lock:
            if ticket_id in self.docs:
                raise KeyError(f"Duplicate ticket id {ticket_id}")
            self._next_seq += 1
            self.docs[ticket_id] = copy.deepcopy(doc)
            self.sequence[ticket_id] = self._next_seq
        return copy.deepcopy(doc)

    def get_ticket(self, ticket_id: str) -> Optional[dict]:
        with self._lock:
            doc = self.docs.get(ticket_id)
            return copy.deepcopy(doc) if doc is not None else None

    def _sorted_matches(self, ticket_filter: TicketFilter) -> list[dict]:
        """Caller holds the lock."""
        matches = [doc for doc in self.docs.values() if ticket_filter.matches(doc)]
        matches.sort(
            key=lambda doc: (doc.get("createdAt") or "", self.sequence[doc["_id"]]),
            reverse=True,
        )
        return matches

    def find_tickets(
        self, ticket_filter: TicketFilter, *, skip: int = 0, limit: int = 50
    ) -> list[dict]:
        with self._lock:
            window = self._sorted_matches(ticket_filter)[skip : skip + limit]
            return [copy.deepcopy(doc) for doc in window]

    def count_tickets(self, ticket_filter: TicketFilter) -> int:
        with self._lock:
            return sum(1 for doc in self.docs.values() if ticket_filter.matches(doc))

    def replace_ticket(self, doc: dict) -> bool:
        ticket_id = doc["_id"]
        with self._lock:
            if ticket_id not in self.docs:
                return False
            self.docs[ticket_id] = copy.deepcopy(doc)
            return True

    def delete_ticket(self, ticket_id: str) -> bool:
        with self._lock:
            if self.docs.pop(ticket_id, None) is None:
                return False
            self.sequence.pop(ticket_id, None)
            return True

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            self.docs.clear()
            self.sequence.clear()


class SqlAlchemyTicketStore:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres
    or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlAlchemyTicketStore")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    @staticmethod
    def _apply_projection(row: "TicketRow", doc: dict) -> None:
        row.project = doc.get("project") or ""
        row.title = doc.get("title") or ""
        row.status = doc.get("status") or ""
        row.priority = doc.get("priority") or ""
        row.created_at = doc.get("createdAt") or ""
        row.document = copy.deepcopy(doc)

    @staticmethod
    def _filtered(stmt, ticket_filter: TicketFilter):
        if ticket_filter.status:
            stmt = stmt.where(TicketRow.status == ticket_filter.status)
        if ticket_filter.priority:
            stmt = stmt.where(TicketRow.priority == ticket_filter.priority)
        if ticket_filter.q:
            stmt = stmt.where(
                TicketRow.title.icontains(ticket_filter.q, autoescape=True)
            )
        return stmt

    def insert_ticket(self, doc: dict) -> dict:
        with self.Session() as session:
            row = TicketRow(ticket_id=doc["_id"])
            self._apply_projection(row, doc)
            session.add(row)
            session.commit()
            return copy.deepcopy(row.document)

    def _get_row(self, session: Session, ticket_id: str) -> Optional["TicketRow"]:
        stmt = select(TicketRow).where(TicketRow.ticket_id == ticket_id)
        return session.execute(stmt).scalar_one_or_none()

    def get_ticket(self, ticket_id: str) -> Optional[dict]:
        with self.Session() as session:
            row = self._get_row(session, ticket_id)
            return copy.deepcopy(row.document) if row else None

    def find_tickets(
        self, ticket_filter: TicketFilter, *, skip: int = 0, limit: int = 50
    ) -> list[dict]:
        with self.Session() as session:
            stmt = (
                self._filtered(select(TicketRow), ticket_filter)
                .order_by(TicketRow.created_at.desc(), TicketRow.seq.desc())
                .offset(skip)
                .limit(limit)
            )
            rows = session.execute(stmt).scalars().all()
            return [copy.deepcopy(row.document) for row in rows]

    def count_tickets(self, ticket_filter: TicketFilter) -> int:
        with self.Session() as session:
            stmt = self._filtered(
                select(func.count()).select_from(TicketRow), ticket_filter
            )
            return int(session.execute(stmt).scalar_one())

    def replace_ticket(self, doc: dict) -> bool:
        with self.Session() as session:
            row = self._get_row(session, doc["_id"])
            if not row:
                return False
            self._apply_projection(row, doc)
            session.commit()
            return True

    def delete_ticket(self, ticket_id: str) -> bool:
        with self.Session() as session:
            row = self._get_row(session, ticket_id)
            if not row:
                return False
            session.delete(row)
            session.commit()
            return True


Base = declarative_base()


class TicketRow(Base):
    __tablename__ = "tickets"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    ticket_id = Column(String, nullable=False, unique=True, index=True)
    project = Column(String, nullable=False, default="")
    title = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False, index=True)
    priority = Column(String, nullable=False, index=True)
    created_at = Column(String, nullable=False, index=True)
    document = Column(JSON, nullable=False)
