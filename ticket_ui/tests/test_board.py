import unittest
from dataclasses import replace
from unittest.mock import MagicMock

import requests
from fastapi.testclient import TestClient

from ticket_api.app import create_app
from ticket_api.config import Settings
from ticket_api.db import InMemoryTicketStore
from ticket_api.dependencies import get_ticket_service
from ticket_api.service import TicketService
from ticket_shared.types import ALL_PROJECTS, Ticket, TicketStatus
from ticket_ui.api import ApiError, TicketApiClient
from ticket_ui.state import (
    ProjectOption,
    TicketBoard,
    project_options,
    reconcile_selection,
    visible_tickets,
)


def _ticket(ticket_id, project, title="t"):
    return Ticket(id=ticket_id, project=project, title=title)


class BoardViewTests(unittest.TestCase):
    def setUp(self):
        self.tickets = [
            _ticket("1", "Acme"),
            _ticket("2", " acme "),
            _ticket("3", "beta"),
            _ticket("4", "ACME"),
            _ticket("5", "  "),
        ]

    def test_project_options_use_first_seen_label(self):
        self.assertEqual(
            project_options(self.tickets),
            [ProjectOption("acme", "Acme"), ProjectOption("beta", "beta")],
        )

    def test_visible_tickets_by_normalized_project(self):
        self.assertEqual(
            [t.id for t in visible_tickets(self.tickets, "acme")], ["1", "2", "4"]
        )
        self.assertEqual(len(visible_tickets(self.tickets, ALL_PROJECTS)), 5)
        self.assertEqual(visible_tickets(self.tickets, "gamma"), [])

    def test_reconcile_selection(self):
        self.assertEqual(reconcile_selection(self.tickets, "acme", "2"), "2")
        self.assertEqual(reconcile_selection(self.tickets, "beta", "2"), "3")
        self.assertEqual(reconcile_selection(self.tickets, "acme", None), "1")
        self.assertIsNone(reconcile_selection(self.tickets, "gamma", "1"))
        self.assertIsNone(reconcile_selection([], ALL_PROJECTS, None))


class TicketBoardTests(unittest.TestCase):
    def setUp(self):
        app = create_app(Settings(rate_limit_per_minute=0))
        store = InMemoryTicketStore()
        app.dependency_overrides[get_ticket_service] = lambda: TicketService(store)
        self.client = TicketApiClient(
            "http://testserver", session=TestClient(app), timeout=None
        )
        self.first = self.client.create_ticket({"project": "Acme", "title": "Old"})
        self.second = self.client.create_ticket({"project": "Beta", "title": "New"})
        self.board = TicketBoard(self.client)

    def test_load_selects_first_ticket(self):
        state = self.board.load()
        self.assertEqual([t.id for t in state.tickets], [self.second.id, self.first.id])
        self.assertEqual(state.project_filter, ALL_PROJECTS)
        self.assertEqual(state.selected_id, self.second.id)
        self.assertFalse(state.loading)
        self.assertIsNone(state.error)
        self.assertEqual(self.board.selected.title, "New")

    def test_filter_reselects_visible_ticket(self):
        self.board.load()
        state = self.board.set_filter("ACME")
        self.assertEqual(state.project_filter, "acme")
        self.assertEqual(state.selected_id, self.first.id)
        self.assertEqual([t.id for t in self.board.visible], [self.first.id])

        state = self.board.set_filter("nothing")
        self.assertIsNone(state.selected_id)
        self.assertIsNone(self.board.selected)

    def test_select_outside_filter_falls_back(self):
        self.board.load()
        self.board.set_filter("beta")
        state = self.board.select(self.first.id)
        self.assertEqual(state.selected_id, self.second.id)

    def test_create_switches_filter_and_selects(self):
        self.board.load()
        created = self.board.create({"project": "  GAMMA ", "title": "Fresh"})
        state = self.board.state
        self.assertEqual(state.project_filter, "gamma")
        self.assertEqual(state.selected_id, created.id)
        self.assertEqual(len(state.tickets), 3)
        self.assertIn(ProjectOption("gamma", "GAMMA"), self.board.projects)

    def test_update_project_switches_filter(self):
        self.board.load()
        self.board.set_filter("acme")
        updated = self.board.update(self.first.id, {"project": "Beta"})
        state = self.board.state
        self.assertEqual(updated.project, "Beta")
        self.assertEqual(state.project_filter, "beta")
        self.assertEqual(state.selected_id, self.first.id)

    def test_update_without_project_keeps_filter(self):
        self.board.load()
        self.board.set_filter("acme")
        self.board.update(self.first.id, {"status": "done"})
        self.assertEqual(self.board.state.project_filter, "acme")
        self.assertEqual(self.board.selected.status, TicketStatus.DONE)

    def test_delete_falls_back_to_first_visible(self):
        self.board.load()
        self.assertTrue(self.board.delete(self.second.id))
        state = self.board.state
        self.assertEqual([t.id for t in state.tickets], [self.first.id])
        self.assertEqual(state.selected_id, self.first.id)

    def test_failed_delete_sets_error_and_keeps_state(self):
        before = self.board.load()
        self.assertFalse(self.board.delete("missing"))
        state = self.board.state
        self.assertEqual(state.error, "Not found")
        self.assertEqual(state.tickets, before.tickets)
        self.assertEqual(state.selected_id, before.selected_id)

    def test_step_and_note_actions_refresh(self):
        self.board.load()
        self.board.add_step(self.first.id, "Deploy")
        refreshed = [t for t in self.board.state.tickets if t.id == self.first.id][0]
        self.assertEqual(refreshed.steps[-1].title, "Deploy")

        self.board.add_note(self.first.id, "  note ", author=" ann ")
        refreshed = [t for t in self.board.state.tickets if t.id == self.first.id][0]
        self.assertEqual(refreshed.notes[0].body, "note")
        self.assertEqual(refreshed.notes[0].author, "ann")

        note_id = refreshed.notes[0].id
        self.board.update_note(self.first.id, note_id, {"body": "edited"})
        self.board.delete_note(self.first.id, note_id)
        self.board.delete_step(self.first.id, refreshed.steps[0].id)
        refreshed = [t for t in self.board.state.tickets if t.id == self.first.id][0]
        self.assertEqual(refreshed.notes, [])
        self.assertEqual(len(refreshed.steps), 3)

    def test_blank_note_is_rejected_locally(self):
        client = MagicMock()
        board = TicketBoard(client)
        self.assertIsNone(board.add_note("t1", "   "))
        self.assertEqual(board.state.error, "Note body required")
        client.add_note.assert_not_called()


class TicketBoardFailureTests(unittest.TestCase):
    def test_network_error_keeps_previous_tickets(self):
        client = MagicMock()
        client.list_all.return_value = [_ticket("1", "Acme")]
        board = TicketBoard(client)
        board.load()

        client.list_all.side_effect = requests.ConnectionError("connection refused")
        state = board.refresh()
        self.assertEqual([t.id for t in state.tickets], ["1"])
        self.assertEqual(state.error, "connection refused")
        self.assertFalse(state.loading)

    def test_failed_create_leaves_filter(self):
        client = MagicMock()
        client.list_all.return_value = []
        client.create_ticket.side_effect = ApiError("title: must not be empty", 400)
        board = TicketBoard(client)
        board.load()

        self.assertIsNone(board.create({"project": "Acme", "title": ""}))
        self.assertEqual(board.state.project_filter, ALL_PROJECTS)
        self.assertEqual(board.state.error, "title: must not be empty")

    def test_stale_refresh_is_discarded(self):
        client = MagicMock()
        board = TicketBoard(client)
        calls = []

        def list_all():
            calls.append(None)
            if len(calls) == 1:
                # A newer refresh starts and finishes while this one is in flight.
                board.refresh()
                return [_ticket("stale", "Acme")]
            return [_ticket("fresh", "Acme")]

        client.list_all.side_effect = list_all
        state = board.refresh()
        self.assertEqual([t.id for t in state.tickets], ["fresh"])
        self.assertEqual(state.selected_id, "fresh")

    def test_stale_refresh_failure_is_discarded(self):
        client = MagicMock()
        board = TicketBoard(client)
        calls = []

        def list_all():
            calls.append(None)
            if len(calls) == 1:
                board.refresh()
                raise requests.ConnectionError("stale failure")
            return [_ticket("fresh", "Acme")]

        client.list_all.side_effect = list_all
        state = board.refresh()
        self.assertEqual([t.id for t in state.tickets], ["fresh"])
        self.assertIsNone(state.error)
        self.assertFalse(state.loading)

    def test_stale_refresh_failure_keeps_newer_request_loading(self):
        client = MagicMock()
        board = TicketBoard(client)

        def list_all():
            # A newer refresh has started but not finished.
            with board._lock:
                board._generation += 1
                board._state = replace(board.state, loading=True)
            raise requests.ConnectionError("stale failure")

        client.list_all.side_effect = list_all
        state = board.refresh()
        self.assertTrue(state.loading)
        self.assertIsNone(state.error)


if __name__ == "__main__":
    unittest.main()
