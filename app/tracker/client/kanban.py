"""
Kanban board state for one project.

Tickets are grouped into three fixed columns by status. Moving a card is a
two-phase local transition: `apply` changes the card optimistically and
returns a PendingMove; the move is then either confirmed (server accepted the
update) or reverted (server rejected it), restoring the previous status.
"""
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from app.tracker.client.api_client import ApiError
from app.tracker.constants import STATUS_COLUMNS, TicketStatus

if TYPE_CHECKING:
    from app.tracker.client.api_client import TrackerClient

logger = logging.getLogger(__name__)

COLUMN_KEYS: tuple[str, ...] = tuple(st.value for st in STATUS_COLUMNS)


@dataclass(frozen=True)
class PendingMove:
    ticket_id: int
    from_status: str
    to_status: str


class KanbanBoard:
    def __init__(self, project_id: int, tickets: list[dict[str, Any]] | None = None) -> None:
        self.project_id = project_id
        self._tickets: dict[int, dict[str, Any]] = {}
        self._pending: dict[int, PendingMove] = {}
        self.error: str | None = None
        for t in tickets or []:
            self._tickets[t["id"]] = copy.deepcopy(t)

    @classmethod
    def load(cls, client: "TrackerClient", project_id: int) -> "KanbanBoard":
        return cls(project_id, client.list_tickets(project_id))

    def ticket(self, ticket_id: int) -> dict[str, Any] | None:
        return self._tickets.get(ticket_id)

    @property
    def pending(self) -> tuple[PendingMove, ...]:
        return tuple(self._pending.values())

    def columns(self) -> dict[str, list[dict[str, Any]]]:
        """Tickets by column, in board order. Unknown statuses land in To Do."""
        grouped: dict[str, list[dict[str, Any]]] = {key: [] for key in COLUMN_KEYS}
        for t in self._tickets.values():
            status = t.get("status")
            key = status if status in grouped else TicketStatus.TODO.value
            grouped[key].append(t)
        return grouped

    # ---------- Two-phase move ----------
    def apply(self, ticket_id: int, to_status: str) -> PendingMove | None:
        """
        Optimistically move a card. Returns None (and changes nothing) when the
        target is not a column, the ticket is unknown or already pending, or
        the ticket is already in that column.
        """
        if to_status not in COLUMN_KEYS:
            return None
        t = self._tickets.get(ticket_id)
        if t is None or ticket_id in self._pending:
            return None
        from_status = t.get("status") or TicketStatus.TODO.value
        if from_status == to_status:
            return None
        move = PendingMove(ticket_id=ticket_id, from_status=from_status, to_status=to_status)
        t["status"] = to_status
        self._pending[ticket_id] = move
        return move

    def _take(self, move: PendingMove) -> None:
        if self._pending.get(move.ticket_id) != move:
            raise ValueError(f"Move for ticket {move.ticket_id} is not pending")
        del self._pending[move.ticket_id]

    def confirm(self, move: PendingMove, server_ticket: dict[str, Any] | None = None) -> None:
        self._take(move)
        if server_ticket is not None:
            self._tickets[move.ticket_id] = copy.deepcopy(server_ticket)

    def revert(self, move: PendingMove) -> None:
        self._take(move)
        t = self._tickets.get(move.ticket_id)
        if t is not None:
            t["status"] = move.from_status

    # ---------- Driven by the API ----------
    def move(self, client: "TrackerClient", ticket_id: int, to_status: str) -> bool:
        """Apply a move, send it, then confirm or revert. Returns True if the move stuck."""
        move = self.apply(ticket_id, to_status)
        if move is None:
            return False
        try:
            updated = client.update_ticket(ticket_id, status=to_status)
        except ApiError as e:
            self.revert(move)
            self.error = "Failed to update ticket status"
            logger.warning("Kanban move reverted ticket_id=%s: %s", ticket_id, e)
            return False
        self.confirm(move, updated)
        self.error = None
        return True
