"""
Central constants for the bug tracker.
"""
from __future__ import annotations

import enum


class Role(str, enum.Enum):
    ADMIN = "Admin"
    DEVELOPER = "Developer"
    SUBMITTER = "Submitter"

    @classmethod
    def parse(cls, value: object) -> "Role | None":
        for role in cls:
            if role.value == value:
                return role
        return None


class TicketStatus(str, enum.Enum):
    TODO = "To Do"
    IN_PROGRESS = "In Progress"
    DONE = "Done"

    @classmethod
    def parse(cls, value: object) -> "TicketStatus | None":
        for status in cls:
            if status.value == value:
                return status
        return None


class TicketPriority(str, enum.Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

    @classmethod
    def parse(cls, value: object) -> "TicketPriority | None":
        for priority in cls:
            if priority.value == value:
                return priority
        return None


# Board column order, left to right.
STATUS_COLUMNS: tuple[TicketStatus, ...] = (
    TicketStatus.TODO,
    TicketStatus.IN_PROGRESS,
    TicketStatus.DONE,
)

# Query-string value for "tickets with no assignee".
UNASSIGNED = "unassigned"

DEFAULT_ROLE = Role.SUBMITTER
MIN_PASSWORD_LENGTH = 6
