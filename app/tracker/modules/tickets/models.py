from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.tracker.constants import TicketPriority, TicketStatus
from app.tracker.models import Base, User, enum_column, utcnow

if TYPE_CHECKING:
    from app.tracker.modules.comments.models import Comment
    from app.tracker.modules.projects.models import Project


class Ticket(Base):
    __tablename__ = "tickets"
    __table_args__ = (
        Index("idx_tickets_project_id", "project_id"),
        Index("idx_tickets_status", "status"),
        Index("idx_tickets_assignee_id", "assignee_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    priority: Mapped[TicketPriority] = mapped_column(
        enum_column(TicketPriority), nullable=False, default=TicketPriority.LOW
    )
    status: Mapped[TicketStatus] = mapped_column(
        enum_column(TicketStatus), nullable=False, default=TicketStatus.TODO
    )

    # Must be a member of the project's team (enforced in the service layer).
    assignee_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    assignee: Mapped[User | None] = relationship(lazy="selectin")
    project: Mapped["Project"] = relationship("Project", back_populates="tickets")
    comments: Mapped[list["Comment"]] = relationship(
        "Comment",
        back_populates="ticket",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
