from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.tracker.models import Base, User, utcnow

if TYPE_CHECKING:
    from app.tracker.modules.tickets.models import Ticket


class ProjectMember(Base):
    """Team membership. The composite key keeps each user on a team at most once."""

    __tablename__ = "project_members"
    __table_args__ = (
        Index("idx_project_members_user_id", "user_id"),
    )

    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)


class Project(Base):
    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    team_members: Mapped[list[User]] = relationship(
        secondary="project_members",
        order_by="ProjectMember.joined_at",
        lazy="selectin",
    )
    tickets: Mapped[list["Ticket"]] = relationship(
        "Ticket",
        back_populates="project",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def has_member(self, user: User | None) -> bool:
        if user is None:
            return False
        return any(m.id == user.id for m in self.team_members)
