"""Database models for the cleanup run ledger."""

from __future__ import annotations

from datetime import datetime
from sqlalchemy import (
    String,
    DateTime,
    Boolean,
    Integer,
    Text,
    JSON,
    ForeignKey,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from attachment_store.db.session import Base
from attachment_store.util.time import utcnow


class CleanupRun(Base):
    __tablename__ = "cleanup_runs"

    run_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    started_at: Mapped[datetime] = mapped_column(DateTime)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    host: Mapped[str | None] = mapped_column(String(256), nullable=True)
    dry_run: Mapped[bool] = mapped_column(Boolean, default=False)
    status: Mapped[str] = mapped_column(String(16), default="running")
    stats: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    events: Mapped[list["CleanupEvent"]] = relationship(
        "CleanupEvent",
        back_populates="run",
        cascade="all, delete-orphan",
        order_by="CleanupEvent.created_at",
    )


class CleanupEvent(Base):
    __tablename__ = "cleanup_events"

    event_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    run_id: Mapped[str] = mapped_column(String(64), ForeignKey("cleanup_runs.run_id"))
    stage: Mapped[str] = mapped_column(String(32))
    path: Mapped[str | None] = mapped_column(Text, nullable=True)
    target_path: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16))
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    size_bytes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    run: Mapped["CleanupRun"] = relationship("CleanupRun", back_populates="events")
