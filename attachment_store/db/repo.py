"""Repository layer for the cleanup run ledger."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import socket
import uuid

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from attachment_store.db.models import CleanupRun, CleanupEvent
from attachment_store.util.time import utcnow


@dataclass(frozen=True)
class RunHandle:
    run_id: str


class Repository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def start_run(self, dry_run: bool = False) -> RunHandle:
        run_id = uuid.uuid4().hex
        run = CleanupRun(
            run_id=run_id,
            started_at=utcnow(),
            host=socket.gethostname(),
            dry_run=dry_run,
            status="running",
        )
        self.session.add(run)
        self.session.commit()
        return RunHandle(run_id=run_id)

    def finish_run(self, run_id: str, status: str, stats: dict | None = None) -> None:
        stmt = (
            update(CleanupRun)
            .where(CleanupRun.run_id == run_id)
            .values(finished_at=utcnow(), status=status, stats=stats)
        )
        self.session.execute(stmt)
        self.session.commit()

    def add_events(self, run_id: str, payloads: list[dict]) -> None:
        for payload in payloads:
            self.session.add(
                CleanupEvent(
                    event_id=uuid.uuid4().hex,
                    run_id=run_id,
                    created_at=utcnow(),
                    **payload,
                )
            )
        self.session.commit()

    def recent_runs(self, since: datetime | None = None, limit: int | None = None) -> list[CleanupRun]:
        stmt = select(CleanupRun).order_by(CleanupRun.started_at.desc())
        if since:
            stmt = stmt.where(CleanupRun.started_at >= since)
        if limit:
            stmt = stmt.limit(limit)
        return list(self.session.execute(stmt).scalars())

    def events_for_run(self, run_id: str) -> list[CleanupEvent]:
        stmt = (
            select(CleanupEvent)
            .where(CleanupEvent.run_id == run_id)
            .order_by(CleanupEvent.created_at, CleanupEvent.event_id)
        )
        return list(self.session.execute(stmt).scalars())
