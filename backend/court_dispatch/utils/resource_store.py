"""
Resource Store: read/list access to courts, matches and dispatch config, plus the
compare-and-set primitive every mutation goes through.

Writes are conditional UPDATE statements: the WHERE clause carries the expected
current values, and a row count other than 1 means state moved between the read
and the write. A transaction groups several such updates so a court and a match
are always linked (or unlinked) together.
"""
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Type

from sqlalchemy import update
from sqlmodel import Session, SQLModel, select

from court_dispatch.models.court import Court
from court_dispatch.models.dispatch_config import DispatchConfig
from court_dispatch.models.match import STATUS_CALLING, STATUS_WAITING, Match
from court_dispatch.models.player_rest import PlayerRest


class PreconditionFailed(Exception):
    """A compare-and-set found the record in a different state than expected"""
    pass


class ResourceStore:
    def __init__(self, session: Session):
        self.session = session

    # ── Reads ────────────────────────────────────────────────────────────

    def list_courts(self, tournament_id: int) -> List[Court]:
        return list(
            self.session.exec(
                select(Court).where(Court.tournament_id == tournament_id).order_by(Court.number)
            ).all()
        )

    def list_matches(self, tournament_id: int, status: Optional[str] = None) -> List[Match]:
        query = select(Match).where(Match.tournament_id == tournament_id)
        if status is not None:
            query = query.where(Match.status == status)
        return list(self.session.exec(query.order_by(Match.created_at, Match.id)).all())

    def get_config(self, tournament_id: int) -> DispatchConfig:
        """Return the tournament's dispatch config, creating the default one if missing."""
        config = self.session.exec(
            select(DispatchConfig).where(DispatchConfig.tournament_id == tournament_id)
        ).first()
        if config is None:
            config = DispatchConfig(tournament_id=tournament_id)
            self.session.add(config)
            self.session.commit()
            self.session.refresh(config)
        return config

    def player_rest_map(self, tournament_id: int) -> Dict[str, datetime]:
        rows = self.session.exec(select(PlayerRest).where(PlayerRest.tournament_id == tournament_id)).all()
        return {r.player_id: r.last_match_finished_at for r in rows}

    # ── Writes ───────────────────────────────────────────────────────────

    @contextmanager
    def transaction(self) -> Iterator["ResourceStore"]:
        """Commit everything done inside the block, or nothing."""
        try:
            yield self
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

    def compare_and_set(
        self,
        model: Type[SQLModel],
        record_id: int,
        expected: Dict[str, Any],
        values: Dict[str, Any],
    ) -> None:
        """
        UPDATE model SET values WHERE id = record_id AND every expected column matches.

        An expected value of None matches SQL NULL; a tuple matches any of its members.
        Raises PreconditionFailed unless exactly one row was updated.
        """
        stmt = update(model).where(model.id == record_id)
        for column_name, value in expected.items():
            column = getattr(model, column_name)
            if value is None:
                stmt = stmt.where(column.is_(None))
            elif isinstance(value, tuple):
                stmt = stmt.where(column.in_(value))
            else:
                stmt = stmt.where(column == value)
        stmt = stmt.values(**values).execution_options(synchronize_session=False)

        result = self.session.execute(stmt)
        if result.rowcount != 1:
            raise PreconditionFailed(
                f"{model.__name__} {record_id} no longer matches {sorted(expected)}"
            )

    def commit_assignment(self, court_id: int, match_id: int, now: datetime) -> bool:
        """
        Atomically put a waiting match on a free court (status -> calling).

        Returns False without changing anything when the court is no longer free
        or the match is no longer waiting.
        """
        try:
            with self.transaction():
                self.compare_and_set(
                    Court,
                    court_id,
                    {"current_match_id": None, "manually_frozen": False, "is_active": True},
                    {"current_match_id": match_id, "updated_at": now},
                )
                self.compare_and_set(
                    Match,
                    match_id,
                    {"status": STATUS_WAITING},
                    {
                        "status": STATUS_CALLING,
                        "court_id": court_id,
                        "reserved_court_id": None,
                        "available_at": None,
                        "requeue_first": False,
                        "updated_at": now,
                    },
                )
        except PreconditionFailed:
            return False
        return True
