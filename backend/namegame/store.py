"""Durable CRUD for sessions, members and submissions.

``SessionStore`` wraps an explicit SQLAlchemy session. Routes build one per
request from ``db.session`` and pass it down; the services never touch the
global handle themselves. Each write commits on its own, so every method is
one atomic step from the caller's point of view.
"""
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from namegame.errors import ConflictError, NotFound, StoreFailure
from namegame.models import GameSession, Member, Submission

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = {'status', 'reveal_order', 'reveal_index'}
_UPSERT_DIALECTS = {'postgresql': postgresql.insert, 'sqlite': sqlite.insert}


class SessionStore:
    def __init__(self, session):
        self.session = session

    # ---- sessions ----

    def create_session(self, code: str, host_token_hash: str) -> str:
        gs = GameSession(id=str(uuid.uuid4()), code=code, host_token_hash=host_token_hash, status='lobby')
        try:
            self.session.add(gs)
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise ConflictError(f'Session code {code} already exists') from exc
        except SQLAlchemyError as exc:
            self._fail(exc)
        return gs.id

    def get_session_by_code(self, code: str) -> GameSession:
        gs = self._read(lambda: self.session.query(GameSession).filter_by(code=code).first())
        if gs is None:
            raise NotFound('Game not found')
        return gs

    def get_session_by_id(self, session_id: str) -> GameSession:
        gs = self._read(lambda: self.session.get(GameSession, session_id))
        if gs is None:
            raise NotFound('Game not found')
        return gs

    def update_session(self, session_id: str, expected: Optional[dict] = None, **fields) -> bool:
        """Write a subset of session fields in one UPDATE statement.

        ``expected`` adds equality conditions to the WHERE clause, turning the
        write into a compare-and-swap. Returns False when no row matched.
        """
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f'Cannot update session fields: {sorted(unknown)}')
        values = dict(fields)
        if 'reveal_order' in values and values['reveal_order'] is not None:
            values['reveal_order'] = json.dumps(list(values['reveal_order']))
        stmt = update(GameSession).where(GameSession.id == session_id)
        for name, value in (expected or {}).items():
            column = getattr(GameSession, name)
            stmt = stmt.where(column.is_(None) if value is None else column == value)
        stmt = stmt.values(**values).execution_options(synchronize_session=False)
        try:
            result = self.session.execute(stmt)
            self.session.commit()
        except SQLAlchemyError as exc:
            self._fail(exc)
        # Later reads in this request must see the new row, not the identity map
        self.session.expire_all()
        return result.rowcount > 0

    def delete_sessions_before(self, cutoff: datetime) -> int:
        try:
            stale = self.session.query(GameSession).filter(GameSession.created_at < cutoff).all()
            for gs in stale:
                self.session.delete(gs)
            self.session.commit()
        except SQLAlchemyError as exc:
            self._fail(exc)
        return len(stale)

    # ---- members ----

    def upsert_member(self, session_id: str, client_id: str, display_name: str) -> str:
        self._upsert(
            Member,
            keys={'session_id': session_id, 'client_id': client_id},
            values={'display_name': display_name},
            inserted={'joined_at': datetime.now(timezone.utc)},
        )
        member = self._read(lambda: self.session.query(Member)
                            .filter_by(session_id=session_id, client_id=client_id).first())
        return member.id

    def get_member(self, member_id: str) -> Member:
        member = self._read(lambda: self.session.get(Member, member_id))
        if member is None:
            raise NotFound('Player not found')
        return member

    def list_members(self, session_id: str) -> List[Member]:
        return self._read(lambda: self.session.query(Member)
                          .filter_by(session_id=session_id)
                          .order_by(Member.joined_at.asc(), Member.id.asc())
                          .all())

    def count_members(self, session_id: str) -> int:
        return self._read(lambda: self.session.query(Member).filter_by(session_id=session_id).count())

    # ---- submissions ----

    def upsert_submission(self, session_id: str, member_id: str, text: str) -> None:
        now = datetime.now(timezone.utc)
        self._upsert(
            Submission,
            keys={'session_id': session_id, 'member_id': member_id},
            values={'text': text, 'updated_at': now},
        )

    def list_submission_texts(self, session_id: str) -> List[str]:
        rows = self._read(lambda: self.session.query(Submission.text)
                          .filter_by(session_id=session_id)
                          .order_by(Submission.id.asc())
                          .all())
        return [row[0] for row in rows]

    def count_submissions(self, session_id: str) -> int:
        return self._read(lambda: self.session.query(Submission).filter_by(session_id=session_id).count())

    def delete_submissions(self, session_id: str) -> int:
        try:
            deleted = self.session.query(Submission).filter_by(session_id=session_id).delete(synchronize_session=False)
            self.session.commit()
        except SQLAlchemyError as exc:
            self._fail(exc)
        return deleted

    # ---- helpers ----

    def _upsert(self, model, keys, values, inserted=None):
        dialect = self.session.get_bind().dialect.name
        insert = _UPSERT_DIALECTS.get(dialect)
        if insert is None:
            raise StoreFailure(f'Upsert is not supported on {dialect}')
        row = {'id': str(uuid.uuid4()), **keys, **values, **(inserted or {})}
        stmt = insert(model).values(**row).on_conflict_do_update(
            index_elements=list(keys),
            set_=values,
        )
        try:
            self.session.execute(stmt)
            self.session.commit()
        except SQLAlchemyError as exc:
            self._fail(exc)
        self.session.expire_all()

    def _read(self, query):
        try:
            return query()
        except SQLAlchemyError as exc:
            self._fail(exc)

    def _fail(self, exc):
        self.session.rollback()
        logger.error(f"[store] {type(exc).__name__}: {exc}")
        raise StoreFailure() from exc
