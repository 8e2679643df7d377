from namegame import db
from datetime import datetime, timezone
import json
import uuid


def _new_id():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


class GameSession(db.Model):
    __tablename__ = 'game_session'
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    code = db.Column(db.String(8), unique=True, nullable=False, index=True)
    host_token_hash = db.Column(db.String(64), nullable=False)
    status = db.Column(db.String(16), nullable=False, default='lobby')  # lobby, revealed, cleared
    reveal_order = db.Column(db.Text, nullable=True)  # JSON-encoded list of submitted texts
    reveal_index = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    members = db.relationship('Member', back_populates='session', cascade='all, delete-orphan')
    submissions = db.relationship('Submission', back_populates='session', cascade='all, delete-orphan')

    @property
    def reveal_list(self):
        if self.reveal_order is None:
            return None
        try:
            return list(json.loads(self.reveal_order))
        except ValueError:
            return []

    def to_dict(self):
        # host_token_hash is never serialized
        return {
            'session_id': self.id,
            'code': self.code,
            'status': self.status,
            'reveal_order': self.reveal_list,
            'reveal_index': self.reveal_index or 0,
        }


class Member(db.Model):
    __tablename__ = 'member'
    __table_args__ = (
        db.UniqueConstraint('session_id', 'client_id', name='uq_member_session_client'),
    )
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    session_id = db.Column(db.String(36), db.ForeignKey('game_session.id'), nullable=False, index=True)
    client_id = db.Column(db.String(128), nullable=False)
    display_name = db.Column(db.String(64), nullable=False)
    joined_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    session = db.relationship('GameSession', back_populates='members')

    def to_dict(self):
        return {
            'id': self.id,
            'display_name': self.display_name,
        }


class Submission(db.Model):
    __tablename__ = 'submission'
    __table_args__ = (
        db.UniqueConstraint('session_id', 'member_id', name='uq_submission_session_member'),
    )
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    session_id = db.Column(db.String(36), db.ForeignKey('game_session.id'), nullable=False, index=True)
    member_id = db.Column(db.String(36), db.ForeignKey('member.id'), nullable=False)
    text = db.Column(db.String(80), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    session = db.relationship('GameSession', back_populates='submissions')
    member = db.relationship('Member')
