from election_room import db
from flask import current_app
from sqlalchemy import or_
from datetime import datetime, timezone
import json
import uuid


def generate_id():
    """Opaque unique id for every persisted record."""
    return uuid.uuid4().hex


def utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


class Account(db.Model):
    __tablename__ = 'account'
    id = db.Column(db.String(32), primary_key=True, default=generate_id)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    balance = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self):
        return {
            'username': self.username,
            'balance': self.balance,
        }


class Election(db.Model):
    __tablename__ = 'election'
    id = db.Column(db.String(32), primary_key=True, default=generate_id)
    # Short ids such as "1" and "2" used by the seed data
    legacy_id = db.Column(db.String(32), unique=True, nullable=True, index=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    candidates_json = db.Column('candidates', db.Text, nullable=False)
    status = db.Column(db.String(16), nullable=False, default='open')  # open, closed
    winner = db.Column(db.String(120), nullable=True)
    vote_threshold = db.Column(db.Integer, nullable=False)
    vote_counts_json = db.Column('vote_counts', db.Text, nullable=False)
    entry_bonus = db.Column(db.Integer, nullable=False)
    vote_cost = db.Column(db.Integer, nullable=False)
    is_visible = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    start_time = db.Column(db.DateTime(timezone=True), nullable=True)
    end_time = db.Column(db.DateTime(timezone=True), nullable=True)

    def __init__(self, candidates=None, **kwargs):
        cfg = current_app.config
        kwargs.setdefault('vote_threshold', cfg.get('DEFAULT_VOTE_THRESHOLD', 100))
        kwargs.setdefault('entry_bonus', cfg.get('DEFAULT_ENTRY_BONUS', 200))
        kwargs.setdefault('vote_cost', cfg.get('DEFAULT_VOTE_COST', 50))
        kwargs.setdefault('status', 'open')
        kwargs.setdefault('is_visible', True)
        kwargs.setdefault('start_time', utcnow())
        super(Election, self).__init__(**kwargs)
        self.candidates = list(candidates or [])
        if self.vote_counts_json is None:
            self.vote_counts = {c: 0 for c in self.candidates}

    @property
    def candidates(self):
        return json.loads(self.candidates_json) if self.candidates_json else []

    @candidates.setter
    def candidates(self, value):
        self.candidates_json = json.dumps(list(value))

    @property
    def vote_counts(self):
        return json.loads(self.vote_counts_json) if self.vote_counts_json else {}

    @vote_counts.setter
    def vote_counts(self, value):
        self.vote_counts_json = json.dumps(dict(value))

    @property
    def is_open(self):
        return self.status == 'open'

    @property
    def room(self):
        return f"election:{self.id}"

    @classmethod
    def find(cls, ref):
        """Look up an election by opaque id or legacy short id."""
        if not ref:
            return None
        ref = str(ref)
        return cls.query.filter(or_(cls.id == ref, cls.legacy_id == ref)).first()

    def to_dict(self):
        return {
            'id': self.id,
            '_id': self.id,
            'legacyId': self.legacy_id,
            'title': self.title,
            'description': self.description,
            'candidates': self.candidates,
            'status': self.status,
            'winner': self.winner,
            'voteThreshold': self.vote_threshold,
            'voteCounts': self.vote_counts,
            'entryBonus': self.entry_bonus,
            'voteCost': self.vote_cost,
            'isVisible': self.is_visible,
            'createdAt': _iso(self.created_at),
            'startTime': _iso(self.start_time),
            'endTime': _iso(self.end_time),
        }


class Participation(db.Model):
    __tablename__ = 'user_election'
    __table_args__ = (
        db.UniqueConstraint('username', 'election_id', name='uq_user_election'),
    )
    id = db.Column(db.String(32), primary_key=True, default=generate_id)
    username = db.Column(db.String(64), nullable=False, index=True)
    election_id = db.Column(db.String(32), db.ForeignKey('election.id'), nullable=False, index=True)
    has_joined = db.Column(db.Boolean, nullable=False, default=False)
    has_received_bonus = db.Column(db.Boolean, nullable=False, default=False)
    has_voted = db.Column(db.Boolean, nullable=False, default=False)
    has_received_payout = db.Column(db.Boolean, nullable=False, default=False)
    payouts_json = db.Column('payouts', db.Text, nullable=False, default='{}')
    joined_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    @property
    def payouts(self):
        return json.loads(self.payouts_json) if self.payouts_json else {}

    @payouts.setter
    def payouts(self, value):
        self.payouts_json = json.dumps(dict(value))

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'electionId': self.election_id,
            'hasJoined': self.has_joined,
            'hasReceivedBonus': self.has_received_bonus,
            'hasVoted': self.has_voted,
            'payouts': self.payouts,
            'joinedAt': _iso(self.joined_at),
        }


class Stake(db.Model):
    __tablename__ = 'stake'
    id = db.Column(db.String(32), primary_key=True, default=generate_id)
    username = db.Column(db.String(64), nullable=False, index=True)
    election_id = db.Column(db.String(32), db.ForeignKey('election.id'), nullable=False, index=True)
    candidate = db.Column(db.String(120), nullable=False)
    amount = db.Column(db.Integer, nullable=False)
    balance_change = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'electionId': self.election_id,
            'candidate': self.candidate,
            'amount': self.amount,
            'balanceChange': self.balance_change,
        }


class Message(db.Model):
    __tablename__ = 'message'
    id = db.Column(db.String(32), primary_key=True, default=generate_id)
    election_id = db.Column(db.String(32), db.ForeignKey('election.id'), nullable=False, index=True)
    username = db.Column(db.String(64), nullable=False)
    message = db.Column(db.Text, nullable=False)
    time = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    # Insertion order within an election; breaks ties between equal timestamps
    seq = db.Column(db.Integer, nullable=False, default=0, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            '_id': self.id,
            'electionId': self.election_id,
            'username': self.username,
            'message': self.message,
            'time': _iso(self.time),
        }
