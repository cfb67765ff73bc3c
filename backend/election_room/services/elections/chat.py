"""Room chat.

Messages are numbered per election under the chat lock so history
replays in insertion order even when two timestamps are equal.
"""
from typing import List

from flask import current_app
from sqlalchemy import func

from election_room import db, entity_locks
from election_room.errors import InvalidRequest
from election_room.locks import chat_key
from election_room.models import Election, Message
from election_room.services.elections.ledger import normalize_username

MAX_MESSAGE_LENGTH = 2000


def system_username() -> str:
    return current_app.config.get('SYSTEM_USERNAME', 'SYSTEM')


def _append(election: Election, username: str, text: str) -> Message:
    with entity_locks.hold(chat_key(election.id)):
        last = (
            db.session.query(func.max(Message.seq))
            .filter(Message.election_id == election.id)
            .scalar()
        )
        msg = Message(election_id=election.id, username=username, message=text, seq=(last or 0) + 1)
        db.session.add(msg)
        db.session.commit()
    return msg


def post_message(election: Election, username: str, text) -> Message:
    username = normalize_username(username)
    if username == system_username():
        raise InvalidRequest(f"'{username}' is a reserved name")
    if not isinstance(text, str) or not text.strip():
        raise InvalidRequest('message must not be empty')
    return _append(election, username, text.strip()[:MAX_MESSAGE_LENGTH])


def post_system_message(election: Election, text: str) -> Message:
    """Announcement from the reserved system sender (bonus grants, winners)."""
    return _append(election, system_username(), text)


def history(election: Election) -> List[dict]:
    rows = (
        Message.query.filter_by(election_id=election.id)
        .order_by(Message.time.asc(), Message.seq.asc())
        .all()
    )
    return [m.to_dict() for m in rows]
