from flask_socketio import join_room, leave_room, emit
from election_room import socketio, db
from flask import current_app, request
from election_room.errors import AppError
from election_room.models import Election
from election_room.services.elections import chat, ledger
from election_room.services.elections.participation import join_election, payouts_for, resolve_election
from typing import Any, Dict, List

NAMESPACE = '/'

# Session -> active room binding (at most one room per socket)
_sid_to_ctx: Dict[str, Dict[str, Any]] = {}


def _get_sid() -> str:
    # request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _bind(election: Election, username: str) -> None:
    sid = _get_sid()
    previous = _sid_to_ctx.get(sid)
    if previous and previous['room'] != election.room:
        leave_room(previous['room'])
    join_room(election.room)
    _sid_to_ctx[sid] = {'room': election.room, 'election_id': election.id, 'username': username}


def handle_connect():
    emit('connected', {'message': 'Connected'})


def handle_disconnect(*_args):
    ctx = _sid_to_ctx.pop(_get_sid(), None)
    if ctx:
        current_app.logger.info(f"[disconnect] user={ctx['username']} election={ctx['election_id']}")


def handle_join(data):
    data = data or {}
    try:
        election = resolve_election(data.get('electionId'))
        record, account, granted = join_election(data.get('username'), election)
    except AppError as exc:
        emit('error', {'message': exc.message})
        return

    _bind(election, record.username)
    if granted:
        msg = chat.post_system_message(
            election, f"🎉 {record.username} joined and received {election.entry_bonus} coins!"
        )
        emit('chat:message', msg.to_dict(), to=election.room, include_self=False)

    emit('chat:history', chat.history(election))
    emit('joined', {
        'username': record.username,
        'balance': account.balance,
        'election': election.to_dict(),
        'payouts': payouts_for(record),
        'hasVoted': record.has_voted,
    })
    broadcast_balances()


def handle_leave(data):
    ctx = _sid_to_ctx.pop(_get_sid(), None)
    if not ctx:
        emit('error', {'message': 'Not in an election room'})
        return
    leave_room(ctx['room'])
    emit('left', {'electionId': ctx['election_id']})


def handle_chat_message(data):
    data = data or {}
    try:
        election = resolve_election(data.get('electionId'))
        msg = chat.post_message(election, data.get('username'), data.get('message'))
    except AppError as exc:
        emit('error', {'message': exc.message})
        return
    emit('chat:message', msg.to_dict(), to=election.room)


def handle_error(exc):
    db.session.rollback()
    current_app.logger.exception(f"[socket-error] {exc.__class__.__name__}")
    emit('error', {'message': 'Internal server error'})


# ---- Broadcast helpers used by HTTP routes ----

def broadcast_balances(room: str = None) -> None:
    if room:
        socketio.emit('balances:update', ledger.snapshot(), to=room, namespace=NAMESPACE)
    else:
        socketio.emit('balances:update', ledger.snapshot(), namespace=NAMESPACE)


def broadcast_vote(outcome: Dict[str, Any]) -> None:
    election = outcome['election']
    stake = outcome['stake']
    socketio.emit('stake:placed', {
        'username': stake.username,
        'candidate': stake.candidate,
        'amount': stake.amount,
        'balance': outcome['balance'],
    }, to=election.room, namespace=NAMESPACE)
    socketio.emit('votes:update', election.vote_counts, to=election.room, namespace=NAMESPACE)
    broadcast_balances(election.room)
    if outcome['winner']:
        announce_resolution(election, outcome['results'])


def announce_resolution(election: Election, results: List[dict], manual: bool = False) -> None:
    winner = election.winner
    if manual:
        text = f"🏆 {winner} has been declared the winner!"
    else:
        text = f"🏆 {winner} wins with {election.vote_counts.get(winner, 0)} votes!"
    msg = chat.post_system_message(election, text)
    socketio.emit('chat:message', msg.to_dict(), to=election.room, namespace=NAMESPACE)
    socketio.emit('election:resolved', {'winner': winner, 'results': results}, to=election.room, namespace=NAMESPACE)


def register_socketio_handlers(namespace: str = NAMESPACE) -> None:
    """Register Socket.IO event handlers on ``namespace``."""
    socketio.on_event('connect', handle_connect, namespace=namespace)
    socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
    socketio.on_event('join', handle_join, namespace=namespace)
    socketio.on_event('leave', handle_leave, namespace=namespace)
    socketio.on_event('chat:message', handle_chat_message, namespace=namespace)
    socketio.on_error(namespace)(handle_error)
