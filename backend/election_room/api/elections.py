from flask import Blueprint, jsonify, request
from election_room.errors import InvalidRequest, NotFound
from election_room.models import Election
from election_room.services.elections import chat, lifecycle
from election_room.services.elections.participation import ensure_record, payouts_for
from election_room.socketio_events import announce_resolution, broadcast_balances, broadcast_vote
from election_room import socketio


elections = Blueprint('elections', __name__)


def _get_election_or_404(ref) -> Election:
    election = Election.find(ref)
    if election is None:
        raise NotFound('Election')
    return election


@elections.route('/elections', methods=['GET'])
def list_visible_elections():
    rows = Election.query.filter_by(is_visible=True).order_by(Election.created_at.asc()).all()
    return jsonify([e.to_dict() for e in rows])


@elections.route('/elections/all', methods=['GET'])
def list_all_elections():
    rows = Election.query.order_by(Election.created_at.asc()).all()
    return jsonify([e.to_dict() for e in rows])


@elections.route('/elections', methods=['POST'])
def create_election():
    data = request.get_json(silent=True) or {}
    election = lifecycle.create_election(
        title=data.get('title'),
        candidates=data.get('candidates'),
        description=data.get('description'),
        vote_threshold=data.get('voteThreshold'),
        entry_bonus=data.get('entryBonus'),
        vote_cost=data.get('voteCost'),
        is_visible=data.get('isVisible', True),
        legacy_id=data.get('legacyId'),
    )
    return jsonify(election.to_dict()), 201


@elections.route('/elections/<string:election_id>/visibility', methods=['PATCH'])
def update_visibility(election_id):
    data = request.get_json(silent=True) or {}
    if 'isVisible' not in data:
        raise InvalidRequest('isVisible is required')
    election = lifecycle.set_visibility(_get_election_or_404(election_id), data['isVisible'])
    return jsonify(election.to_dict())


@elections.route('/votes/<string:election_id>', methods=['GET'])
def get_votes(election_id):
    election = _get_election_or_404(election_id)
    return jsonify({
        'votes': election.vote_counts,
        'threshold': election.vote_threshold,
        'winner': election.winner,
        'status': election.status,
        'voteCost': election.vote_cost,
    })


@elections.route('/messages/<string:election_id>', methods=['GET'])
def get_messages(election_id):
    election = _get_election_or_404(election_id)
    return jsonify(chat.history(election))


@elections.route('/payouts/<string:election_id>/<string:username>', methods=['GET'])
def get_payouts(election_id, username):
    # Creates the participation record on first access
    record = ensure_record(username, _get_election_or_404(election_id))
    return jsonify({'payouts': payouts_for(record), 'hasVoted': record.has_voted})


@elections.route('/stake', methods=['POST'])
def stake():
    data = request.get_json(silent=True) or {}
    election = _get_election_or_404(data.get('electionId'))
    # The charge is always the election's vote cost; a client-sent amount is ignored
    outcome = lifecycle.cast_vote(election, data.get('username'), data.get('candidate'))
    broadcast_vote(outcome)
    return jsonify({
        'success': True,
        'balance': outcome['balance'],
        'winner': outcome['winner'],
    })


@elections.route('/resolve', methods=['POST'])
def resolve():
    data = request.get_json(silent=True) or {}
    election = _get_election_or_404(data.get('electionId'))
    outcome = lifecycle.resolve(election, data.get('winner'))
    election = outcome['election']
    if outcome['changed']:
        socketio.emit('votes:update', election.vote_counts, to=election.room)
        announce_resolution(election, outcome['results'], manual=True)
        broadcast_balances()
    return jsonify({
        'success': True,
        'winner': outcome['winner'],
        'results': outcome['results'],
    })
