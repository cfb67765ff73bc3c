from flask import Blueprint, request, jsonify
from election_room.services.elections import ledger
from election_room.socketio_events import broadcast_balances

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the Election Room server!'})

@main.route('/users', methods=['GET'])
def list_users():
    return jsonify(ledger.snapshot())

@main.route('/transfer', methods=['POST'])
def transfer():
    data = request.get_json(silent=True) or {}
    ledger.transfer(data.get('from'), data.get('to'), data.get('amount'))
    broadcast_balances()
    return jsonify({'success': True, 'balances': ledger.snapshot()})
