from concurrent.futures import ThreadPoolExecutor

from election_room import db
from election_room.errors import AppError
from election_room.models import Account, Election, Participation, Stake
from election_room.services.elections import lifecycle, participation

WORKERS = 8


def _run_in_app(app, fn, *args):
    with app.app_context():
        try:
            return fn(*args)
        except AppError as exc:
            return exc.code


def _fan_out(app, fn, calls):
    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        futures = [pool.submit(_run_in_app, app, fn, *args) for args in calls]
        return [f.result() for f in futures]


def _join(username, election_id):
    _, _, granted = participation.join_election(username, election_id)
    return granted


def _vote(election_id, username, candidate):
    lifecycle.cast_vote(election_id, username, candidate)
    return 'ok'


def test_concurrent_joins_grant_bonus_once(threaded_app, make_election):
    eid = make_election(entry_bonus=200).id

    results = _fan_out(threaded_app, _join, [('Alice', eid)] * WORKERS)

    assert results.count(True) == 1
    assert results.count(False) == WORKERS - 1
    db.session.expire_all()
    assert Account.query.filter_by(username='Alice').one().balance == 1200
    assert Participation.query.filter_by(username='Alice').count() == 1


def test_concurrent_votes_by_one_user_count_once(threaded_app, make_election):
    eid = make_election(vote_threshold=100, vote_cost=50).id
    participation.join_election('Bob', eid)

    results = _fan_out(threaded_app, _vote, [(eid, 'Bob', 'A')] * WORKERS)

    assert results.count('ok') == 1
    assert results.count('ALREADY_VOTED') == WORKERS - 1
    db.session.expire_all()
    assert Account.query.filter_by(username='Bob').one().balance == 1150
    assert db.session.get(Election, eid).vote_counts == {'A': 1, 'B': 0}
    assert Stake.query.filter_by(username='Bob').count() == 1


def test_concurrent_votes_resolve_once_and_pay_once(threaded_app, make_election):
    eid = make_election(vote_threshold=3, vote_cost=50).id
    names = [f"voter{i}" for i in range(6)]
    for name in names:
        participation.join_election(name, eid)

    results = _fan_out(threaded_app, _vote, [(eid, name, 'A') for name in names])

    assert results.count('ok') == 3
    assert results.count('ELECTION_CLOSED') == 3
    db.session.expire_all()
    election = db.session.get(Election, eid)
    assert election.status == 'closed'
    assert election.winner == 'A'
    assert election.vote_counts == {'A': 3, 'B': 0}

    for name, outcome in zip(names, results):
        record = Participation.query.filter_by(username=name, election_id=eid).one()
        balance = Account.query.filter_by(username=name).one().balance
        if outcome == 'ok':
            assert balance == 1150 + record.payouts['A']
            assert record.has_received_payout
        else:
            assert balance == 1200
            assert not record.has_voted
