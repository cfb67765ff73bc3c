"""Election lifecycle: open -> closed.

Locking:

- ``cast_vote`` holds the election lock for the whole vote-and-resolve
  sequence and the voter's lock while the vote transaction is applied.
- Payout distribution runs under the election lock and takes each
  participant's lock in turn, one at a time, after the voter's lock has
  been released. User locks are never held while waiting for another lock
  (except transfers, which take two user locks in sorted order).
"""
from typing import List, Optional

from flask import current_app

from election_room import db, entity_locks
from election_room.errors import InsufficientFunds, InvalidRequest, InvalidState
from election_room.locks import election_key, user_key
from election_room.models import Account, Election, Participation, Stake, utcnow
from election_room.services.elections import ledger
from election_room.services.elections.participation import (
    find_record,
    get_or_create_record,
    mark_voted,
    payouts_for,
    resolve_election,
)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def create_election(title, candidates, description=None, vote_threshold=None,
                    entry_bonus=None, vote_cost=None, is_visible=True, legacy_id=None) -> Election:
    if not isinstance(title, str) or not title.strip():
        raise InvalidRequest('title is required')
    if not isinstance(candidates, list) or not candidates:
        raise InvalidRequest('candidates must be a non-empty list')
    names = []
    for c in candidates:
        if not isinstance(c, str) or not c.strip():
            raise InvalidRequest('candidate names must be non-empty strings')
        names.append(c.strip())
    if len(set(names)) != len(names):
        raise InvalidRequest('candidate names must be unique')
    if vote_threshold is not None and (not _is_int(vote_threshold) or vote_threshold <= 0):
        raise InvalidRequest('voteThreshold must be a positive integer')
    for label, value in (('entryBonus', entry_bonus), ('voteCost', vote_cost)):
        if value is not None and (not _is_int(value) or value < 0):
            raise InvalidRequest(f"{label} must be a non-negative integer")
    if not isinstance(is_visible, bool):
        raise InvalidRequest('isVisible must be a boolean')
    if legacy_id is not None:
        legacy_id = str(legacy_id)
        if Election.find(legacy_id) is not None:
            raise InvalidState(f"election id '{legacy_id}' is already in use", code='DUPLICATE_ID')

    options = {
        'vote_threshold': vote_threshold,
        'entry_bonus': entry_bonus,
        'vote_cost': vote_cost,
    }
    election = Election(
        title=title.strip(),
        description=description,
        candidates=names,
        is_visible=is_visible,
        legacy_id=legacy_id,
        **{k: v for k, v in options.items() if v is not None},
    )
    db.session.add(election)
    db.session.commit()
    current_app.logger.info(f"[election] created id={election.id} title={election.title!r} candidates={names}")
    return election


def _reload(election_id: str) -> Election:
    return (
        Election.query.filter_by(id=election_id)
        .populate_existing()
        .with_for_update()
        .first()
    )


def set_visibility(election_ref, is_visible) -> Election:
    if not isinstance(is_visible, bool):
        raise InvalidRequest('isVisible must be a boolean')
    election = resolve_election(election_ref)
    with entity_locks.hold(election_key(election.id)):
        election = _reload(election.id)
        election.is_visible = is_visible
        db.session.add(election)
        db.session.commit()
    current_app.logger.info(f"[election] visibility id={election.id} visible={is_visible}")
    return election


def evaluate_win_condition(election: Election) -> Optional[str]:
    """First candidate, in declared order, whose tally meets the threshold."""
    counts = election.vote_counts
    for candidate in election.candidates:
        if counts.get(candidate, 0) >= election.vote_threshold:
            return candidate
    return None


def _close(election: Election, winner: str) -> None:
    election.status = 'closed'
    election.winner = winner
    election.end_time = utcnow()
    db.session.add(election)


def _distribute_payouts(election: Election) -> List[dict]:
    """Credit every voter's payout for the winner, once per participant.

    Caller holds the election lock. Participants already paid are skipped,
    so calling this again after a partial failure only settles the rest.
    """
    voters = (
        Participation.query.filter_by(election_id=election.id, has_voted=True)
        .order_by(Participation.joined_at.asc())
        .all()
    )
    winner = election.winner
    for username in [v.username for v in voters]:
        with entity_locks.hold(user_key(username)):
            try:
                record = find_record(username, election.id)
                if record.has_received_payout:
                    continue
                amount = payouts_for(record).get(winner, 0)
                ledger.credit(username, amount)
                record.has_received_payout = True
                db.session.add(record)
                stake = Stake.query.filter_by(election_id=election.id, username=username).first()
                if stake is not None:
                    stake.balance_change = amount
                    db.session.add(stake)
                db.session.commit()
            except Exception:
                db.session.rollback()
                raise
            current_app.logger.info(f"[payout] election={election.id} user={username} winner={winner} amount={amount}")
    return stake_results(election)


def stake_results(election: Election) -> List[dict]:
    rows = Stake.query.filter_by(election_id=election.id).order_by(Stake.created_at.asc()).all()
    return [s.to_dict() for s in rows]


def cast_vote(election_ref, username: str, candidate) -> dict:
    """Charge the vote cost, record the vote and resolve on threshold.

    Either every effect of the vote is committed or none is.
    """
    election = resolve_election(election_ref)
    username = ledger.normalize_username(username)
    with entity_locks.hold(election_key(election.id)):
        election = _reload(election.id)
        with entity_locks.hold(user_key(username)):
            try:
                if not election.is_open:
                    raise InvalidState('Election is closed', code='ELECTION_CLOSED')
                if not election.is_visible:
                    raise InvalidState('Election is not currently open for voting', code='ELECTION_HIDDEN')
                if not isinstance(candidate, str) or candidate not in election.candidates:
                    raise InvalidRequest(f"'{candidate}' is not a candidate in this election")
                record = get_or_create_record(username, election)
                account = ledger.get_or_create_account(username)
                if account.balance <= 0:
                    raise InsufficientFunds(required=election.vote_cost, available=account.balance)
                mark_voted(record)
                ledger.debit(username, election.vote_cost)
                stake = Stake(
                    username=username,
                    election_id=election.id,
                    candidate=candidate,
                    amount=election.vote_cost,
                    balance_change=0,
                )
                db.session.add(stake)
                counts = election.vote_counts
                counts[candidate] = counts.get(candidate, 0) + 1
                election.vote_counts = counts
                winner = evaluate_win_condition(election)
                if winner is not None:
                    _close(election, winner)
                db.session.add(election)
                db.session.commit()
            except Exception:
                db.session.rollback()
                raise
        current_app.logger.info(
            f"[vote] election={election.id} user={username} candidate={candidate} tally={election.vote_counts}"
        )

        results = []
        if winner is not None:
            current_app.logger.info(f"[resolve] election={election.id} winner={winner} trigger=threshold")
            results = _distribute_payouts(election)

    account = Account.query.filter_by(username=username).populate_existing().first()
    return {
        'election': election,
        'stake': stake,
        'balance': account.balance,
        'winner': winner,
        'results': results,
    }


def resolve(election_ref, winner) -> dict:
    """Close the election with ``winner`` and pay out. No-op once closed."""
    election = resolve_election(election_ref)
    with entity_locks.hold(election_key(election.id)):
        election = _reload(election.id)
        changed = False
        if election.is_open:
            if not isinstance(winner, str) or winner not in election.candidates:
                raise InvalidRequest(f"'{winner}' is not a candidate in this election")
            try:
                _close(election, winner)
                db.session.commit()
            except Exception:
                db.session.rollback()
                raise
            changed = True
            current_app.logger.info(f"[resolve] election={election.id} winner={winner} trigger=manual")
        results = _distribute_payouts(election)
    return {
        'election': election,
        'winner': election.winner,
        'results': results,
        'changed': changed,
    }
