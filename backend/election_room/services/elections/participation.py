"""Per-user, per-election participation records.

The registry owns the one-bonus and one-vote rules. Each flag is flipped
in the same critical section (the user's lock) and the same transaction
as the balance change that depends on it.
"""
from typing import Dict, Tuple

from flask import current_app

from election_room import db, entity_locks
from election_room.errors import InvalidState, NotFound
from election_room.locks import user_key
from election_room.models import Account, Election, Participation
from election_room.services.elections import ledger, payouts


def resolve_election(election_or_ref) -> Election:
    if isinstance(election_or_ref, Election):
        return election_or_ref
    election = Election.find(election_or_ref)
    if election is None:
        raise NotFound('Election')
    return election


def find_record(username: str, election_id: str):
    return (
        Participation.query.filter_by(username=username, election_id=election_id)
        .populate_existing()
        .with_for_update()
        .first()
    )


def get_or_create_record(username: str, election) -> Participation:
    """Load the caller's record, creating it with a fresh payout table.

    Payouts are generated exactly once; later calls return the stored table.
    """
    election = resolve_election(election)
    username = ledger.normalize_username(username)
    record = find_record(username, election.id)
    if record is not None:
        if not record.has_joined:
            record.has_joined = True
            db.session.add(record)
        return record

    generate = payouts.strategy(current_app.config.get('PAYOUT_STRATEGY'))
    table = generate(election.candidates, payouts.derive_user_index(username))
    record = Participation(
        username=username,
        election_id=election.id,
        has_joined=True,
        has_received_bonus=False,
        has_voted=False,
        has_received_payout=False,
    )
    record.payouts = table
    db.session.add(record)
    db.session.flush()
    current_app.logger.info(f"[participation] created user={username} election={election.id} payouts={table}")
    return record


def grant_entry_bonus_if_needed(record: Participation, bonus_amount: int) -> bool:
    if record.has_received_bonus:
        return False
    ledger.credit(record.username, bonus_amount)
    record.has_joined = True
    record.has_received_bonus = True
    db.session.add(record)
    current_app.logger.info(f"[bonus] user={record.username} election={record.election_id} amount={bonus_amount}")
    return True


def mark_voted(record: Participation) -> Participation:
    if record.has_voted:
        raise InvalidState('You have already voted in this election', code='ALREADY_VOTED')
    record.has_voted = True
    db.session.add(record)
    return record


def payouts_for(record: Participation) -> Dict[str, int]:
    return dict(record.payouts)


def join_election(username: str, election_ref) -> Tuple[Participation, Account, bool]:
    """Register ``username`` in an election and grant the entry bonus once."""
    election = resolve_election(election_ref)
    username = ledger.normalize_username(username)
    with entity_locks.hold(user_key(username)):
        try:
            record = get_or_create_record(username, election)
            granted = grant_entry_bonus_if_needed(record, election.entry_bonus)
            account = ledger.get_or_create_account(username)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
    current_app.logger.info(f"[join] user={username} election={election.id} bonus_granted={granted}")
    return record, account, granted


def ensure_record(username: str, election_ref) -> Participation:
    """Get-or-create without any bonus; used by read endpoints."""
    election = resolve_election(election_ref)
    username = ledger.normalize_username(username)
    with entity_locks.hold(user_key(username)):
        try:
            record = get_or_create_record(username, election)
            ledger.get_or_create_account(username)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
    return record
