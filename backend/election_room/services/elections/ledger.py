"""Account balances.

All balance mutations go through :func:`debit` and :func:`credit`. They
expect the caller to hold the user's lock (see ``election_room.locks``)
and to commit; :func:`transfer` is a complete operation of its own.
"""
from typing import List, Tuple

from flask import current_app

from election_room import db, entity_locks
from election_room.errors import InsufficientFunds, InvalidRequest
from election_room.locks import user_key
from election_room.models import Account


def normalize_username(username) -> str:
    if not isinstance(username, str) or not username.strip():
        raise InvalidRequest('username is required')
    return username.strip()


def _load(username: str):
    # Re-read under lock so a value cached earlier in this session is not reused
    return (
        Account.query.filter_by(username=username)
        .populate_existing()
        .with_for_update()
        .first()
    )


def get_or_create_account(username: str) -> Account:
    username = normalize_username(username)
    account = _load(username)
    if account is None:
        account = Account(username=username, balance=current_app.config.get('STARTING_BALANCE', 1000))
        db.session.add(account)
        db.session.flush()
        current_app.logger.info(f"[account] created user={username} balance={account.balance}")
    return account


def debit(username: str, amount: int) -> Account:
    """Voluntary spend. Rejected when it would overdraw the account."""
    if amount < 0:
        raise InvalidRequest('amount must not be negative')
    account = get_or_create_account(username)
    if amount > account.balance or (account.balance <= 0 and amount > 0):
        raise InsufficientFunds(required=amount, available=account.balance)
    account.balance -= amount
    db.session.add(account)
    return account


def credit(username: str, amount: int) -> Account:
    """Apply a gain or a loss. Payout losses may take the balance below zero."""
    account = get_or_create_account(username)
    account.balance += amount
    db.session.add(account)
    return account


def snapshot() -> List[dict]:
    return [a.to_dict() for a in Account.query.order_by(Account.username).all()]


def transfer(sender: str, receiver: str, amount) -> Tuple[Account, Account]:
    sender = normalize_username(sender)
    receiver = normalize_username(receiver)
    if sender == receiver:
        raise InvalidRequest('cannot transfer to yourself')
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidRequest('amount must be a positive integer')

    with entity_locks.hold(user_key(sender), user_key(receiver)):
        try:
            source = debit(sender, amount)
            target = credit(receiver, amount)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
    current_app.logger.info(f"[transfer] from={sender} to={receiver} amount={amount}")
    return source, target
