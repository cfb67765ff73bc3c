"""Personalized payout tables.

Every participant gets a private table mapping each candidate to the coins
they gain (or lose) if that candidate wins. Tables are built from a stable
per-username index so different users are pushed toward different
candidates, while the middle candidate stays attractive for everyone.

Random variance is cosmetic only; pass a seeded ``random.Random`` to make
a table reproducible.
"""
import random
from typing import Callable, Dict, List, Optional

Payouts = Dict[str, int]


def derive_user_index(username: str) -> int:
    """Stable non-negative index for ``username`` (31-multiplier hash, 32-bit)."""
    h = 0
    for ch in username:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


def _variance(rng: random.Random, spread: int) -> int:
    return rng.randrange(-spread, spread)


def _ensure_positive(payouts: Payouts, candidates: List[str], favorite_index: int) -> Payouts:
    if all(v <= 0 for v in payouts.values()):
        favorite = candidates[favorite_index]
        payouts[favorite] = abs(payouts[favorite]) + 30
    return payouts


def _check(candidates: List[str]) -> None:
    if not candidates:
        raise ValueError('at least one candidate is required')


def generate_equilibrium_payouts(candidates: List[str], user_index: int = 0,
                                 rng: Optional[random.Random] = None) -> Payouts:
    """Favorite gets the top band, the middle candidate a moderate gain for all."""
    _check(candidates)
    rng = rng or random.Random()
    count = len(candidates)
    favorite_index = user_index % count
    equilibrium_index = count // 2
    payouts: Payouts = {}
    for index, candidate in enumerate(candidates):
        if index == favorite_index:
            payouts[candidate] = 120 + _variance(rng, 40)
        elif index == equilibrium_index:
            payouts[candidate] = 40 + _variance(rng, 15)
        else:
            options = [
                -60 + _variance(rng, 20),
                -20 + _variance(rng, 10),
                10 + _variance(rng, 5),
                50 + _variance(rng, 15),
            ]
            payouts[candidate] = options[(user_index * 11 + index * 17) % len(options)]
    return _ensure_positive(payouts, candidates, favorite_index)


def generate_favorite_payouts(candidates: List[str], user_index: int = 0,
                              rng: Optional[random.Random] = None) -> Payouts:
    """One best choice per user; everything else from a fixed spread of bands."""
    _check(candidates)
    rng = rng or random.Random()
    favorite_index = user_index % len(candidates)
    payouts: Payouts = {}
    for index, candidate in enumerate(candidates):
        if index == favorite_index:
            payouts[candidate] = 150 + _variance(rng, 20)
        else:
            options = [
                60 + _variance(rng, 15),
                20 + _variance(rng, 10),
                -30 + _variance(rng, 10),
                -80 + _variance(rng, 15),
            ]
            payouts[candidate] = options[(user_index * 7 + index * 13) % len(options)]
    return _ensure_positive(payouts, candidates, favorite_index)


def generate_competitive_payouts(candidates: List[str], user_index: int = 0,
                                 rng: Optional[random.Random] = None) -> Payouts:
    """Best and worst candidate rotate per user; the rest are moderate."""
    _check(candidates)
    rng = rng or random.Random()
    count = len(candidates)
    best_index = user_index % count
    worst_index = (user_index + 1) % count
    payouts: Payouts = {}
    for index, candidate in enumerate(candidates):
        if index == best_index:
            payouts[candidate] = 150 + _variance(rng, 30)
        elif index == worst_index:
            payouts[candidate] = -70 + _variance(rng, 20)
        else:
            payouts[candidate] = 25 + _variance(rng, 20)
    return _ensure_positive(payouts, candidates, best_index)


STRATEGIES: Dict[str, Callable[..., Payouts]] = {
    'equilibrium': generate_equilibrium_payouts,
    'favorite': generate_favorite_payouts,
    'competitive': generate_competitive_payouts,
}

generate_payouts = generate_equilibrium_payouts


def strategy(name: Optional[str]) -> Callable[..., Payouts]:
    """Resolve a configured strategy name, defaulting to equilibrium."""
    if not name:
        return generate_payouts
    try:
        return STRATEGIES[name]
    except KeyError:
        raise ValueError(f"unknown payout strategy: {name}") from None
