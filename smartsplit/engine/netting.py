"""
Balance-netting primitive shared by the peer settlement optimizer and the
multi-entity cashflow allocator.

Both problems reduce to the same shape: a set of nodes with a signed
position in cents, where positive means "should receive" and negative
means "should pay". Callers turn their own nodes (members, entities) into
positions, and this module pairs the largest payer with the largest
receiver until one side runs out.
"""

from typing import Callable, Hashable, Iterable, Mapping, NamedTuple, Optional

Party = tuple[Hashable, int]


class Match(NamedTuple):
    payer: Hashable
    receiver: Hashable
    amount: int


def partition(
    positions: Mapping[Hashable, int],
    threshold: int = 0,
) -> tuple[list[Party], list[Party]]:
    """
    Split signed positions into (receivers, payers), both as positive amounts.

    Positions within [-threshold, threshold] are left out.
    """
    receivers = [(node, amount) for node, amount in positions.items() if amount > threshold]
    payers = [(node, -amount) for node, amount in positions.items() if amount < -threshold]
    return receivers, payers


def positions_from(
    nodes: Iterable,
    key: Callable[[object], Hashable],
    deviation: Callable[[object], int],
) -> dict[Hashable, int]:
    """Map each node to its signed position through a target-deviation function."""
    return {key(node): deviation(node) for node in nodes}


def _largest_first(parties: Iterable[Party], floor: int) -> list[list]:
    kept = [[node, amount] for node, amount in parties if amount >= floor]
    kept.sort(key=lambda p: (-p[1], str(p[0])))
    return kept


def match_largest_first(
    receivers: Iterable[Party],
    payers: Iterable[Party],
    floor: int = 1,
    cap: Optional[int] = None,
) -> list[Match]:
    """
    Greedy largest-to-largest matching.

    Both sides are sorted by amount descending, then by str(node) so ties
    resolve the same way on every run. The current payer pays the current
    receiver min(both remainders, cap); a party is retired once its
    remainder drops below floor. Parties that start below floor never take
    part, so every match is at least floor.

    Without a cap, each match retires at least one party, which bounds the
    number of matches by (parties - 1).
    """
    if floor < 1:
        raise ValueError("floor must be at least one minor unit")
    if cap is not None and cap < floor:
        raise ValueError("cap cannot be below floor")

    takers = _largest_first(receivers, floor)
    givers = _largest_first(payers, floor)

    matches: list[Match] = []
    i = j = 0
    while i < len(givers) and j < len(takers):
        giver, taker = givers[i], takers[j]
        amount = min(giver[1], taker[1])
        if cap is not None:
            amount = min(amount, cap)

        matches.append(Match(giver[0], taker[0], amount))
        giver[1] -= amount
        taker[1] -= amount

        if giver[1] < floor:
            i += 1
        if taker[1] < floor:
            j += 1

    return matches
