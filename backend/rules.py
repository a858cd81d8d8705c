from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from models import Card, Combination

SUITS = ["♠", "♥", "♦", "♣"]

# Primary order: 3 lowest, 2 highest. Used for every comparison.
RANK_ORDER = ["3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K", "A", "2"]
# Alternate order, only for recognising low straights such as A-2-3 or 2-3-4-5.
LOW_STRAIGHT_ORDER = ["A", "2", "3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K"]

RANK_VALUE: Dict[str, int] = {rank: idx for idx, rank in enumerate(RANK_ORDER)}
LOW_STRAIGHT_VALUE: Dict[str, int] = {rank: idx for idx, rank in enumerate(LOW_STRAIGHT_ORDER)}

SET_TYPES = {2: "PAIR", 3: "TRIPLE", 4: "QUAD"}

EMPTY = "EMPTY"
INVALID_SET = "INVALID_SET"
KA2_NOT_ALLOWED = "KA2_NOT_ALLOWED"
INVALID_STRAIGHT = "INVALID_STRAIGHT"
INVALID_COMBO = "INVALID_COMBO"


def rank_value(rank: str) -> int:
    return RANK_VALUE[rank]


def sort_by_rank(cards: Iterable[Card]) -> List[Card]:
    return sorted(cards, key=lambda c: (RANK_VALUE[c.rank], SUITS.index(c.suit)))


def make_deck() -> List[Card]:
    return [Card(rank=rank, suit=suit) for rank in RANK_ORDER for suit in SUITS]


def _straight_top(ranks: Sequence[str], values: Dict[str, int]) -> Optional[str]:
    ordered = sorted(ranks, key=lambda r: values[r])
    for prev, cur in zip(ordered, ordered[1:]):
        if values[cur] != values[prev] + 1:
            return None
    return ordered[-1]


def classify_combo(cards: Sequence[Card]) -> Tuple[Optional[Combination], Optional[str]]:
    """Classify a set of cards.

    Returns ``(combination, None)`` for a legal play or ``(None, reason)``.
    """
    if not cards:
        return None, EMPTY

    n = len(cards)
    ranks = [card.rank for card in cards]
    distinct = set(ranks)

    if n == 1:
        return Combination(type="SINGLE", rank=ranks[0], length=1), None

    if len(distinct) == 1:
        combo_type = SET_TYPES.get(n)
        if combo_type is None:
            return None, INVALID_SET
        return Combination(type=combo_type, rank=ranks[0], length=n), None

    if n >= 3:
        if {"K", "A", "2"} <= distinct:
            return None, KA2_NOT_ALLOWED
        if len(distinct) != n:
            return None, INVALID_STRAIGHT
        for values in (RANK_VALUE, LOW_STRAIGHT_VALUE):
            top = _straight_top(ranks, values)
            if top is not None:
                return Combination(type="STRAIGHT", rank=top, length=n), None
        return None, INVALID_STRAIGHT

    return None, INVALID_COMBO


def can_beat(table: Optional[Combination], candidate: Combination) -> bool:
    if table is None:
        return True

    if candidate.type == "QUAD":
        # chặt 2
        if table.type in ("SINGLE", "PAIR") and table.rank == "2":
            return True
        if table.type == "QUAD":
            return RANK_VALUE[candidate.rank] > RANK_VALUE[table.rank]
        return False

    if candidate.type != table.type:
        return False
    if table.type == "STRAIGHT" and candidate.length != table.length:
        return False
    return RANK_VALUE[candidate.rank] > RANK_VALUE[table.rank]


def highest_rank(hand: Iterable[Card]) -> Optional[str]:
    best: Optional[str] = None
    for card in hand:
        if best is None or RANK_VALUE[card.rank] > RANK_VALUE[best]:
            best = card.rank
    return best


def count_rank(hand: Iterable[Card], rank: str) -> int:
    return sum(1 for card in hand if card.rank == rank)


# ----------------------------------------------------------------------
# Instant wins checked at deal time
# ----------------------------------------------------------------------
def has_four_twos(hand: Sequence[Card]) -> bool:
    return count_rank(hand, "2") == 4


def is_ten_card_straight(hand: Sequence[Card]) -> bool:
    combo, _ = classify_combo(hand)
    return combo is not None and combo.type == "STRAIGHT" and combo.length == 10


def has_five_pairs(hand: Sequence[Card]) -> bool:
    counts: Dict[str, int] = {}
    for card in hand:
        counts[card.rank] = counts.get(card.rank, 0) + 1
    return sum(1 for value in counts.values() if value == 2) == 5


def is_white_win(hand: Sequence[Card]) -> bool:
    return has_four_twos(hand) or is_ten_card_straight(hand) or has_five_pairs(hand)
