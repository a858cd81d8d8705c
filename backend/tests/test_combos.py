import pytest

from models import Card, Combination
from rules import (
    INVALID_COMBO,
    INVALID_SET,
    INVALID_STRAIGHT,
    KA2_NOT_ALLOWED,
    can_beat,
    classify_combo,
    has_five_pairs,
    has_four_twos,
    highest_rank,
    is_ten_card_straight,
    is_white_win,
    make_deck,
    sort_by_rank,
)


def cards(*ids: str):
    return [Card(rank=card_id[:-1], suit=card_id[-1]) for card_id in ids]


def combo(type_: str, rank: str, length: int) -> Combination:
    return Combination(type=type_, rank=rank, length=length)


def test_deck_has_52_distinct_cards():
    deck = make_deck()
    assert len(deck) == 52
    assert len({card.id for card in deck}) == 52
    assert "10♥" in {card.id for card in deck}


def test_card_carries_rank_suit_and_id_only():
    card = Card(rank="10", suit="♥")
    assert card.model_dump() == {"id": "10♥", "rank": "10", "suit": "♥"}
    assert set(Card.model_fields) == {"id", "rank", "suit"}


def test_single_and_sets():
    assert classify_combo(cards("9♣")) == (combo("SINGLE", "9", 1), None)
    assert classify_combo(cards("3♠", "3♥")) == (combo("PAIR", "3", 2), None)
    assert classify_combo(cards("J♠", "J♥", "J♦")) == (combo("TRIPLE", "J", 3), None)
    assert classify_combo(cards("2♠", "2♥", "2♦", "2♣")) == (combo("QUAD", "2", 4), None)


def test_empty_is_rejected():
    assert classify_combo([]) == (None, "EMPTY")


def test_straights_in_primary_order():
    assert classify_combo(cards("3♠", "4♥", "5♦")) == (combo("STRAIGHT", "5", 3), None)
    assert classify_combo(cards("A♠", "J♥", "K♦", "Q♣")) == (combo("STRAIGHT", "A", 4), None)


@pytest.mark.parametrize(
    "ids, top",
    [
        (("A♠", "2♥", "3♦"), "3"),
        (("2♠", "3♥", "4♦"), "4"),
        (("5♣", "3♥", "2♠", "4♦"), "5"),
    ],
)
def test_low_straights_use_alternate_order(ids, top):
    result, reason = classify_combo(cards(*ids))
    assert reason is None
    assert result.type == "STRAIGHT"
    assert result.rank == top


@pytest.mark.parametrize("ids", [("K♠", "A♥", "2♦"), ("Q♠", "K♥", "A♦", "2♣"), ("K♠", "A♥", "2♦", "3♣")])
def test_ka2_wrap_is_always_rejected(ids):
    assert classify_combo(cards(*ids)) == (None, KA2_NOT_ALLOWED)


def test_other_shapes_are_rejected():
    assert classify_combo(cards("3♠", "3♥", "4♦")) == (None, INVALID_STRAIGHT)
    assert classify_combo(cards("3♠", "5♥", "6♦")) == (None, INVALID_STRAIGHT)
    assert classify_combo(cards("3♠", "4♥")) == (None, INVALID_COMBO)
    assert classify_combo(cards("3♠", "3♥", "4♦", "4♣")) == (None, INVALID_STRAIGHT)


def test_five_of_a_rank_would_be_an_invalid_set():
    # unreachable with one deck, but the classifier stays total
    hand = cards("7♠", "7♥", "7♦", "7♣") + [Card(id="7♠x", rank="7", suit="♠")]
    assert classify_combo(hand) == (None, INVALID_SET)


def test_classifier_ignores_input_order():
    first = classify_combo(cards("7♠", "5♥", "6♦", "8♣"))
    second = classify_combo(cards("8♣", "6♦", "7♠", "5♥"))
    assert first == second == (combo("STRAIGHT", "8", 4), None)


def test_empty_table_accepts_anything():
    assert can_beat(None, combo("SINGLE", "3", 1))
    assert can_beat(None, combo("STRAIGHT", "7", 5))


def test_quad_cuts_twos_only():
    quad5 = combo("QUAD", "5", 4)
    assert can_beat(combo("SINGLE", "2", 1), quad5)
    assert can_beat(combo("PAIR", "2", 2), quad5)
    assert not can_beat(combo("SINGLE", "9", 1), quad5)
    assert not can_beat(combo("PAIR", "A", 2), quad5)
    assert not can_beat(combo("TRIPLE", "2", 3), quad5)
    assert not can_beat(combo("STRAIGHT", "6", 3), quad5)


def test_quad_over_quad_by_rank():
    assert can_beat(combo("QUAD", "5", 4), combo("QUAD", "9", 4))
    assert not can_beat(combo("QUAD", "9", 4), combo("QUAD", "5", 4))


def test_types_and_lengths_must_match():
    assert not can_beat(combo("SINGLE", "3", 1), combo("PAIR", "4", 2))
    assert not can_beat(combo("STRAIGHT", "9", 3), combo("STRAIGHT", "8", 4))
    assert not can_beat(combo("STRAIGHT", "9", 3), combo("STRAIGHT", "10", 4))
    assert can_beat(combo("STRAIGHT", "9", 3), combo("STRAIGHT", "10", 3))


def test_rank_must_be_strictly_higher():
    assert can_beat(combo("SINGLE", "A", 1), combo("SINGLE", "2", 1))
    assert not can_beat(combo("SINGLE", "2", 1), combo("SINGLE", "A", 1))
    assert not can_beat(combo("PAIR", "8", 2), combo("PAIR", "8", 2))


def test_low_straight_is_the_smallest_of_its_length():
    a23, _ = classify_combo(cards("A♠", "2♥", "3♦"))
    three45, _ = classify_combo(cards("3♠", "4♥", "5♦"))
    assert can_beat(a23, three45)
    assert not can_beat(three45, a23)


def test_rank_helpers():
    hand = cards("9♣", "2♦", "3♠", "A♥")
    assert highest_rank(hand) == "2"
    assert highest_rank([]) is None
    assert [c.id for c in sort_by_rank(hand)] == ["3♠", "9♣", "A♥", "2♦"]


def test_white_win_shapes():
    four_twos = cards("2♠", "2♥", "2♦", "2♣", "3♠", "5♥", "7♦", "9♣", "J♠", "K♥")
    straight = cards("3♠", "4♥", "5♦", "6♣", "7♠", "8♥", "9♦", "10♣", "J♠", "Q♥")
    pairs = cards("3♠", "3♥", "6♦", "6♣", "9♠", "9♥", "Q♦", "Q♣", "A♠", "A♥")
    plain = cards("3♠", "3♥", "3♦", "6♣", "9♠", "9♥", "Q♦", "Q♣", "A♠", "2♥")
    assert has_four_twos(four_twos) and is_white_win(four_twos)
    assert is_ten_card_straight(straight) and is_white_win(straight)
    assert has_five_pairs(pairs) and is_white_win(pairs)
    assert not is_white_win(plain)
