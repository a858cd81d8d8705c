from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

from models import Bao1State, Card, Player, SamState
from rules import count_rank

SKUNK_PENALTY = 20  # thắng sâm: every opponent counts as a full, untouched hand
TWO_PENALTY = 2  # extra per 2 left in hand
NEVER_PLAYED_PENALTY = 10  # cóng


@dataclass
class RoundScore:
    delta: Dict[str, int] = field(default_factory=dict)
    winner_id: Optional[str] = None


def find_winner(players: Sequence[Player], hands: Mapping[str, List[Card]]) -> Optional[str]:
    for player in players:
        if not hands.get(player.id):
            return player.id
    return players[0].id if players else None


def hand_penalty(hand: Sequence[Card], played_any: bool) -> int:
    penalty = len(hand) + TWO_PENALTY * count_rank(hand, "2")
    if not played_any:
        penalty += NEVER_PLAYED_PENALTY
    return penalty


def is_sam_win(sam: Optional[SamState], winner_id: Optional[str]) -> bool:
    return bool(sam and sam.active and not sam.failed and sam.declared_by == winner_id)


def is_bao1_override(bao1: Optional[Bao1State], winner_id: Optional[str]) -> bool:
    return bool(
        bao1
        and bao1.player_id == winner_id
        and bao1.violated
        and bao1.offender_id
    )


def compute_round_scores(
    players: Sequence[Player],
    hands: Mapping[str, List[Card]],
    played_any: Mapping[str, bool],
    bao1: Optional[Bao1State] = None,
    sam: Optional[SamState] = None,
) -> RoundScore:
    """Point deltas for a finished round.

    Losers pay their own penalty to the winner, except when the Báo 1 window
    was violated and the Báo 1 player went on to win: then the offender alone
    pays the whole pot.
    """
    winner_id = find_winner(players, hands)
    delta = {p.id: 0 for p in players}
    if winner_id is None:
        return RoundScore(delta=delta, winner_id=None)

    sam_win = is_sam_win(sam, winner_id)
    losses: Dict[str, int] = {}
    for player in players:
        if player.id == winner_id:
            continue
        if sam_win:
            losses[player.id] = SKUNK_PENALTY
        else:
            losses[player.id] = hand_penalty(hands.get(player.id) or [], played_any.get(player.id, False))

    pot = sum(losses.values())

    if is_bao1_override(bao1, winner_id):
        delta[winner_id] = pot
        delta[bao1.offender_id] = -pot
        return RoundScore(delta=delta, winner_id=winner_id)

    for pid, loss in losses.items():
        delta[pid] -= loss
    delta[winner_id] += pot
    return RoundScore(delta=delta, winner_id=winner_id)
