from __future__ import annotations

import random
import re
import time
from typing import Dict, List, Optional, Set

from models import (
    ActionResult,
    AdminRoomView,
    Bao1State,
    Card,
    DeclareState,
    DeclareView,
    Phase,
    Player,
    PlayerView,
    RoomConfig,
    RoomSnapshot,
    SamState,
    SamView,
    TableState,
    TableView,
)
from rules import can_beat, classify_combo, highest_rank, is_white_win, make_deck, rank_value, sort_by_rank
from scoring import compute_round_scores

HAND_SIZE = 10
NAME_MAX_LENGTH = 16
SAM_PENALTY_EACH = 20
CUT_TWO_BONUS: Dict[str, int] = {"SINGLE": 5, "PAIR": 10}

ROOM_FULL = "ROOM_FULL"
ALREADY_STARTED = "ALREADY_STARTED"
NEED_2_PLAYERS = "NEED_2_PLAYERS"
NOT_IN_ROOM = "NOT_IN_ROOM"
NOT_DECLARE_PHASE = "NOT_DECLARE_PHASE"
NOT_PLAYING = "NOT_PLAYING"
NOT_YOUR_TURN = "NOT_YOUR_TURN"
YOU_PASSED_THIS_TRICK = "YOU_PASSED_THIS_TRICK"
CANNOT_PASS_ON_EMPTY = "CANNOT_PASS_ON_EMPTY"
CARD_NOT_IN_HAND = "CARD_NOT_IN_HAND"
INVALID_COMBO = "INVALID_COMBO"
CANNOT_BEAT_TABLE = "CANNOT_BEAT_TABLE"

_WHITESPACE = re.compile(r"\s+")


def normalize_name(name: Optional[str], player_id: str) -> str:
    clean = _WHITESPACE.sub(" ", (name or "").strip())[:NAME_MAX_LENGTH].strip()
    return clean or player_id[:5]


class Room:
    def __init__(self, room_id: str, config: Optional[RoomConfig] = None, rng=None):
        self.id = room_id
        self.config = config or RoomConfig()
        # anything with a ``shuffle(list)`` method
        self.rng = rng or random

        self.players: List[Player] = []
        self.host_id: Optional[str] = None

        self.phase: Phase = "LOBBY"
        self.started = False
        self.turn_idx: int = 0
        self.last_winner_id: Optional[str] = None

        self.hands: Dict[str, List[Card]] = {}
        self.points: Dict[str, int] = {}
        self.played_any: Dict[str, bool] = {}
        self.discard: List[Card] = []
        self.stock: List[Card] = []

        self.table = TableState()
        self.passed: Set[str] = set()

        self.declare = DeclareState()
        self.sam = SamState()
        self.bao1 = Bao1State()
        self.last_play_id: Optional[str] = None
        self.last_round_delta: Dict[str, int] = {}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def is_full(self) -> bool:
        return len(self.players) >= self.config.max_players

    def is_seated(self, player_id: Optional[str]) -> bool:
        return self._player_index(player_id) is not None

    def _player_index(self, player_id: Optional[str]) -> Optional[int]:
        for idx, player in enumerate(self.players):
            if player.id == player_id:
                return idx
        return None

    @property
    def turn_id(self) -> Optional[str]:
        if not self.players or self.turn_idx >= len(self.players):
            return None
        return self.players[self.turn_idx].id

    def get_name(self, player_id: Optional[str]) -> str:
        for player in self.players:
            if player.id == player_id:
                return player.name
        return player_id[:5] if player_id else ""

    def _reset_trick(self):
        self.table = TableState()
        self.passed.clear()

    def _advance_turn(self):
        n = len(self.players)
        if not n:
            return
        for _ in range(n):
            self.turn_idx = (self.turn_idx + 1) % n
            if self.turn_id not in self.passed:
                return

    def _settle_trick(self) -> bool:
        """Hand the lead back to the holder once everyone else has passed."""
        holder = self.table.holder_id
        if holder is None or len(self.passed) < len(self.players) - 1:
            return False
        self._reset_trick()
        idx = self._player_index(holder)
        self.turn_idx = idx if idx is not None else 0
        return True

    def _seat_before(self, player_id: str) -> Optional[str]:
        idx = self._player_index(player_id)
        if idx is None or len(self.players) < 2:
            return None
        return self.players[(idx - 1) % len(self.players)].id

    def _transfer(self, from_id: str, to_id: str, amount: int):
        """Move points mid-round; the transfer also shows in last_round_delta."""
        for pid, value in ((from_id, -amount), (to_id, amount)):
            self.points[pid] = self.points.get(pid, 0) + value
            self.last_round_delta[pid] = self.last_round_delta.get(pid, 0) + value

    def _apply_sam_penalty(self, messages: List[str]):
        if not self.sam.active or self.sam.penalty_applied or not self.sam.declared_by:
            return
        sam_id = self.sam.declared_by
        for player in self.players:
            if player.id != sam_id:
                self._transfer(sam_id, player.id, SAM_PENALTY_EACH)
        self.sam.penalty_applied = True
        messages.append(
            f"💥 Sâm caught: {self.get_name(sam_id)} loses and pays {SAM_PENALTY_EACH} to every opponent."
        )

    def _apply_sam_reward(self, messages: List[str]):
        if not self.sam.active or self.sam.failed or self.sam.reward_applied or not self.sam.declared_by:
            return
        self.sam.reward_applied = True
        messages.append(f"🔥 Sâm won: {self.get_name(self.sam.declared_by)} wins, every opponent is scored as cóng.")

    # ------------------------------------------------------------------
    # Lobby management
    # ------------------------------------------------------------------
    def add_player(self, player_id: str, name: Optional[str] = None) -> ActionResult:
        if self.is_seated(player_id):
            return ActionResult.success()
        if self.is_full():
            return ActionResult.failure(ROOM_FULL)
        if self.phase in ("DECLARE_SAM", "PLAYING"):
            return ActionResult.failure(ALREADY_STARTED)
        self.players.append(Player(id=player_id, name=normalize_name(name, player_id)))
        if self.host_id is None:
            self.host_id = player_id
        self.points.setdefault(player_id, 0)
        self.hands.setdefault(player_id, [])
        self.played_any.setdefault(player_id, False)
        return ActionResult.success()

    def remove_player(self, player_id: str) -> ActionResult:
        idx = self._player_index(player_id)
        if idx is None:
            return ActionResult.failure(NOT_IN_ROOM)
        current = self.turn_id

        self.players.pop(idx)
        self.hands.pop(player_id, None)
        self.played_any.pop(player_id, None)
        self.passed.discard(player_id)
        self.declare.choices.pop(player_id, None)

        if self.host_id == player_id:
            self.host_id = self.players[0].id if self.players else None
        if self.table.holder_id == player_id:
            self._reset_trick()
        if player_id in (self.bao1.player_id, self.bao1.watched_id):
            self.bao1 = Bao1State()
        if self.sam.declared_by == player_id:
            self.sam = SamState()
        if self.last_play_id == player_id:
            self.last_play_id = None

        if len(self.players) < 2:
            self.new_round(force=True)
            return ActionResult.success()

        if current is not None and current != player_id:
            self.turn_idx = self._player_index(current) or 0
        elif idx >= len(self.players):
            self.turn_idx = 0
        else:
            self.turn_idx = idx

        if self.phase == "PLAYING" and not self._settle_trick() and self.turn_id in self.passed:
            self._advance_turn()
        return ActionResult.success()

    # ------------------------------------------------------------------
    # Round lifecycle
    # ------------------------------------------------------------------
    def new_round(self, force: bool = False):
        self.phase = "LOBBY"
        self.started = False
        self.turn_idx = 0
        self._reset_trick()
        self.declare = DeclareState()
        self.sam = SamState()
        self.bao1 = Bao1State()
        self.last_play_id = None
        if force:
            for player in self.players:
                self.hands[player.id] = []
            self.discard = []
            self.stock = []

    def start_game(self, now: Optional[float] = None) -> ActionResult:
        if self.started:
            return ActionResult.failure(ALREADY_STARTED)
        if len(self.players) < 2:
            return ActionResult.failure(NEED_2_PLAYERS)

        deck = make_deck()
        self.rng.shuffle(deck)

        for player in self.players:
            self.hands[player.id] = []
            self.played_any[player.id] = False
        self._reset_trick()
        self.discard = []

        for _ in range(HAND_SIZE):
            for player in self.players:
                self.hands[player.id].append(deck.pop())
        self.stock = deck

        now = time.time() if now is None else now
        self.started = True
        self.phase = "DECLARE_SAM"
        self.declare = DeclareState(deadline=now + self.config.declare_seconds)
        self.sam = SamState()
        self.bao1 = Bao1State()
        self.last_play_id = None
        self.last_round_delta = {}

        # previous round's winner leads again if still seated
        winner_idx = self._player_index(self.last_winner_id)
        self.turn_idx = winner_idx if winner_idx is not None else 0

        for player in self.players:
            hand = self.hands[player.id]
            if is_white_win(hand):
                self.discard.extend(hand)
                self.hands[player.id] = []
                self.started = False
                self.phase = "ROUND_END"
                self.declare = DeclareState()
                self.last_winner_id = player.id
                return ActionResult.success(
                    white_win=True,
                    winner_id=player.id,
                    system_messages=[f"⚡ {player.name} wins instantly (thắng trắng)!"],
                )

        return ActionResult.success(
            system_messages=[f"🎮 New round. {self.config.declare_seconds}s to declare Sâm."]
        )

    def declare_sam(self, player_id: str, flag: bool) -> ActionResult:
        if self.phase != "DECLARE_SAM":
            return ActionResult.failure(NOT_DECLARE_PHASE)
        if not self.is_seated(player_id):
            return ActionResult.failure(NOT_IN_ROOM)
        self.declare.choices[player_id] = bool(flag)
        label = "declares Sâm" if flag else "does not declare"
        return ActionResult.success(system_messages=[f"📣 {self.get_name(player_id)} {label}."])

    def tick_declare_phase(self, now: Optional[float] = None) -> bool:
        if self.phase != "DECLARE_SAM":
            return False
        now = time.time() if now is None else now
        if now < self.declare.deadline:
            return False

        declarer = next((p.id for p in self.players if self.declare.choices.get(p.id) is True), None)
        if declarer is not None:
            self.sam = SamState(declared_by=declarer, active=True)
            self.turn_idx = self._player_index(declarer) or 0

        self.declare = DeclareState()
        self.phase = "PLAYING"
        return True

    def finish_and_score(self) -> Optional[str]:
        result = compute_round_scores(
            self.players,
            self.hands,
            self.played_any,
            bao1=self.bao1,
            sam=self.sam,
        )
        for pid, value in result.delta.items():
            self.points[pid] = self.points.get(pid, 0) + value
            self.last_round_delta[pid] = self.last_round_delta.get(pid, 0) + value
        return result.winner_id

    # ------------------------------------------------------------------
    # Turn actions
    # ------------------------------------------------------------------
    def _check_turn(self, player_id: str) -> Optional[ActionResult]:
        if self.phase != "PLAYING" or not self.started:
            return ActionResult.failure(NOT_PLAYING)
        if not self.is_seated(player_id):
            return ActionResult.failure(NOT_IN_ROOM)
        if player_id != self.turn_id:
            return ActionResult.failure(NOT_YOUR_TURN)
        return None

    def pass_turn(self, player_id: str) -> ActionResult:
        rejected = self._check_turn(player_id)
        if rejected:
            return rejected
        if self.table.combo is None:
            return ActionResult.failure(CANNOT_PASS_ON_EMPTY)

        self.passed.add(player_id)
        self._advance_turn()
        holder = self.table.holder_id
        messages = []
        if self._settle_trick():
            messages.append(f"🔄 Everyone passed, {self.get_name(holder)} leads.")
        return ActionResult.success(system_messages=messages)

    def play(self, player_id: str, card_ids: List[str]) -> ActionResult:
        rejected = self._check_turn(player_id)
        if rejected:
            return rejected
        if player_id in self.passed:
            return ActionResult.failure(YOU_PASSED_THIS_TRICK)

        hand = self.hands.get(player_id, [])
        wanted = set(card_ids)
        chosen = [card for card in hand if card.id in wanted]
        if len(chosen) != len(card_ids):
            return ActionResult.failure(CARD_NOT_IN_HAND)

        combo, reason = classify_combo(chosen)
        if combo is None:
            return ActionResult.failure(INVALID_COMBO, detail=reason)

        prev_combo = self.table.combo
        prev_holder = self.table.holder_id
        if not can_beat(prev_combo, combo):
            return ActionResult.failure(CANNOT_BEAT_TABLE)

        messages: List[str] = []
        name = self.get_name(player_id)

        # báo 1: the watched player owes their highest single
        bao1 = self.bao1
        if (
            bao1.active
            and player_id == bao1.watched_id
            and player_id != bao1.player_id
            and combo.type == "SINGLE"
            and rank_value(combo.rank) < rank_value(highest_rank(hand))
        ):
            bao1.violated = True
            bao1.offender_id = player_id
            messages.append(
                f"⚠️ {name} did not play their highest card while {self.get_name(bao1.player_id)} is on Báo 1!"
            )

        # chặt 2
        if (
            prev_combo is not None
            and combo.type == "QUAD"
            and prev_combo.rank == "2"
            and prev_combo.type in CUT_TWO_BONUS
            and prev_holder
            and prev_holder != player_id
        ):
            bonus = CUT_TWO_BONUS[prev_combo.type]
            self._transfer(prev_holder, player_id, bonus)
            what = "a 2" if prev_combo.type == "SINGLE" else "a pair of 2s"
            messages.append(f"🎯 {name} cuts {what} from {self.get_name(prev_holder)}! (+{bonus})")

        # bắt sâm: beating the declarer ends the round on the spot
        sam_id = self.sam.declared_by
        if self.sam.active and sam_id and prev_combo is not None and prev_holder == sam_id and player_id != sam_id:
            self.sam.failed = True
            self._apply_sam_penalty(messages)
            self.started = False
            self.phase = "ROUND_END"
            self.table = TableState(
                cards=[card.id for card in chosen],
                combo=combo,
                holder_id=player_id,
                holder_name=name,
            )
            messages.append(f"🏁 Round over, Sâm caught by {name}.")
            return ActionResult.success(
                sam_caught=True,
                loser_id=sam_id,
                catcher_id=player_id,
                system_messages=messages,
            )

        self.played_any[player_id] = True
        self.hands[player_id] = [card for card in hand if card.id not in wanted]
        self.discard.extend(chosen)
        previous_player = self.last_play_id
        self.last_play_id = player_id
        self.table = TableState(
            cards=[card.id for card in chosen],
            combo=combo,
            holder_id=player_id,
            holder_name=name,
        )

        remaining = len(self.hands[player_id])
        if remaining == 1:
            if previous_player is None or previous_player == player_id:
                previous_player = self._seat_before(player_id)
            self.bao1 = Bao1State(active=True, player_id=player_id, watched_id=previous_player)
            messages.append(f"📢 {name}: Báo 1!")

        if remaining == 0:
            self.started = False
            self.phase = "ROUND_END"
            self.last_winner_id = player_id
            if self.sam.active and sam_id == player_id and not self.sam.failed:
                self._apply_sam_reward(messages)
            return ActionResult.success(win=True, winner_id=player_id, system_messages=messages)

        self._advance_turn()
        return ActionResult.success(system_messages=messages)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------
    def hand_of(self, player_id: Optional[str]) -> List[Card]:
        return sort_by_rank(self.hands.get(player_id) or [])

    def snapshot(self) -> RoomSnapshot:
        combo = self.table.combo
        in_declare = self.phase == "DECLARE_SAM"
        return RoomSnapshot(
            id=self.id,
            host_id=self.host_id,
            host_name=self.get_name(self.host_id),
            started=self.started,
            phase=self.phase,
            turn_id=self.turn_id,
            turn_name=self.get_name(self.turn_id),
            players=[
                PlayerView(id=p.id, name=p.name, card_count=len(self.hands.get(p.id) or []))
                for p in self.players
            ],
            points=dict(self.points),
            table=TableView(
                cards=list(self.table.cards),
                type=combo.type if combo else "",
                holder_id=self.table.holder_id,
                holder_name=self.table.holder_name,
            ),
            declare=DeclareView(
                deadline=self.declare.deadline if in_declare else 0.0,
                choices=dict(self.declare.choices) if in_declare else {},
            ),
            sam=SamView(
                declared_by=self.sam.declared_by,
                active=self.sam.active,
                failed=self.sam.failed,
            ),
            last_round_delta=dict(self.last_round_delta),
        )

    def admin_view(self) -> AdminRoomView:
        return AdminRoomView(
            phase=self.phase,
            players=list(self.players),
            hands={p.id: self.hand_of(p.id) for p in self.players},
            points=dict(self.points),
            turn_id=self.turn_id,
        )


ROOMS: Dict[str, Room] = {}


def get_room(room_id: str) -> Optional[Room]:
    return ROOMS.get(room_id)


def get_or_create_room(room_id: str, config: Optional[RoomConfig] = None) -> Room:
    room = ROOMS.get(room_id)
    if room is None:
        room = Room(room_id, config)
        ROOMS[room_id] = room
    return room


def make_room_code() -> str:
    return str(random.randint(1000, 9999))


def create_room(config: Optional[RoomConfig] = None) -> Room:
    code = make_room_code()
    while code in ROOMS:
        code = make_room_code()
    return get_or_create_room(code, config)


def discard_room_if_empty(room_id: str) -> bool:
    room = ROOMS.get(room_id)
    if room is not None and not room.players:
        ROOMS.pop(room_id, None)
        return True
    return False


def list_rooms_summary():
    res = []
    for r in ROOMS.values():
        res.append(
            {
                "room_id": r.id,
                "players": len(r.players),
                "players_max": r.config.max_players,
                "phase": r.phase,
                "started": r.started,
            }
        )
    return res


def admin_dump() -> Dict[str, dict]:
    return {rid: room.admin_view().model_dump(by_alias=True) for rid, room in ROOMS.items()}
