from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

Suit = Literal["♠", "♥", "♦", "♣"]
Rank = Literal["3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K", "A", "2"]
ComboType = Literal["SINGLE", "PAIR", "TRIPLE", "QUAD", "STRAIGHT"]
Phase = Literal["LOBBY", "DECLARE_SAM", "PLAYING", "ROUND_END"]


class Card(BaseModel):
    id: str
    rank: Rank
    suit: Suit

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="before")
    @classmethod
    def fill_id(cls, value):
        if isinstance(value, dict) and value.get("id") is None:
            rank = value.get("rank")
            suit = value.get("suit")
            if rank is not None and suit is not None:
                value = {**value, "id": f"{rank}{suit}"}
        return value


class Player(BaseModel):
    id: str
    name: str


class Combination(BaseModel):
    type: ComboType
    rank: Rank
    length: int

    model_config = ConfigDict(frozen=True)


class RoomConfig(BaseModel):
    max_players: int = Field(5, ge=2, le=5, alias="maxPlayers")
    declare_seconds: int = Field(15, ge=1, le=60, alias="declareSeconds")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ActionResult(BaseModel):
    """Outcome of a room command.

    Rejections carry ``reason`` (and optionally ``detail``) and leave the room
    untouched; successes carry the command-specific flags.
    """

    ok: bool
    reason: Optional[str] = None
    detail: Optional[str] = None
    system_messages: List[str] = Field(default_factory=list, alias="systemMessages")
    win: bool = False
    white_win: bool = Field(False, alias="whiteWin")
    sam_caught: bool = Field(False, alias="samCaught")
    winner_id: Optional[str] = Field(default=None, alias="winnerId")
    loser_id: Optional[str] = Field(default=None, alias="loserId")
    catcher_id: Optional[str] = Field(default=None, alias="catcherId")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def success(cls, **fields) -> "ActionResult":
        return cls(ok=True, **fields)

    @classmethod
    def failure(cls, reason: str, detail: Optional[str] = None) -> "ActionResult":
        return cls(ok=False, reason=reason, detail=detail)


# ----------------------------------------------------------------------
# Round trackers (owned by Room, snapshotted into the scoring engine)
# ----------------------------------------------------------------------
@dataclass
class TableState:
    cards: List[str] = field(default_factory=list)
    combo: Optional[Combination] = None
    holder_id: Optional[str] = None
    holder_name: str = ""


@dataclass
class DeclareState:
    deadline: float = 0.0
    choices: Dict[str, bool] = field(default_factory=dict)


@dataclass
class SamState:
    declared_by: Optional[str] = None
    active: bool = False
    failed: bool = False
    penalty_applied: bool = False
    reward_applied: bool = False


@dataclass
class Bao1State:
    active: bool = False
    player_id: Optional[str] = None
    watched_id: Optional[str] = None
    violated: bool = False
    offender_id: Optional[str] = None


# ----------------------------------------------------------------------
# Views
# ----------------------------------------------------------------------
class PlayerView(BaseModel):
    id: str
    name: str
    card_count: int = Field(alias="cardCount")

    model_config = ConfigDict(populate_by_name=True)


class TableView(BaseModel):
    cards: List[str] = Field(default_factory=list)
    type: str = ""
    holder_id: Optional[str] = Field(default=None, alias="holderId")
    holder_name: str = Field("", alias="holderName")

    model_config = ConfigDict(populate_by_name=True)


class DeclareView(BaseModel):
    deadline: float = 0.0
    choices: Dict[str, bool] = Field(default_factory=dict)


class SamView(BaseModel):
    declared_by: Optional[str] = Field(default=None, alias="declaredBy")
    active: bool = False
    failed: bool = False

    model_config = ConfigDict(populate_by_name=True)


class RoomSnapshot(BaseModel):
    id: str
    host_id: Optional[str] = Field(default=None, alias="hostId")
    host_name: str = Field("", alias="hostName")
    started: bool
    phase: Phase
    turn_id: Optional[str] = Field(default=None, alias="turnId")
    turn_name: str = Field("", alias="turnName")
    players: List[PlayerView] = Field(default_factory=list)
    points: Dict[str, int] = Field(default_factory=dict)
    table: TableView = Field(default_factory=TableView)
    declare: DeclareView = Field(default_factory=DeclareView)
    sam: SamView = Field(default_factory=SamView)
    last_round_delta: Dict[str, int] = Field(default_factory=dict, alias="lastRoundDelta")

    model_config = ConfigDict(populate_by_name=True)


class AdminRoomView(BaseModel):
    phase: Phase
    players: List[Player]
    hands: Dict[str, List[Card]]
    points: Dict[str, int]
    turn_id: Optional[str] = Field(default=None, alias="turnId")

    model_config = ConfigDict(populate_by_name=True)


# ----------------------------------------------------------------------
# Request bodies
# ----------------------------------------------------------------------
class CreateRoomRequest(BaseModel):
    name: Optional[str] = None
    config: Optional[RoomConfig] = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class JoinRoomRequest(BaseModel):
    room_id: str
    name: Optional[str] = None
