from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Header, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from game import (
    ROOMS,
    Room,
    create_room,
    discard_room_if_empty,
    get_room,
    list_rooms_summary,
)
from models import ActionResult, CreateRoomRequest, JoinRoomRequest
from samloc.api.admin import router as admin_router
from samloc.services.scheduler import DeclareScheduler
from samloc.settings import settings

logging.basicConfig(level=settings.log_level.upper())
logger = logging.getLogger(__name__)

HOST_ONLY = "HOST_ONLY"
UNKNOWN_COMMAND = "UNKNOWN_COMMAND"

app = FastAPI(title="Sâm Lốc", version="1.0.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=True,
)
logger.info("CORS allow_origins: %s", settings.allowed_origins)

app.include_router(admin_router)

scheduler = DeclareScheduler()


@app.on_event("shutdown")
async def _stop_timers() -> None:
    scheduler.cancel_all()


def _get_room_or_404(room_id: str) -> Room:
    room = get_room(room_id)
    if not room:
        raise HTTPException(status_code=404, detail="room_not_found")
    return room


# ---------- commands ----------
def handle_command(room: Room, player_id: str, data: Dict[str, Any]) -> ActionResult:
    """Map one inbound message onto a room operation."""
    t = data.get("type")
    if t == "start":
        if room.host_id != player_id:
            return ActionResult.failure(HOST_ONLY)
        return room.start_game()
    if t == "declare_sam":
        return room.declare_sam(player_id, bool(data.get("flag")))
    if t == "pass":
        return room.pass_turn(player_id)
    if t in {"play", "play_cards"}:
        card_ids = data.get("cardIds")
        if card_ids is None:
            card_ids = data.get("cards")
        if not isinstance(card_ids, list):
            card_ids = []
        return room.play(player_id, [str(card_id) for card_id in card_ids])
    if t == "new_round":
        if room.host_id != player_id:
            return ActionResult.failure(HOST_ONLY)
        room.new_round(force=False)
        return ActionResult.success(system_messages=["🔁 Back to the lobby."])
    return ActionResult.failure(UNKNOWN_COMMAND, detail=str(t))


async def apply_result(room: Room, result: ActionResult) -> None:
    """Publish a successful command: events, round scoring, timer, state."""
    messages: List[str] = list(result.system_messages)
    if result.win or result.white_win:
        winner_id = room.finish_and_score()
        messages.append(f"🏆 {room.get_name(winner_id)} wins the round.")
    for message in messages:
        await hub.send_room_event(room.id, {"type": "log", "message": message})
    sync_declare_timer(room.id)
    await broadcast_room(room.id)


def sync_declare_timer(room_id: str) -> None:
    room = get_room(room_id)
    if room is not None and room.phase == "DECLARE_SAM":
        scheduler.schedule(room_id, room.declare.deadline, on_declare_deadline)
    else:
        scheduler.cancel(room_id)


async def on_declare_deadline(room_id: str) -> None:
    room = get_room(room_id)
    if room is None:
        return
    if room.tick_declare_phase():
        message = "⏱️ Declare time is over, play begins."
        if room.sam.active:
            message += f" {room.get_name(room.sam.declared_by)} leads on Sâm."
        await hub.send_room_event(room_id, {"type": "log", "message": message})
        await broadcast_room(room_id)


async def leave_room(room_id: str, player_id: str) -> None:
    room = get_room(room_id)
    if room is None:
        return
    name = room.get_name(player_id)
    if not room.remove_player(player_id).ok:
        return
    logger.info("Player %s left room %s", player_id, room_id)
    if discard_room_if_empty(room_id):
        scheduler.cancel(room_id)
        logger.info("Room %s destroyed", room_id)
        return
    sync_declare_timer(room_id)
    await hub.send_room_event(room_id, {"type": "log", "message": f"👋 {name} left."})
    await broadcast_room(room_id)


# ---------- REST ----------
@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/api/rooms")
async def rooms():
    return list_rooms_summary()


@app.post("/api/room/create")
async def create(
    req: CreateRoomRequest,
    x_user_id: str = Header(...),
    x_user_name: str = Header("Player"),
):
    room = create_room(req.config or settings.room_config())
    room.add_player(x_user_id, req.name or x_user_name)
    logger.info("Room %s created by %s", room.id, x_user_id)
    return {"room_id": room.id}


@app.post("/api/room/join")
async def join(
    req: JoinRoomRequest,
    x_user_id: str = Header(...),
    x_user_name: str = Header("Player"),
):
    room = _get_room_or_404(req.room_id)
    result = room.add_player(x_user_id, req.name or x_user_name)
    if not result.ok:
        logger.info("Join rejected room=%s player=%s reason=%s", room.id, x_user_id, result.reason)
        return {"ok": False, "reason": result.reason}
    await hub.send_room_event(room.id, {"type": "log", "message": f"➕ {room.get_name(x_user_id)} joined."})
    await broadcast_room(room.id)
    return {"ok": True}


@app.post("/api/room/start/{room_id}")
async def start(room_id: str, x_user_id: str = Header(...)):
    room = _get_room_or_404(room_id)
    result = handle_command(room, x_user_id, {"type": "start"})
    if result.ok:
        await apply_result(room, result)
    return result.model_dump(by_alias=True)


@app.get("/api/room/state/{room_id}")
async def room_state(room_id: str, x_user_id: Optional[str] = Header(None)):
    room = _get_room_or_404(room_id)
    hand = None
    if room.is_seated(x_user_id):
        hand = [card.model_dump() for card in room.hand_of(x_user_id)]
    return {"room": room.snapshot().model_dump(by_alias=True), "hand": hand}


# ---------- WebSockets hub ----------
class Hub:
    def __init__(self):
        self.rooms: Dict[str, List[WebSocket]] = {}
        self.ws_player: Dict[WebSocket, str] = {}
        self.ws_room: Dict[WebSocket, str] = {}

    async def connect_room(self, room_id: str, player_id: str, ws: WebSocket):
        await ws.accept()
        self.rooms.setdefault(room_id, []).append(ws)
        self.ws_player[ws] = player_id
        self.ws_room[ws] = room_id
        logger.info("Player %s connected to room %s", player_id, room_id)

    def forget(self, ws: WebSocket):
        pid = self.ws_player.pop(ws, None)
        rid = self.ws_room.pop(ws, None)
        if rid and ws in self.rooms.get(rid, []):
            self.rooms[rid].remove(ws)
            if not self.rooms[rid]:
                self.rooms.pop(rid, None)
        return pid, rid

    async def disconnect(self, ws: WebSocket):
        pid, rid = self.forget(ws)
        if pid and rid:
            logger.info("Player %s disconnected from room %s", pid, rid)
            await leave_room(rid, pid)

    async def send_room_state(self, room_id: str):
        room = ROOMS.get(room_id)
        if not room:
            return
        snapshot = room.snapshot().model_dump(by_alias=True)
        for ws in list(self.rooms.get(room_id, [])):
            player_id = self.ws_player.get(ws)
            try:
                await ws.send_json({"type": "state", "payload": snapshot})
                hand = [card.model_dump() for card in room.hand_of(player_id)]
                await ws.send_json({"type": "hand", "payload": hand})
            except RuntimeError:
                pass

    async def send_room_event(self, room_id: str, message: dict):
        for ws in list(self.rooms.get(room_id, [])):
            try:
                await ws.send_json(message)
            except RuntimeError:
                pass


hub = Hub()


# ---------- broadcasters ----------
async def broadcast_room(room_id: str):
    await hub.send_room_state(room_id)


# ---------- WS endpoint ----------
@app.websocket("/ws/{room_id}")
async def ws_room(ws: WebSocket, room_id: str, player_id: str = Query(...)):
    room = get_room(room_id)
    if room is None:
        await ws.close(code=1008, reason="room_not_found")
        return
    if not room.is_seated(player_id):
        await ws.close(code=1008, reason="not_in_room")
        return

    await hub.connect_room(room_id, player_id, ws)
    try:
        await broadcast_room(room_id)
        while True:
            raw = await ws.receive_text()
            try:
                data = json.loads(raw)
            except ValueError:
                await ws.send_json({"type": "error", "error": UNKNOWN_COMMAND, "detail": "invalid_json"})
                continue
            room = get_room(room_id)
            if room is None:
                hub.forget(ws)
                await ws.close(code=1011, reason="room_not_found")
                break
            if not isinstance(data, dict):
                await ws.send_json({"type": "error", "error": UNKNOWN_COMMAND})
                continue
            if data.get("type") == "leave":
                hub.forget(ws)
                await leave_room(room_id, player_id)
                await ws.close()
                break
            result = handle_command(room, player_id, data)
            if not result.ok:
                logger.info(
                    "Command rejected room=%s player=%s type=%s reason=%s",
                    room_id,
                    player_id,
                    data.get("type"),
                    result.reason,
                )
                await ws.send_json({"type": "error", "error": result.reason, "detail": result.detail})
                continue
            await apply_result(room, result)
    except WebSocketDisconnect:
        await hub.disconnect(ws)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000, log_level=settings.log_level.lower())
