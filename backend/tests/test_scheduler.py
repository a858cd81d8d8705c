import asyncio
import importlib
import logging
import time

import pytest

from game import ROOMS, get_or_create_room
from samloc.services.scheduler import DeclareScheduler

app_mod = importlib.import_module("main")


class NoShuffle:
    def shuffle(self, deck):
        pass


def _recorder():
    fired = []

    async def callback(room_id: str) -> None:
        fired.append(room_id)

    return fired, callback


@pytest.mark.asyncio
async def test_timer_fires_once_after_the_deadline():
    scheduler = DeclareScheduler()
    fired, callback = _recorder()

    scheduler.schedule("r1", time.time() + 0.05, callback)
    assert scheduler.is_scheduled("r1")
    assert fired == []

    await asyncio.sleep(0.2)
    assert fired == ["r1"]
    assert not scheduler.is_scheduled("r1")
    assert scheduler.deadline("r1") is None


@pytest.mark.asyncio
async def test_past_deadline_fires_right_away():
    scheduler = DeclareScheduler()
    fired, callback = _recorder()

    scheduler.schedule("r1", time.time() - 5, callback)
    await asyncio.sleep(0.05)
    assert fired == ["r1"]


@pytest.mark.asyncio
async def test_rescheduling_replaces_the_timer():
    scheduler = DeclareScheduler()
    fired, callback = _recorder()

    scheduler.schedule("r1", time.time() + 0.05, callback)
    later = time.time() + 0.1
    scheduler.schedule("r1", later, callback)
    assert scheduler.deadline("r1") == later

    await asyncio.sleep(0.3)
    assert fired == ["r1"]


@pytest.mark.asyncio
async def test_same_deadline_keeps_the_running_timer():
    scheduler = DeclareScheduler()
    _, callback = _recorder()
    deadline = time.time() + 10

    scheduler.schedule("r1", deadline, callback)
    task = scheduler._tasks["r1"]
    scheduler.schedule("r1", deadline, callback)
    assert scheduler._tasks["r1"] is task

    scheduler.cancel_all()


@pytest.mark.asyncio
async def test_cancel_is_idempotent():
    scheduler = DeclareScheduler()
    fired, callback = _recorder()

    scheduler.schedule("r1", time.time() + 0.05, callback)
    assert scheduler.cancel("r1") is True
    assert scheduler.cancel("r1") is False
    assert scheduler.cancel("never") is False

    await asyncio.sleep(0.15)
    assert fired == []


@pytest.mark.asyncio
async def test_callback_errors_are_logged(caplog):
    scheduler = DeclareScheduler()

    async def boom(room_id: str) -> None:
        raise RuntimeError("boom")

    with caplog.at_level(logging.ERROR):
        scheduler.schedule("r1", time.time(), boom)
        await asyncio.sleep(0.05)

    assert "[timer-error] room=r1" in caplog.text


@pytest.mark.asyncio
async def test_deadline_callback_starts_play():
    room = get_or_create_room("sched-start")
    room.rng = NoShuffle()
    try:
        for pid in ("A", "B", "C"):
            room.add_player(pid, pid)
        room.start_game(now=time.time() - 100)
        room.declare_sam("B", True)

        await app_mod.on_declare_deadline(room.id)

        assert room.phase == "PLAYING"
        assert room.sam.declared_by == "B"
        assert room.turn_id == "B"
    finally:
        ROOMS.pop(room.id, None)


@pytest.mark.asyncio
async def test_declare_timer_follows_the_room_phase():
    room = get_or_create_room("sched-sync")
    room.rng = NoShuffle()
    try:
        for pid in ("A", "B", "C"):
            room.add_player(pid, pid)
        room.start_game()

        app_mod.sync_declare_timer(room.id)
        assert app_mod.scheduler.deadline(room.id) == room.declare.deadline

        room.tick_declare_phase(now=room.declare.deadline)
        app_mod.sync_declare_timer(room.id)
        assert not app_mod.scheduler.is_scheduled(room.id)
    finally:
        app_mod.scheduler.cancel(room.id)
        ROOMS.pop(room.id, None)
