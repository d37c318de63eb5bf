# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio
import json
from typing import Any

import pytest
from fastapi import WebSocketDisconnect

import relay.hub as hub_mod
import session.transport as transport_mod
from relay.hub import RelayHub
from session.transport import TransportSession


class FakeSocket:
    """Records writes; a broken socket raises like a peer that vanished."""

    def __init__(self, *, broken: bool = False) -> None:
        self.broken = broken
        self.texts: list[dict[str, Any]] = []
        self.frames: list[bytes] = []

    async def send_text(self, text: str) -> None:
        if self.broken:
            raise WebSocketDisconnect(code=1006)
        self.texts.append(json.loads(text))

    async def send_bytes(self, payload: bytes) -> None:
        if self.broken:
            raise WebSocketDisconnect(code=1006)
        self.frames.append(payload)


@pytest.fixture(autouse=True)
def transport_logs(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    emitted: list[dict[str, Any]] = []
    monkeypatch.setattr(transport_mod, "log_event", emitted.append)
    monkeypatch.setattr(hub_mod, "log_event", lambda event: None)
    return emitted


async def settle() -> None:
    for _ in range(20):
        await asyncio.sleep(0)


# ---------------------------------------------------------------------
# Best-effort fan-out
# ---------------------------------------------------------------------

def test_failed_target_is_skipped_and_others_still_receive(transport_logs):
    async def scenario() -> tuple[dict[str, FakeSocket], dict[str, TransportSession], list[Any]]:
        hub = RelayHub()
        sockets = {
            "a": FakeSocket(),
            "b": FakeSocket(broken=True),
            "c": FakeSocket(),
        }
        sessions = {
            name: TransportSession(ws, session_id=f"sess_{name}")
            for name, ws in sockets.items()
        }
        senders = [asyncio.create_task(s.run_sender()) for s in sessions.values()]

        for s in sessions.values():
            hub.on_connect(s)
        await settle()

        hub.on_stream(sessions["a"], b"frame")
        await settle()

        for s in sessions.values():
            s.close()
        results = await asyncio.gather(*senders, return_exceptions=True)
        return sockets, sessions, results

    sockets, sessions, results = asyncio.run(scenario())

    assert sockets["c"].frames == [b"frame"]
    assert sockets["a"].frames == []
    assert sessions["b"].writable is False
    assert len(sessions["b"].outbound) == 0
    assert results == [None, None, None]
    assert [e["event_type"] for e in transport_logs] == ["SESSION_SEND_FAILED"]
    assert transport_logs[0]["session_id"] == "sess_b"


def test_unwritable_session_skips_new_traffic():
    async def scenario() -> TransportSession:
        session = TransportSession(FakeSocket(broken=True), session_id="sess_b")
        sender = asyncio.create_task(session.run_sender())

        session.send_control({"event": "user-list", "data": []})
        await sender

        session.send_control({"event": "user-list", "data": []})
        session.send_audio(b"frame")
        return session

    session = asyncio.run(scenario())

    assert session.writable is False
    assert session.outbound.is_empty()


# ---------------------------------------------------------------------
# Queue behaviour on a live session
# ---------------------------------------------------------------------

def test_overflow_drops_oldest_frame_and_logs(transport_logs):
    session = TransportSession(FakeSocket(), session_id="sess_a", max_audio_frames=2)

    session.send_audio(b"1")
    session.send_audio(b"2")
    session.send_audio(b"3")

    assert session.outbound.audio_frames() == 2
    assert [e["event_type"] for e in transport_logs] == ["AUDIO_FRAME_DROPPED"]
    assert transport_logs[0]["connected_for_s"] >= 0


def test_sender_writes_in_enqueue_order():
    async def scenario() -> FakeSocket:
        ws = FakeSocket()
        session = TransportSession(ws, session_id="sess_a")
        sender = asyncio.create_task(session.run_sender())

        session.send_control({"event": "ptt-status", "data": {"id": "sess_b", "isTalking": True}})
        session.send_audio(b"frame")
        await settle()

        session.close()
        await sender
        return ws

    ws = asyncio.run(scenario())

    assert ws.texts == [{"event": "ptt-status", "data": {"id": "sess_b", "isTalking": True}}]
    assert ws.frames == [b"frame"]


def test_close_ends_idle_sender_and_discards_queue():
    async def scenario() -> TransportSession:
        session = TransportSession(FakeSocket(), session_id="sess_a")
        sender = asyncio.create_task(session.run_sender())
        await settle()

        session.close()
        await asyncio.wait_for(sender, timeout=1.0)

        session.send_audio(b"late")
        return session

    session = asyncio.run(scenario())

    assert session.writable is False
    assert session.outbound.is_empty()
