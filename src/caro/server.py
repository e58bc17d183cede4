"""FastAPI transport for the Caro room engine: a WebSocket endpoint plus room lookup."""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Callable, Dict, List, Optional, Tuple, Type, Union

from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config import Settings
from .errors import CaroError, NoSuchRoom, RoomUnavailable
from .protocol import Audience, GameProtocol, Outbound
from .registry import RoomRegistry

logger = logging.getLogger(__name__)


# ---------- Client messages ----------


class ClientMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    room: Optional[str] = None
    player_name: Optional[str] = Field(default=None, alias="playerName")


class RoomMessage(ClientMessage):
    room: str


class MoveMessage(RoomMessage):
    row: int
    col: int
    player: Union[int, str]


class SendMessage(RoomMessage):
    content: str


class TypingMessage(RoomMessage):
    is_typing: bool = Field(alias="isTyping")


Handler = Callable[[GameProtocol, str, Any], List[Outbound]]

ACTIONS: Dict[str, Tuple[Type[BaseModel], Handler]] = {
    "createRoom": (ClientMessage, lambda p, cid, m: p.create_room(cid, m.room, m.player_name)),
    "createBotRoom": (ClientMessage, lambda p, cid, m: p.create_bot_room(cid, m.room, m.player_name)),
    "joinRoom": (RoomMessage, lambda p, cid, m: p.join_room(cid, m.room, m.player_name)),
    "move": (MoveMessage, lambda p, cid, m: p.move(cid, m.room, m.row, m.col, m.player)),
    "requestRematch": (RoomMessage, lambda p, cid, m: p.request_rematch(cid, m.room)),
    "acceptRematch": (RoomMessage, lambda p, cid, m: p.accept_rematch(cid, m.room)),
    "declineRematch": (RoomMessage, lambda p, cid, m: p.decline_rematch(cid, m.room)),
    "forceReset": (RoomMessage, lambda p, cid, m: p.force_reset(cid, m.room)),
    "leaveRoom": (RoomMessage, lambda p, cid, m: p.leave_room(cid, m.room)),
    "sendMessage": (SendMessage, lambda p, cid, m: p.send_message(cid, m.room, m.content)),
    "typing": (TypingMessage, lambda p, cid, m: p.typing(cid, m.room, m.is_typing)),
}


def dispatch(protocol: GameProtocol, connection_id: str, data: Any) -> List[Outbound]:
    """Validate a raw client message and run the matching protocol action."""
    if not isinstance(data, dict):
        raise ValueError("Message must be a JSON object")
    action = data.get("type")
    if action not in ACTIONS:
        raise ValueError(f"Unknown message type {action!r}")
    model, handler = ACTIONS[action]
    message = model.model_validate(data)
    return handler(protocol, connection_id, message)


def _describe_error(exc: Exception) -> str:
    if isinstance(exc, ValidationError):
        first = exc.errors()[0]
        where = ".".join(str(part) for part in first.get("loc", ()))
        return f"{where}: {first.get('msg')}" if where else str(first.get("msg"))
    return str(exc)


# ---------- Fan-out ----------


class ConnectionManager:
    """Maps connection ids to sockets and delivers engine notifications."""

    def __init__(self, registry: RoomRegistry) -> None:
        self.registry = registry
        self._sockets: Dict[str, WebSocket] = {}

    def __len__(self) -> int:
        return len(self._sockets)

    def register(self, connection_id: str, websocket: WebSocket) -> None:
        self._sockets[connection_id] = websocket

    def unregister(self, connection_id: str) -> None:
        self._sockets.pop(connection_id, None)

    def recipients(self, originator: str, item: Outbound) -> List[str]:
        if item.audience is Audience.ORIGINATOR:
            return [originator]
        members = self.registry.members(item.room) if item.room else []
        if item.audience is Audience.OTHERS:
            return [cid for cid in members if cid != originator]
        return members

    async def send(self, connection_id: str, message: Dict[str, Any]) -> None:
        websocket = self._sockets.get(connection_id)
        if websocket is None:
            return
        try:
            await websocket.send_json(message)
        except (RuntimeError, WebSocketDisconnect) as exc:
            logger.warning("Dropped %s for %s: %s", message.get("type"), connection_id, exc)

    async def deliver(self, originator: str, outbound: List[Outbound]) -> None:
        for item in outbound:
            message = item.message()
            for connection_id in self.recipients(originator, item):
                await self.send(connection_id, message)


# ---------- Application ----------


def _join_url(request: Request, room_id: str) -> str:
    """Link a second player can open, based on the address the creator used."""
    headers = request.headers
    base = headers.get("origin")
    if not base and headers.get("x-forwarded-host"):
        scheme = headers.get("x-forwarded-proto") or request.url.scheme
        base = f"{scheme}://{headers['x-forwarded-host']}"
    if not base:
        # base_url already reflects the Host header
        base = str(request.base_url)
    return f"{base.rstrip('/')}/?room={room_id}"


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    registry = RoomRegistry(bot_name=settings.bot_name)
    protocol = GameProtocol(
        registry,
        max_chat_length=settings.max_chat_length,
        max_name_length=settings.max_name_length,
    )
    manager = ConnectionManager(registry)

    app = FastAPI(title="Caro", description="Real-time 15x15 five-in-a-row rooms")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.state.settings = settings
    app.state.protocol = protocol
    app.state.connections = manager

    @app.post("/api/room")
    def create_room(request: Request) -> Dict[str, str]:
        try:
            room_id = registry.generate_code()
        except RoomUnavailable as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        return {"roomId": room_id, "joinUrl": _join_url(request, room_id)}

    @app.get("/api/room/{room_id}")
    def inspect_room(room_id: str) -> Dict[str, object]:
        try:
            state = protocol.describe(room_id)
        except NoSuchRoom as exc:
            raise HTTPException(status_code=404, detail="Room not found") from exc
        players = state["players"]
        available_slots = [side for side, name in players.items() if name is None]
        return {
            "roomId": state["room"],
            "players": players,
            "spectators": state["spectators"],
            "winner": state["winner"],
            "available": bool(available_slots),
            "availableSlots": available_slots,
        }

    @app.websocket("/ws")
    async def room_socket(websocket: WebSocket) -> None:
        await websocket.accept()
        connection_id = uuid.uuid4().hex
        manager.register(connection_id, websocket)
        await websocket.send_json({"type": "connected", "connectionId": connection_id})
        try:
            while True:
                raw = await websocket.receive_text()
                try:
                    outbound = dispatch(protocol, connection_id, json.loads(raw))
                except (ValueError, CaroError) as exc:
                    # pydantic's ValidationError is a ValueError
                    await manager.send(
                        connection_id, {"type": "error", "message": _describe_error(exc)}
                    )
                    continue
                await manager.deliver(connection_id, outbound)
        except WebSocketDisconnect:
            pass
        finally:
            manager.unregister(connection_id)
            await manager.deliver(connection_id, protocol.disconnect(connection_id))

    return app


app = create_app()
