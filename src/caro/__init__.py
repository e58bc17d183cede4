"""Caro package exposing the room engine, the move protocol and the bot."""

from .ai import HeuristicAI
from .game import evaluate
from .protocol import GameProtocol
from .registry import RoomRegistry
from .room import Room

__all__ = ["GameProtocol", "HeuristicAI", "Room", "RoomRegistry", "evaluate"]
