from __future__ import annotations

import threading
import uuid
from typing import Callable, Dict, Optional

from ...engine.game import GameState, new_game


class InMemorySessionStore:
    """Thread-safe in-memory store of game sessions.

    Sessions hold immutable ``GameState`` values; a transition replaces the
    stored value. ``update`` runs a transition under the store lock so two
    requests against the same game cannot interleave.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._games: Dict[str, GameState] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._games)

    def create(self, state: Optional[GameState] = None) -> str:
        """Store ``state`` (a fresh default game if omitted) and return its ``game_id``."""
        gid = str(uuid.uuid4())
        if state is None:
            state = new_game()
        with self._lock:
            self._games[gid] = state
        return gid

    def get(self, game_id: str) -> Optional[GameState]:
        with self._lock:
            return self._games.get(game_id)

    def update(
        self, game_id: str, transition: Callable[[GameState], GameState]
    ) -> GameState:
        """Replace the session's state with ``transition(state)`` atomically.

        Raises:
            KeyError: If ``game_id`` is unknown.
        """
        with self._lock:
            if game_id not in self._games:
                raise KeyError(game_id)
            nxt = transition(self._games[game_id])
            self._games[game_id] = nxt
            return nxt

    def delete(self, game_id: str) -> bool:
        with self._lock:
            return self._games.pop(game_id, None) is not None
