from __future__ import annotations

import pytest

from chessmate.engine.game import new_game
from chessmate.protocol.http.session import InMemorySessionStore


def test_create_get_delete() -> None:
    store = InMemorySessionStore()
    gid = store.create()
    assert store.get(gid) == new_game()
    assert len(store) == 1
    assert store.delete(gid)
    assert not store.delete(gid)
    assert store.get(gid) is None


def test_update_replaces_state_atomically() -> None:
    store = InMemorySessionStore()
    gid = store.create(new_game("expert"))
    nxt = store.update(gid, lambda s: new_game("beginner", s.game_mode))
    assert nxt.ai_difficulty == "beginner"
    assert store.get(gid) is nxt


def test_unknown_id_raises_on_update() -> None:
    store = InMemorySessionStore()
    with pytest.raises(KeyError):
        store.update("nope", lambda s: s)
