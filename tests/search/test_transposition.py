from __future__ import annotations

from chessmate.engine.move import parse_uci
from chessmate.search.service import EXACT, LOWER, UPPER, TranspositionTable


def test_store_then_probe_returns_same_entry() -> None:
    tt = TranspositionTable()
    best = parse_uci("e2e4")
    assert tt.store(0xABC, 4, 37, EXACT, best)

    for depth in (0, 2, 4):
        e = tt.probe(0xABC, depth)
        assert e is not None
        assert (e.score, e.flag, e.best) == (37, EXACT, best)
    assert tt.probe(0xABC, 5) is None
    assert tt.probe(0xDEF) is None
    assert tt.probes == 5
    assert tt.hits == 3


def test_replacement_is_depth_preferred() -> None:
    tt = TranspositionTable()
    tt.store(1, 3, 10, LOWER, None)
    assert not tt.store(1, 2, 99, UPPER, None)
    e = tt.probe(1)
    assert e is not None and (e.depth, e.score, e.flag) == (3, 10, LOWER)

    assert tt.store(1, 3, 11, EXACT, None)
    assert tt.store(1, 5, 12, UPPER, None)
    e = tt.probe(1)
    assert e is not None and (e.depth, e.score) == (5, 12)
    assert tt.stores == 1
    assert tt.replacements == 2
    assert len(tt) == 1


def test_best_move_lookup_ignores_depth() -> None:
    tt = TranspositionTable()
    mv = parse_uci("g1f3")
    tt.store(9, 6, 0, EXACT, mv)
    assert tt.best_move(9) == mv
    assert tt.best_move(10) is None


def test_clear_resets_entries_and_counters() -> None:
    tt = TranspositionTable()
    tt.store(1, 1, 0, EXACT, None)
    tt.probe(1)
    tt.clear()
    assert len(tt) == 0
    assert (tt.probes, tt.hits, tt.stores, tt.replacements) == (0, 0, 0, 0)
    assert tt.probe(1) is None
