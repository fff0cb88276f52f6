from __future__ import annotations

from types import SimpleNamespace
from typing import Any, List

import pytest

from chessmate.config import SearchConfig
from chessmate.engine.game import GameState, new_game
from chessmate.search import service as search_service
from chessmate.search.service import (
    EXACT,
    INF,
    LOWER,
    MATE_SCORE,
    UPPER,
    SearchContext,
    SearchService,
    minimax,
    quiescence,
    search,
)

MATE_IN_ONE = "6k1/5ppp/8/8/8/8/8/R5K1 w - - 0 1"
HANGING_QUEEN = "4k3/8/8/3q4/8/8/3R4/4K3 w - - 0 1"


def test_fixed_depth_finds_back_rank_mate() -> None:
    res = SearchService().fixed_depth(GameState.from_fen(MATE_IN_ONE), 1)
    assert res.best_move is not None and res.best_move.to_uci() == "a1a8"
    assert res.mate_in == 1
    assert res.score_cp is None
    assert res.depth == 1
    assert res.nodes > 0


def test_deeper_search_prefers_the_fastest_mate() -> None:
    res = SearchService().fixed_depth(GameState.from_fen(MATE_IN_ONE), 2)
    assert res.best_move is not None and res.best_move.to_uci() == "a1a8"
    assert res.mate_in == 1


def test_stalemated_root_scores_zero_without_a_move() -> None:
    state = GameState.from_fen("7k/5Q2/6K1/8/8/8/8/8 b - - 0 1")
    res = SearchService().fixed_depth(state, 2)
    assert res.best_move is None
    assert res.score_cp == 0
    assert res.mate_in is None


def test_checkmated_root_reports_being_mated() -> None:
    state = GameState.from_fen("7k/6Q1/6K1/8/8/8/8/8 b - - 0 1")
    assert state.is_checkmate
    res = SearchService().fixed_depth(state, 2)
    assert res.best_move is None
    assert res.score_cp is None
    assert res.mate_in is not None and res.mate_in <= 0


def test_quiescence_sees_the_free_queen() -> None:
    state = GameState.from_fen(HANGING_QUEEN)
    ctx = SearchContext()
    score = quiescence(ctx, state, -INF, INF, True)
    # Rook for queen leaves white a rook up
    assert score > 400
    assert ctx.qnodes > 1


def test_minimax_takes_the_queen_and_fills_the_table() -> None:
    state = GameState.from_fen(HANGING_QUEEN)
    ctx = SearchContext()
    out = minimax(ctx, state, 1, -INF, INF, True, ctx.hash(state))
    assert out.best_move is not None and out.best_move.to_uci() == "d2d5"
    entry = ctx.table.probe(ctx.hash(state), 1)
    assert entry is not None
    assert entry.best is not None and entry.best.to_uci() == "d2d5"
    assert entry.score == out.score


def test_iterative_deepening_reports_each_depth() -> None:
    seen = []
    res = SearchService().iterative(
        new_game(), 2, on_iter=lambda d, ms, score, mv: seen.append(d)
    )
    assert seen == [1, 2]
    assert res.depth == 2
    assert [it["depth"] for it in res.iters] == [1, 2]
    assert res.best_move is not None
    assert res.tt_size > 0


def test_iterative_deepening_stops_once_over_budget() -> None:
    res = SearchService().iterative(new_game(), 4, time_budget_ms=1)
    assert res.depth == 1
    assert res.best_move is not None


def test_iterative_deepening_stops_on_mate() -> None:
    res = search(GameState.from_fen(MATE_IN_ONE), 4, time_budget_ms=60_000)
    assert res.depth == 1
    assert res.best_move is not None and res.best_move.to_uci() == "a1a8"


def test_each_search_starts_with_a_cleared_table() -> None:
    service = SearchService(SearchConfig())
    first = service.fixed_depth(GameState.from_fen(HANGING_QUEEN), 1)
    second = service.fixed_depth(GameState.from_fen(HANGING_QUEEN), 1)
    assert first.nodes == second.nodes
    assert first.tt_size == second.tt_size
    assert abs(second.score_cp or 0) < MATE_SCORE


def test_stored_exact_score_is_returned_without_searching() -> None:
    state = new_game()
    ctx = SearchContext()
    key = ctx.hash(state)
    ctx.table.store(key, 3, 1234, EXACT, None)
    out = minimax(ctx, state, 2, -INF, INF, True, key)
    assert out.score == 1234
    assert out.best_move is None
    assert ctx.nodes == 1


def test_stored_lower_bound_above_beta_cuts_off() -> None:
    state = new_game()
    ctx = SearchContext()
    key = ctx.hash(state)
    ctx.table.store(key, 3, 500, LOWER, None)
    out = minimax(ctx, state, 2, -INF, 400, True, key)
    assert out.score == 500
    assert ctx.nodes == 1


def test_stored_upper_bound_below_alpha_cuts_off() -> None:
    state = new_game()
    ctx = SearchContext()
    key = ctx.hash(state)
    ctx.table.store(key, 3, -700, UPPER, None)
    out = minimax(ctx, state, 2, -600, INF, True, key)
    assert out.score == -700
    assert ctx.nodes == 1


def test_bound_inside_the_window_still_searches() -> None:
    state = GameState.from_fen(HANGING_QUEEN)
    ctx = SearchContext()
    key = ctx.hash(state)
    ctx.table.store(key, 3, -50_000, LOWER, None)
    out = minimax(ctx, state, 1, -INF, INF, True, key)
    assert ctx.nodes > 1
    assert out.best_move is not None and out.best_move.to_uci() == "d2d5"


def test_shallower_entry_is_ignored() -> None:
    state = GameState.from_fen(HANGING_QUEEN)
    ctx = SearchContext()
    key = ctx.hash(state)
    ctx.table.store(key, 0, 1234, EXACT, None)
    out = minimax(ctx, state, 1, -INF, INF, True, key)
    assert out.score != 1234
    assert ctx.nodes > 1


def test_quiescence_stand_pat_fails_hard_at_the_bounds() -> None:
    state = GameState.from_fen(HANGING_QUEEN)
    ctx = SearchContext()
    # White is a queen-for-rook down before capturing; stand-pat still clears beta
    assert quiescence(ctx, state, -INF, -50_000, True) == -50_000
    assert ctx.nodes == 1
    assert quiescence(ctx, state, 50_000, INF, False) == 50_000
    assert ctx.nodes == 2


def test_iterative_deepening_skips_a_depth_that_cannot_finish(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    # Each root iteration takes 250 ms on a fake clock
    clock: List[float] = [0.0]
    real_minimax = search_service.minimax

    def timed_minimax(*args: Any) -> Any:
        if len(args) == 7:
            clock[0] += 0.25
        return real_minimax(*args)

    monkeypatch.setattr(search_service, "time", SimpleNamespace(perf_counter=lambda: clock[0]))
    monkeypatch.setattr(search_service, "minimax", timed_minimax)
    res = SearchService().iterative(GameState.from_fen(HANGING_QUEEN), 4, time_budget_ms=600)
    # 350 ms were left after depth 1, only 100 ms after depth 2
    assert res.depth == 2
    assert [it["time_ms"] for it in res.iters] == [250, 250]
