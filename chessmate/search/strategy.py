"""Opponent strategies, one per difficulty tier.

Every tier maps a position to one of its legal moves. A tier that raises is
logged and replaced by the first legal move, so a bug in the search never
leaves the opponent without a reply.
"""

from __future__ import annotations

import logging
import random
from dataclasses import replace
from typing import Callable, Dict, List, Optional

from chessmate.config import DEFAULT_CONFIG, SearchConfig
from chessmate.engine.game import GameState, play_legal_move
from chessmate.engine.move import Move
from chessmate.engine.movegen import all_legal_moves
from chessmate.eval import evaluate
from chessmate.search.service import MATE_SCORE, SearchService


logger = logging.getLogger(__name__)


Strategy = Callable[
    [GameState, random.Random, SearchConfig, SearchService], Optional[Move]
]


def _beginner(
    state: GameState, rng: random.Random, config: SearchConfig, service: SearchService
) -> Optional[Move]:
    # Uniform pick over a pool where every capture is entered capture_weight times
    pool: List[Move] = []
    for m in all_legal_moves(state):
        pool.extend([m] * (config.capture_weight if m.is_capture else 1))
    if not pool:
        return None
    return rng.choice(pool)


def _one_ply_score(child: GameState) -> int:
    # Score for the side that just moved; the child has the opponent to move
    if child.is_checkmate:
        return MATE_SCORE
    if child.is_stalemate:
        return 0
    return -evaluate(child)


def _intermediate(
    state: GameState, rng: random.Random, config: SearchConfig, service: SearchService
) -> Optional[Move]:
    best: Optional[Move] = None
    best_score = 0
    for m in all_legal_moves(state):
        score = _one_ply_score(play_legal_move(state, m))
        if best is None or score > best_score:
            best, best_score = m, score
    return best


def _advanced(
    state: GameState, rng: random.Random, config: SearchConfig, service: SearchService
) -> Optional[Move]:
    return service.fixed_depth(state, config.fixed_depth).best_move


def _expert(
    state: GameState, rng: random.Random, config: SearchConfig, service: SearchService
) -> Optional[Move]:
    return service.iterative(state, config.max_depth, config.time_budget_ms).best_move


STRATEGIES: Dict[str, Strategy] = {
    "beginner": _beginner,
    "intermediate": _intermediate,
    "advanced": _advanced,
    "expert": _expert,
}


def _first_legal(state: GameState) -> Optional[Move]:
    moves = all_legal_moves(state)
    return moves[0] if moves else None


def select_ai_move(
    state: GameState,
    *,
    rng: Optional[random.Random] = None,
    config: Optional[SearchConfig] = None,
    service: Optional[SearchService] = None,
) -> Optional[Move]:
    """Choose a move for the side to move using the game's difficulty tier.

    Args:
        state (GameState): Position to move from.
        rng (random.Random, optional): Randomness for the beginner tier.
            Pass a seeded generator for reproducible play.
        config (SearchConfig, optional): Tier tunables.
        service (SearchService, optional): Search service to reuse; a fresh
            one is created otherwise.

    Returns:
        Optional[Move]: A legal move request, or ``None`` when the side to
        move has no legal moves.
    """
    if state.is_game_over:
        return None
    cfg = config if config is not None else DEFAULT_CONFIG
    try:
        strategy = STRATEGIES[state.ai_difficulty]
        move = strategy(
            state,
            rng if rng is not None else random.Random(),
            cfg,
            service if service is not None else SearchService(cfg),
        )
    except Exception:
        logger.exception(
            "strategy failed, falling back to first legal move",
            extra={"difficulty": state.ai_difficulty},
        )
        return _first_legal(state)
    if move is None:
        return _first_legal(state)
    return move


def suggest_move(
    state: GameState,
    difficulty: Optional[str] = None,
    *,
    rng: Optional[random.Random] = None,
    config: Optional[SearchConfig] = None,
    service: Optional[SearchService] = None,
) -> Optional[Move]:
    """Hint for the side to move, produced by the same tiers as the opponent."""
    if difficulty is not None:
        if difficulty not in STRATEGIES:
            raise ValueError(f"unknown difficulty: {difficulty!r}")
        state = replace(state, ai_difficulty=difficulty)
    return select_ai_move(state, rng=rng, config=config, service=service)
