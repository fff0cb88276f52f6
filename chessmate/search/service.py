from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, NamedTuple, Optional

from chessmate.config import DEFAULT_CONFIG, SearchConfig
from chessmate.engine.game import GameState, play_legal_move
from chessmate.engine.move import Move
from chessmate.engine.movegen import all_legal_moves
from chessmate.engine.zobrist import Zobrist, compute_hash, default_keys
from chessmate.eval import evaluate, piece_value


logger = logging.getLogger(__name__)


INF = 10_000_000
MATE_SCORE = 1_000_000  # mate scores are within +/- MATE_SCORE window
MATE_WINDOW = 512

EXACT = "EXACT"
LOWER = "LOWER"
UPPER = "UPPER"


@dataclass
class TTEntry:
    key: int
    depth: int
    flag: str  # "EXACT", "LOWER", "UPPER"
    score: int
    best: Optional[Move]


class TranspositionTable:
    """Position-hash keyed cache of search results.

    Replacement is depth-preferred: an existing entry is overwritten only by
    a search at least as deep.
    """

    def __init__(self) -> None:
        self._entries: Dict[int, TTEntry] = {}
        self.probes = 0
        self.hits = 0
        self.stores = 0
        self.replacements = 0

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()
        self.probes = 0
        self.hits = 0
        self.stores = 0
        self.replacements = 0

    def probe(self, key: int, depth: int = 0) -> Optional[TTEntry]:
        """Return the entry for ``key`` if it was searched at least ``depth`` deep."""
        self.probes += 1
        e = self._entries.get(key)
        if e is None or e.depth < depth:
            return None
        self.hits += 1
        return e

    def best_move(self, key: int) -> Optional[Move]:
        e = self._entries.get(key)
        return e.best if e is not None else None

    def store(
        self, key: int, depth: int, score: int, flag: str, best: Optional[Move]
    ) -> bool:
        existing = self._entries.get(key)
        if existing is not None and depth < existing.depth:
            return False
        self._entries[key] = TTEntry(key, depth, flag, score, best)
        if existing is None:
            self.stores += 1
        else:
            self.replacements += 1
        return True


@dataclass
class SearchContext:
    """Everything one top-level search threads through its recursion.

    ``keys`` is shared for the process lifetime; ``table`` and the counters
    are reset at the start of every top-level search.
    """

    keys: Zobrist = field(default_factory=default_keys)
    table: TranspositionTable = field(default_factory=TranspositionTable)
    config: SearchConfig = DEFAULT_CONFIG
    nodes: int = 0
    qnodes: int = 0
    seldepth: int = 0

    def reset(self) -> None:
        self.table.clear()
        self.nodes = 0
        self.qnodes = 0
        self.seldepth = 0

    def hash(self, state: GameState) -> int:
        return compute_hash(state, self.keys)


class SearchOutcome(NamedTuple):
    score: int
    best_move: Optional[Move]


@dataclass
class SearchResult:
    best_move: Optional[Move]
    score_cp: Optional[int]
    mate_in: Optional[int]
    depth: int
    nodes: int
    qnodes: int
    seldepth: int
    tt_probes: int
    tt_hits: int
    tt_stores: int
    tt_replacements: int
    tt_size: int
    time_ms: int
    iters: List[Dict[str, int]]


def _mate_score(maximizing: bool, ply: int) -> int:
    # Side to move is mated; quicker mates score further from zero
    return -MATE_SCORE + ply if maximizing else MATE_SCORE - ply


def _victim_value(m: Move) -> int:
    return piece_value(m.captured_piece.type) if m.captured_piece is not None else 0


def quiescence(
    ctx: SearchContext,
    state: GameState,
    alpha: int,
    beta: int,
    maximizing: bool,
    ply: int = 0,
    qply: int = 0,
) -> int:
    """Resolve captures (and check evasions) past the nominal depth.

    Scores are from the root player's point of view; ``maximizing`` is True
    when the root player is to move. Fail-hard on the stand-pat bound.
    """
    ctx.nodes += 1
    ctx.qnodes += 1
    if ply > ctx.seldepth:
        ctx.seldepth = ply

    if state.is_checkmate:
        return _mate_score(maximizing, ply)
    if state.is_stalemate:
        return 0

    base = evaluate(state)
    stand_pat = base if maximizing else -base
    if maximizing:
        if stand_pat >= beta:
            return beta
        alpha = max(alpha, stand_pat)
    else:
        if stand_pat <= alpha:
            return alpha
        beta = min(beta, stand_pat)

    if qply >= ctx.config.quiescence_max_ply:
        return stand_pat

    moves = all_legal_moves(state)
    if not state.is_check:
        moves = [m for m in moves if m.is_capture]
    if not moves:
        return stand_pat
    moves.sort(key=_victim_value, reverse=True)

    for m in moves:
        child = play_legal_move(state, m)
        score = quiescence(ctx, child, alpha, beta, not maximizing, ply + 1, qply + 1)
        if maximizing:
            if score >= beta:
                return beta
            alpha = max(alpha, score)
        else:
            if score <= alpha:
                return alpha
            beta = min(beta, score)
    return alpha if maximizing else beta


def minimax(
    ctx: SearchContext,
    state: GameState,
    depth: int,
    alpha: int,
    beta: int,
    maximizing: bool,
    key: int,
    ply: int = 0,
) -> SearchOutcome:
    """Alpha-beta minimax with a transposition table.

    Args:
        ctx (SearchContext): Table, key set and counters for this search.
        state (GameState): Node to search.
        depth (int): Remaining plies before quiescence takes over.
        alpha (int): Lower bound of the window (root player's view).
        beta (int): Upper bound of the window (root player's view).
        maximizing (bool): True when the root player is to move at this node.
        key (int): Zobrist hash of ``state``.
        ply (int): Distance from the root, used to prefer faster mates.

    Returns:
        SearchOutcome: Score and best move (``None`` at terminal or leaf nodes).
    """
    ctx.nodes += 1
    if ply > ctx.seldepth:
        ctx.seldepth = ply
    alpha_orig, beta_orig = alpha, beta

    tt_move = ctx.table.best_move(key)
    entry = ctx.table.probe(key, depth)
    if entry is not None:
        if entry.flag == EXACT:
            return SearchOutcome(entry.score, entry.best)
        if entry.flag == LOWER:
            alpha = max(alpha, entry.score)
        elif entry.flag == UPPER:
            beta = min(beta, entry.score)
        if alpha >= beta:
            return SearchOutcome(entry.score, entry.best)

    if state.is_checkmate:
        return SearchOutcome(_mate_score(maximizing, ply), None)
    if state.is_stalemate:
        return SearchOutcome(0, None)
    if depth <= 0:
        return SearchOutcome(quiescence(ctx, state, alpha, beta, maximizing, ply), None)

    moves = all_legal_moves(state)
    # Stored best move first, then captures by descending victim value
    moves.sort(key=lambda m: (not m.same_squares(tt_move), -_victim_value(m)))

    best_move: Optional[Move] = None
    best = -INF if maximizing else INF
    for m in moves:
        child = play_legal_move(state, m)
        score = minimax(
            ctx, child, depth - 1, alpha, beta, not maximizing, ctx.hash(child), ply + 1
        ).score
        if maximizing:
            if score > best:
                best, best_move = score, m
            alpha = max(alpha, best)
        else:
            if score < best:
                best, best_move = score, m
            beta = min(beta, best)
        if alpha >= beta:
            break

    if best <= alpha_orig:
        flag = UPPER
    elif best >= beta_orig:
        flag = LOWER
    else:
        flag = EXACT
    ctx.table.store(key, depth, best, flag, best_move)
    return SearchOutcome(best, best_move)


def mate_in_from_score(score: int) -> Optional[int]:
    """Moves to mate for a mate score (negative when the root side is mated)."""
    if abs(score) < MATE_SCORE - MATE_WINDOW:
        return None
    plies = MATE_SCORE - abs(score)
    moves = (plies + 1) // 2
    return moves if score > 0 else -moves


class SearchService:
    """Top-level search entry points.

    Each call clears the context's transposition table first so results of
    one move decision never leak into the next.
    """

    def __init__(
        self,
        config: SearchConfig = DEFAULT_CONFIG,
        keys: Optional[Zobrist] = None,
        ctx: Optional[SearchContext] = None,
    ) -> None:
        if ctx is None:
            ctx = SearchContext(keys=keys if keys is not None else default_keys(), config=config)
        self.config = ctx.config
        self.ctx = ctx

    def fixed_depth(self, state: GameState, depth: int) -> SearchResult:
        """Search exactly ``depth`` plies (plus quiescence)."""
        if depth < 1:
            raise ValueError("depth must be >= 1")
        ctx = self.ctx
        ctx.reset()
        start = time.perf_counter()
        outcome = minimax(ctx, state, depth, -INF, INF, True, ctx.hash(state))
        elapsed_ms = int((time.perf_counter() - start) * 1000)
        it = {"depth": depth, "time_ms": elapsed_ms, "nodes": ctx.nodes, "qnodes": ctx.qnodes}
        return self._result(outcome, depth, elapsed_ms, [it])

    def iterative(
        self,
        state: GameState,
        max_depth: int,
        time_budget_ms: Optional[int] = None,
        on_iter: Optional[Callable[[int, int, int, Optional[Move]], None]] = None,
    ) -> SearchResult:
        """Iterative deepening from depth 1 up to ``max_depth``.

        The budget is checked only after a depth completes, so the returned
        move always comes from the deepest fully searched depth. No new depth
        starts once the time left is shorter than the last depth took.
        ``on_iter(depth, time_ms, score, best_move)`` is called after each
        completed depth.
        """
        if max_depth < 1:
            raise ValueError("max_depth must be >= 1")
        ctx = self.ctx
        ctx.reset()
        start = time.perf_counter()
        root_key = ctx.hash(state)
        completed = SearchOutcome(0, None)
        completed_depth = 0
        iters: List[Dict[str, int]] = []
        prev_nodes = 0
        prev_qnodes = 0

        for d in range(1, max_depth + 1):
            iter_start = time.perf_counter()
            outcome = minimax(ctx, state, d, -INF, INF, True, root_key)
            completed, completed_depth = outcome, d
            elapsed_ms = int((time.perf_counter() - start) * 1000)
            iters.append(
                {
                    "depth": d,
                    "time_ms": int((time.perf_counter() - iter_start) * 1000),
                    "nodes": ctx.nodes - prev_nodes,
                    "qnodes": ctx.qnodes - prev_qnodes,
                }
            )
            prev_nodes, prev_qnodes = ctx.nodes, ctx.qnodes
            logger.debug(
                "depth complete",
                extra={
                    "depth": d,
                    "score": outcome.score,
                    "best_move": outcome.best_move.to_uci() if outcome.best_move else None,
                    "nodes": ctx.nodes,
                    "time_ms": elapsed_ms,
                },
            )
            if on_iter is not None:
                on_iter(d, elapsed_ms, outcome.score, outcome.best_move)
            if outcome.best_move is None:
                # Terminal root: nothing deeper to find
                break
            if abs(outcome.score) >= MATE_SCORE - MATE_WINDOW:
                break
            if time_budget_ms is not None:
                # A deeper iteration never costs less than the one just finished
                if iters[-1]["time_ms"] >= time_budget_ms - elapsed_ms:
                    break

        total_ms = int((time.perf_counter() - start) * 1000)
        return self._result(completed, completed_depth, total_ms, iters)

    def _result(
        self, outcome: SearchOutcome, depth: int, time_ms: int, iters: List[Dict[str, int]]
    ) -> SearchResult:
        ctx = self.ctx
        mate_in = mate_in_from_score(outcome.score)
        return SearchResult(
            best_move=outcome.best_move,
            score_cp=outcome.score if mate_in is None else None,
            mate_in=mate_in,
            depth=depth,
            nodes=ctx.nodes,
            qnodes=ctx.qnodes,
            seldepth=ctx.seldepth,
            tt_probes=ctx.table.probes,
            tt_hits=ctx.table.hits,
            tt_stores=ctx.table.stores,
            tt_replacements=ctx.table.replacements,
            tt_size=len(ctx.table),
            time_ms=time_ms,
            iters=iters,
        )


def search(
    state: GameState,
    depth: int,
    time_budget_ms: Optional[int] = None,
    ctx: Optional[SearchContext] = None,
) -> SearchResult:
    """Search ``state`` to a fixed depth, or iteratively when a budget is given.

    With ``time_budget_ms`` set, ``depth`` is the iterative-deepening cap.
    """
    service = SearchService(ctx=ctx)
    if time_budget_ms is None:
        return service.fixed_depth(state, depth)
    return service.iterative(state, depth, time_budget_ms)
