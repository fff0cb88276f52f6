from __future__ import annotations

import logging
import random
from dataclasses import replace
from typing import Any, Dict, List, Literal, Optional

from fastapi import FastAPI, HTTPException, Response
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, Field

from .error import (
    exception_handler,
    http_exception_handler,
    request_validation_exception_handler,
)
from .logging_middleware import RequestIDLoggingMiddleware
from .session import InMemorySessionStore
from ...config import DEFAULT_CONFIG, SearchConfig
from ...engine.board import position_to_str, str_to_position
from ...engine.game import (
    GameState,
    ai_to_move,
    apply_move,
    new_game,
    restart,
    to_fen,
    undo_turn,
)
from ...engine.move import Move, parse_uci
from ...engine.movegen import all_legal_moves, legal_moves, threatened_squares
from ...search.service import SearchService
from ...search.strategy import select_ai_move, suggest_move


logger = logging.getLogger(__name__)


Difficulty = Literal["beginner", "intermediate", "advanced", "expert"]
Mode = Literal["vs_ai", "two_player"]


class CreateGameRequest(BaseModel):
    difficulty: Difficulty = "beginner"
    mode: Mode = "vs_ai"
    show_legal_moves: bool = True
    show_threats: bool = False
    board_flipped: bool = False
    fen: Optional[str] = Field(default=None, description="Starting position (FEN)")


class SettingsRequest(BaseModel):
    difficulty: Optional[Difficulty] = None
    mode: Optional[Mode] = None
    show_legal_moves: Optional[bool] = None
    show_threats: Optional[bool] = None
    board_flipped: Optional[bool] = None


class MoveRequest(BaseModel):
    move: str = Field(..., description="Long algebraic move, e.g. e2e4 or e7e8n")
    auto_reply: bool = Field(default=False, description="Let the AI answer in the same call")


class SearchRequest(BaseModel):
    depth: Optional[int] = Field(default=None, ge=1, le=8)
    movetime_ms: Optional[int] = Field(default=None, ge=1)


class MoveView(BaseModel):
    uci: str
    notation: str
    piece: Optional[str]
    captured: Optional[str]
    is_castling: bool
    is_en_passant: bool
    is_promotion: bool


class GameView(BaseModel):
    game_id: str
    fen: str
    board: List[List[Optional[str]]]
    current_player: str
    difficulty: str
    mode: str
    show_legal_moves: bool
    show_threats: bool
    board_flipped: bool
    in_check: bool
    checkmate: bool
    stalemate: bool
    winner: Optional[str]
    ai_to_move: bool
    legal_moves: List[str]
    threats: List[str]
    last_move: Optional[MoveView]
    move_history: List[MoveView]


class LegalMovesView(BaseModel):
    square: str
    moves: List[str]


class HintView(BaseModel):
    move: Optional[str]


class ThreatsView(BaseModel):
    squares: List[str]


def _move_view(m: Move) -> MoveView:
    return MoveView(
        uci=m.to_uci(),
        notation=str(m),
        piece=m.piece.symbol if m.piece is not None else None,
        captured=m.captured_piece.symbol if m.captured_piece is not None else None,
        is_castling=m.is_castling,
        is_en_passant=m.is_en_passant,
        is_promotion=m.is_promotion,
    )


def _game_view(game_id: str, state: GameState) -> GameView:
    history = [_move_view(m) for m in state.move_history]
    return GameView(
        game_id=game_id,
        fen=to_fen(state),
        board=[[p.symbol if p is not None else None for p in row] for row in state.board],
        current_player=state.current_player,
        difficulty=state.ai_difficulty,
        mode=state.game_mode,
        show_legal_moves=state.show_legal_moves,
        show_threats=state.show_threats,
        board_flipped=state.board_flipped,
        in_check=state.is_check,
        checkmate=state.is_checkmate,
        stalemate=state.is_stalemate,
        winner=state.winner,
        ai_to_move=ai_to_move(state),
        legal_moves=[m.to_uci() for m in all_legal_moves(state)],
        threats=(
            [position_to_str(p) for p in threatened_squares(state)] if state.show_threats else []
        ),
        last_move=history[-1] if history else None,
        move_history=history,
    )


def create_app(
    config: SearchConfig = DEFAULT_CONFIG, rng: Optional[random.Random] = None
) -> FastAPI:
    app = FastAPI(title="Chessmate API", version="0.1.0")

    # Basic logging setup
    logging.basicConfig(level=logging.INFO)

    # Middleware & error handling
    app.add_middleware(RequestIDLoggingMiddleware)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(Exception, exception_handler)

    store = InMemorySessionStore()
    ai_rng = rng if rng is not None else random.Random()

    def require_game(game_id: str) -> GameState:
        state = store.get(game_id)
        if state is None:
            raise HTTPException(status_code=404, detail="game not found")
        return state

    def commit(game_id: str, seen: GameState, nxt: GameState) -> GameState:
        # Replace the session only if nobody else moved in the meantime
        def transition(cur: GameState) -> GameState:
            if cur is not seen:
                raise HTTPException(status_code=409, detail="game changed concurrently")
            return nxt

        try:
            return store.update(game_id, transition)
        except KeyError:
            raise HTTPException(status_code=404, detail="game not found")

    def play_ai(state: GameState) -> GameState:
        move = select_ai_move(state, rng=ai_rng, config=config)
        if move is None:
            raise HTTPException(status_code=409, detail="no legal move available")
        nxt = apply_move(state, move)
        logger.info(
            "ai move",
            extra={"move": move.to_uci(), "difficulty": state.ai_difficulty},
        )
        return nxt

    @app.get("/healthz")
    async def healthz() -> Dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/games", response_model=GameView)
    async def create_game(req: Optional[CreateGameRequest] = None) -> GameView:
        req = req or CreateGameRequest()
        try:
            state = new_game(
                req.difficulty,
                req.mode,
                show_legal_moves=req.show_legal_moves,
                show_threats=req.show_threats,
                board_flipped=req.board_flipped,
                start_fen=req.fen,
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        game_id = store.create(state)
        logger.info("game created", extra={"game_id": game_id, "difficulty": req.difficulty})
        return _game_view(game_id, state)

    @app.get("/api/games/{game_id}/state", response_model=GameView)
    async def get_state(game_id: str) -> GameView:
        return _game_view(game_id, require_game(game_id))

    @app.get("/api/games/{game_id}/legal-moves", response_model=LegalMovesView)
    async def get_legal_moves(game_id: str, square: str) -> LegalMovesView:
        state = require_game(game_id)
        try:
            pos = str_to_position(square)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return LegalMovesView(
            square=square, moves=[position_to_str(p) for p in legal_moves(state, pos)]
        )

    @app.post("/api/games/{game_id}/move", response_model=GameView)
    def make_move(game_id: str, req: MoveRequest) -> GameView:
        state = require_game(game_id)
        try:
            move = parse_uci(req.move)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        if ai_to_move(state):
            raise HTTPException(status_code=409, detail="waiting for the AI to move")
        nxt = apply_move(state, move)
        if nxt is state:
            raise HTTPException(status_code=400, detail="illegal move")
        if req.auto_reply and ai_to_move(nxt):
            nxt = play_ai(nxt)
        return _game_view(game_id, commit(game_id, state, nxt))

    @app.delete("/api/games/{game_id}", status_code=204)
    async def delete_game(game_id: str) -> Response:
        if not store.delete(game_id):
            raise HTTPException(status_code=404, detail="game not found")
        logger.info("game deleted", extra={"game_id": game_id})
        return Response(status_code=204)

    @app.post("/api/games/{game_id}/undo", response_model=GameView)
    async def undo(game_id: str) -> GameView:
        state = require_game(game_id)
        if not state.move_history:
            raise HTTPException(status_code=400, detail="no move to undo")
        return _game_view(game_id, commit(game_id, state, undo_turn(state)))

    @app.post("/api/games/{game_id}/restart", response_model=GameView)
    async def restart_game(game_id: str) -> GameView:
        state = require_game(game_id)
        return _game_view(game_id, commit(game_id, state, restart(state)))

    @app.patch("/api/games/{game_id}/settings", response_model=GameView)
    async def update_settings(game_id: str, req: SettingsRequest) -> GameView:
        state = require_game(game_id)
        cfg = {**state.config(), **req.model_dump(exclude_none=True)}
        if cfg["difficulty"] != state.ai_difficulty or cfg["mode"] != state.game_mode:
            # A new opponent means a new game
            nxt = new_game(**cfg)
        else:
            nxt = replace(
                state,
                show_legal_moves=cfg["show_legal_moves"],
                show_threats=cfg["show_threats"],
                board_flipped=cfg["board_flipped"],
            )
        return _game_view(game_id, commit(game_id, state, nxt))

    @app.post("/api/games/{game_id}/ai-move", response_model=GameView)
    def ai_move(game_id: str) -> GameView:
        state = require_game(game_id)
        if state.is_game_over:
            raise HTTPException(status_code=409, detail="game is over")
        return _game_view(game_id, commit(game_id, state, play_ai(state)))

    @app.get("/api/games/{game_id}/hint", response_model=HintView)
    def hint(game_id: str, difficulty: Optional[Difficulty] = None) -> HintView:
        state = require_game(game_id)
        move = suggest_move(state, difficulty, rng=ai_rng, config=config)
        return HintView(move=move.to_uci() if move is not None else None)

    @app.get("/api/games/{game_id}/threats", response_model=ThreatsView)
    async def threats(game_id: str) -> ThreatsView:
        state = require_game(game_id)
        return ThreatsView(squares=[position_to_str(p) for p in threatened_squares(state)])

    @app.post("/api/games/{game_id}/search")
    def search(game_id: str, req: SearchRequest) -> Dict[str, Any]:
        state = require_game(game_id)
        service = SearchService(config)
        if req.movetime_ms is not None:
            res = service.iterative(state, req.depth or config.max_depth, req.movetime_ms)
        else:
            res = service.fixed_depth(state, req.depth or config.fixed_depth)
        # Score object: either cp or mate
        score: Optional[Dict[str, Any]]
        if res.mate_in is not None:
            score = {"mate": res.mate_in}
        else:
            score = {"cp": res.score_cp} if res.score_cp is not None else None

        return {
            "best_move": res.best_move.to_uci() if res.best_move else None,
            "score": score,
            "depth": res.depth,
            "seldepth": res.seldepth,
            "nodes": res.nodes,
            "qnodes": res.qnodes,
            "tt": {
                "probes": res.tt_probes,
                "hits": res.tt_hits,
                "stores": res.tt_stores,
                "replacements": res.tt_replacements,
                "size": res.tt_size,
            },
            "time_ms": res.time_ms,
            "iters": res.iters,
        }

    return app


# Default app for non-factory servers
app = create_app()
