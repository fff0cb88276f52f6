from __future__ import annotations

import logging
import time
import uuid
from typing import Callable, Dict, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request


logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "x-request-id"
GAMES_PREFIX = "/api/games/"
# AI moves at the deeper tiers can run for seconds
SLOW_RESPONSE_MS = 2000


def game_id_from_path(path: str) -> Optional[str]:
    """Session id addressed by a ``/api/games/{game_id}/...`` path, if any."""
    if not path.startswith(GAMES_PREFIX):
        return None
    game_id = path[len(GAMES_PREFIX):].split("/", 1)[0]
    return game_id or None


class RequestIDLoggingMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id, log it, and echo the id back in a header.

    A client-supplied ``x-request-id`` is kept so a board UI can correlate
    its own logs with the server's. Requests against a game carry its
    ``game_id`` on both log lines.
    """

    async def dispatch(self, request: Request, call_next: Callable):
        start = time.perf_counter()
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        context: Dict[str, str] = {"request_id": request_id}
        game_id = game_id_from_path(request.url.path)
        if game_id is not None:
            context["game_id"] = game_id

        logger.info(
            "request",
            extra={**context, "method": request.method, "path": request.url.path},
        )

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id

        duration_ms = int((time.perf_counter() - start) * 1000)
        level = logging.WARNING if duration_ms >= SLOW_RESPONSE_MS else logging.INFO
        logger.log(
            level,
            "slow response" if level == logging.WARNING else "response",
            extra={**context, "status_code": response.status_code, "duration_ms": duration_ms},
        )
        return response
