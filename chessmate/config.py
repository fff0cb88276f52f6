from __future__ import annotations

from dataclasses import dataclass
from typing import Final


@dataclass(frozen=True)
class SearchConfig:
    """Tunables for the opponent strategies.

    Attributes:
        fixed_depth (int): Plies searched by the advanced tier.
        time_budget_ms (int): Wall-clock budget of the expert tier; checked
            only between completed depths.
        max_depth (int): Iterative-deepening depth cap of the expert tier.
        capture_weight (int): How many times a capture is entered into the
            beginner tier's random pool.
        quiescence_max_ply (int): Captures followed past the nominal depth
            before the stand-pat score is trusted.
    """

    fixed_depth: int = 3
    time_budget_ms: int = 1000
    max_depth: int = 6
    capture_weight: int = 3
    quiescence_max_ply: int = 8

    def __post_init__(self) -> None:
        if self.fixed_depth < 1:
            raise ValueError("fixed_depth must be >= 1")
        if self.max_depth < 1:
            raise ValueError("max_depth must be >= 1")
        if self.time_budget_ms < 0:
            raise ValueError("time_budget_ms must be >= 0")
        if self.capture_weight < 1:
            raise ValueError("capture_weight must be >= 1")
        if self.quiescence_max_ply < 0:
            raise ValueError("quiescence_max_ply must be >= 0")


DEFAULT_CONFIG: Final = SearchConfig()
