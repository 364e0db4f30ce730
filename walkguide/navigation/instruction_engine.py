"""
Instruction Engine.

Converts the obstacle set of one frame into a single spoken instruction.

Rules are a strict precedence chain (first match wins):
1. No obstacles                       -> go straight
2. Any "crosswalk"                    -> crossing guidance
3. Center blocked                     -> right, else left, else stop
4. Center not blocked, has obstacles  -> caution about the nearest one
5. Nothing in the center              -> go straight

Right is checked before Left in rule 3. Keep it that way: users learn the
behaviour.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Optional, Sequence

from loguru import logger

from walkguide.core.contracts import DEFAULT_SAFE_DISTANCE_M, Obstacle, Sector


CROSSWALK_LABEL = "crosswalk"


@dataclass(frozen=True)
class Phrasebook:
    """Instruction texts for one language."""
    go_straight: str
    crosswalk: str
    go_right: str
    go_left: str
    stop: str
    caution_at: str      # {label}, {meters}
    caution_close: str   # {label}
    caution: str         # {label}


ENGLISH = Phrasebook(
    go_straight="go straight",
    crosswalk="crosswalk ahead, proceed to cross",
    go_right="go right",
    go_left="go left",
    stop="stop, obstacles around",
    caution_at="caution {label} ahead at {meters} meters",
    caution_close="caution {label} ahead, very close",
    caution="caution {label} ahead",
)

SPANISH = Phrasebook(
    go_straight="Sigue derecho",
    crosswalk="Hay un paso de cebra al frente. Avanza para cruzar",
    go_right="Sigue por la derecha",
    go_left="Sigue por la izquierda",
    stop="Alto, hay obstáculos alrededor",
    caution_at="Cuidado {label} al frente a {meters} metros",
    caution_close="Cuidado {label} al frente, muy cerca",
    caution="Cuidado {label} al frente",
)

PHRASEBOOKS: Dict[str, Phrasebook] = {
    "en": ENGLISH,
    "es": SPANISH,
}


def get_phrasebook(language: str) -> Phrasebook:
    """Look up a phrasebook by language code, falling back to English."""
    code = (language or "").lower().split("-")[0].split("_")[0]
    phrasebook = PHRASEBOOKS.get(code)
    if phrasebook is None:
        logger.warning(f"No phrasebook for language '{language}', using English")
        return ENGLISH
    return phrasebook


def _distance_key(obstacle: Obstacle) -> float:
    # Unmeasured obstacles sort after every measured one
    if obstacle.distance_meters is None:
        return math.inf
    return obstacle.distance_meters


def decide_instruction(
    obstacles: Sequence[Obstacle],
    safe_distance: float = DEFAULT_SAFE_DISTANCE_M,
    phrasebook: Phrasebook = ENGLISH,
) -> str:
    """
    Decide the instruction for the current frame.

    Args:
        obstacles: All obstacles of the frame
        safe_distance: Metric distance at or below which an obstacle blocks
        phrasebook: Instruction texts

    Returns:
        Instruction text
    """
    if not obstacles:
        return phrasebook.go_straight

    if any(o.label.lower() == CROSSWALK_LABEL for o in obstacles):
        return phrasebook.crosswalk

    center = [o for o in obstacles if o.sector == Sector.CENTER]
    left = [o for o in obstacles if o.sector == Sector.LEFT]
    right = [o for o in obstacles if o.sector == Sector.RIGHT]

    center_blocked = any(o.is_blocking(safe_distance) for o in center)
    left_blocked = any(o.is_blocking(safe_distance) for o in left)
    right_blocked = any(o.is_blocking(safe_distance) for o in right)

    if center_blocked:
        if not right_blocked:
            return phrasebook.go_right
        if not left_blocked:
            return phrasebook.go_left
        return phrasebook.stop

    if not center:
        return phrasebook.go_straight

    # min() keeps the first of equal keys, so detection order breaks ties
    caution = min(center, key=_distance_key)
    if caution.distance_meters is not None:
        return phrasebook.caution_at.format(
            label=caution.label,
            meters=f"{caution.distance_meters:.1f}",
        )
    if caution.is_approximate:
        return phrasebook.caution_close.format(label=caution.label)
    return phrasebook.caution.format(label=caution.label)


class InstructionEngine:
    """Stateless wrapper binding a safe distance and phrasebook."""

    def __init__(
        self,
        safe_distance: float = DEFAULT_SAFE_DISTANCE_M,
        phrasebook: Optional[Phrasebook] = None,
    ):
        if safe_distance < 0:
            raise ValueError(f"safe_distance must be non-negative, got {safe_distance}")
        self.safe_distance = safe_distance
        self.phrasebook = phrasebook or ENGLISH

    def decide(
        self,
        obstacles: Sequence[Obstacle],
        safe_distance: Optional[float] = None,
    ) -> str:
        return decide_instruction(
            obstacles,
            safe_distance=self.safe_distance if safe_distance is None else safe_distance,
            phrasebook=self.phrasebook,
        )
