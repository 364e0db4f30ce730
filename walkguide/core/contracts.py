"""
Core data contracts for the walking guidance pipeline.

All components must adhere to these contracts for:
- Deterministic behavior
- Explainability (every obstacle says where its distance came from)
- Single-frame lifetime of detections and obstacles
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

import numpy as np
from numpy.typing import NDArray


DEFAULT_SAFE_DISTANCE_M = 1.2


# ============================================================
# ENUMERATIONS
# ============================================================

class Sector(Enum):
    """Horizontal third of the camera view."""
    LEFT = "L"
    CENTER = "C"
    RIGHT = "R"


# ============================================================
# CORE DATA STRUCTURES
# ============================================================

@dataclass(frozen=True)
class Rect:
    """Axis-aligned box in view-pixel coordinates."""
    left: float
    top: float
    right: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def center_x(self) -> float:
        return (self.left + self.right) / 2.0

    @property
    def is_empty(self) -> bool:
        return self.left >= self.right or self.top >= self.bottom

    def sorted(self) -> Rect:
        """Return a copy with swapped edges put back in order."""
        return Rect(
            left=min(self.left, self.right),
            top=min(self.top, self.bottom),
            right=max(self.left, self.right),
            bottom=max(self.top, self.bottom),
        )

    def clamped(self, view_width: float, view_height: float) -> Rect:
        """Intersect with the view rectangle [0, w] x [0, h]."""
        return Rect(
            left=max(0.0, self.left),
            top=max(0.0, self.top),
            right=min(float(view_width), self.right),
            bottom=min(float(view_height), self.bottom),
        )


@dataclass(frozen=True)
class Detection:
    """
    A detector output for one frame, already projected to view pixels.

    Invariant: box.left < box.right and box.top < box.bottom.
    """
    label: str
    box: Rect
    score: float = 0.0


@dataclass(frozen=True)
class Obstacle:
    """
    A detection enriched with spatial context.

    distance_meters is metric depth when the sensor produced one. When it is
    None, is_approximate says whether the area/position heuristic judged the
    object close. The two are never mixed.
    """
    label: str
    sector: Sector
    distance_meters: Optional[float] = None
    is_approximate: bool = False

    def is_blocking(self, safe_distance: float = DEFAULT_SAFE_DISTANCE_M) -> bool:
        if self.distance_meters is not None:
            return self.distance_meters <= safe_distance
        return self.is_approximate

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "sector": self.sector.value,
            "distanceMeters": self.distance_meters,
            "approximate": self.is_approximate,
        }


@dataclass
class RawDepthPlane:
    """
    Raw 16-bit depth plane as handed over by the sensor session.

    `data` is either the little-endian plane bytes or a zero-argument callable
    that acquires them. The callable form is only invoked on a cache miss.
    """
    timestamp: int
    width: int
    height: int
    row_stride: int
    pixel_stride: int
    data: Union[bytes, bytearray, memoryview, Callable[[], Any]]
    tracking: bool = True


@dataclass(frozen=True, eq=False)
class DepthFrame:
    """Dense row-major depth buffer in millimeters (0 = no return)."""
    timestamp: int
    width: int
    height: int
    samples: NDArray[np.uint16]  # H x W


@dataclass
class SpeechRequest:
    """An utterance waiting for the rate limiter or the synthesizer."""
    text: str
    requested_at: float


# ============================================================
# RESULT TYPES
# ============================================================

@dataclass
class NavigationResult:
    """Result of a single pipeline invocation."""
    instruction: str
    obstacles: List[Obstacle] = field(default_factory=list)
    used_depth: bool = False

    # Instruction differed from the previous frame and a live dispatcher took it
    spoken: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "instruction": self.instruction,
            "obstacles": [o.to_dict() for o in self.obstacles],
            "usedDepth": self.used_depth,
        }
