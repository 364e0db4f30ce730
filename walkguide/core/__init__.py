"""
Core data contracts for the walking guidance pipeline.

Per-frame execution order (NEVER REORDER):
1. Parse and clamp detections
2. Decode depth plane (once per timestamp)
3. Sample distance per detection, or fall back to the proximity heuristic
4. Assign sectors and build obstacles
5. Decide the instruction
6. Speak it (de-duplicated, rate-limited)
"""

from .contracts import (
    Rect,
    Detection,
    Sector,
    Obstacle,
    RawDepthPlane,
    DepthFrame,
    SpeechRequest,
    NavigationResult,
    DEFAULT_SAFE_DISTANCE_M,
)
