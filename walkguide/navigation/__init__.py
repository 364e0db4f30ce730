"""
Navigation Module.

Responsibilities:
- Parsing and clamping detector output
- Sector assignment and approximate proximity
- Obstacle construction and the blocking predicate
- Rule-based instruction selection
"""

from .detections import parse_detections
from .sector_classifier import sector_of
from .proximity_estimator import ProximityEstimator, is_approximately_close
from .obstacle_builder import ObstacleBuilder, is_blocking
from .instruction_engine import (
    InstructionEngine,
    Phrasebook,
    decide_instruction,
    get_phrasebook,
    ENGLISH,
    SPANISH,
)
