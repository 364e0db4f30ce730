"""
Depth-Aware Walking Guidance

Turns per-frame object detections and optional sensor depth into a single
spoken navigation instruction for visually-impaired users.

Top Priorities (strict order):
1. Never announce an incorrect blocking distance
2. Deterministic, explainable instructions
3. Degrade to "go straight" or silence when uncertain
4. No instruction spam (rate-limited, de-duplicated speech)
"""

__version__ = "0.1.0"
__author__ = "Walkguide Team"
