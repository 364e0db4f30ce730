"""
Sector Classification.

Maps a detection box to the horizontal third of the view it sits in.
"""

from __future__ import annotations

from walkguide.core.contracts import Rect, Sector


def sector_of(box: Rect, view_width: float) -> Sector:
    """
    Classify a box by its horizontal center.

    Args:
        box: Box in view pixels
        view_width: View width in pixels

    Returns:
        LEFT below one third, RIGHT above two thirds, CENTER otherwise
        (and CENTER when the view width is unknown)
    """
    if view_width <= 0:
        return Sector.CENTER

    third = float(view_width) / 3.0
    center_x = box.center_x
    if center_x < third:
        return Sector.LEFT
    if center_x > 2.0 * third:
        return Sector.RIGHT
    return Sector.CENTER
