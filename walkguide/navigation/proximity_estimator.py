"""
Proximity Estimation without Depth.

Crude stand-in for metric depth: an object that fills a large share of the
view, or a fair share while reaching into the bottom quarter, is treated as
close. Results must stay flagged as approximate downstream.
"""

from __future__ import annotations

from walkguide.core.contracts import Rect


class ProximityEstimator:
    """Box area and vertical position heuristic."""

    def __init__(
        self,
        close_area_ratio: float = 0.15,
        low_area_ratio: float = 0.08,
        low_edge_ratio: float = 0.75,
    ):
        """
        Initialize proximity estimator.

        Args:
            close_area_ratio: Area share at which a box is close on its own
            low_area_ratio: Area share needed when the box is low in frame
            low_edge_ratio: Bottom edge (fraction of view height) counted as low
        """
        self.close_area_ratio = close_area_ratio
        self.low_area_ratio = low_area_ratio
        self.low_edge_ratio = low_edge_ratio

    def is_approximately_close(
        self,
        box: Rect,
        view_width: float,
        view_height: float,
    ) -> bool:
        total_area = float(view_width) * float(view_height)
        if total_area <= 0:
            return False

        ratio = box.area / total_area
        if ratio >= self.close_area_ratio:
            return True
        return ratio >= self.low_area_ratio and box.bottom > view_height * self.low_edge_ratio


_default_estimator = ProximityEstimator()


def is_approximately_close(box: Rect, view_width: float, view_height: float) -> bool:
    """Module-level shortcut using the default thresholds."""
    return _default_estimator.is_approximately_close(box, view_width, view_height)
