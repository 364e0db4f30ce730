"""
Obstacle Builder.

Combines a detection with its sector and either a sampled metric distance or
the approximate-proximity flag.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from walkguide.core.contracts import (
    DEFAULT_SAFE_DISTANCE_M,
    DepthFrame,
    Detection,
    Obstacle,
)
from walkguide.depth.depth_cache import DepthCache
from .proximity_estimator import ProximityEstimator
from .sector_classifier import sector_of


def is_blocking(obstacle: Obstacle, safe_distance: float = DEFAULT_SAFE_DISTANCE_M) -> bool:
    """Metric distance within the safe distance, or approximately close."""
    return obstacle.is_blocking(safe_distance)


class ObstacleBuilder:
    """
    Builds one Obstacle per Detection for the current frame.

    Approximate closeness is only consulted when no metric distance could be
    sampled, so an obstacle is never both measured and approximate.
    """

    def __init__(
        self,
        depth_cache: DepthCache,
        proximity: Optional[ProximityEstimator] = None,
        depth_stride: int = 4,
    ):
        self.depth_cache = depth_cache
        self.proximity = proximity or ProximityEstimator()
        self.depth_stride = depth_stride

    def build(
        self,
        detection: Detection,
        view_width: int,
        view_height: int,
        depth_frame: Optional[DepthFrame] = None,
    ) -> Obstacle:
        distance = None
        if depth_frame is not None:
            distance = self.depth_cache.query(
                depth_frame,
                detection.box,
                view_width,
                view_height,
                stride=self.depth_stride,
            )

        approximate = distance is None and self.proximity.is_approximately_close(
            detection.box, view_width, view_height
        )

        return Obstacle(
            label=detection.label,
            sector=sector_of(detection.box, view_width),
            distance_meters=distance,
            is_approximate=approximate,
        )

    def build_all(
        self,
        detections: Sequence[Detection],
        view_width: int,
        view_height: int,
        depth_frame: Optional[DepthFrame] = None,
    ) -> List[Obstacle]:
        return [
            self.build(det, view_width, view_height, depth_frame)
            for det in detections
        ]
