"""
Navigation Pipeline.

Executes the per-frame guidance pipeline in strict order:

1. Parse and clamp detections (malformed entries dropped)
2. Decode the depth plane through the cache (once per timestamp)
3. Build obstacles (metric distance, else approximate proximity)
4. Decide the instruction
5. Speak it when it changed since the previous frame
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional

import numpy as np
from loguru import logger

from walkguide.core.contracts import (
    DEFAULT_SAFE_DISTANCE_M,
    DepthFrame,
    NavigationResult,
    RawDepthPlane,
)
from walkguide.depth.depth_cache import DepthCache
from walkguide.navigation.detections import parse_detections
from walkguide.navigation.instruction_engine import InstructionEngine, get_phrasebook
from walkguide.navigation.obstacle_builder import ObstacleBuilder
from walkguide.navigation.proximity_estimator import ProximityEstimator
from walkguide.speech.speech_dispatcher import DEFAULT_RATE_LIMIT_MS, SpeechDispatcher


@dataclass
class NavigationConfig:
    """Configuration for the navigation pipeline."""
    # Decision settings
    safe_distance_m: float = DEFAULT_SAFE_DISTANCE_M
    language: str = "en"

    # Depth sampling
    depth_stride: int = 4

    # Approximate proximity (used when no depth)
    area_close_ratio: float = 0.15
    area_low_ratio: float = 0.08
    low_edge_ratio: float = 0.75

    # Speech settings
    speech_enabled: bool = True
    rate_limit_ms: float = DEFAULT_RATE_LIMIT_MS
    tts_rate: int = 160
    tts_volume: float = 0.9

    def validate(self) -> NavigationConfig:
        """Fail fast on values that can only come from a caller bug."""
        if self.safe_distance_m < 0:
            raise ValueError(f"safe_distance_m must be non-negative, got {self.safe_distance_m}")
        if self.rate_limit_ms < 0:
            raise ValueError(f"rate_limit_ms must be non-negative, got {self.rate_limit_ms}")
        if not 0.0 <= self.tts_volume <= 1.0:
            raise ValueError(f"tts_volume must be within [0, 1], got {self.tts_volume}")
        return self

    @classmethod
    def from_dict(cls, config: Optional[Mapping[str, Any]]) -> NavigationConfig:
        """Build from the nested settings layout (navigation/depth/proximity/speech)."""
        config = config or {}
        navigation = config.get('navigation', {}) or {}
        depth = config.get('depth', {}) or {}
        proximity = config.get('proximity', {}) or {}
        speech = config.get('speech', {}) or {}
        defaults = cls()

        return cls(
            safe_distance_m=float(navigation.get('safe_distance_m', defaults.safe_distance_m)),
            language=str(navigation.get('language', defaults.language)),
            depth_stride=int(depth.get('stride', defaults.depth_stride)),
            area_close_ratio=float(proximity.get('close_area_ratio', defaults.area_close_ratio)),
            area_low_ratio=float(proximity.get('low_area_ratio', defaults.area_low_ratio)),
            low_edge_ratio=float(proximity.get('low_edge_ratio', defaults.low_edge_ratio)),
            speech_enabled=bool(speech.get('enabled', defaults.speech_enabled)),
            rate_limit_ms=float(speech.get('rate_limit_ms', defaults.rate_limit_ms)),
            tts_rate=int(speech.get('rate', defaults.tts_rate)),
            tts_volume=float(speech.get('volume', defaults.tts_volume)),
        ).validate()


class NavigationPipeline:
    """
    Per-frame guidance pipeline.

    Owns the de-duplication state (last instruction). The depth cache and
    speech dispatcher are handed in so their lifetimes follow the host
    session.
    """

    def __init__(
        self,
        config: Optional[NavigationConfig] = None,
        depth_cache: Optional[DepthCache] = None,
        dispatcher: Optional[SpeechDispatcher] = None,
    ):
        """
        Initialize navigation pipeline.

        Args:
            config: Pipeline configuration
            depth_cache: Depth cache (a fresh one if None)
            dispatcher: Speech dispatcher (no speech if None)
        """
        self.config = (config or NavigationConfig()).validate()

        self.depth_cache = depth_cache or DepthCache()
        self.dispatcher = dispatcher

        self._obstacle_builder = ObstacleBuilder(
            self.depth_cache,
            proximity=ProximityEstimator(
                close_area_ratio=self.config.area_close_ratio,
                low_area_ratio=self.config.area_low_ratio,
                low_edge_ratio=self.config.low_edge_ratio,
            ),
            depth_stride=self.config.depth_stride,
        )
        self._engine = InstructionEngine(
            safe_distance=self.config.safe_distance_m,
            phrasebook=get_phrasebook(self.config.language),
        )

        self._last_instruction: Optional[str] = None

        # Performance tracking
        self.frames_processed: int = 0
        self.last_latency_ms: float = 0.0

        logger.info("Navigation pipeline initialized")

    @property
    def last_instruction(self) -> Optional[str]:
        return self._last_instruction

    def process(
        self,
        detections: Optional[Iterable[Any]],
        view_width: int,
        view_height: int,
        depth: Optional[RawDepthPlane] = None,
        safe_distance: Optional[float] = None,
    ) -> NavigationResult:
        """
        Process one detection batch.

        Args:
            detections: Raw detector entries or Detection objects
            view_width: View width in pixels
            view_height: View height in pixels
            depth: Raw depth plane, if the sensor session has one
            safe_distance: Override for the configured safe distance

        Returns:
            NavigationResult with instruction, obstacles and depth usage
        """
        start_time = time.perf_counter()

        if read_view_size(view_width) <= 0 or read_view_size(view_height) <= 0:
            logger.warning(f"Invalid view size {view_width}x{view_height}, skipping frame")
            return NavigationResult(instruction=self._engine.phrasebook.go_straight)

        # Step 1: detections
        parsed = parse_detections(detections, view_width, view_height)

        # Step 2: depth
        depth_frame: Optional[DepthFrame] = None
        if depth is not None:
            depth_frame = self.depth_cache.ensure_plane(depth)

        # Step 3: obstacles
        obstacles = self._obstacle_builder.build_all(
            parsed, view_width, view_height, depth_frame
        )

        # Step 4: instruction
        instruction = self._engine.decide(obstacles, safe_distance=safe_distance)

        # Step 5: speech
        spoken = False
        if instruction.strip() and instruction != self._last_instruction:
            self._last_instruction = instruction
            logger.info(f"Instruction: \"{instruction}\"")
            if self.dispatcher is not None:
                spoken = self.dispatcher.speak(instruction)

        self.frames_processed += 1
        self.last_latency_ms = (time.perf_counter() - start_time) * 1000

        return NavigationResult(
            instruction=instruction,
            obstacles=obstacles,
            used_depth=depth_frame is not None,
            spoken=spoken,
        )

    def process_request(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Process a message-channel style request mapping.

        Expects `viewWidth`, `viewHeight` and `detections`; an optional
        `depth` mapping carries a RawDepthPlane's fields.
        """
        safe_distance = request.get('safeDistance')
        if not isinstance(safe_distance, (int, float)) or isinstance(safe_distance, bool) \
                or not math.isfinite(safe_distance):
            safe_distance = None

        result = self.process(
            request.get('detections'),
            read_view_size(request.get('viewWidth')),
            read_view_size(request.get('viewHeight')),
            depth=depth_plane_from_mapping(request.get('depth')),
            safe_distance=safe_distance,
        )
        return result.to_dict()

    def reset(self):
        """Drop cached depth. Call on session pause or tracking loss."""
        self.depth_cache.reset()

    def pause(self):
        self.reset()
        logger.info("Navigation pipeline paused")

    def shutdown(self):
        """Release speech and cached depth."""
        if self.dispatcher is not None:
            self.dispatcher.shutdown()
        self.depth_cache.reset()
        logger.info("Navigation pipeline shutdown complete")

    def get_statistics(self) -> Dict[str, Any]:
        stats: Dict[str, Any] = {
            'frames_processed': self.frames_processed,
            'last_latency_ms': self.last_latency_ms,
            'depth_decodes': self.depth_cache.decode_count,
            'depth_decode_failures': self.depth_cache.decode_failures,
            'last_instruction': self._last_instruction,
        }
        if self.dispatcher is not None:
            stats['speech_dispatches'] = self.dispatcher.dispatch_count
        return stats


def read_view_size(value: Any) -> int:
    """View extent in whole pixels; 0 for anything that is not a finite number."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if not math.isfinite(value):
        return 0
    return int(value)


def depth_plane_from_mapping(depth: Optional[Mapping[str, Any]]) -> Optional[RawDepthPlane]:
    """
    Build a RawDepthPlane from a request mapping.

    The mapping carries `timestamp`, `width`, `height` and either `samples`
    (row-major millimeters) or raw `data` bytes with `rowStride` and
    `pixelStride`. `tracking` defaults to True.
    """
    if isinstance(depth, RawDepthPlane):
        return depth
    if not isinstance(depth, Mapping):
        return None

    try:
        width = int(depth['width'])
        height = int(depth['height'])
        timestamp = int(depth.get('timestamp', 0))

        samples = depth.get('samples')
        if samples is not None:
            millimeters = np.asarray(samples, dtype=np.int64)
            if millimeters.size and (millimeters.min() < 0 or millimeters.max() > 0xFFFF):
                raise ValueError("depth samples must fit in 16 bits")
            data = millimeters.astype('<u2').tobytes()
            row_stride, pixel_stride = width * 2, 2
        else:
            data = depth.get('data', b'')
            row_stride = int(depth.get('rowStride', width * 2))
            pixel_stride = int(depth.get('pixelStride', 2))
    except (KeyError, TypeError, ValueError, OverflowError) as e:
        logger.debug(f"Ignoring malformed depth mapping: {e}")
        return None

    return RawDepthPlane(
        timestamp=timestamp,
        width=width,
        height=height,
        row_stride=row_stride,
        pixel_stride=pixel_stride,
        data=data,
        tracking=bool(depth.get('tracking', True)),
    )
