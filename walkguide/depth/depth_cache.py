"""
Depth Cache with Median Region Sampling.

Supports:
- One decode per distinct sensor timestamp
- Median-filtered distance queries over view-space regions
- Explicit reset on session pause (no stale distances after a tracking gap)
"""

from __future__ import annotations

import threading
from typing import Any, Optional

import numpy as np
from numpy.typing import NDArray
from loguru import logger

from walkguide.core.contracts import DepthFrame, RawDepthPlane, Rect


class DepthNotAvailableError(RuntimeError):
    """Raised by depth acquisition callables when no depth image exists yet."""


# Failures of the upstream sensor API that degrade to "no depth this frame"
_DECODE_ERRORS = (
    DepthNotAvailableError,
    RuntimeError,
    OSError,
    ValueError,
    TypeError,
    BufferError,
    IndexError,
)


class DepthCache:
    """
    Holds the most recently decoded depth frame, keyed by frame timestamp.

    The cache is an owned object passed into the pipeline. All mutation goes
    through ensure() and reset().
    """

    def __init__(self):
        self._frame: Optional[DepthFrame] = None
        self._lock = threading.Lock()

        # Bumped by reset() so an in-flight decode cannot repopulate the cache
        self._generation: int = 0

        # Diagnostics
        self.decode_count: int = 0
        self.decode_failures: int = 0

    @property
    def current(self) -> Optional[DepthFrame]:
        return self._frame

    def ensure(
        self,
        timestamp: int,
        raw: Any,
        width: int,
        height: int,
        row_stride: int,
        pixel_stride: int,
    ) -> Optional[DepthFrame]:
        """
        Return the decoded frame for `timestamp`, decoding it on first sight.

        Args:
            timestamp: Session-relative sensor timestamp (0 = no frame)
            raw: Little-endian 16-bit plane, or a callable returning it
            width: Depth image width in pixels
            height: Depth image height in pixels
            row_stride: Bytes between rows
            pixel_stride: Bytes between pixels in a row

        Returns:
            The DepthFrame, or None when depth is unavailable
        """
        if timestamp == 0:
            return None

        with self._lock:
            cached = self._frame
            generation = self._generation
        if cached is not None and cached.timestamp == timestamp:
            return cached

        try:
            buffer = raw() if callable(raw) else raw
            samples = self._decode(buffer, width, height, row_stride, pixel_stride)
        except _DECODE_ERRORS as e:
            self.decode_failures += 1
            logger.debug(f"Depth decode failed for timestamp {timestamp}: {e}")
            return None

        frame = DepthFrame(
            timestamp=timestamp,
            width=width,
            height=height,
            samples=samples,
        )

        with self._lock:
            if generation != self._generation:
                logger.debug("Depth cache reset during decode, discarding frame")
                return None
            self._frame = frame
            self.decode_count += 1

        return frame

    def ensure_plane(self, plane: RawDepthPlane) -> Optional[DepthFrame]:
        """ensure() for a RawDepthPlane; no depth while tracking is lost."""
        if not plane.tracking:
            return None
        return self.ensure(
            plane.timestamp,
            plane.data,
            plane.width,
            plane.height,
            plane.row_stride,
            plane.pixel_stride,
        )

    def _decode(
        self,
        buffer: Any,
        width: int,
        height: int,
        row_stride: int,
        pixel_stride: int,
    ) -> NDArray[np.uint16]:
        """Copy a strided little-endian plane into a dense H x W buffer."""
        if width <= 0 or height <= 0:
            raise ValueError(f"invalid depth size {width}x{height}")
        if row_stride <= 0 or pixel_stride <= 0:
            raise ValueError(f"invalid strides row={row_stride} pixel={pixel_stride}")

        data = np.frombuffer(buffer, dtype=np.uint8)

        offsets = (
            np.arange(height, dtype=np.int64)[:, None] * row_stride
            + np.arange(width, dtype=np.int64)[None, :] * pixel_stride
        )
        if int(offsets[-1, -1]) + 1 >= data.size:
            raise ValueError(
                f"depth plane too small: {data.size} bytes for {width}x{height} "
                f"(row_stride={row_stride}, pixel_stride={pixel_stride})"
            )

        low = data[offsets].astype(np.uint16)
        high = data[offsets + 1].astype(np.uint16)
        return low | (high << 8)

    def query(
        self,
        frame: Optional[DepthFrame],
        region: Rect,
        view_width: int,
        view_height: int,
        stride: int = 4,
        tracking: bool = True,
    ) -> Optional[float]:
        """
        Median distance in meters over a view-space region.

        The depth buffer has its own resolution; each sampled view pixel is
        mapped through normalized coordinates. Zero samples are ignored.

        Returns:
            Median distance, or None if nothing valid was sampled
        """
        if frame is None or not tracking:
            return None
        if view_width <= 0 or view_height <= 0:
            return None

        rect = region.clamped(view_width, view_height)
        if rect.is_empty:
            return None

        step = float(stride if stride > 0 else 1)
        xs = rect.left + step * np.arange(int((rect.right - rect.left) // step) + 1)
        ys = rect.top + step * np.arange(int((rect.bottom - rect.top) // step) + 1)

        depth_xs = np.floor(xs / view_width * frame.width + 0.5).astype(np.int64)
        depth_ys = np.floor(ys / view_height * frame.height + 0.5).astype(np.int64)
        depth_xs = depth_xs[(depth_xs >= 0) & (depth_xs < frame.width)]
        depth_ys = depth_ys[(depth_ys >= 0) & (depth_ys < frame.height)]
        if depth_xs.size == 0 or depth_ys.size == 0:
            return None

        grid = frame.samples[np.ix_(depth_ys, depth_xs)]
        valid = grid[grid > 0]
        if valid.size == 0:
            return None

        return float(np.median(valid.astype(np.float64) / 1000.0))

    def reset(self):
        """Drop the cached frame. Idempotent."""
        with self._lock:
            self._frame = None
            self._generation += 1
        logger.debug("Depth cache reset")
