"""
Depth Module.

Responsibilities:
- Decoding 16-bit sensor depth planes (once per timestamp)
- Median-filtered distance sampling over detection boxes
- Dropping cached depth on session pause
"""

from .depth_cache import DepthCache, DepthNotAvailableError
