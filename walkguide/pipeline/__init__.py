"""
Main Pipeline Module.

Orchestrates the per-frame walking guidance pipeline.
"""

from .navigator import NavigationPipeline, NavigationConfig, depth_plane_from_mapping
