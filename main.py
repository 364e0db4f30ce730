#!/usr/bin/env python3
"""
Depth-Aware Walking Guidance

Replays recorded detection frames through the navigation pipeline and speaks
the resulting instructions.

Usage:
    python main.py --replay FRAMES.jsonl [--config CONFIG_PATH]

Each line of FRAMES.jsonl is a JSON object:
    {"view_width": 900, "view_height": 1600,
     "detections": [{"label": "chair", "score": 0.8,
                     "left": 300, "top": 700, "right": 600, "bottom": 1300}],
     "depth": {"timestamp": 17, "width": 4, "height": 2,
               "samples": [900, 900, 0, 0, 1200, 1200, 0, 0]}}
"""

from __future__ import annotations

import argparse
import json
import math
import sys
import time
from pathlib import Path
from typing import Optional

import yaml
from loguru import logger

from walkguide.pipeline.navigator import (
    NavigationConfig,
    NavigationPipeline,
    depth_plane_from_mapping,
    read_view_size,
)
from walkguide.speech.speech_dispatcher import SpeechDispatcher
from walkguide.speech.synthesizer import LoggingSynthesizer, Pyttsx3Synthesizer


# ============================================================
# LOGGING CONFIGURATION
# ============================================================

DEFAULT_CONFIG_PATH = Path(__file__).parent / "config" / "settings.yaml"

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> <level>{level: <7}</level> "
    "<cyan>{name}</cyan> {message}"
)


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    rotation: str = "5 MB",
    retention: int = 3,
):
    """
    Route loguru to stderr and, optionally, a JSON-lines replay log.

    The file sink records every level with `serialize=True` so a replay
    session can be diffed against another one record by record.
    """
    logger.remove()
    logger.add(sys.stderr, level=log_level.upper(), format=CONSOLE_FORMAT, colorize=True)

    if not log_file:
        return
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    logger.add(log_file, level="DEBUG", serialize=True, rotation=rotation, retention=retention)


def load_config(config_path: Optional[str] = None) -> dict:
    """
    Read the YAML settings.

    An explicit path must exist; without one the bundled settings are used
    when present. An empty file means all defaults.
    """
    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
    elif DEFAULT_CONFIG_PATH.exists():
        path = DEFAULT_CONFIG_PATH
    else:
        return {}

    settings = yaml.safe_load(path.read_text()) or {}
    if not isinstance(settings, dict):
        raise ValueError(f"{path}: expected a mapping at the top level, got {type(settings).__name__}")
    return settings


# ============================================================
# REPLAY
# ============================================================

def _as_float(value) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return float(value)


def build_pipeline(config: NavigationConfig, speak: bool) -> NavigationPipeline:
    """Create the pipeline and its speech dispatcher."""
    if speak and config.speech_enabled:
        synthesizer = Pyttsx3Synthesizer(rate=config.tts_rate, volume=config.tts_volume)
    else:
        synthesizer = LoggingSynthesizer()

    dispatcher = SpeechDispatcher(synthesizer, rate_limit_ms=config.rate_limit_ms)
    dispatcher.start()
    return NavigationPipeline(config, dispatcher=dispatcher)


def replay(pipeline: NavigationPipeline, frames_path: Path, frame_interval: float):
    """Run every recorded frame through the pipeline, printing results."""
    with open(frames_path) as f:
        for line_number, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError as e:
                logger.warning(f"Skipping line {line_number}: {e}")
                continue
            if not isinstance(record, dict):
                logger.warning(f"Skipping line {line_number}: expected a JSON object")
                continue

            if record.get('pause'):
                pipeline.pause()
                continue

            result = pipeline.process(
                record.get('detections'),
                read_view_size(record.get('view_width')),
                read_view_size(record.get('view_height')),
                depth=depth_plane_from_mapping(record.get('depth')),
                safe_distance=_as_float(record.get('safe_distance')),
            )
            print(json.dumps(result.to_dict(), ensure_ascii=False))

            if frame_interval > 0:
                time.sleep(frame_interval)


def main():
    parser = argparse.ArgumentParser(
        description="Depth-aware walking guidance: replay detection frames",
    )
    parser.add_argument(
        "--replay", "-r",
        type=str,
        required=True,
        help="Path to a JSON-lines file of recorded frames",
    )
    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to configuration file",
    )
    parser.add_argument(
        "--log-level", "-l",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Path to log file",
    )
    parser.add_argument(
        "--no-speech",
        action="store_true",
        help="Log instructions instead of speaking them",
    )
    parser.add_argument(
        "--safe-distance",
        type=float,
        default=None,
        help="Override the safe distance in meters",
    )
    parser.add_argument(
        "--frame-interval",
        type=float,
        default=0.1,
        help="Seconds to wait between frames (0 = as fast as possible)",
    )

    args = parser.parse_args()

    try:
        settings = load_config(args.config)
    except (OSError, ValueError, yaml.YAMLError) as e:
        logger.error(f"Cannot load settings: {e}")
        sys.exit(1)

    log_settings = settings.get('logging', {}) or {}
    setup_logging(
        args.log_level or log_settings.get('level', "INFO"),
        args.log_file or log_settings.get('file'),
        rotation=log_settings.get('rotation', "5 MB"),
        retention=log_settings.get('retention', 3),
    )

    config = NavigationConfig.from_dict(settings)
    if args.safe_distance is not None:
        config.safe_distance_m = args.safe_distance
        config.validate()

    frames_path = Path(args.replay)
    if not frames_path.exists():
        logger.error(f"Replay file not found: {frames_path}")
        sys.exit(1)

    pipeline = build_pipeline(config, speak=not args.no_speech)
    try:
        replay(pipeline, frames_path, args.frame_interval)
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        # Let a deferred utterance go out before tearing speech down
        time.sleep(config.rate_limit_ms / 1000.0)
        logger.info(f"Statistics: {pipeline.get_statistics()}")
        pipeline.shutdown()


if __name__ == "__main__":
    main()
