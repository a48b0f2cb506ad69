import os
from typing import Tuple

from boxblur.domain.types import AppConfig


def _parse_shape(raw: str) -> Tuple[int, int]:
    """'4x4' or '4,4' -> (4, 4)"""
    parts = raw.replace("x", ",").split(",")
    if len(parts) != 2:
        raise ValueError(f"Invalid group shape: {raw!r}")
    return int(parts[0]), int(parts[1])


def load_config() -> AppConfig:
    return AppConfig(
        backend=os.getenv("BOXBLUR_BACKEND", "cpu").lower(),
        max_threads_per_group=int(os.getenv("BOXBLUR_MAX_THREADS_PER_GROUP", "256")),
        max_tile_bytes=int(os.getenv("BOXBLUR_MAX_TILE_BYTES", "16384")),
        naive_group_shape=_parse_shape(os.getenv("BOXBLUR_NAIVE_GROUP_SHAPE", "1x1")),
        log_level=os.getenv("BOXBLUR_LOG_LEVEL", "INFO"),
    )


APP_CONFIG = load_config()
