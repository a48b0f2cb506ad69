from typing import Any

import numpy as np

from boxblur.domain.errors import ConfigError
from boxblur.domain.models import Grid, GroupShape, Mask


def ensure_grid(data: Any) -> Grid:
    """
    Accepts a Grid or a 2D array.
    """
    if isinstance(data, Grid):
        return data
    if isinstance(data, np.ndarray) or isinstance(data, (list, tuple)):
        return Grid.from_array(data)
    raise ConfigError("cannot build a grid", "grid", {"type": type(data).__name__})


def ensure_mask(data: Any) -> Mask:
    """
    Accepts a Mask or a [left, up, right, down] sequence.
    """
    if isinstance(data, Mask):
        return data
    if isinstance(data, (np.ndarray, list, tuple)):
        try:
            return Mask.from_sequence(np.asarray(data).reshape(-1).tolist())
        except (TypeError, ValueError) as e:
            raise ConfigError("mask radii must be integers", "mask", {"radii": repr(data)}) from e
    raise ConfigError("cannot build a mask", "mask", {"type": type(data).__name__})


def ensure_group_shape(data: Any) -> GroupShape:
    """
    Accepts a GroupShape or a [local_width, local_height] sequence.
    """
    if isinstance(data, GroupShape):
        return data
    if isinstance(data, (np.ndarray, list, tuple)):
        try:
            return GroupShape.from_sequence(np.asarray(data).reshape(-1).tolist())
        except (TypeError, ValueError) as e:
            raise ConfigError("group shape must be integers", "group_shape", {"shape": repr(data)}) from e
    raise ConfigError("cannot build a group shape", "group_shape", {"type": type(data).__name__})


def ensure_device_samples(grid: Grid) -> np.ndarray:
    """
    (height, width) float64 C-contiguous copy for the CPU kernels.
    """
    return np.ascontiguousarray(grid.as_array(), dtype=np.float64)
