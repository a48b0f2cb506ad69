from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Sequence, Tuple

import numpy as np

from boxblur.domain.errors import ConfigError
from boxblur.domain.types import (
    SUPPORTED_SAMPLE_KINDS,
    TILE_CELL_BYTES,
    Dimensions,
    OutputBuffer,
    SampleBuffer,
)


class Variant(StrEnum):
    TILED = "tiled"
    NAIVE = "naive"


@dataclass(frozen=True, eq=False)
class Grid:
    """
    Single-channel image as a flat row-major sample buffer.
    """

    width: int
    height: int
    samples: SampleBuffer

    def __post_init__(self) -> None:
        """
        Normalizes samples to a flat contiguous array and checks the shape invariant.
        """
        if self.width <= 0 or self.height <= 0:
            raise ConfigError(
                "grid dimensions must be positive",
                "grid",
                {"width": self.width, "height": self.height},
            )
        samples = np.ascontiguousarray(np.asarray(self.samples)).reshape(-1)
        if samples.dtype.kind not in SUPPORTED_SAMPLE_KINDS:
            raise ConfigError("unsupported sample type", "grid", {"dtype": str(samples.dtype)})
        if samples.size != self.width * self.height:
            raise ConfigError(
                "sample count does not match width*height",
                "grid",
                {"width": self.width, "height": self.height, "samples": samples.size},
            )
        object.__setattr__(self, "samples", samples)

    @classmethod
    def from_array(cls, data: Any) -> "Grid":
        """Builds a grid from a (height, width) array."""
        arr = np.asarray(data)
        if arr.ndim != 2:
            raise ConfigError("expected a 2D array", "grid", {"ndim": arr.ndim})
        h, w = arr.shape
        return cls(width=w, height=h, samples=arr)

    @property
    def shape(self) -> Dimensions:
        return self.height, self.width

    @property
    def dtype(self) -> np.dtype:
        return self.samples.dtype

    def as_array(self) -> SampleBuffer:
        """(height, width) view of the samples."""
        return self.samples.reshape(self.height, self.width)


@dataclass(frozen=True)
class Mask:
    """
    Window radii around the centre pixel.
    """

    left: int = 0
    up: int = 0
    right: int = 0
    down: int = 0

    def __post_init__(self) -> None:
        if min(self.left, self.up, self.right, self.down) < 0:
            raise ConfigError("mask radii must be non-negative", "mask", self.to_dict())

    @classmethod
    def from_sequence(cls, radii: Sequence[int]) -> "Mask":
        """[left, up, right, down]"""
        if len(radii) != 4:
            raise ConfigError("mask needs exactly 4 radii", "mask", {"radii": list(radii)})
        left, up, right, down = (int(r) for r in radii)
        return cls(left=left, up=up, right=right, down=down)

    @classmethod
    def uniform(cls, radius: int) -> "Mask":
        return cls(radius, radius, radius, radius)

    @property
    def window_width(self) -> int:
        return self.left + self.right + 1

    @property
    def window_height(self) -> int:
        return self.up + self.down + 1

    @property
    def window_area(self) -> int:
        return self.window_width * self.window_height

    def to_array(self) -> np.ndarray:
        return np.array([self.left, self.up, self.right, self.down], dtype=np.int32)

    def to_dict(self) -> dict:
        return {"left": self.left, "up": self.up, "right": self.right, "down": self.down}


@dataclass(frozen=True)
class GroupShape:
    """
    Threads per work-group on each axis.
    """

    local_width: int = 1
    local_height: int = 1

    def __post_init__(self) -> None:
        if self.local_width <= 0 or self.local_height <= 0:
            raise ConfigError(
                "group shape must be positive",
                "group_shape",
                {"local_width": self.local_width, "local_height": self.local_height},
            )

    @classmethod
    def from_sequence(cls, shape: Sequence[int]) -> "GroupShape":
        """[local_width, local_height]"""
        if len(shape) != 2:
            raise ConfigError("group shape needs exactly 2 values", "group_shape", {"shape": list(shape)})
        return cls(local_width=int(shape[0]), local_height=int(shape[1]))

    @property
    def threads(self) -> int:
        return self.local_width * self.local_height


@dataclass(frozen=True)
class LaunchGrid:
    """
    Groups per axis and threads per group for one launch.
    """

    groups_x: int
    groups_y: int
    local_width: int
    local_height: int

    @property
    def global_width(self) -> int:
        return self.groups_x * self.local_width

    @property
    def global_height(self) -> int:
        return self.groups_y * self.local_height

    @property
    def threads_per_group(self) -> int:
        return self.local_width * self.local_height

    @property
    def group_count(self) -> int:
        return self.groups_x * self.groups_y

    @property
    def group_shape(self) -> GroupShape:
        return GroupShape(self.local_width, self.local_height)


def tile_shape(mask: Mask, group: GroupShape) -> Tuple[int, int]:
    """
    (rows, cols) of the halo-extended scratch tile for one group.
    """
    return (
        group.local_height + mask.up + mask.down,
        group.local_width + mask.left + mask.right,
    )


def tile_bytes(mask: Mask, group: GroupShape) -> int:
    rows, cols = tile_shape(mask, group)
    return rows * cols * TILE_CELL_BYTES


@dataclass(frozen=True, eq=False)
class OutputGrid:
    """
    Blurred result. Samples are float64 in-bounds means, exact for any int32
    input on the CPU device; the GPU device computes in float32.
    """

    width: int
    height: int
    samples: OutputBuffer
    source_dtype: np.dtype = field(default_factory=lambda: np.dtype(np.float64))

    def as_array(self) -> OutputBuffer:
        return self.samples.reshape(self.height, self.width)

    def quantized(self) -> SampleBuffer:
        """
        Converts back to the input element type. Integer types truncate toward
        zero, like integer division of the window sum, then clip to the type range.
        """
        dtype = np.dtype(self.source_dtype)
        if np.issubdtype(dtype, np.floating):
            return self.samples.astype(dtype)
        info = np.iinfo(dtype)
        truncated = np.trunc(self.samples.astype(np.float64))
        return np.clip(truncated, info.min, info.max).astype(dtype)
