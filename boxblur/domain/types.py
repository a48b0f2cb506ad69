from dataclasses import dataclass
from typing import Tuple, TypeAlias

import numpy as np
from numpy.typing import NDArray

SampleBuffer: TypeAlias = NDArray[np.generic]
# float64 from the CPU device, float32 from the GPU device
OutputBuffer: TypeAlias = NDArray[np.floating]
Dimensions: TypeAlias = Tuple[int, int]

# dtype kinds accepted as grid samples (signed, unsigned, float)
SUPPORTED_SAMPLE_KINDS = "iuf"

# Scratch tiles hold 32-bit cells on every device
TILE_CELL_BYTES = 4


@dataclass(frozen=True)
class AppConfig:
    """
    Process-wide compute settings.
    """

    backend: str
    max_threads_per_group: int
    max_tile_bytes: int
    naive_group_shape: Tuple[int, int]
    log_level: str
