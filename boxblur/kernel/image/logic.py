from typing import List, Optional

import numpy as np

from boxblur.domain.models import Grid


def create_test_grid(width: int, height: int, max_value: int = 4, seed: Optional[int] = None) -> Grid:
    """
    Random int32 grid with values in [0, max_value).
    """
    rng = np.random.default_rng(seed)
    samples = rng.integers(0, max_value, size=width * height, dtype=np.int32)
    return Grid(width=width, height=height, samples=samples)


def format_grid(samples: np.ndarray, width: int, height: int, precision: int = 2) -> str:
    """
    One text row per image row, for diagnostic dumps.
    """
    arr = np.asarray(samples).reshape(height, width)
    is_int = np.issubdtype(arr.dtype, np.integer)
    rows: List[str] = []
    for y in range(height):
        if is_int:
            rows.append(" ".join(str(int(v)) for v in arr[y]))
        else:
            rows.append(" ".join(f"{float(v):.{precision}f}" for v in arr[y]))
    return "\n".join(rows)
