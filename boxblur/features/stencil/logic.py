import cv2
import numpy as np
from numba import njit, prange  # type: ignore

from boxblur.domain.models import Grid, LaunchGrid, Mask
from boxblur.domain.types import OutputBuffer
from boxblur.kernel.image.validation import ensure_device_samples

# No fastmath here: both kernels must accumulate in the same order to stay bit-identical.


@njit(parallel=True, cache=True)
def _tiled_box_blur_jit(
    src: np.ndarray,
    groups_x: int,
    groups_y: int,
    local_w: int,
    local_h: int,
    left: int,
    up: int,
    right: int,
    down: int,
) -> np.ndarray:
    """
    Shared-tile stencil. One prange iteration per work-group; the group's
    threads run as two phases separated by the barrier.
    """
    h, w = src.shape
    out = np.empty((h, w), dtype=np.float64)
    tile_h = local_h + up + down
    tile_w = local_w + left + right
    n_cells = tile_h * tile_w
    n_threads = local_w * local_h
    win_w = left + right + 1
    win_h = up + down + 1

    for g in prange(groups_x * groups_y):
        gid = np.int64(g)
        gy = gid // groups_x
        gx = gid - gy * groups_x
        origin_y = gy * local_h - up
        origin_x = gx * local_w - left

        # Group-local scratch, released when the group finishes
        tile = np.zeros((tile_h, tile_w), dtype=np.float64)

        # Cooperative fill: thread t stages cells t, t + n_threads, ...
        for t in range(n_threads):
            for cell in range(t, n_cells, n_threads):
                ty = cell // tile_w
                tx = cell - ty * tile_w
                sy = origin_y + ty
                sx = origin_x + tx
                if sy >= 0 and sy < h and sx >= 0 and sx < w:
                    tile[ty, tx] = src[sy, sx]

        # Barrier: the whole tile is staged before any thread reads it
        for ly in range(local_h):
            for lx in range(local_w):
                py = origin_y + up + ly
                px = origin_x + left + lx
                acc = 0.0
                count = 0
                for dy in range(win_h):
                    sy = py - up + dy
                    if sy < 0 or sy >= h:
                        continue
                    for dx in range(win_w):
                        sx = px - left + dx
                        if sx < 0 or sx >= w:
                            continue
                        acc += tile[ly + dy, lx + dx]
                        count += 1
                out[py, px] = acc / count
    return out


@njit(parallel=True, cache=True)
def _naive_box_blur_jit(
    src: np.ndarray,
    groups_x: int,
    groups_y: int,
    local_w: int,
    local_h: int,
    left: int,
    up: int,
    right: int,
    down: int,
) -> np.ndarray:
    """
    Uncached stencil. Every thread reads its full window from the source grid.
    """
    h, w = src.shape
    out = np.empty((h, w), dtype=np.float64)
    win_w = left + right + 1
    win_h = up + down + 1

    for g in prange(groups_x * groups_y):
        gid = np.int64(g)
        gy = gid // groups_x
        gx = gid - gy * groups_x
        for ly in range(local_h):
            for lx in range(local_w):
                py = gy * local_h + ly
                px = gx * local_w + lx
                acc = 0.0
                count = 0
                for dy in range(win_h):
                    sy = py - up + dy
                    if sy < 0 or sy >= h:
                        continue
                    for dx in range(win_w):
                        sx = px - left + dx
                        if sx < 0 or sx >= w:
                            continue
                        acc += src[sy, sx]
                        count += 1
                out[py, px] = acc / count
    return out


def tiled_box_blur(grid: Grid, mask: Mask, launch: LaunchGrid) -> OutputBuffer:
    """
    In-bounds box average using one halo-extended scratch tile per group.
    Assumes `launch` was produced by the planner for this grid.
    """
    res: np.ndarray = _tiled_box_blur_jit(
        ensure_device_samples(grid),
        launch.groups_x,
        launch.groups_y,
        launch.local_width,
        launch.local_height,
        mask.left,
        mask.up,
        mask.right,
        mask.down,
    )
    return res


def naive_box_blur(grid: Grid, mask: Mask, launch: LaunchGrid) -> OutputBuffer:
    """In-bounds box average, no shared caching."""
    res: np.ndarray = _naive_box_blur_jit(
        ensure_device_samples(grid),
        launch.groups_x,
        launch.groups_y,
        launch.local_width,
        launch.local_height,
        mask.left,
        mask.up,
        mask.right,
        mask.down,
    )
    return res


def reference_box_blur(grid: Grid, mask: Mask) -> OutputBuffer:
    """
    Host reference via OpenCV: unnormalized window sums over a zero border,
    divided by the matching in-bounds sample counts.
    """
    src = ensure_device_samples(grid)
    ksize = (mask.window_width, mask.window_height)
    anchor = (mask.left, mask.up)

    sums = cv2.boxFilter(src, -1, ksize, anchor=anchor, normalize=False, borderType=cv2.BORDER_CONSTANT)
    counts = cv2.boxFilter(
        np.ones_like(src),
        -1,
        ksize,
        anchor=anchor,
        normalize=False,
        borderType=cv2.BORDER_CONSTANT,
    )
    res: np.ndarray = sums / counts
    return res
