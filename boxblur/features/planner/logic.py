from typing import Optional

from boxblur.domain.errors import ConfigError
from boxblur.domain.models import GroupShape, LaunchGrid, Mask, tile_bytes, tile_shape


def plan(
    width: int,
    height: int,
    group_shape: GroupShape,
    max_threads_per_group: Optional[int] = None,
) -> LaunchGrid:
    """
    Maps the image onto a 2D grid of work-groups that tiles it exactly.
    Non-dividing shapes are rejected, never padded.
    """
    params = {
        "width": width,
        "height": height,
        "local_width": group_shape.local_width,
        "local_height": group_shape.local_height,
    }
    if width <= 0 or height <= 0:
        raise ConfigError("grid dimensions must be positive", "plan", params)

    if width % group_shape.local_width != 0:
        raise ConfigError("group width does not divide grid width", "plan", params)
    if height % group_shape.local_height != 0:
        raise ConfigError("group height does not divide grid height", "plan", params)

    if max_threads_per_group is not None and group_shape.threads > max_threads_per_group:
        raise ConfigError(
            "group exceeds thread budget",
            "plan",
            {**params, "max_threads_per_group": max_threads_per_group},
        )

    return LaunchGrid(
        groups_x=width // group_shape.local_width,
        groups_y=height // group_shape.local_height,
        local_width=group_shape.local_width,
        local_height=group_shape.local_height,
    )


def validate_mask(width: int, height: int, mask: Mask) -> None:
    """
    Each radius must stay inside the grid on its own axis.
    """
    if mask.left >= width or mask.right >= width:
        raise ConfigError(
            "horizontal radius exceeds grid width",
            "validate_mask",
            {"width": width, **mask.to_dict()},
        )
    if mask.up >= height or mask.down >= height:
        raise ConfigError(
            "vertical radius exceeds grid height",
            "validate_mask",
            {"height": height, **mask.to_dict()},
        )


def validate_tile_budget(mask: Mask, group_shape: GroupShape, max_tile_bytes: int) -> None:
    size = tile_bytes(mask, group_shape)
    if size > max_tile_bytes:
        rows, cols = tile_shape(mask, group_shape)
        raise ConfigError(
            "scratch tile exceeds group-local memory budget",
            "validate_tile_budget",
            {"tile_rows": rows, "tile_cols": cols, "tile_bytes": size, "max_tile_bytes": max_tile_bytes},
        )
