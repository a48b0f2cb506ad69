from dataclasses import dataclass, field
from typing import Any, Dict, Protocol

from boxblur.domain.models import Grid, LaunchGrid, Mask, Variant
from boxblur.domain.types import OutputBuffer


@dataclass
class LaunchContext:
    """
    Everything bound to one kernel invocation.
    """

    grid: Grid
    mask: Mask
    launch: LaunchGrid
    variant: Variant
    # Filled by the backend (timings, tile size, device name)
    metrics: Dict[str, Any] = field(default_factory=dict)

    @property
    def params(self) -> Dict[str, Any]:
        return {
            "width": self.grid.width,
            "height": self.grid.height,
            "variant": str(self.variant),
            "groups": (self.launch.groups_x, self.launch.groups_y),
            "local": (self.launch.local_width, self.launch.local_height),
            **self.mask.to_dict(),
        }


class IComputeBackend(Protocol):
    """
    A device able to run both stencil kernels. `launch` blocks until the output is ready.
    """

    name: str

    @property
    def is_available(self) -> bool: ...

    def launch(self, context: LaunchContext) -> OutputBuffer: ...
