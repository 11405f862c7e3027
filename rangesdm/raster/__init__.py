from .extent import Extent, DEFAULT_BUFFER_DEGREES
from .grid import RasterGrid, check_alignment
from .utils import construct_transform_shift_bounds, rasterise_mask, cell_centres

__all__ = [
    "Extent",
    "DEFAULT_BUFFER_DEGREES",
    "RasterGrid",
    "check_alignment",
    "construct_transform_shift_bounds",
    "rasterise_mask",
    "cell_centres",
]
