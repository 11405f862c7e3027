import logging
import math
from typing import Iterable, Tuple

import numpy as np
import xarray as xr
from rasterio.features import geometry_mask
from rasterio.transform import Affine, from_bounds
from shapely.geometry.base import BaseGeometry

logger = logging.getLogger(__name__)


def construct_transform_shift_bounds(
    bounds: Tuple[float, float, float, float], resolution: float
) -> Tuple[Affine, Tuple[float, float, float, float]]:
    """
    Construct a transform based on the bounds and resolution.

    Parameters:
    bounds (tuple): The bounds (xmin, ymin, xmax, ymax).
    resolution (float): The cell size in the units of the bounds.

    Returns:
    tuple: A tuple containing the transform and the bounds (shifted outwards to be a
    multiple of the resolution).
    """
    if resolution <= 0:
        raise ValueError(f"Resolution must be positive, got {resolution}")
    xmin, ymin, xmax, ymax = bounds
    # round before flooring so that 10.0 / 0.5 does not land on 19.999999
    xmin = math.floor(round(xmin / resolution, 9)) * resolution
    ymin = math.floor(round(ymin / resolution, 9)) * resolution
    xmax = math.ceil(round(xmax / resolution, 9)) * resolution
    ymax = math.ceil(round(ymax / resolution, 9)) * resolution

    width = max(int(round((xmax - xmin) / resolution)), 1)
    height = max(int(round((ymax - ymin) / resolution)), 1)
    xmax = xmin + width * resolution
    ymax = ymin + height * resolution

    transform = from_bounds(
        west=xmin, south=ymin, east=xmax, north=ymax, width=width, height=height
    )
    return transform, (xmin, ymin, xmax, ymax)


def cell_centres(
    bounds: Tuple[float, float, float, float], xres: float, yres: float
) -> Tuple[np.ndarray, np.ndarray]:
    """Cell centre coordinates for a lattice; x ascending, y descending (north up)."""
    xmin, ymin, xmax, ymax = bounds
    width = int(round((xmax - xmin) / xres))
    height = int(round((ymax - ymin) / yres))
    x_coords = xmin + xres * (np.arange(width) + 0.5)
    y_coords = ymax - yres * (np.arange(height) + 0.5)
    return x_coords, y_coords


def rasterise_mask(
    geometries: Iterable[BaseGeometry],
    bounds: Tuple[float, float, float, float],
    resolution: float,
) -> xr.DataArray:
    """Rasterise geometries onto a lattice snapped to ``resolution``.

    Returns a boolean DataArray that is True where a cell centre is covered by any
    of the geometries.
    """
    transform, snapped = construct_transform_shift_bounds(bounds, resolution)
    x_coords, y_coords = cell_centres(snapped, resolution, resolution)
    out_shape = (len(y_coords), len(x_coords))

    shapes = [geom for geom in geometries if geom is not None and not geom.is_empty]
    if shapes:
        covered = geometry_mask(
            shapes, transform=transform, invert=True, out_shape=out_shape
        )
    else:
        logger.warning("No geometries to rasterise, returning an empty mask")
        covered = np.zeros(out_shape, dtype=bool)

    return xr.DataArray(
        covered,
        coords={"y": y_coords, "x": x_coords},
        dims=("y", "x"),
        name="mask",
    )
