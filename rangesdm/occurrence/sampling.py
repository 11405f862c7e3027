import logging
from typing import Optional

import geopandas as gpd
import numpy as np

from rangesdm.exceptions import InvalidInputError, SamplingExhaustionError
from rangesdm.occurrence.cleaning import POINT_CRS
from rangesdm.occurrence.mask import ReferenceMask
from rangesdm.raster.extent import Extent

logger = logging.getLogger(__name__)

DEFAULT_N_BACKGROUND = 500
DEFAULT_MASK_RESOLUTION = 0.5


def sample_background_points(
    extent: Extent,
    mask: ReferenceMask,
    n_points: int = DEFAULT_N_BACKGROUND,
    resolution: float = DEFAULT_MASK_RESOLUTION,
    random_state: Optional[int] = None,
) -> gpd.GeoDataFrame:
    """
    Draw background points uniformly from the land cells of a study extent.

    The land mask is rasterised at ``resolution`` over the extent and points are
    drawn from the valid cell centres. Exactly ``n_points`` are returned: when the
    extent holds fewer valid cells than requested, cells are sampled with
    replacement.

    Args:
        extent: Study extent to sample within.
        mask: Land mask deciding which cells are valid.
        n_points: Number of background points to return.
        resolution: Cell size of the rasterised mask in degrees.
        random_state: Seed for reproducible draws.

    Returns:
        GeoDataFrame with ``longitude``, ``latitude``, ``pa`` (always 0) and point geometry.

    Raises:
        SamplingExhaustionError: If the extent contains no valid cells.
    """
    if n_points <= 0:
        raise InvalidInputError(f"n_points must be positive, got {n_points}")

    validity = mask.validity_grid(extent, resolution)
    xx, yy = np.meshgrid(validity.x.values, validity.y.values)
    valid = validity.values & extent.contains(xx, yy)

    flat_x = xx[valid]
    flat_y = yy[valid]
    if len(flat_x) == 0:
        logger.error(f"No land cells inside extent {extent.as_tuple()} at {resolution} resolution")
        raise SamplingExhaustionError(
            f"No valid cells to sample background points from in extent {extent.as_tuple()}"
        )

    rng = np.random.default_rng(random_state)
    replace = len(flat_x) < n_points
    if replace:
        logger.warning(
            f"Only {len(flat_x)} valid cells for {n_points} background points; sampling with replacement"
        )
    chosen = rng.choice(len(flat_x), size=n_points, replace=replace)

    background = gpd.GeoDataFrame(
        {"longitude": flat_x[chosen], "latitude": flat_y[chosen]},
        geometry=gpd.points_from_xy(flat_x[chosen], flat_y[chosen]),
        crs=POINT_CRS,
    )
    background["pa"] = 0
    logger.info(f"Sampled {len(background)} background points from {len(flat_x)} valid cells")
    return background
