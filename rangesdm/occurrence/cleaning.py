import logging
from typing import Sequence, Tuple, Union

import geopandas as gpd
import numpy as np
import pandas as pd
from shapely.geometry.base import BaseGeometry

from rangesdm.exceptions import InvalidInputError

logger = logging.getLogger(__name__)

POINT_CRS = "EPSG:4326"

CoordinateInput = Union[pd.DataFrame, Sequence[Tuple[float, float]]]


def to_point_table(
    coords: CoordinateInput,
    lon_col: str = "longitude",
    lat_col: str = "latitude",
) -> gpd.GeoDataFrame:
    """Convert raw coordinates into a point table, dropping missing entries.

    Accepts a (Geo)DataFrame with longitude/latitude columns, a GeoDataFrame of
    points, or a sequence of (lon, lat) pairs in which entries may be ``None``.

    Returns:
        GeoDataFrame with ``longitude``, ``latitude`` and point geometry in EPSG:4326.
    """
    if isinstance(coords, gpd.GeoDataFrame) and not {lon_col, lat_col} <= set(coords.columns):
        points = coords[~(coords.geometry.isna() | coords.geometry.is_empty)]
        if points.crs is not None and points.crs != POINT_CRS:
            points = points.to_crs(POINT_CRS)
        frame = pd.DataFrame({"longitude": points.geometry.x, "latitude": points.geometry.y})
    elif isinstance(coords, pd.DataFrame):
        missing_cols = {lon_col, lat_col} - set(coords.columns)
        if missing_cols:
            raise InvalidInputError(f"Coordinate table is missing columns: {sorted(missing_cols)}")
        frame = pd.DataFrame({"longitude": coords[lon_col], "latitude": coords[lat_col]})
    else:
        rows = [(np.nan, np.nan) if pair is None else tuple(pair) for pair in coords]
        frame = pd.DataFrame(rows, columns=["longitude", "latitude"])

    frame = frame.apply(pd.to_numeric, errors="coerce")
    n_input = len(frame)
    frame = frame.dropna().reset_index(drop=True)
    if len(frame) < n_input:
        logger.info(f"Dropped {n_input - len(frame)} coordinates with missing values")
    if frame.empty:
        raise InvalidInputError("No usable coordinates after dropping missing values")

    return gpd.GeoDataFrame(
        frame,
        geometry=gpd.points_from_xy(frame["longitude"], frame["latitude"]),
        crs=POINT_CRS,
    )


def clean_occurrences(
    coords: CoordinateInput,
    invalid_regions: Union[gpd.GeoDataFrame, BaseGeometry],
) -> gpd.GeoDataFrame:
    """Remove occurrences that fall inside invalid regions (e.g. open ocean).

    Intersection tests are planar. If every point is masked the input (minus
    missing entries) is returned unchanged, so an over-strict mask never leaves
    the pipeline without presences.

    Args:
        coords: Raw occurrence coordinates.
        invalid_regions: Polygons where occurrences are not credible.

    Returns:
        GeoDataFrame of the retained points.
    """
    points = to_point_table(coords)

    if isinstance(invalid_regions, gpd.GeoDataFrame):
        if invalid_regions.crs is not None and invalid_regions.crs != points.crs:
            invalid_regions = invalid_regions.to_crs(points.crs)
        invalid_geometry = invalid_regions.union_all()
    else:
        invalid_geometry = invalid_regions

    if invalid_geometry is None or invalid_geometry.is_empty:
        logger.info("Invalid-region mask is empty, keeping all occurrences")
        return points

    masked = points.intersects(invalid_geometry).to_numpy()
    valid = points[~masked].reset_index(drop=True)

    if valid.empty:
        logger.warning(
            f"All {len(points)} occurrences intersect the invalid-region mask; "
            "falling back to the unfiltered coordinates"
        )
        return points

    logger.info(f"Removed {int(masked.sum())} of {len(points)} occurrences inside invalid regions")
    return valid
