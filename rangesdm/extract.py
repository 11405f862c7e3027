"""Sampling covariate grids at point locations and assembling labelled tables."""

import logging
from typing import Optional, Tuple

import geopandas as gpd
import numpy as np
import pandas as pd
from sklearn.model_selection import train_test_split

from rangesdm.exceptions import InvalidInputError
from rangesdm.raster.grid import RasterGrid

logger = logging.getLogger(__name__)

LABEL_COLUMN = "pa"
DEFAULT_HOLDOUT_FRACTION = 0.25


def _point_xy(
    points: pd.DataFrame, grid: RasterGrid, lon_col: str, lat_col: str
) -> Tuple[np.ndarray, np.ndarray]:
    if isinstance(points, gpd.GeoDataFrame):
        if points.crs is not None and grid.crs is not None and points.crs != grid.crs:
            points = points.to_crs(grid.crs)
        geoms = points.geometry
        valid = ~(geoms.isna() | geoms.is_empty)
        x = np.full(len(points), np.nan)
        y = np.full(len(points), np.nan)
        x[valid.to_numpy()] = geoms[valid].x.to_numpy()
        y[valid.to_numpy()] = geoms[valid].y.to_numpy()
        return x, y
    if not {lon_col, lat_col} <= set(points.columns):
        raise InvalidInputError(f"Points need '{lon_col}' and '{lat_col}' columns or point geometry")
    x = pd.to_numeric(points[lon_col], errors="coerce").to_numpy(dtype=float)
    y = pd.to_numeric(points[lat_col], errors="coerce").to_numpy(dtype=float)
    return x, y


def extract_covariates(
    grid: RasterGrid,
    points: pd.DataFrame,
    lon_col: str = "longitude",
    lat_col: str = "latitude",
) -> pd.DataFrame:
    """Look up the grid cell under each point and return its band values.

    Args:
        grid: Covariate grid to sample.
        points: Point table (GeoDataFrame or DataFrame with coordinate columns).
        lon_col: Name of the x coordinate column when ``points`` has no geometry.
        lat_col: Name of the y coordinate column when ``points`` has no geometry.

    Returns:
        DataFrame with one row per point (same index and order) and one column per
        band. Points outside the grid, or with missing coordinates, get NaN in
        every column.
    """
    x, y = _point_xy(points, grid, lon_col, lat_col)
    extent = grid.extent
    xres, yres = grid.resolution
    n_rows, n_cols = grid.shape

    inside = extent.contains(x, y)
    with np.errstate(invalid="ignore"):
        cols = np.floor((x - extent.xmin) / xres)
        rows = np.floor((extent.ymax - y) / yres)
    # points on the max edge belong to the last cell
    cols = np.clip(np.nan_to_num(cols), 0, n_cols - 1).astype(int)
    rows = np.clip(np.nan_to_num(rows), 0, n_rows - 1).astype(int)

    values = {}
    for name in grid.band_names:
        column = grid.band(name)[rows, cols].astype(float)
        column[~inside] = np.nan
        values[name] = column

    n_outside = int((~inside).sum())
    if n_outside:
        logger.info(f"{n_outside} of {len(x)} points fall outside the grid and have no data")

    return pd.DataFrame(values, index=points.index, columns=grid.band_names)


def build_training_table(
    presence_covariates: pd.DataFrame,
    background_covariates: pd.DataFrame,
    label_col: str = LABEL_COLUMN,
) -> pd.DataFrame:
    """Stack presence (label 1) and background (label 0) covariate rows.

    Rows without any covariate value (points outside the grid) are dropped.
    """
    presence = pd.DataFrame(presence_covariates).copy()
    background = pd.DataFrame(background_covariates).copy()
    for frame in (presence, background):
        if "geometry" in frame.columns:
            frame.drop(columns="geometry", inplace=True)
    presence[label_col] = 1
    background[label_col] = 0

    table = pd.concat([presence, background], ignore_index=True)
    covariates = [col for col in table.columns if col != label_col]
    no_data = table[covariates].isna().all(axis=1)
    if no_data.any():
        logger.info(f"Dropping {int(no_data.sum())} rows with no covariate data")
        table = table[~no_data].reset_index(drop=True)

    n_presence = int((table[label_col] == 1).sum())
    n_background = int((table[label_col] == 0).sum())
    if n_presence == 0 or n_background == 0:
        logger.error(
            f"Training table needs both classes, got {n_presence} presence and {n_background} background rows"
        )
        raise InvalidInputError(
            f"Training table needs both classes, got {n_presence} presence and {n_background} background rows"
        )

    logger.info(f"Training table: {n_presence} presence and {n_background} background rows")
    return table


def split_holdout(
    table: pd.DataFrame,
    holdout_fraction: float = DEFAULT_HOLDOUT_FRACTION,
    random_state: Optional[int] = None,
    label_col: str = LABEL_COLUMN,
) -> Tuple[pd.DataFrame, pd.DataFrame, pd.DataFrame]:
    """Split a labelled table into training rows and held-out evaluation tables.

    Args:
        table: Labelled table from ``build_training_table``.
        holdout_fraction: Share of rows held out for evaluation, stratified by
            label. With 0 the full table is used both to fit and to evaluate,
            which overstates AUC.
        random_state: Seed for the split.
        label_col: Name of the label column.

    Returns:
        Tuple of (training table, presence-only evaluation covariates,
        background-only evaluation covariates), all indexed by row labels of
        ``table``. Evaluation tables have no label column.
    """
    if not 0.0 <= holdout_fraction < 1.0:
        raise InvalidInputError(f"holdout_fraction must be in [0, 1), got {holdout_fraction}")

    if holdout_fraction == 0.0:
        logger.warning("holdout_fraction is 0; scoring candidates on the rows they were fitted on")
        training, evaluation = table, table
    else:
        try:
            training, evaluation = train_test_split(
                table,
                test_size=holdout_fraction,
                stratify=table[label_col],
                random_state=random_state,
            )
        except ValueError as e:
            raise InvalidInputError(f"Cannot split table for evaluation: {e}") from e
        logger.info(f"Held out {len(evaluation)} of {len(table)} rows for evaluation")

    presence_eval = evaluation[evaluation[label_col] == 1].drop(columns=label_col)
    background_eval = evaluation[evaluation[label_col] == 0].drop(columns=label_col)
    return training, presence_eval, background_eval
