import logging
import re
from pathlib import Path
from typing import Dict, List, Optional, Union

import geopandas as gpd
import pandas as pd
import rioxarray as rxr
import yaml

from rangesdm.exceptions import InvalidInputError
from rangesdm.raster.grid import RasterGrid

logger = logging.getLogger(__name__)

CONFIG_PATH = Path(__file__).resolve().parents[1] / "configs" / "default.yaml"

_BIO_NAME = re.compile(r"bio_?(\d+)$", re.IGNORECASE)


def load_config(config_path: Path = CONFIG_PATH) -> Dict:
    """Loads the YAML configuration file."""
    with open(config_path, "r") as f:
        config = yaml.safe_load(f)
    return config or {}


def load_occurrences(
    filepath: Union[str, Path],
    lon_col: str = "longitude",
    lat_col: str = "latitude",
) -> pd.DataFrame:
    """Read occurrence coordinates from a CSV file. Missing values are kept for the cleaner."""
    occurrences = pd.read_csv(filepath)
    missing = {lon_col, lat_col} - set(occurrences.columns)
    if missing:
        raise InvalidInputError(f"{filepath} is missing columns: {sorted(missing)}")
    return occurrences[[lon_col, lat_col]].rename(
        columns={lon_col: "longitude", lat_col: "latitude"}
    )


def load_reference_mask_polygons(filepath: Union[str, Path]) -> gpd.GeoDataFrame:
    """Read land polygons from any vector format geopandas understands."""
    return gpd.read_file(filepath)


def tidy_band_name(long_name: str) -> str:
    """Normalise a band description, e.g. ``wc2.1_10m_bio_12`` -> ``bio12``."""
    name = str(long_name).strip()
    match = _BIO_NAME.search(name)
    if match:
        return f"bio{int(match.group(1))}"
    return name.replace(" ", "_").lower()


def load_covariates(
    filepath: Union[str, Path],
    band_names: Optional[List[str]] = None,
) -> RasterGrid:
    """Load a multi-band GeoTIFF as a RasterGrid.

    Band names come from ``band_names`` if given, else from the file's band
    descriptions (normalised with ``tidy_band_name``), else ``bio1..bioN``.
    """
    data = rxr.open_rasterio(filepath, masked=True)
    n_bands = data.sizes["band"]

    if band_names is None:
        long_name = data.attrs.get("long_name")
        if isinstance(long_name, str):
            long_name = [long_name]
        if long_name is not None and len(long_name) == n_bands:
            band_names = [tidy_band_name(name) for name in long_name]
        else:
            band_names = [f"bio{i}" for i in range(1, n_bands + 1)]
    if len(band_names) != n_bands:
        raise InvalidInputError(f"{filepath} has {n_bands} bands but {len(band_names)} names were given")
    if len(set(band_names)) != len(band_names):
        raise InvalidInputError(f"Duplicate band names for {filepath}: {band_names}")

    data.coords["band"] = band_names
    dataset = data.to_dataset(dim="band")
    logger.info(f"Loaded {n_bands} covariate bands from {filepath}")
    return RasterGrid.from_dataset(dataset)


def save_surface(grid: RasterGrid, filepath: Union[str, Path]) -> Path:
    """Write a grid to GeoTIFF."""
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    grid.data.rio.to_raster(filepath)
    logger.info(f"Saved surface to {filepath}")
    return filepath
