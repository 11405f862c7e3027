import logging

import geopandas as gpd
import xarray as xr
from shapely.geometry.base import BaseGeometry

from rangesdm.exceptions import InvalidInputError
from rangesdm.raster.extent import Extent
from rangesdm.raster.utils import rasterise_mask

logger = logging.getLogger(__name__)

MASK_CRS = "EPSG:4326"


class ReferenceMask:
    """Land polygons that decide which locations are valid.

    Load it once per run and pass it to the cleaner and the sampler. It is never
    modified after construction.
    """

    def __init__(self, land: gpd.GeoDataFrame):
        if land is None or len(land) == 0:
            raise InvalidInputError("Reference mask has no polygons")
        if land.crs is None:
            logger.warning(f"Reference mask has no CRS, assuming {MASK_CRS}")
            land = land.set_crs(MASK_CRS)
        elif land.crs != MASK_CRS:
            land = land.to_crs(MASK_CRS)

        self._land = gpd.GeoDataFrame(geometry=land.geometry.values, crs=land.crs)
        self._land_geometry = self._land.union_all()
        logger.debug(f"Reference mask built from {len(self._land)} polygons")

    @property
    def land(self) -> gpd.GeoDataFrame:
        return self._land.copy()

    @property
    def land_geometry(self) -> BaseGeometry:
        return self._land_geometry

    def invalid_regions(self, extent: Extent) -> gpd.GeoDataFrame:
        """The parts of ``extent`` not covered by land (open ocean)."""
        ocean = extent.to_polygon().difference(self._land_geometry)
        return gpd.GeoDataFrame(geometry=[ocean], crs=self._land.crs)

    def validity_grid(self, extent: Extent, resolution: float) -> xr.DataArray:
        """Boolean land/sea raster over ``extent`` snapped to ``resolution``."""
        return rasterise_mask([self._land_geometry], extent.as_tuple(), resolution)
