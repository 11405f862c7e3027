"""Multi-band gridded covariate data."""

import logging
from typing import Dict, Iterable, Optional, Tuple, Union

import numpy as np
import xarray as xr
import rioxarray as rxr  # noqa: F401  registers the .rio accessor

from rangesdm.exceptions import GeometryMismatchError, InvalidInputError
from rangesdm.raster.extent import Extent
from rangesdm.raster.utils import cell_centres

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0088
DEFAULT_CRS = "EPSG:4326"


class RasterGrid:
    """An ordered set of named 2-D bands over a regular, north-up lattice.

    The grid wraps an ``xarray.Dataset`` with ``y``/``x`` dimensions holding cell
    centres. The backing arrays are read-only: every operation (crop, select,
    prediction) returns a new grid.
    """

    def __init__(
        self,
        data: xr.Dataset,
        resolution: Optional[Tuple[float, float]] = None,
    ):
        if len(data.data_vars) == 0:
            raise InvalidInputError("A RasterGrid needs at least one band")
        for name, band in data.data_vars.items():
            if band.dims != ("y", "x"):
                raise InvalidInputError(
                    f"Band '{name}' has dims {band.dims}, expected ('y', 'x')"
                )

        data = data.sortby("x").sortby("y", ascending=False)
        data = data.load().copy(deep=True)
        data = data.astype("float64")
        if data.rio.crs is None:
            data = data.rio.write_crs(DEFAULT_CRS)

        if resolution is None:
            resolution = _infer_resolution(data)
        self._resolution = (abs(float(resolution[0])), abs(float(resolution[1])))

        for name in data.data_vars:
            data[name].values.flags.writeable = False
        self._data = data

    @classmethod
    def from_arrays(
        cls,
        bands: Dict[str, np.ndarray],
        extent: Union[Extent, Tuple[float, float, float, float]],
        crs: str = DEFAULT_CRS,
    ) -> "RasterGrid":
        """Build a grid from equal-shape 2-D arrays (row 0 is the northern edge)."""
        if not bands:
            raise InvalidInputError("No bands supplied")
        if not isinstance(extent, Extent):
            extent = Extent.from_bounds(extent)

        arrays = {name: np.asarray(values, dtype="float64") for name, values in bands.items()}
        shapes = {values.shape for values in arrays.values()}
        if len(shapes) != 1:
            raise InvalidInputError(f"Bands have differing shapes: {shapes}")
        shape = shapes.pop()
        if len(shape) != 2 or 0 in shape:
            raise InvalidInputError(f"Bands must be non-empty 2-D arrays, got shape {shape}")

        height, width = shape
        xres = (extent.xmax - extent.xmin) / width
        yres = (extent.ymax - extent.ymin) / height
        x_coords, y_coords = cell_centres(extent.as_tuple(), xres, yres)

        dataset = xr.Dataset(
            {name: (("y", "x"), values) for name, values in arrays.items()},
            coords={"y": y_coords, "x": x_coords},
        )
        dataset = dataset.rio.write_crs(crs)
        return cls(dataset, resolution=(xres, yres))

    @classmethod
    def from_dataset(cls, dataset: xr.Dataset) -> "RasterGrid":
        return cls(dataset)

    @property
    def data(self) -> xr.Dataset:
        return self._data

    @property
    def band_names(self) -> list:
        return list(self._data.data_vars)

    @property
    def shape(self) -> Tuple[int, int]:
        return (self._data.sizes["y"], self._data.sizes["x"])

    @property
    def resolution(self) -> Tuple[float, float]:
        return self._resolution

    @property
    def crs(self):
        return self._data.rio.crs

    @property
    def x(self) -> np.ndarray:
        return self._data["x"].values

    @property
    def y(self) -> np.ndarray:
        return self._data["y"].values

    @property
    def extent(self) -> Extent:
        xres, yres = self._resolution
        return Extent(
            float(self.x.min()) - xres / 2,
            float(self.y.min()) - yres / 2,
            float(self.x.max()) + xres / 2,
            float(self.y.max()) + yres / 2,
        )

    def band(self, name: str) -> np.ndarray:
        if name not in self._data.data_vars:
            raise InvalidInputError(
                f"Band '{name}' not found. Available bands: {self.band_names}"
            )
        return self._data[name].values

    def select(self, names: Iterable[str]) -> "RasterGrid":
        names = list(names)
        missing = [name for name in names if name not in self._data.data_vars]
        if missing:
            raise InvalidInputError(f"Bands not found in grid: {missing}")
        return RasterGrid(self._data[names], resolution=self._resolution)

    def like(self, bands: Dict[str, np.ndarray]) -> "RasterGrid":
        """A new grid with the same geometry and CRS as this one but different bands."""
        dataset = xr.Dataset(
            {name: (("y", "x"), np.asarray(values, dtype="float64")) for name, values in bands.items()},
            coords={"y": self.y, "x": self.x},
        )
        for name, values in dataset.data_vars.items():
            if values.shape != self.shape:
                raise InvalidInputError(
                    f"Band '{name}' has shape {values.shape}, grid shape is {self.shape}"
                )
        dataset = dataset.rio.write_crs(self.crs)
        return RasterGrid(dataset, resolution=self._resolution)

    def crop(self, extent: Extent) -> "RasterGrid":
        """Cells whose centres fall inside ``extent``."""
        keep_x = (self.x >= extent.xmin) & (self.x <= extent.xmax)
        keep_y = (self.y >= extent.ymin) & (self.y <= extent.ymax)
        if not keep_x.any() or not keep_y.any():
            logger.error(f"Crop extent {extent.as_tuple()} does not overlap grid {self.extent.as_tuple()}")
            raise InvalidInputError(
                f"Crop extent {extent.as_tuple()} does not overlap grid {self.extent.as_tuple()}"
            )
        cropped = self._data.isel(x=np.flatnonzero(keep_x), y=np.flatnonzero(keep_y))
        return RasterGrid(cropped, resolution=self._resolution)

    def same_geometry(self, other: "RasterGrid", rtol: float = 1e-9) -> bool:
        if self.shape != other.shape:
            return False
        if not np.allclose(self._resolution, other.resolution, rtol=rtol, atol=0):
            return False
        return bool(
            np.allclose(self.extent.as_tuple(), other.extent.as_tuple(), rtol=rtol, atol=1e-9)
        )

    def cell_areas(self) -> np.ndarray:
        """Area of every cell in km².

        Geographic grids use the area of a spherical lat/lon band; projected grids
        assume metre units.
        """
        xres, yres = self._resolution
        crs = self.crs
        if crs is not None and crs.is_geographic:
            lat_top = np.clip(self.y + yres / 2, -90.0, 90.0)
            lat_bottom = np.clip(self.y - yres / 2, -90.0, 90.0)
            row_areas = (
                EARTH_RADIUS_KM ** 2
                * np.deg2rad(xres)
                * (np.sin(np.deg2rad(lat_top)) - np.sin(np.deg2rad(lat_bottom)))
            )
            return np.repeat(row_areas[:, np.newaxis], self.shape[1], axis=1)
        return np.full(self.shape, xres * yres / 1e6)

    def __repr__(self) -> str:
        return (
            f"RasterGrid(bands={self.band_names}, shape={self.shape}, "
            f"resolution={self._resolution}, extent={self.extent.as_tuple()})"
        )


def check_alignment(a: RasterGrid, b: RasterGrid) -> None:
    """Raise if two grids do not share extent, resolution and shape."""
    if not a.same_geometry(b):
        logger.error(f"Grid geometry mismatch: {a!r} vs {b!r}")
        raise GeometryMismatchError(
            "Grids must share extent and resolution; crop both to a common reference "
            f"extent first. Got {a.extent.as_tuple()} @ {a.resolution} and "
            f"{b.extent.as_tuple()} @ {b.resolution}"
        )


def _infer_resolution(data: xr.Dataset) -> Tuple[float, float]:
    x = data["x"].values
    y = data["y"].values
    if len(x) < 2 or len(y) < 2:
        raise InvalidInputError(
            "Cannot infer resolution from a grid with a single row or column; pass it explicitly"
        )
    return (float(np.abs(np.diff(x)).mean()), float(np.abs(np.diff(y)).mean()))
