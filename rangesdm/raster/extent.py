from dataclasses import dataclass
from typing import Tuple

import geopandas as gpd
import numpy as np
from shapely.geometry import Polygon, box

from rangesdm.exceptions import InvalidInputError
from rangesdm.raster.utils import construct_transform_shift_bounds

DEFAULT_BUFFER_DEGREES = 5.0


@dataclass(frozen=True)
class Extent:
    """An axis-aligned bounding box (xmin, ymin, xmax, ymax)."""

    xmin: float
    ymin: float
    xmax: float
    ymax: float

    def __post_init__(self):
        if not (self.xmin < self.xmax and self.ymin < self.ymax):
            raise InvalidInputError(
                f"Degenerate extent: ({self.xmin}, {self.ymin}, {self.xmax}, {self.ymax})"
            )

    @classmethod
    def from_bounds(cls, bounds) -> "Extent":
        xmin, ymin, xmax, ymax = (float(v) for v in bounds)
        return cls(xmin, ymin, xmax, ymax)

    @classmethod
    def from_points(
        cls, points: gpd.GeoDataFrame, buffer: float = DEFAULT_BUFFER_DEGREES
    ) -> "Extent":
        """Bounding box of a point table expanded by ``buffer`` on every side.

        This is the study extent of a species run. It is reused for background
        sampling and for cropping the present and future covariate grids.
        """
        if len(points) == 0:
            raise InvalidInputError("Cannot derive an extent from an empty point table")
        xmin, ymin, xmax, ymax = points.total_bounds
        if not np.all(np.isfinite([xmin, ymin, xmax, ymax])):
            raise InvalidInputError("Point table has non-finite bounds")
        return cls(xmin - buffer, ymin - buffer, xmax + buffer, ymax + buffer)

    def buffer(self, distance: float) -> "Extent":
        return Extent(
            self.xmin - distance,
            self.ymin - distance,
            self.xmax + distance,
            self.ymax + distance,
        )

    def union(self, other: "Extent") -> "Extent":
        return Extent(
            min(self.xmin, other.xmin),
            min(self.ymin, other.ymin),
            max(self.xmax, other.xmax),
            max(self.ymax, other.ymax),
        )

    def snap(self, resolution: float) -> "Extent":
        """Expand the extent outwards so that its edges fall on multiples of ``resolution``."""
        _, bounds = construct_transform_shift_bounds(self.as_tuple(), resolution)
        return Extent.from_bounds(bounds)

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.xmin, self.ymin, self.xmax, self.ymax)

    def to_polygon(self) -> Polygon:
        return box(*self.as_tuple())

    def contains(self, x, y) -> np.ndarray:
        x = np.asarray(x, dtype=float)
        y = np.asarray(y, dtype=float)
        return (x >= self.xmin) & (x <= self.xmax) & (y >= self.ymin) & (y <= self.ymax)
