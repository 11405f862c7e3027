"""Area-based overlap between two presence surfaces."""

import logging
from typing import Dict, Optional

import numpy as np
from pydantic import BaseModel

from rangesdm.models.core.prediction import PRESENCE_BAND
from rangesdm.raster.grid import RasterGrid, check_alignment

logger = logging.getLogger(__name__)


class OverlapResult(BaseModel):
    """Presence areas (km²) and the intersection-over-union of two surfaces.

    ``overlap`` is None when neither surface has any presence area.
    """

    area_a: float
    area_b: float
    area_intersection: float
    overlap: Optional[float] = None

    @property
    def defined(self) -> bool:
        return self.overlap is not None

    def to_record(self) -> Dict[str, float]:
        return {
            "area_a": self.area_a,
            "area_b": self.area_b,
            "area_intersection": self.area_intersection,
            "overlap": np.nan if self.overlap is None else self.overlap,
        }


def _present(surface: RasterGrid, band: str) -> np.ndarray:
    values = surface.band(band)
    with np.errstate(invalid="ignore"):
        return np.isfinite(values) & (values > 0)


def calculate_overlap(
    a: RasterGrid,
    b: RasterGrid,
    band: str = PRESENCE_BAND,
) -> OverlapResult:
    """Compare two presence surfaces on the same grid geometry.

    overlap = area(A ∩ B) / (area(A) + area(B) - area(A ∩ B))

    Raises:
        GeometryMismatchError: If the surfaces differ in extent or resolution.
    """
    check_alignment(a, b)

    areas = a.cell_areas()
    present_a = _present(a, band)
    present_b = _present(b, band)

    area_a = float(areas[present_a].sum())
    area_b = float(areas[present_b].sum())
    area_intersection = float(areas[present_a & present_b].sum())
    union = area_a + area_b - area_intersection

    if union <= 0:
        logger.warning("Neither surface has any presence area; overlap is undefined")
        overlap = None
    else:
        overlap = area_intersection / union
        logger.info(
            f"Overlap: A = {area_a:.1f} km², B = {area_b:.1f} km², "
            f"A∩B = {area_intersection:.1f} km², index = {overlap:.4f}"
        )

    return OverlapResult(
        area_a=area_a,
        area_b=area_b,
        area_intersection=area_intersection,
        overlap=overlap,
    )
