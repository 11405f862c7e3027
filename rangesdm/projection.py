"""Re-applying present-day models to a future covariate grid."""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import pandas as pd

from rangesdm.exceptions import InvalidInputError
from rangesdm.models.core.prediction import Prediction, ThresholdedModel
from rangesdm.overlap import OverlapResult, calculate_overlap
from rangesdm.raster.extent import Extent
from rangesdm.raster.grid import RasterGrid

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FutureProjection:
    scenario: Optional[str]
    predictions: List[Prediction]
    overlap: Optional[OverlapResult] = None


def project_future(
    models: Sequence[ThresholdedModel],
    future_grid: RasterGrid,
    reference_extent: Extent,
    scenario: Optional[str] = None,
) -> FutureProjection:
    """Predict each model on the future grid with its present-day threshold.

    The future grid is cropped to ``reference_extent``, the same extent used for
    the present-day surfaces, so the two sets of surfaces share grid geometry.
    When exactly two models are given their future overlap is computed too.

    Args:
        models: Fitted models with thresholds from the present-day run.
        future_grid: Covariates for the future scenario, same band names as present.
        reference_extent: Common extent both periods are cropped to.
        scenario: Opaque label for the climate model/scenario/period.

    Returns:
        FutureProjection with one prediction per model, in input order.
    """
    models = list(models)
    if not models:
        raise InvalidInputError("No models to project")

    cropped = future_grid.crop(reference_extent)
    logger.info(f"Projecting {len(models)} models onto future grid ({scenario}): {cropped!r}")
    predictions = [model.predict(cropped) for model in models]

    overlap = None
    if len(predictions) == 2:
        overlap = calculate_overlap(predictions[0].presence, predictions[1].presence)

    return FutureProjection(scenario=scenario, predictions=predictions, overlap=overlap)


def compare_periods(
    present: OverlapResult,
    future: OverlapResult,
    scenario: Optional[str] = None,
) -> pd.DataFrame:
    """Present and future overlap records side by side."""
    records: List[Dict[str, object]] = [
        {"period": "present", "scenario": None, **present.to_record()},
        {"period": "future", "scenario": scenario, **future.to_record()},
    ]
    return pd.DataFrame(records)
