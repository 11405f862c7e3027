"""Model prediction over covariate grids and presence thresholding."""

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd

from rangesdm.exceptions import InvalidInputError
from rangesdm.models.core.training import FittedModel
from rangesdm.raster.grid import RasterGrid

logger = logging.getLogger(__name__)

PROBABILITY_BAND = "probability"
PRESENCE_BAND = "presence"


def predict_probability(model: FittedModel, grid: RasterGrid) -> RasterGrid:
    """Apply a fitted model to every cell of a covariate grid.

    Args:
        model: Fitted logistic regression.
        grid: Covariate grid carrying every variable the model uses.

    Returns:
        Single-band grid (``probability``) on the same geometry. Cells with a
        missing covariate are NaN.
    """
    missing = [var for var in model.variables if var not in grid.band_names]
    if missing:
        raise InvalidInputError(f"Grid lacks bands needed by '{model.name}': {missing}")

    covariates = pd.DataFrame({var: grid.band(var).ravel() for var in model.variables})
    probability = model.predict(covariates).reshape(grid.shape)
    n_valid = int(np.isfinite(probability).sum())
    logger.info(f"Predicted '{model.name}' over {n_valid} of {probability.size} cells")
    return grid.like({PROBABILITY_BAND: probability})


def prevalence_threshold(
    model: FittedModel,
    presence: pd.DataFrame,
    background: pd.DataFrame,
) -> float:
    """Cut-off that makes the predicted presence rate match the observed one.

    The observed prevalence is the share of evaluation points that are presences.
    Candidate cut-offs are 0 and every predicted value on the evaluation points.
    The chosen one minimises |mean(prediction > t) - prevalence|, taking the
    smallest t on ties.
    """
    presence_scores = model.predict(presence)
    background_scores = model.predict(background)
    presence_scores = presence_scores[~np.isnan(presence_scores)]
    background_scores = background_scores[~np.isnan(background_scores)]
    if len(presence_scores) == 0 or len(background_scores) == 0:
        raise InvalidInputError(
            f"Prevalence threshold for '{model.name}' needs presence and background "
            "evaluation points with covariate data"
        )

    scores = np.sort(np.concatenate([presence_scores, background_scores]))
    n = len(scores)
    prevalence = len(presence_scores) / n

    cutoffs = np.unique(np.concatenate([[0.0], scores]))
    n_above = n - np.searchsorted(scores, cutoffs, side="right")
    predicted = n_above / n
    threshold = float(cutoffs[np.argmin(np.abs(predicted - prevalence))])

    logger.info(f"Prevalence threshold for '{model.name}': {threshold:.4f} (observed prevalence {prevalence:.4f})")
    return threshold


def presence_surface(probability: RasterGrid, threshold: float) -> RasterGrid:
    """Cells with probability above ``threshold`` are 1.0, the rest are NaN (absent)."""
    if not 0.0 <= threshold <= 1.0:
        raise InvalidInputError(f"Threshold must be in [0, 1], got {threshold}")
    values = probability.band(PROBABILITY_BAND)
    with np.errstate(invalid="ignore"):
        presence = np.where(values > threshold, 1.0, np.nan)
    return probability.like({PRESENCE_BAND: presence})


@dataclass(frozen=True)
class Prediction:
    probability: RasterGrid
    presence: RasterGrid
    threshold: float


@dataclass(frozen=True)
class ThresholdedModel:
    """A fitted model paired with its threshold, reusable against any covariate grid."""

    model: FittedModel
    threshold: float

    @property
    def name(self) -> str:
        return self.model.name

    def predict(self, grid: RasterGrid) -> Prediction:
        probability = predict_probability(self.model, grid)
        return Prediction(
            probability=probability,
            presence=presence_surface(probability, self.threshold),
            threshold=self.threshold,
        )


def threshold_model(
    model: FittedModel,
    presence_eval: pd.DataFrame,
    background_eval: pd.DataFrame,
) -> ThresholdedModel:
    return ThresholdedModel(
        model=model,
        threshold=prevalence_threshold(model, presence_eval, background_eval),
    )
