"""Fitting binomial GLMs for candidate models."""

import logging
import warnings
from dataclasses import dataclass
from typing import Tuple

import numpy as np
import pandas as pd
import statsmodels.api as sm
from scipy.special import expit
from statsmodels.tools.sm_exceptions import ConvergenceWarning, PerfectSeparationWarning

from rangesdm.exceptions import FitFailureError, InvalidInputError
from rangesdm.models.core.candidates import CandidateModel

logger = logging.getLogger(__name__)

INTERCEPT = "const"


@dataclass(frozen=True, eq=False)
class FittedModel:
    """Coefficients of a fitted logistic regression for one candidate.

    Only the estimates are kept, so the same object can be applied to any table
    or grid that carries the candidate's variables.
    """

    candidate: CandidateModel
    coefficients: pd.Series
    aic: float
    n_obs: int
    converged: bool = True

    @property
    def name(self) -> str:
        return self.candidate.name

    @property
    def variables(self) -> Tuple[str, ...]:
        return self.candidate.variables

    def predict(self, covariates: pd.DataFrame) -> np.ndarray:
        """Probability of presence for every row; rows with missing covariates give NaN."""
        missing = [var for var in self.variables if var not in covariates.columns]
        if missing:
            raise InvalidInputError(f"Model '{self.name}' needs missing columns: {missing}")
        X = covariates[list(self.variables)].to_numpy(dtype=float)
        beta = self.coefficients[list(self.variables)].to_numpy(dtype=float)
        eta = self.coefficients[INTERCEPT] + X @ beta
        return expit(eta)


def fit_candidate(
    candidate: CandidateModel,
    training: pd.DataFrame,
    label_col: str = "pa",
    max_iter: int = 100,
) -> FittedModel:
    """Fit a binomial GLM (logit link) of ``label_col`` on the candidate's variables.

    Args:
        candidate: Variables to include.
        training: Labelled table from ``build_training_table``.
        label_col: Presence (1) / background (0) column.
        max_iter: Maximum IRLS iterations.

    Returns:
        FittedModel with coefficients and AIC.

    Raises:
        InvalidInputError: Empty or unknown variables, zero variance, or a single class.
        FitFailureError: The fit did not converge, perfectly separated the classes,
            or gave non-finite estimates.
    """
    variables = list(candidate.variables)
    if not variables:
        raise InvalidInputError(f"Candidate '{candidate.name}' has no variables")
    missing = [var for var in variables if var not in training.columns]
    if missing:
        raise InvalidInputError(f"Candidate '{candidate.name}' uses unknown variables: {missing}")
    if label_col not in training.columns:
        raise InvalidInputError(f"Training table has no '{label_col}' column")

    data = training[variables + [label_col]].dropna()
    if len(data) < len(training):
        logger.debug(f"{candidate.name}: dropped {len(training) - len(data)} rows with missing values")
    y = data[label_col].astype(float)
    if y.nunique() < 2:
        raise InvalidInputError(f"Candidate '{candidate.name}': training rows contain a single class")

    spread = data[variables].astype(float).std(ddof=0)
    constant = spread.index[~(spread > 0)].tolist()
    if constant:
        raise InvalidInputError(f"Candidate '{candidate.name}': zero-variance covariates {constant}")

    X = sm.add_constant(data[variables].astype(float), has_constant="add")
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        result = sm.GLM(y, X, family=sm.families.Binomial()).fit(maxiter=max_iter)

    for warning in caught:
        logger.debug(f"{candidate.name}: statsmodels warning: {warning.message}")
    converged = bool(getattr(result, "converged", True))
    if any(issubclass(w.category, ConvergenceWarning) for w in caught):
        converged = False
    separated = any(issubclass(w.category, PerfectSeparationWarning) for w in caught)

    params = pd.Series(result.params, index=X.columns)
    aic = float(result.aic)
    if separated:
        raise FitFailureError(
            f"Candidate '{candidate.name}': perfect separation, coefficients are not identified"
        )
    if not converged:
        raise FitFailureError(f"Candidate '{candidate.name}' did not converge in {max_iter} iterations")
    if not np.all(np.isfinite(params.to_numpy())) or not np.isfinite(aic):
        raise FitFailureError(f"Candidate '{candidate.name}' produced non-finite estimates")

    logger.info(f"Fitted {candidate.formula(label_col)} on {len(data)} rows: AIC = {aic:.2f}")
    return FittedModel(
        candidate=candidate,
        coefficients=params,
        aic=aic,
        n_obs=int(len(data)),
        converged=converged,
    )
