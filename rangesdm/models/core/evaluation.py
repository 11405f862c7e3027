"""Scoring candidate models by discrimination (AUC) and parsimony (AIC)."""

import logging
from enum import StrEnum
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from pydantic import BaseModel, ConfigDict
from sklearn.metrics import roc_auc_score

from rangesdm.exceptions import InvalidInputError, RangeSDMError
from rangesdm.models.core.candidates import CandidateModel
from rangesdm.models.core.training import FittedModel, fit_candidate

logger = logging.getLogger(__name__)

RESULT_COLUMNS = ["model", "variables", "auc", "aic", "status", "error"]


class CandidateStatus(StrEnum):
    SUCCESS = "success"
    FAILED = "failed"


class CandidateEvaluation(BaseModel):
    """Score for a single candidate. Failed candidates carry the error instead of a fit."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    variables: Tuple[str, ...]
    auc: Optional[float] = None
    aic: Optional[float] = None
    status: CandidateStatus = CandidateStatus.SUCCESS
    error: Optional[str] = None
    fitted: Optional[FittedModel] = None

    @property
    def success(self) -> bool:
        return self.status == CandidateStatus.SUCCESS

    def to_record(self) -> Dict[str, object]:
        return {
            "model": self.name,
            "variables": ", ".join(self.variables),
            "auc": np.nan if self.auc is None else self.auc,
            "aic": np.nan if self.aic is None else self.aic,
            "status": self.status.value,
            "error": self.error,
        }


class ModelSelectionResult:
    """Scored candidate set. Choosing a model from it is left to the caller."""

    def __init__(self, evaluations: List[CandidateEvaluation]):
        self.evaluations = list(evaluations)

    @property
    def table(self) -> pd.DataFrame:
        return pd.DataFrame(
            [evaluation.to_record() for evaluation in self.evaluations],
            columns=RESULT_COLUMNS,
        )

    @property
    def fitted(self) -> Dict[str, FittedModel]:
        return {
            evaluation.name: evaluation.fitted
            for evaluation in self.evaluations
            if evaluation.success and evaluation.fitted is not None
        }

    def get(self, name: str) -> FittedModel:
        for evaluation in self.evaluations:
            if evaluation.name == name:
                if not evaluation.success:
                    raise InvalidInputError(f"Candidate '{name}' failed: {evaluation.error}")
                return evaluation.fitted
        raise KeyError(f"No candidate named '{name}'")

    def __len__(self) -> int:
        return len(self.evaluations)


def evaluate_auc(
    model: FittedModel,
    presence: pd.DataFrame,
    background: pd.DataFrame,
) -> float:
    """Probability that a random presence scores above a random background point.

    Returns NaN when the statistic is undefined: an evaluation table is empty
    after dropping rows with missing covariates, or every prediction is equal.
    """
    presence_scores = model.predict(presence)
    background_scores = model.predict(background)
    presence_scores = presence_scores[~np.isnan(presence_scores)]
    background_scores = background_scores[~np.isnan(background_scores)]

    if len(presence_scores) == 0 or len(background_scores) == 0:
        logger.warning(
            f"AUC undefined for '{model.name}': {len(presence_scores)} presence and "
            f"{len(background_scores)} background evaluation points"
        )
        return float("nan")

    scores = np.concatenate([presence_scores, background_scores])
    if np.ptp(scores) == 0:
        logger.warning(f"AUC undefined for '{model.name}': all predictions are equal")
        return float("nan")

    labels = np.concatenate([np.ones(len(presence_scores)), np.zeros(len(background_scores))])
    return float(roc_auc_score(labels, scores))


def evaluate_candidate(
    candidate: CandidateModel,
    training: pd.DataFrame,
    presence_eval: pd.DataFrame,
    background_eval: pd.DataFrame,
    label_col: str = "pa",
) -> CandidateEvaluation:
    """Fit and score one candidate. Failures are recorded, not raised."""
    try:
        fitted = fit_candidate(candidate, training, label_col=label_col)
        auc = evaluate_auc(fitted, presence_eval, background_eval)
    except RangeSDMError as e:
        logger.warning(f"Candidate '{candidate.name}' failed: {e}")
        return CandidateEvaluation(
            name=candidate.name,
            variables=candidate.variables,
            status=CandidateStatus.FAILED,
            error=str(e),
        )
    except Exception as e:
        logger.error(f"Unexpected error fitting candidate '{candidate.name}': {e}", exc_info=True)
        return CandidateEvaluation(
            name=candidate.name,
            variables=candidate.variables,
            status=CandidateStatus.FAILED,
            error=f"{type(e).__name__}: {e}",
        )

    logger.info(f"Candidate '{candidate.name}': AUC = {auc:.4f}, AIC = {fitted.aic:.2f}")
    return CandidateEvaluation(
        name=candidate.name,
        variables=candidate.variables,
        auc=auc,
        aic=fitted.aic,
        fitted=fitted,
    )


def evaluate_candidates(
    training: pd.DataFrame,
    presence_eval: pd.DataFrame,
    background_eval: pd.DataFrame,
    candidates: Sequence[CandidateModel],
    n_jobs: int = 1,
    label_col: str = "pa",
) -> ModelSelectionResult:
    """Fit every candidate on ``training`` and score it on the held-out tables.

    Each candidate is independent, so they are mapped in parallel with joblib and
    reduced into one result per candidate, in input order.

    Args:
        training: Labelled presence/background table.
        presence_eval: Held-out presence covariates.
        background_eval: Held-out background covariates.
        candidates: Candidate models to score.
        n_jobs: Number of joblib workers.
        label_col: Name of the label column in ``training``.

    Returns:
        ModelSelectionResult with exactly ``len(candidates)`` evaluations.
    """
    candidates = list(candidates)
    if not candidates:
        raise InvalidInputError("No candidate models to evaluate")
    names = [candidate.name for candidate in candidates]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise InvalidInputError(f"Candidate names must be unique, duplicated: {duplicates}")

    logger.info(f"Evaluating {len(candidates)} candidate models with n_jobs={n_jobs}")
    evaluations = Parallel(n_jobs=n_jobs)(
        delayed(evaluate_candidate)(
            candidate, training, presence_eval, background_eval, label_col
        )
        for candidate in candidates
    )

    result = ModelSelectionResult(evaluations)
    n_failed = sum(not evaluation.success for evaluation in result.evaluations)
    if n_failed:
        logger.warning(f"{n_failed} of {len(result)} candidate models failed")
    return result
