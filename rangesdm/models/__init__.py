"""
Candidate model fitting, scoring and prediction.
"""

from .core.candidates import CandidateModel, candidates_from_config
from .core.training import FittedModel, fit_candidate
from .core.evaluation import (
    CandidateEvaluation,
    CandidateStatus,
    ModelSelectionResult,
    evaluate_auc,
    evaluate_candidates,
)
from .core.prediction import (
    Prediction,
    ThresholdedModel,
    predict_probability,
    presence_surface,
    prevalence_threshold,
    threshold_model,
)

__all__ = [
    'CandidateModel',
    'candidates_from_config',
    'FittedModel',
    'fit_candidate',
    'CandidateEvaluation',
    'CandidateStatus',
    'ModelSelectionResult',
    'evaluate_auc',
    'evaluate_candidates',
    'Prediction',
    'ThresholdedModel',
    'predict_probability',
    'presence_surface',
    'prevalence_threshold',
    'threshold_model',
]
