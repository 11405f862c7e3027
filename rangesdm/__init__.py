"""
Species distribution modelling and range-overlap comparison.
"""

from .exceptions import (
    RangeSDMError,
    InvalidInputError,
    SamplingExhaustionError,
    FitFailureError,
    GeometryMismatchError,
)
from .raster import Extent, RasterGrid, check_alignment
from .occurrence import ReferenceMask, clean_occurrences, sample_background_points, to_point_table
from .extract import build_training_table, extract_covariates, split_holdout
from .models import (
    CandidateModel,
    FittedModel,
    ThresholdedModel,
    evaluate_candidates,
    predict_probability,
    presence_surface,
    prevalence_threshold,
    threshold_model,
)
from .overlap import OverlapResult, calculate_overlap
from .projection import FutureProjection, project_future

__version__ = "0.1.0"
