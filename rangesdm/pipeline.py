"""
End-to-end species runs and pairwise range comparison.

A run goes cleaning -> study extent -> background sampling -> covariate
extraction -> candidate scoring. Picking the candidate to carry forward is left
to the caller (``finalise_species``), as is the reference extent both species
are compared on.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import geopandas as gpd
import pandas as pd

from rangesdm.config import PipelineConfig
from rangesdm.exceptions import InvalidInputError
from rangesdm.extract import build_training_table, extract_covariates, split_holdout
from rangesdm.models.core.candidates import CandidateModel
from rangesdm.models.core.evaluation import ModelSelectionResult, evaluate_candidates
from rangesdm.models.core.prediction import Prediction, ThresholdedModel, threshold_model
from rangesdm.occurrence.cleaning import CoordinateInput, clean_occurrences, to_point_table
from rangesdm.occurrence.mask import ReferenceMask
from rangesdm.occurrence.sampling import sample_background_points
from rangesdm.overlap import OverlapResult, calculate_overlap
from rangesdm.projection import FutureProjection, compare_periods, project_future
from rangesdm.raster.extent import Extent
from rangesdm.raster.grid import RasterGrid, check_alignment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpeciesRun:
    name: str
    occurrences: gpd.GeoDataFrame
    extent: Extent
    background: gpd.GeoDataFrame
    training: pd.DataFrame
    presence_eval: pd.DataFrame
    background_eval: pd.DataFrame
    selection: ModelSelectionResult

    @property
    def scores(self) -> pd.DataFrame:
        table = self.selection.table
        table.insert(0, "species", self.name)
        return table


@dataclass(frozen=True)
class SpeciesPrediction:
    name: str
    model: ThresholdedModel
    present: Prediction


@dataclass(frozen=True)
class SpeciesComparison:
    reference_extent: Extent
    present: OverlapResult
    future: Optional[FutureProjection] = None

    @property
    def table(self) -> pd.DataFrame:
        if self.future is None or self.future.overlap is None:
            return pd.DataFrame([{"period": "present", **self.present.to_record()}])
        return compare_periods(self.present, self.future.overlap, scenario=self.future.scenario)


def run_species(
    name: str,
    occurrences: CoordinateInput,
    mask: ReferenceMask,
    covariates: RasterGrid,
    config: PipelineConfig,
    candidates: Optional[Sequence[CandidateModel]] = None,
) -> SpeciesRun:
    """Clean occurrences, sample background, extract covariates and score candidates.

    Args:
        name: Label for the species, used only in logs and tables.
        occurrences: Raw occurrence coordinates.
        mask: Land mask shared by the cleaner and the background sampler.
        covariates: Present-day covariate grid.
        config: Pipeline settings.
        candidates: Candidate models; defaults to ``config.candidates``.
    """
    candidates = list(candidates if candidates is not None else config.candidates)
    if not candidates:
        raise InvalidInputError("No candidate models configured")

    logger.info(f"Starting species run for {name}")
    raw_points = to_point_table(occurrences)
    search_extent = Extent.from_points(raw_points, buffer=config.buffer_degrees)
    cleaned = clean_occurrences(raw_points, mask.invalid_regions(search_extent))

    extent = Extent.from_points(cleaned, buffer=config.buffer_degrees)
    background = sample_background_points(
        extent,
        mask,
        n_points=config.n_background,
        resolution=config.mask_resolution,
        random_state=config.random_state,
    )

    table = build_training_table(
        extract_covariates(covariates, cleaned),
        extract_covariates(covariates, background),
    )
    training, presence_eval, background_eval = split_holdout(
        table, holdout_fraction=config.holdout_fraction, random_state=config.random_state
    )
    selection = evaluate_candidates(
        training, presence_eval, background_eval, candidates, n_jobs=config.n_jobs
    )

    logger.info(f"Finished species run for {name}: {len(cleaned)} occurrences, {len(selection)} candidates scored")
    return SpeciesRun(
        name=name,
        occurrences=cleaned,
        extent=extent,
        background=background,
        training=training,
        presence_eval=presence_eval,
        background_eval=background_eval,
        selection=selection,
    )


def finalise_species(
    run: SpeciesRun,
    model_name: str,
    covariates: RasterGrid,
    reference_extent: Extent,
) -> SpeciesPrediction:
    """Threshold the chosen candidate and predict it over the reference extent."""
    fitted = run.selection.get(model_name)
    thresholded = threshold_model(fitted, run.presence_eval, run.background_eval)
    present = thresholded.predict(covariates.crop(reference_extent))
    return SpeciesPrediction(name=run.name, model=thresholded, present=present)


def compare_species(
    a: SpeciesPrediction,
    b: SpeciesPrediction,
    reference_extent: Extent,
    future_grid: Optional[RasterGrid] = None,
    scenario: Optional[str] = None,
) -> SpeciesComparison:
    """Present-day overlap of two species, plus the future overlap when a grid is given.

    Both species must have been finalised on ``reference_extent``.
    """
    present = calculate_overlap(a.present.presence, b.present.presence)
    future = None
    if future_grid is not None:
        future = project_future(
            [a.model, b.model], future_grid, reference_extent, scenario=scenario
        )
        check_alignment(a.present.presence, future.predictions[0].presence)
    return SpeciesComparison(reference_extent=reference_extent, present=present, future=future)
