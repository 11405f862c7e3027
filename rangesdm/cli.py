# Command Line Interface for rangesdm
import logging
from enum import StrEnum
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from rangesdm.config import load_pipeline_config
from rangesdm.occurrence.mask import ReferenceMask
from rangesdm.pipeline import compare_species, finalise_species, run_species
from rangesdm.utils.io import (
    CONFIG_PATH,
    load_covariates,
    load_occurrences,
    load_reference_mask_polygons,
    save_surface,
)
from rangesdm.utils.logging_utils import setup_logging

app = typer.Typer(
    name="rangesdm",
    help="Fit habitat suitability models and compare the ranges of two species.",
    add_completion=False,
)
logger = logging.getLogger(__name__)


class ReferenceChoice(StrEnum):
    A = "a"
    B = "b"
    UNION = "union"


ConfigOption = Annotated[
    Path,
    typer.Option(help="YAML config with pipeline settings and candidate models.", exists=True, readable=True),
]
MaskOption = Annotated[
    Path,
    typer.Option(help="Land polygons used to drop ocean records and to sample background.", exists=True, readable=True),
]
CovariatesOption = Annotated[
    Path,
    typer.Option(help="Multi-band present-day covariate GeoTIFF.", exists=True, readable=True),
]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Enable verbose logging.")]


@app.command()
def score(
    occurrences: Annotated[
        Path, typer.Option(help="CSV of occurrence records with longitude/latitude columns.", exists=True, readable=True)
    ],
    mask: MaskOption,
    covariates: CovariatesOption,
    species: Annotated[str, typer.Option(help="Label for the species in the output table.")] = "species",
    config: ConfigOption = CONFIG_PATH,
    output_path: Annotated[Path, typer.Option(help="Where to write the candidate score table (CSV).")] = Path(
        "outputs/candidate_scores.csv"
    ),
    verbose: VerboseOption = False,
) -> None:
    """
    Score every configured candidate model for one species (AUC and AIC).
    Choosing a model from the table is left to the analyst.
    """
    setup_logging(verbose=verbose)
    pipeline_config = load_pipeline_config(config)
    reference_mask = ReferenceMask(load_reference_mask_polygons(mask))
    grid = load_covariates(covariates)

    run = run_species(species, load_occurrences(occurrences), reference_mask, grid, pipeline_config)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    scores = run.scores
    scores.to_csv(output_path, index=False)
    typer.echo(scores.to_string(index=False))
    logger.info(f"Saved candidate scores to {output_path}")


@app.command()
def compare(
    occurrences_a: Annotated[Path, typer.Option(help="Occurrence CSV for species A.", exists=True, readable=True)],
    occurrences_b: Annotated[Path, typer.Option(help="Occurrence CSV for species B.", exists=True, readable=True)],
    model_a: Annotated[str, typer.Option(help="Name of the candidate model chosen for species A.")],
    model_b: Annotated[str, typer.Option(help="Name of the candidate model chosen for species B.")],
    mask: MaskOption,
    covariates: CovariatesOption,
    name_a: Annotated[str, typer.Option(help="Label for species A.")] = "species_a",
    name_b: Annotated[str, typer.Option(help="Label for species B.")] = "species_b",
    future: Annotated[
        Optional[Path], typer.Option(help="Future-scenario covariate GeoTIFF with the same band names.", exists=True)
    ] = None,
    scenario: Annotated[Optional[str], typer.Option(help="Label of the future climate scenario.")] = None,
    reference: Annotated[
        ReferenceChoice, typer.Option(help="Study extent both species are compared on.")
    ] = ReferenceChoice.A,
    config: ConfigOption = CONFIG_PATH,
    output_dir: Annotated[Path, typer.Option(help="Directory for tables and surfaces.")] = Path("outputs"),
    write_surfaces: Annotated[bool, typer.Option(help="Also write probability and presence GeoTIFFs.")] = False,
    verbose: VerboseOption = False,
) -> None:
    """
    Fit the chosen models for two species and compute the overlap of their
    predicted ranges at present and, optionally, under a future scenario.
    """
    setup_logging(verbose=verbose, log_file=output_dir / "rangesdm.log")
    pipeline_config = load_pipeline_config(config)
    reference_mask = ReferenceMask(load_reference_mask_polygons(mask))
    grid = load_covariates(covariates)

    run_a = run_species(name_a, load_occurrences(occurrences_a), reference_mask, grid, pipeline_config)
    run_b = run_species(name_b, load_occurrences(occurrences_b), reference_mask, grid, pipeline_config)

    if reference == ReferenceChoice.A:
        reference_extent = run_a.extent
    elif reference == ReferenceChoice.B:
        reference_extent = run_b.extent
    else:
        reference_extent = run_a.extent.union(run_b.extent)
    logger.info(f"Comparing on reference extent {reference_extent.as_tuple()} ({reference.value})")

    prediction_a = finalise_species(run_a, model_a, grid, reference_extent)
    prediction_b = finalise_species(run_b, model_b, grid, reference_extent)
    future_grid = load_covariates(future) if future is not None else None
    comparison = compare_species(
        prediction_a, prediction_b, reference_extent, future_grid=future_grid, scenario=scenario
    )

    output_dir.mkdir(parents=True, exist_ok=True)
    run_a.scores.to_csv(output_dir / f"{name_a}_candidate_scores.csv", index=False)
    run_b.scores.to_csv(output_dir / f"{name_b}_candidate_scores.csv", index=False)
    overlap_table = comparison.table
    overlap_table.insert(0, "species_b", name_b)
    overlap_table.insert(0, "species_a", name_a)
    overlap_table.to_csv(output_dir / "overlap.csv", index=False)
    typer.echo(overlap_table.to_string(index=False))

    if write_surfaces:
        for name, prediction in ((name_a, prediction_a.present), (name_b, prediction_b.present)):
            save_surface(prediction.probability, output_dir / f"{name}_present_probability.tif")
            save_surface(prediction.presence, output_dir / f"{name}_present_presence.tif")
        if comparison.future is not None:
            for name, prediction in zip((name_a, name_b), comparison.future.predictions):
                save_surface(prediction.probability, output_dir / f"{name}_future_probability.tif")
                save_surface(prediction.presence, output_dir / f"{name}_future_presence.tif")


if __name__ == "__main__":
    app()
