import pytest
import numpy as np
import pandas as pd
import geopandas as gpd
from shapely.geometry import box
from typer.testing import CliRunner

from rangesdm.cli import app
from rangesdm.config import PipelineConfig, load_pipeline_config
from rangesdm.exceptions import GeometryMismatchError, InvalidInputError
from rangesdm.occurrence import ReferenceMask
from rangesdm.pipeline import compare_species, finalise_species, run_species
from rangesdm.raster import Extent, RasterGrid, check_alignment
from rangesdm.utils.io import save_surface


@pytest.fixture
def covariates() -> RasterGrid:
    """Half-degree grid over 20W-20E, 20S-20N; bio1 rises eastwards, bio12 northwards."""
    rng = np.random.default_rng(0)
    extent = Extent(-20, -20, 20, 20)
    x = np.arange(-20, 20, 0.5) + 0.25
    y = np.arange(20, -20, -0.5) - 0.25
    xx, yy = np.meshgrid(x, y)
    return RasterGrid.from_arrays(
        {
            "bio1": xx / 5 + rng.normal(0, 0.5, xx.shape),
            "bio12": yy / 5 + rng.normal(0, 0.5, yy.shape),
        },
        extent,
    )


@pytest.fixture
def land() -> gpd.GeoDataFrame:
    return gpd.GeoDataFrame({"geometry": [box(-18, -18, 18, 18)]}, crs="EPSG:4326")


@pytest.fixture
def mask(land: gpd.GeoDataFrame) -> ReferenceMask:
    return ReferenceMask(land)


def random_occurrences(seed: int, lon_range, n: int = 30) -> list:
    rng = np.random.default_rng(seed)
    lons = rng.uniform(*lon_range, n)
    lats = rng.uniform(-5, 5, n)
    # one record at sea and one with a missing coordinate
    return list(zip(lons, lats)) + [(17.5, 19.0), None]


@pytest.fixture
def occurrences_a() -> list:
    return random_occurrences(1, (-6, 0))


@pytest.fixture
def occurrences_b() -> list:
    return random_occurrences(2, (-2, 4))


@pytest.fixture
def config() -> PipelineConfig:
    return PipelineConfig(
        buffer_degrees=5.0,
        n_background=500,
        mask_resolution=0.5,
        random_state=0,
        candidates={
            "temp": ["bio1"],
            "temp_precip": ["bio1", "bio12"],
            "seasonality": ["bio4"],
        },
    )


def test_run_species(occurrences_a, mask, covariates, config):
    run = run_species("a", occurrences_a, mask, covariates, config)

    assert len(run.occurrences) == 30
    assert len(run.background) == 500
    assert run.extent.contains(run.occurrences["longitude"], run.occurrences["latitude"]).all()
    assert run.extent.contains(run.background["longitude"], run.background["latitude"]).all()

    scores = run.scores
    assert scores["model"].tolist() == ["temp", "temp_precip", "seasonality"]
    assert (scores["species"] == "a").all()
    status = dict(zip(scores["model"], scores["status"]))
    assert status == {"temp": "success", "temp_precip": "success", "seasonality": "failed"}
    succeeded = scores[scores["status"] == "success"]
    assert succeeded["auc"].between(0, 1).all()
    assert np.isfinite(succeeded["aic"]).all()


def test_run_species_without_candidates(occurrences_a, mask, covariates):
    with pytest.raises(InvalidInputError):
        run_species("a", occurrences_a, mask, covariates, PipelineConfig())


def test_compare_species_present_and_future(occurrences_a, occurrences_b, mask, covariates, config):
    run_a = run_species("a", occurrences_a, mask, covariates, config)
    run_b = run_species("b", occurrences_b, mask, covariates, config)
    reference_extent = run_a.extent

    prediction_a = finalise_species(run_a, "temp_precip", covariates, reference_extent)
    prediction_b = finalise_species(run_b, "temp", covariates, reference_extent)
    check_alignment(prediction_a.present.presence, prediction_b.present.presence)

    future_grid = covariates.like(
        {"bio1": covariates.band("bio1") + 0.5, "bio12": covariates.band("bio12")}
    )
    comparison = compare_species(
        prediction_a, prediction_b, reference_extent, future_grid=future_grid, scenario="ssp245"
    )

    assert comparison.future.predictions[0].threshold == prediction_a.model.threshold
    assert comparison.future.predictions[1].threshold == prediction_b.model.threshold
    check_alignment(prediction_a.present.presence, comparison.future.predictions[0].presence)

    table = comparison.table
    assert table["period"].tolist() == ["present", "future"]
    overlaps = table["overlap"].dropna()
    assert overlaps.between(0, 1).all()


def test_compare_species_present_only(occurrences_a, occurrences_b, mask, covariates, config):
    run_a = run_species("a", occurrences_a, mask, covariates, config)
    run_b = run_species("b", occurrences_b, mask, covariates, config)
    extent = run_a.extent.union(run_b.extent)

    comparison = compare_species(
        finalise_species(run_a, "temp", covariates, extent),
        finalise_species(run_b, "temp", covariates, extent),
        extent,
    )
    assert comparison.future is None
    assert comparison.table["period"].tolist() == ["present"]


def test_compare_on_different_extents_raises(occurrences_a, occurrences_b, mask, covariates, config):
    run_a = run_species("a", occurrences_a, mask, covariates, config)
    run_b = run_species("b", occurrences_b, mask, covariates, config)

    prediction_a = finalise_species(run_a, "temp", covariates, run_a.extent)
    prediction_b = finalise_species(run_b, "temp", covariates, run_b.extent)
    with pytest.raises(GeometryMismatchError):
        compare_species(prediction_a, prediction_b, run_a.extent)


def test_finalise_failed_candidate_raises(occurrences_a, mask, covariates, config):
    run = run_species("a", occurrences_a, mask, covariates, config)
    with pytest.raises(InvalidInputError):
        finalise_species(run, "seasonality", covariates, run.extent)


def test_score_command(tmp_path, occurrences_a, land, covariates):
    occurrences_path = write_occurrences(tmp_path / "occurrences.csv", occurrences_a)
    mask_path = tmp_path / "land.geojson"
    land.to_file(mask_path, driver="GeoJSON")
    covariates_path = save_surface(covariates, tmp_path / "covariates.tif")
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        "pipeline:\n"
        "  n_background: 200\n"
        "  random_state: 3\n"
        "  candidates:\n"
        "    temp: [bio1]\n"
    )
    output_path = tmp_path / "out" / "scores.csv"

    result = CliRunner().invoke(
        app,
        [
            "score",
            "--occurrences", str(occurrences_path),
            "--mask", str(mask_path),
            "--covariates", str(covariates_path),
            "--species", "a",
            "--config", str(config_path),
            "--output-path", str(output_path),
        ],
    )

    assert result.exit_code == 0, result.output
    scores = pd.read_csv(output_path)
    assert scores["model"].tolist() == ["temp"]
    assert scores["species"].tolist() == ["a"]


def write_occurrences(path, occurrences: list):
    pd.DataFrame(
        [pair if pair is not None else (None, None) for pair in occurrences],
        columns=["longitude", "latitude"],
    ).to_csv(path, index=False)
    return path


def test_compare_command(tmp_path, occurrences_a, occurrences_b, land, covariates):
    mask_path = tmp_path / "land.geojson"
    land.to_file(mask_path, driver="GeoJSON")
    covariates_path = save_surface(covariates, tmp_path / "present.tif")
    future = covariates.like({"bio1": covariates.band("bio1") + 0.5, "bio12": covariates.band("bio12")})
    future_path = save_surface(future, tmp_path / "future.tif")
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        "pipeline:\n"
        "  n_background: 200\n"
        "  random_state: 3\n"
        "  candidates:\n"
        "    temp: [bio1]\n"
    )
    output_dir = tmp_path / "out"

    result = CliRunner().invoke(
        app,
        [
            "compare",
            "--occurrences-a", str(write_occurrences(tmp_path / "a.csv", occurrences_a)),
            "--occurrences-b", str(write_occurrences(tmp_path / "b.csv", occurrences_b)),
            "--model-a", "temp",
            "--model-b", "temp",
            "--name-a", "wren",
            "--name-b", "robin",
            "--mask", str(mask_path),
            "--covariates", str(covariates_path),
            "--future", str(future_path),
            "--scenario", "ssp245",
            "--reference", "union",
            "--config", str(config_path),
            "--output-dir", str(output_dir),
            "--write-surfaces",
        ],
    )

    assert result.exit_code == 0, result.output
    overlap = pd.read_csv(output_dir / "overlap.csv")
    assert overlap["period"].tolist() == ["present", "future"]
    assert overlap["scenario"].tolist()[1] == "ssp245"
    assert (overlap["species_a"] == "wren").all() and (overlap["species_b"] == "robin").all()
    assert {"area_a", "area_b", "area_intersection", "overlap"} <= set(overlap.columns)
    assert overlap["overlap"].dropna().between(0, 1).all()

    for name in ("wren", "robin"):
        assert (output_dir / f"{name}_candidate_scores.csv").is_file()
        for period in ("present", "future"):
            for surface in ("probability", "presence"):
                assert (output_dir / f"{name}_{period}_{surface}.tif").is_file()
    assert (output_dir / "rangesdm.log").is_file()


def test_default_config_holds_out_evaluation_points(occurrences_a, mask, covariates):
    config = load_pipeline_config()
    run = run_species("a", occurrences_a, mask, covariates, config)

    assert len(run.presence_eval) > 0 and len(run.background_eval) > 0
    assert run.training.index.intersection(run.presence_eval.index).empty
    assert run.training.index.intersection(run.background_eval.index).empty
    assert len(run.training) + len(run.presence_eval) + len(run.background_eval) == len(run.occurrences) + len(
        run.background
    )
