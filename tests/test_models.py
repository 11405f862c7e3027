import pytest
import numpy as np
import pandas as pd

from rangesdm.exceptions import FitFailureError, InvalidInputError
from rangesdm.models import (
    CandidateModel,
    CandidateStatus,
    FittedModel,
    candidates_from_config,
    evaluate_auc,
    evaluate_candidates,
    fit_candidate,
)


@pytest.fixture
def training() -> pd.DataFrame:
    """10 presences and 500 background points; presences are warmer on average."""
    rng = np.random.default_rng(42)
    n_presence, n_background = 10, 500
    return pd.DataFrame(
        {
            "bio1": np.concatenate([rng.normal(1.5, 1.0, n_presence), rng.normal(0.0, 1.0, n_background)]),
            "bio12": rng.normal(0.0, 1.0, n_presence + n_background),
            "flat": 5.0,
            "pa": [1] * n_presence + [0] * n_background,
        }
    )


@pytest.fixture
def evaluation(training: pd.DataFrame):
    presence = training[training["pa"] == 1].drop(columns="pa")
    background = training[training["pa"] == 0].drop(columns="pa")
    return presence, background


@pytest.fixture
def candidates() -> list:
    return candidates_from_config(
        {
            "temp": ["bio1"],
            "temp_precip": ["bio1", "bio12"],
            "unknown": ["bio99"],
            "flat": ["flat"],
        }
    )


def test_candidates_from_config_formats():
    from_mapping = candidates_from_config({"temp": ["bio1"], "precip": "bio12"})
    from_records = candidates_from_config(
        [{"name": "temp", "variables": ["bio1"]}, {"name": "precip", "variables": ["bio12"]}]
    )
    assert from_mapping == from_records
    assert from_mapping[1].variables == ("bio12",)
    assert from_mapping[0].formula() == "pa ~ bio1"


def test_fit_single_variable(training: pd.DataFrame, evaluation):
    fitted = fit_candidate(CandidateModel(name="temp", variables=["bio1"]), training)

    assert fitted.converged
    assert np.isfinite(fitted.aic)
    assert fitted.n_obs == 510
    assert list(fitted.coefficients.index) == ["const", "bio1"]
    # warmer sites are more likely to be presences
    assert fitted.coefficients["bio1"] > 0

    auc = evaluate_auc(fitted, *evaluation)
    assert 0.0 <= auc <= 1.0


def test_predictions_are_probabilities(training: pd.DataFrame):
    fitted = fit_candidate(CandidateModel(name="temp", variables=["bio1"]), training)
    scores = fitted.predict(pd.DataFrame({"bio1": [-50.0, 0.0, 50.0, np.nan]}))
    assert np.all((scores[:3] >= 0) & (scores[:3] <= 1))
    assert np.isnan(scores[3])


@pytest.mark.parametrize(
    "candidate",
    [
        CandidateModel(name="empty", variables=[]),
        CandidateModel(name="unknown", variables=["bio99"]),
        CandidateModel(name="flat", variables=["flat"]),
    ],
)
def test_fit_rejects_unusable_candidates(training: pd.DataFrame, candidate: CandidateModel):
    with pytest.raises(InvalidInputError):
        fit_candidate(candidate, training)


def test_fit_rejects_single_class(training: pd.DataFrame):
    with pytest.raises(InvalidInputError):
        fit_candidate(CandidateModel(name="temp", variables=["bio1"]), training[training["pa"] == 0])


def test_auc_undefined_for_constant_predictions(evaluation):
    model = FittedModel(
        candidate=CandidateModel(name="null", variables=["bio1"]),
        coefficients=pd.Series({"const": 0.0, "bio1": 0.0}),
        aic=1.0,
        n_obs=1,
    )
    assert np.isnan(evaluate_auc(model, *evaluation))


def test_auc_perfect_separation():
    model = FittedModel(
        candidate=CandidateModel(name="temp", variables=["bio1"]),
        coefficients=pd.Series({"const": 0.0, "bio1": 1.0}),
        aic=1.0,
        n_obs=1,
    )
    presence = pd.DataFrame({"bio1": [2.0, 3.0]})
    background = pd.DataFrame({"bio1": [-1.0, 0.0, 1.0]})
    assert evaluate_auc(model, presence, background) == pytest.approx(1.0)


def test_one_row_per_candidate(training: pd.DataFrame, evaluation, candidates: list):
    result = evaluate_candidates(training, *evaluation, candidates)
    table = result.table

    assert len(table) == len(candidates)
    assert table["model"].tolist() == [c.name for c in candidates]
    assert list(table.columns) == ["model", "variables", "auc", "aic", "status", "error"]

    status = dict(zip(table["model"], table["status"]))
    assert status["temp"] == CandidateStatus.SUCCESS
    assert status["temp_precip"] == CandidateStatus.SUCCESS
    assert status["unknown"] == CandidateStatus.FAILED
    assert status["flat"] == CandidateStatus.FAILED

    failed = table[table["status"] == "failed"]
    assert failed["auc"].isna().all()
    assert failed["error"].notna().all()
    assert set(result.fitted) == {"temp", "temp_precip"}


def test_scores_do_not_depend_on_candidate_order(training: pd.DataFrame, evaluation, candidates: list):
    forward = evaluate_candidates(training, *evaluation, candidates).table.set_index("model")
    backward = evaluate_candidates(training, *evaluation, candidates[::-1]).table.set_index("model")
    pd.testing.assert_frame_equal(forward, backward.loc[forward.index])


def test_get_failed_candidate_raises(training: pd.DataFrame, evaluation, candidates: list):
    result = evaluate_candidates(training, *evaluation, candidates)
    assert result.get("temp").name == "temp"
    with pytest.raises(InvalidInputError):
        result.get("unknown")
    with pytest.raises(KeyError):
        result.get("missing")


def test_duplicate_candidate_names_raise(training: pd.DataFrame, evaluation):
    candidates = [
        CandidateModel(name="temp", variables=["bio1"]),
        CandidateModel(name="temp", variables=["bio12"]),
    ]
    with pytest.raises(InvalidInputError):
        evaluate_candidates(training, *evaluation, candidates)


def test_no_candidates_raise(training: pd.DataFrame, evaluation):
    with pytest.raises(InvalidInputError):
        evaluate_candidates(training, *evaluation, [])


@pytest.fixture
def separated_training() -> pd.DataFrame:
    """Every presence is warmer than every background point."""
    rng = np.random.default_rng(3)
    n_presence, n_background = 10, 500
    return pd.DataFrame(
        {
            "bio1": np.concatenate([rng.uniform(5, 6, n_presence), rng.uniform(-3, 0, n_background)]),
            "bio12": rng.normal(0.0, 1.0, n_presence + n_background),
            "pa": [1] * n_presence + [0] * n_background,
        }
    )


def test_perfect_separation_is_a_fit_failure(separated_training: pd.DataFrame):
    with pytest.raises(FitFailureError, match="separation"):
        fit_candidate(CandidateModel(name="sep", variables=["bio1"]), separated_training)


def test_non_convergence_is_a_fit_failure(training: pd.DataFrame):
    with pytest.raises(FitFailureError):
        fit_candidate(CandidateModel(name="temp", variables=["bio1"]), training, max_iter=1)


def test_fit_failures_are_recorded_and_batch_continues(separated_training: pd.DataFrame):
    presence = separated_training[separated_training["pa"] == 1].drop(columns="pa")
    background = separated_training[separated_training["pa"] == 0].drop(columns="pa")
    candidates = [
        CandidateModel(name="sep", variables=["bio1"]),
        CandidateModel(name="precip", variables=["bio12"]),
    ]
    table = evaluate_candidates(separated_training, presence, background, candidates).table.set_index("model")

    assert table.loc["sep", "status"] == CandidateStatus.FAILED
    assert "separation" in table.loc["sep", "error"]
    assert np.isnan(table.loc["sep", "aic"])
    assert table.loc["precip", "status"] == CandidateStatus.SUCCESS
    assert np.isfinite(table.loc["precip", "aic"])
