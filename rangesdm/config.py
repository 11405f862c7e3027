from pathlib import Path
from typing import List, Optional, Union

from pydantic import BaseModel, Field, field_validator

from rangesdm.models.core.candidates import CandidateModel, candidates_from_config
from rangesdm.utils.io import CONFIG_PATH, load_config


class PipelineConfig(BaseModel):
    """Settings for a species run. Candidate models are configuration, not code."""

    buffer_degrees: float = Field(5.0, ge=0)
    n_background: int = Field(500, gt=0)
    mask_resolution: float = Field(0.5, gt=0)
    holdout_fraction: float = Field(0.25, ge=0, lt=1)
    random_state: Optional[int] = None
    n_jobs: int = 1
    candidates: List[CandidateModel] = Field(default_factory=list)

    @field_validator("candidates", mode="before")
    @classmethod
    def _parse_candidates(cls, value):
        if value is None:
            return []
        if isinstance(value, dict) or (value and isinstance(value[0], dict)):
            return candidates_from_config(value)
        return value


def load_pipeline_config(config_path: Union[str, Path] = CONFIG_PATH) -> PipelineConfig:
    """Load and validate the pipeline section of a YAML config file."""
    config = load_config(Path(config_path))
    return PipelineConfig(**config.get("pipeline", config))
