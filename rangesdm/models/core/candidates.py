from typing import Dict, List, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, field_validator


class CandidateModel(BaseModel):
    """A named, fixed subset of covariates for a binomial regression."""

    model_config = ConfigDict(frozen=True)

    name: str
    variables: Tuple[str, ...]

    @field_validator("variables", mode="before")
    @classmethod
    def _as_tuple(cls, value):
        if isinstance(value, str):
            return (value,)
        return tuple(value)

    def formula(self, label_col: str = "pa") -> str:
        rhs = " + ".join(self.variables) if self.variables else "1"
        return f"{label_col} ~ {rhs}"


CandidateConfig = Union[Dict[str, Sequence[str]], Sequence[Dict[str, object]]]


def candidates_from_config(candidates: CandidateConfig) -> List[CandidateModel]:
    """Build candidate models from configuration.

    Accepts either a ``{name: [variables]}`` mapping (order preserved) or a list
    of ``{"name": ..., "variables": [...]}`` records.
    """
    if isinstance(candidates, dict):
        return [CandidateModel(name=name, variables=variables) for name, variables in candidates.items()]
    return [CandidateModel(**record) for record in candidates]
