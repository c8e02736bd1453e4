from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

ExtractType = Literal["query_params", "response"]
MetricName = Literal["statements", "branches", "functions", "lines"]


class FieldSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    type: str
    optional: bool = True


class StrictTypeEntry(BaseModel):
    """One generated declaration: where to find it and how to tighten it.

    Accepts snake_case or camelCase keys so JSON tables written for the node
    tooling load unchanged.
    """

    model_config = ConfigDict(
        frozen=True, alias_generator=to_camel, populate_by_name=True
    )

    operation_id: str
    type_name: str
    extract_type: ExtractType = "response"
    response_code: int | str = 200
    source_path: list[str] = Field(default_factory=list)
    required_fields: list[str] = Field(default_factory=list)
    required_params: list[str] = Field(default_factory=list)
    type_overrides: dict[str, str] = Field(default_factory=dict)
    additional_fields: list[FieldSpec] = Field(default_factory=list)

    @field_validator("extract_type", mode="before")
    @classmethod
    def _normalise_extract_type(cls, value: object) -> object:
        return "query_params" if value == "queryParams" else value


@dataclass(frozen=True)
class PropertySpec:
    name: str
    optional: bool
    type: str


@dataclass(frozen=True)
class CoverageMetric:
    covered: int
    total: int

    @property
    def percent(self) -> str:
        if self.total == 0:
            return "0.00"
        return f"{self.covered / self.total * 100:.2f}"


@dataclass(frozen=True)
class CoverageReport:
    statements: CoverageMetric
    branches: CoverageMetric
    functions: CoverageMetric
    lines: CoverageMetric

    def metric(self, name: MetricName) -> CoverageMetric:
        if name == "statements":
            return self.statements
        if name == "branches":
            return self.branches
        if name == "functions":
            return self.functions
        return self.lines
