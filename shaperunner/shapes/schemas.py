## Pydantic records for each task + the TypeDef mirrored from each output
from typing import List

from pydantic import BaseModel, ConfigDict, Field

from shaperunner.shapes.types import (
    FieldDef,
    ListOf,
    Number,
    Object,
    RichText,
    Text,
)


class ShapeModel(BaseModel):
    model_config = ConfigDict(frozen=True)


# FeatureDesign

class FeatureDesignInput(ShapeModel):
    repo_summary: str
    constraints: List[str] = Field(default_factory=list)


class Component(ShapeModel):
    id: str
    responsibility: str
    api: str


class FeatureDesignOutput(ShapeModel):
    name: str
    rationale: str
    components: List[Component]
    risks: List[str]


FEATURE_DESIGN_OUTPUT = Object((
    FieldDef("name", Text()),
    FieldDef("rationale", RichText()),
    FieldDef("components", ListOf(Object((
        FieldDef("id", Text()),
        FieldDef("responsibility", Text()),
        FieldDef("api", RichText()),
    )))),
    FieldDef("risks", ListOf(Text())),
))


# Formation

class FormationInput(ShapeModel):
    formation_description: str
    unit_count: int = Field(ge=1, le=1000)


class Coordinate(ShapeModel):
    x: float
    y: float


class FormationOutput(ShapeModel):
    coordinates: List[Coordinate]


FORMATION_OUTPUT = Object((
    FieldDef("coordinates", ListOf(Object((
        FieldDef("x", Number()),
        FieldDef("y", Number()),
    )))),
))
