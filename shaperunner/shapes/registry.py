## Task registry: task_id -> input/output records, schema, prompt context
from dataclasses import dataclass
from typing import Callable, Type

from pydantic import BaseModel

from shaperunner.agents.prompts import feature_design_context, formation_context
from shaperunner.shapes.schemas import (
    FEATURE_DESIGN_OUTPUT,
    FORMATION_OUTPUT,
    FeatureDesignInput,
    FeatureDesignOutput,
    FormationInput,
    FormationOutput,
)
from shaperunner.shapes.types import FieldError, TypeDef, TypeMismatch


@dataclass(frozen=True)
class ShapeTask:
    task_id: str
    input_model: Type[BaseModel]
    output_model: Type[BaseModel]
    schema: TypeDef
    context: Callable[[BaseModel], str]
    # domain rules the schema cannot express; returns extra errors
    check: Callable[[BaseModel, BaseModel], list[FieldError]] | None = None


def check_coordinate_count(data: FormationInput, output: FormationOutput) -> list[FieldError]:
    found = len(output.coordinates)
    if found == data.unit_count:
        return []
    return [TypeMismatch("$.coordinates", str(data.unit_count), str(found), note="array length")]


FEATURE_DESIGN = ShapeTask(
    task_id="FeatureDesign",
    input_model=FeatureDesignInput,
    output_model=FeatureDesignOutput,
    schema=FEATURE_DESIGN_OUTPUT,
    context=feature_design_context,
)

FORMATION = ShapeTask(
    task_id="Formation",
    input_model=FormationInput,
    output_model=FormationOutput,
    schema=FORMATION_OUTPUT,
    context=formation_context,
    check=check_coordinate_count,
)

TASKS: dict[str, ShapeTask] = {t.task_id: t for t in (FEATURE_DESIGN, FORMATION)}


def get_task(task_id: str) -> ShapeTask | None:
    return TASKS.get(task_id)
