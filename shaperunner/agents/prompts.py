# shaperunner/agents/prompts.py
import json
from typing import Sequence

from shaperunner.shapes.schemas import FeatureDesignInput, FormationInput
from shaperunner.shapes.types import (
    Bool,
    FieldError,
    ListOf,
    Number,
    Object,
    RichText,
    Text,
    TypeDef,
)


STRICT_JSON_RULES = """You are a system that strictly outputs JSON.
You must produce a JSON object that matches this schema:

{schema}
The JSON must be parseable and not contain comments or explanations.
Do not wrap it in markdown code fences.
Do not include control characters (null bytes, etc.) in your output.
Escape special characters properly in JSON strings (use \\n for newlines, etc.).
"""

PARSE_FEEDBACK = """
Your previous response was not valid JSON. The error was:
{error}

Please output ONLY valid, parseable JSON without any control characters or formatting issues.
"""

VALIDATION_FEEDBACK = """
Your previous JSON had these validation problems:
{errors}

Fix every issue listed above and output ONLY corrected JSON.
"""


def _scalar_name(ty: TypeDef) -> str | None:
    if isinstance(ty, Text):
        return "string"
    if isinstance(ty, RichText):
        return "string (markdown)"
    if isinstance(ty, Number):
        return "number"
    if isinstance(ty, Bool):
        return "boolean"
    return None


def describe_schema(ty: TypeDef, indent: int = 0) -> str:
    """Human-readable, indented rendering of a schema for the prompt."""
    pad = " " * indent

    scalar = _scalar_name(ty)
    if scalar is not None:
        return f"{pad}- {scalar}\n"

    if isinstance(ty, ListOf):
        return f"{pad}- array of:\n" + describe_schema(ty.element, indent + 2)

    if isinstance(ty, Object):
        lines = [f"{pad}- object with fields:\n"]
        for f in ty.fields:
            scalar = _scalar_name(f.type)
            if scalar is not None:
                lines.append(f"{pad}  - {f.name}: {scalar}\n")
            elif isinstance(f.type, ListOf):
                lines.append(f"{pad}  - {f.name}: array of:\n")
                lines.append(describe_schema(f.type.element, indent + 4))
            else:
                lines.append(f"{pad}  - {f.name}: nested object:\n")
                lines.append(describe_schema(f.type, indent + 4))
        return "".join(lines)

    raise TypeError(f"Unknown schema node: {ty!r}")


def feature_design_context(data: FeatureDesignInput) -> str:
    constraints = "".join(f"  - {c}\n" for c in data.constraints)
    return f"Context:\n- Repo summary: {data.repo_summary}\n- Constraints:\n{constraints}"


def _example_coordinates(count: int) -> str:
    coords = [{"x": float(i * 10), "y": 0.0} for i in range(count)]
    return json.dumps({"coordinates": coords}, separators=(",", ":"))


def formation_context(data: FormationInput) -> str:
    n = data.unit_count
    return f"""Task: Generate 2D coordinates for unit formation.
- Formation description: {data.formation_description}
- Number of units: {n}

CRITICAL: You MUST generate EXACTLY {n} coordinates (x, y pairs), no more, no less.
The coordinates array must contain exactly {n} items.
Coordinates should be reasonable 2D positions (typically between 0-100 for x and y).
The formation should be visually recognizable as the requested shape.

Example output format (for {n} units):
{_example_coordinates(n)}

CRITICAL: Output ONLY the JSON object, nothing else. No text before or after. No markdown. No explanations.
The JSON must be valid and parseable. Do NOT include:
- Control characters (null bytes, etc.)
- Unescaped newlines or tabs inside JSON strings
- Any characters outside the JSON structure
- Trailing commas
"""


def render_prompt(
    context: str,
    schema: TypeDef,
    parse_error: str | None = None,
    validation_errors: Sequence[FieldError] | None = None,
) -> str:
    """
    Build the model prompt for one attempt.

    Feedback from the previous attempt is appended at the end. A parse error
    wins over validation errors since validation never ran in that case.
    """
    prompt = STRICT_JSON_RULES.format(schema=describe_schema(schema)) + "\n" + context

    if parse_error is not None:
        prompt += PARSE_FEEDBACK.format(error=parse_error)
    elif validation_errors:
        errors = "\n".join(f"- {e}" for e in validation_errors)
        prompt += VALIDATION_FEEDBACK.format(errors=errors)

    return prompt
