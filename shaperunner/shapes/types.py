## Shape type system + structural validator
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Text:
    pass


@dataclass(frozen=True)
class RichText:
    """A string the model should write as markdown. Validated like Text."""


@dataclass(frozen=True)
class Number:
    pass


@dataclass(frozen=True)
class Bool:
    pass


@dataclass(frozen=True)
class ListOf:
    element: "TypeDef"


@dataclass(frozen=True)
class FieldDef:
    name: str
    type: "TypeDef"


@dataclass(frozen=True)
class Object:
    fields: tuple[FieldDef, ...] = field(default_factory=tuple)

    def __post_init__(self):
        # accept any sequence, store a tuple so the schema stays hashable
        object.__setattr__(self, "fields", tuple(self.fields))
        names = [f.name for f in self.fields]
        dupes = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            raise ValueError(f"Duplicate field names in object schema: {dupes}")


TypeDef = Text | RichText | Number | Bool | ListOf | Object


@dataclass(frozen=True)
class MissingField:
    path: str

    def __str__(self) -> str:
        return f"Missing required field at path {self.path}"


@dataclass(frozen=True)
class TypeMismatch:
    path: str
    expected: str
    found: str
    note: str | None = None

    def __str__(self) -> str:
        msg = f"Type mismatch at {self.path}: expected {self.expected}, found {self.found}"
        if self.note:
            msg += f" ({self.note})"
        return msg


FieldError = MissingField | TypeMismatch


def kind_of(value: Any) -> str:
    """JSON kind name of a value produced by json.loads."""
    if value is None:
        return "null"
    # bool before number: True is an int in Python
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def validate(schema: TypeDef, value: Any) -> list[FieldError]:
    """
    Check a parsed JSON value against a schema.

    Returns every violation found, in a stable order (declared field order,
    then list index order). An empty list means the value conforms.
    Undeclared object keys are ignored.
    """
    errors: list[FieldError] = []
    _validate(schema, value, "$", errors)
    return errors


def is_valid(schema: TypeDef, value: Any) -> bool:
    return not validate(schema, value)


def _validate(schema: TypeDef, value: Any, path: str, errors: list[FieldError]) -> None:
    found = kind_of(value)

    if isinstance(schema, (Text, RichText)):
        if found != "string":
            errors.append(TypeMismatch(path, "string", found))

    elif isinstance(schema, Number):
        if found != "number":
            errors.append(TypeMismatch(path, "number", found))

    elif isinstance(schema, Bool):
        if found != "boolean":
            errors.append(TypeMismatch(path, "boolean", found))

    elif isinstance(schema, ListOf):
        if found != "array":
            errors.append(TypeMismatch(path, "array", found))
            return
        for idx, item in enumerate(value):
            _validate(schema.element, item, f"{path}[{idx}]", errors)

    elif isinstance(schema, Object):
        if found != "object":
            errors.append(TypeMismatch(path, "object", found))
            return
        for f in schema.fields:
            field_path = f"{path}.{f.name}"
            if f.name not in value:
                errors.append(MissingField(field_path))
            else:
                _validate(f.type, value[f.name], field_path, errors)

    else:
        raise TypeError(f"Unknown schema node: {schema!r}")
