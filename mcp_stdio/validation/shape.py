from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Union

from jsonschema import Draft202012Validator, validators

__all__ = ["InputShape", "Param", "ShapeValidator", "compile_shape"]

_JSON_TYPES = {"string", "integer", "number", "boolean", "object", "array", "null"}

_CONSTRAINT_KEYS = {
    "enum": "enum",
    "minimum": "minimum",
    "maximum": "maximum",
    "min_length": "minLength",
    "max_length": "maxLength",
    "pattern": "pattern",
    "items": "items",
    "min_items": "minItems",
    "max_items": "maxItems",
}


@dataclass(frozen=True)
class Param:
    """Declarative description of one named parameter."""

    type: str
    required: bool = True
    description: str | None = None
    default: Any = None
    constraints: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.type not in _JSON_TYPES:
            raise ValueError(f"Unsupported parameter type '{self.type}'")
        unknown = set(self.constraints) - set(_CONSTRAINT_KEYS)
        if unknown:
            raise ValueError(f"Unsupported constraint(s): {', '.join(sorted(unknown))}")
        if self.required and self.default is not None:
            raise ValueError("a parameter with a default cannot be required")

    def to_json_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {"type": self.type}
        if self.description:
            schema["description"] = self.description
        if self.default is not None:
            schema["default"] = self.default
        for key, value in self.constraints.items():
            schema[_CONSTRAINT_KEYS[key]] = value
        return schema


# A shape is either a mapping of parameter names to ``Param`` (or bare type
# names) or a raw JSON Schema object.
InputShape = Union[Mapping[str, Union[Param, str]], Mapping[str, Any]]


def _is_json_schema(shape: Mapping[str, Any]) -> bool:
    return shape.get("type") == "object" and isinstance(shape.get("properties", {}), Mapping)


def _shape_to_schema(shape: Mapping[str, Any]) -> dict[str, Any]:
    if _is_json_schema(shape):
        return copy.deepcopy(dict(shape))
    properties: dict[str, Any] = {}
    required: list[str] = []
    for name, declared in shape.items():
        param = Param(type=declared) if isinstance(declared, str) else declared
        if not isinstance(param, Param):
            raise TypeError(f"Parameter '{name}' must be a Param or a type name")
        properties[name] = param.to_json_schema()
        if param.required:
            required.append(name)
    schema: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


def _format_error(error: Any) -> str:
    path = ".".join(str(part) for part in error.absolute_path)
    if path:
        return f"{path}: {error.message}"
    return error.message


class ShapeValidator:
    """Validate argument mappings against a compiled shape."""

    def __init__(self, schema: Mapping[str, Any]) -> None:
        validator_cls = validators.validator_for(schema, default=Draft202012Validator)
        validator_cls.check_schema(schema)
        self._schema = dict(schema)
        self._validator = validator_cls(schema)

    @property
    def schema(self) -> dict[str, Any]:
        return copy.deepcopy(self._schema)

    def errors(self, arguments: Any) -> list[str]:
        """Return every violation, sorted by location; empty when valid."""

        found = sorted(
            self._validator.iter_errors(arguments),
            key=lambda error: (list(map(str, error.absolute_path)), error.message),
        )
        return [_format_error(error) for error in found]

    def apply_defaults(self, arguments: Mapping[str, Any]) -> dict[str, Any]:
        payload = copy.deepcopy(dict(arguments))
        for name, prop in self._schema.get("properties", {}).items():
            if name not in payload and isinstance(prop, Mapping) and "default" in prop:
                payload[name] = copy.deepcopy(prop["default"])
        return payload


def compile_shape(shape: InputShape | None) -> ShapeValidator:
    """Turn a declarative shape into a reusable validator."""

    return ShapeValidator(_shape_to_schema(shape or {}))
