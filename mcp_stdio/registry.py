"""Write-once registry of tools, resources and prompts."""

from __future__ import annotations

import re
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, Literal, Union
from urllib.parse import unquote

from mcp_stdio.errors import DuplicateNameError, NotFoundError, RegistryClosedError
from mcp_stdio.validation import InputShape, Param, ShapeValidator, compile_shape

__all__ = [
    "Category",
    "Descriptor",
    "PromptDescriptor",
    "Registry",
    "ResourceDescriptor",
    "ToolDescriptor",
]

Category = Literal["tools", "resources", "prompts"]

Handler = Callable[[dict[str, Any]], Any]

_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.\-/]{0,127}$")
_TEMPLATE_VARIABLE = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")


def _validate_name(name: str) -> str:
    if not isinstance(name, str) or not _NAME_PATTERN.match(name):
        raise ValueError(f"Invalid descriptor name: {name!r}")
    return name


@dataclass(frozen=True)
class ToolDescriptor:
    name: str
    description: str
    handler: Handler
    input_shape: InputShape = field(default_factory=dict)
    validator: ShapeValidator = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        _validate_name(self.name)
        if not callable(self.handler):
            raise TypeError(f"Handler for tool '{self.name}' is not callable")
        object.__setattr__(self, "validator", compile_shape(self.input_shape))

    def to_listing(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.validator.schema,
        }


@dataclass(frozen=True)
class ResourceDescriptor:
    """A resource addressed by a URI template such as ``notes://{id}``."""

    name: str
    uri_template: str
    handler: Handler
    description: str = ""
    mime_type: str = "text/plain"
    pattern: re.Pattern[str] = field(init=False, repr=False, compare=False)
    variables: tuple[str, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        _validate_name(self.name)
        if not callable(self.handler):
            raise TypeError(f"Handler for resource '{self.name}' is not callable")
        variables = tuple(_TEMPLATE_VARIABLE.findall(self.uri_template))
        if len(set(variables)) != len(variables):
            raise ValueError(f"Duplicate variable in URI template {self.uri_template!r}")
        object.__setattr__(self, "variables", variables)
        object.__setattr__(self, "pattern", self._compile(self.uri_template))

    @staticmethod
    def _compile(template: str) -> re.Pattern[str]:
        parts: list[str] = []
        position = 0
        for match in _TEMPLATE_VARIABLE.finditer(template):
            parts.append(re.escape(template[position : match.start()]))
            parts.append(f"(?P<{match.group(1)}>[^/]+)")
            position = match.end()
        parts.append(re.escape(template[position:]))
        return re.compile("".join(parts))

    @property
    def is_template(self) -> bool:
        return bool(self.variables)

    def match(self, uri: str) -> dict[str, str] | None:
        """Return the template parameters for ``uri`` or ``None``."""

        found = self.pattern.fullmatch(uri)
        if found is None:
            return None
        return {key: unquote(value) for key, value in found.groupdict().items()}

    def to_listing(self) -> dict[str, Any]:
        listing: dict[str, Any] = {"name": self.name, "mimeType": self.mime_type}
        if self.is_template:
            listing["uriTemplate"] = self.uri_template
        else:
            listing["uri"] = self.uri_template
        if self.description:
            listing["description"] = self.description
        return listing


@dataclass(frozen=True)
class PromptDescriptor:
    name: str
    description: str
    handler: Handler
    parameter_shape: Mapping[str, Union[Param, str]] = field(default_factory=dict)
    validator: ShapeValidator = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        _validate_name(self.name)
        if not callable(self.handler):
            raise TypeError(f"Handler for prompt '{self.name}' is not callable")
        object.__setattr__(self, "validator", compile_shape(self.parameter_shape))

    def to_listing(self) -> dict[str, Any]:
        schema = self.validator.schema
        required = set(schema.get("required", ()))
        arguments = []
        for name, prop in schema.get("properties", {}).items():
            argument: dict[str, Any] = {"name": name, "required": name in required}
            if prop.get("description"):
                argument["description"] = prop["description"]
            arguments.append(argument)
        return {"name": self.name, "description": self.description, "arguments": arguments}


Descriptor = Union[ToolDescriptor, ResourceDescriptor, PromptDescriptor]

_CATEGORY_BY_TYPE: dict[type, Category] = {
    ToolDescriptor: "tools",
    ResourceDescriptor: "resources",
    PromptDescriptor: "prompts",
}


class Registry:
    """Holds every descriptor for the life of the process.

    Registration is a startup-only phase: once :meth:`close` is called (the
    server does so when it starts serving) the registry is read-only.
    """

    def __init__(self) -> None:
        self._entries: dict[Category, dict[str, Descriptor]] = {
            "tools": {},
            "resources": {},
            "prompts": {},
        }
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        self._closed = True

    def register(self, descriptor: Descriptor) -> Descriptor:
        category = _CATEGORY_BY_TYPE.get(type(descriptor))
        if category is None:
            raise TypeError(f"Cannot register {type(descriptor).__name__}")
        if self._closed:
            raise RegistryClosedError(
                f"Registry is closed; cannot register {category[:-1]} '{descriptor.name}'"
            )
        table = self._entries[category]
        if descriptor.name in table:
            raise DuplicateNameError(category, descriptor.name)
        table[descriptor.name] = descriptor
        return descriptor

    def lookup(self, category: Category, name: str) -> Descriptor:
        table = self._entries[category]
        if name not in table:
            raise NotFoundError(category, name)
        return table[name]

    def contains(self, category: Category, name: str) -> bool:
        return name in self._entries[category]

    def list(self, category: Category) -> list[Descriptor]:
        return list(self._entries[category].values())

    def __iter__(self) -> Iterator[Descriptor]:
        for table in self._entries.values():
            yield from table.values()

    def match_resource(self, uri: str) -> tuple[ResourceDescriptor, dict[str, str]]:
        """Resolve ``uri`` against resource templates in registration order.

        Exact (non-template) URIs win over templates that would also match.
        """

        resources = [
            descriptor
            for descriptor in self._entries["resources"].values()
            if isinstance(descriptor, ResourceDescriptor)
        ]
        for descriptor in sorted(resources, key=lambda item: item.is_template):
            params = descriptor.match(uri)
            if params is not None:
                return descriptor, params
        raise NotFoundError("resources", uri)

    # Decorator helpers -----------------------------------------------------------

    def tool(
        self,
        name: str | None = None,
        *,
        description: str | None = None,
        input_shape: InputShape | None = None,
    ) -> Callable[[Handler], Handler]:
        def decorator(func: Handler) -> Handler:
            self.register(
                ToolDescriptor(
                    name=name or func.__name__,
                    description=description or (func.__doc__ or "").strip(),
                    handler=func,
                    input_shape=input_shape or {},
                )
            )
            return func

        return decorator

    def resource(
        self,
        uri_template: str,
        *,
        name: str | None = None,
        description: str | None = None,
        mime_type: str = "text/plain",
    ) -> Callable[[Handler], Handler]:
        def decorator(func: Handler) -> Handler:
            self.register(
                ResourceDescriptor(
                    name=name or func.__name__,
                    uri_template=uri_template,
                    handler=func,
                    description=description or (func.__doc__ or "").strip(),
                    mime_type=mime_type,
                )
            )
            return func

        return decorator

    def prompt(
        self,
        name: str | None = None,
        *,
        description: str | None = None,
        parameter_shape: Mapping[str, Union[Param, str]] | None = None,
    ) -> Callable[[Handler], Handler]:
        def decorator(func: Handler) -> Handler:
            self.register(
                PromptDescriptor(
                    name=name or func.__name__,
                    description=description or (func.__doc__ or "").strip(),
                    handler=func,
                    parameter_shape=parameter_shape or {},
                )
            )
            return func

        return decorator
