from __future__ import annotations

from typing import Any

import pytest

from mcp_stdio.errors import DuplicateNameError, NotFoundError, RegistryClosedError
from mcp_stdio.registry import PromptDescriptor, Registry, ResourceDescriptor, ToolDescriptor


def _tool(name: str, marker: str = "") -> ToolDescriptor:
    return ToolDescriptor(name=name, description=marker, handler=lambda arguments: marker)


def test_register_and_lookup_per_category() -> None:
    registry = Registry()
    tool = registry.register(_tool("shared"))
    prompt = registry.register(
        PromptDescriptor(name="shared", description="", handler=lambda arguments: "")
    )
    assert registry.lookup("tools", "shared") is tool
    assert registry.lookup("prompts", "shared") is prompt
    assert [item.name for item in registry] == ["shared", "shared"]


def test_duplicate_name_keeps_first_registration() -> None:
    registry = Registry()
    first = registry.register(_tool("echo", "first"))
    with pytest.raises(DuplicateNameError) as excinfo:
        registry.register(_tool("echo", "second"))
    assert excinfo.value.category == "tools"
    assert "tool 'echo' is already registered" in str(excinfo.value)
    assert registry.lookup("tools", "echo") is first
    assert registry.list("tools") == [first]


def test_lookup_missing_raises_not_found() -> None:
    with pytest.raises(NotFoundError, match="prompt 'ghost' not found"):
        Registry().lookup("prompts", "ghost")


def test_closed_registry_rejects_registration() -> None:
    registry = Registry()
    registry.register(_tool("before"))
    registry.close()
    with pytest.raises(RegistryClosedError):
        registry.register(_tool("after"))
    assert registry.contains("tools", "before")
    assert not registry.contains("tools", "after")


def test_register_rejects_foreign_objects() -> None:
    with pytest.raises(TypeError):
        Registry().register(object())  # type: ignore[arg-type]


@pytest.mark.parametrize("name", ["", "has space", "x" * 129, "-leading"])
def test_invalid_names_are_rejected(name: str) -> None:
    with pytest.raises(ValueError):
        _tool(name)


def test_descriptors_are_immutable() -> None:
    descriptor = _tool("fixed")
    with pytest.raises(AttributeError):
        descriptor.name = "changed"  # type: ignore[misc]


def test_handler_must_be_callable() -> None:
    with pytest.raises(TypeError):
        ToolDescriptor(name="bad", description="", handler="not callable")  # type: ignore[arg-type]


def test_decorators_use_function_name_and_docstring() -> None:
    registry = Registry()

    @registry.tool(input_shape={"x": "integer"})
    def double(arguments: dict[str, Any]) -> int:
        """Double a number."""
        return arguments["x"] * 2

    descriptor = registry.lookup("tools", "double")
    assert descriptor.description == "Double a number."
    assert double({"x": 2}) == 4


def test_resource_templates_extract_parameters() -> None:
    descriptor = ResourceDescriptor(
        name="file", uri_template="repo://{owner}/{name}/readme", handler=lambda params: ""
    )
    assert descriptor.variables == ("owner", "name")
    assert descriptor.match("repo://octo/hello%20world/readme") == {
        "owner": "octo",
        "name": "hello world",
    }
    assert descriptor.match("repo://octo/readme") is None
    assert descriptor.match("repo://a/b/readme/extra") is None


def test_template_with_duplicate_variable_is_rejected() -> None:
    with pytest.raises(ValueError):
        ResourceDescriptor(name="dup", uri_template="x://{a}/{a}", handler=lambda params: "")


def test_static_resource_wins_over_template() -> None:
    registry = Registry()
    registry.resource("notes://{note_id}", name="by_id")(lambda params: "template")
    registry.resource("notes://latest", name="latest")(lambda params: "static")

    descriptor, params = registry.match_resource("notes://latest")
    assert descriptor.name == "latest"
    assert params == {}
    descriptor, params = registry.match_resource("notes://7")
    assert descriptor.name == "by_id"
    assert params == {"note_id": "7"}
    with pytest.raises(NotFoundError):
        registry.match_resource("other://7")
