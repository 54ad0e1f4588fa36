"""Tool descriptors: the typed catalog entries a Toolset exposes."""

from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict


class ParameterSchema(BaseModel):
    """One typed parameter of a tool."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    type: str = "string"                    # "string" | "number" | "boolean"
    enum: List[str] = []
    default: str = ""


class ToolDescriptor(BaseModel):
    """A named operation inside a Toolset. Immutable once registered."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    parameters: List[ParameterSchema] = []

    def example_parameters(self) -> Dict[str, Any]:
        """Example argument map inferred from declared defaults and types."""
        example: Dict[str, Any] = {}
        for param in self.parameters:
            if param.default != "":
                value: Any = param.default
                if param.type == "number":
                    value = _as_number(param.default)
            elif param.enum:
                value = param.enum[0]
            elif param.type == "number":
                value = 0
            elif param.type == "boolean":
                value = False
            else:
                value = f"<{param.name}>"
            example[param.name] = value
        return example


class ToolCall(BaseModel):
    """A request to run a named tool with a parameter map."""

    name: str
    parameters: Dict[str, Any] = {}


def _as_number(raw: str) -> Any:
    for cast in (int, float):
        try:
            return cast(raw)
        except ValueError:
            continue
    return raw
