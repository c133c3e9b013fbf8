"""Tool definitions exposed to the model through native function calling."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from cortex.core.types import ActionResult, JSONDict, ToolSpec


@dataclass
class ToolParameter:
    """Definition of a tool parameter."""

    name: str
    type: str  # JSON schema type: "string", "number", "boolean", "object", "array"
    description: str
    required: bool = True
    enum: list[str] | None = None

    def to_schema(self) -> JSONDict:
        schema: JSONDict = {"type": self.type, "description": self.description}
        if self.enum:
            schema["enum"] = list(self.enum)
        return schema


@dataclass
class ToolCall:
    """A tool invocation requested by the model."""

    tool_name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    call_id: str | None = None


@dataclass
class Tool:
    """A named async callable with a declared parameter list."""

    name: str
    description: str
    parameters: list[ToolParameter]
    executor: Callable[..., Awaitable[ActionResult]]

    def validate_args(self, args: dict[str, Any]) -> tuple[bool, str | None]:
        """
        Validate tool arguments.

        Returns:
            (valid, error_message)
        """
        declared = {p.name: p for p in self.parameters}

        missing = sorted(name for name, p in declared.items() if p.required and name not in args)
        if missing:
            return False, f"Missing required parameters: {', '.join(missing)}"

        unknown = sorted(set(args) - set(declared))
        if unknown:
            return False, f"Unknown parameters: {', '.join(unknown)}"

        for name, value in args.items():
            allowed = declared[name].enum
            if allowed and value is not None and str(value).strip().lower() not in allowed:
                expected = ", ".join(allowed)
                return False, f"Invalid value for {name}: {value!r} (expected one of {expected})"

        return True, None

    @property
    def input_schema(self) -> JSONDict:
        return {
            "type": "object",
            "properties": {p.name: p.to_schema() for p in self.parameters},
            "required": [p.name for p in self.parameters if p.required],
        }

    def to_openai_function(self) -> ToolSpec:
        """Convert to OpenAI function calling format (what litellm expects)."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.input_schema,
            },
        }
