"""
Base for every tool handed to the host.

Defines the interface the host calls: a name, a description, a Pydantic
model describing the arguments, and an async execute().
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel


@dataclass(frozen=True)
class ToolContext:
    """Context the host passes with each tool call."""

    agent: str = ""
    session_id: str = ""
    message_id: str = ""


class ToolDefinition(ABC):
    """Abstract base class for invocable tools.

    Each tool must:
    1. Define name, description and args_model
    2. Implement execute()

    get_schema() derives the JSON Schema of the arguments from args_model.
    """

    name: str
    description: str
    args_model: type[BaseModel]

    @abstractmethod
    async def execute(self, args: dict[str, Any], ctx: ToolContext | None = None) -> str:
        """Run the tool.

        Args:
            args: Raw arguments from the host, validated against args_model
            ctx: Host call context

        Returns:
            Text handed back to the model.
        """

    def validate_args(self, args: dict[str, Any]) -> BaseModel:
        """Validate arguments with the Pydantic model.

        Raises:
            ValidationError: If the arguments are invalid
        """
        return self.args_model(**args)

    def get_schema(self) -> dict[str, Any]:
        """JSON schema of the tool in function-calling format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.args_model.model_json_schema(),
            },
        }

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name='{self.name}')>"
