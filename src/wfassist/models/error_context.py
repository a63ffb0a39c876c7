"""Error context models describing what a conversation is about."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping


@dataclass(slots=True)
class NodeIdentity:
    """Reference to a node in the externally owned workflow graph.

    Only ``name`` is relied upon by the session layer. The remaining
    fields are forwarded to the service when the caller has them.
    """

    name: str
    type: str | None = None
    type_version: float | int | None = None
    parameters: dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"name": self.name}
        if self.type is not None:
            payload["type"] = self.type
        if self.type_version is not None:
            payload["typeVersion"] = self.type_version
        if self.parameters:
            payload["parameters"] = dict(self.parameters)
        return payload

    @classmethod
    def from_value(cls, value: NodeIdentity | Mapping[str, Any] | str) -> NodeIdentity:
        if isinstance(value, NodeIdentity):
            return value
        if isinstance(value, str):
            return cls(name=value)
        return cls(
            name=str(value["name"]),
            type=value.get("type"),
            type_version=value.get("typeVersion", value.get("type_version")),
            parameters=dict(value.get("parameters") or {}),
        )


@dataclass(slots=True)
class ErrorDetails:
    """The error surfaced by a failed node execution."""

    name: str
    message: str
    type: str | None = None
    description: str | None = None
    line_number: int | None = None
    stack: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"name": self.name, "message": self.message}
        if self.type is not None:
            payload["type"] = self.type
        if self.description is not None:
            payload["description"] = self.description
        if self.line_number is not None:
            payload["lineNumber"] = self.line_number
        if self.stack is not None:
            payload["stack"] = self.stack
        return payload

    @classmethod
    def from_value(cls, value: ErrorDetails | Mapping[str, Any]) -> ErrorDetails:
        if isinstance(value, ErrorDetails):
            return value
        line_number = value.get("lineNumber", value.get("line_number"))
        return cls(
            name=str(value.get("name") or "Error"),
            message=str(value.get("message") or ""),
            type=value.get("type"),
            description=value.get("description"),
            line_number=int(line_number) if line_number is not None else None,
            stack=value.get("stack"),
        )


@dataclass(slots=True)
class ErrorContext:
    """The (node, error) pair that triggered assistance."""

    node: NodeIdentity
    error: ErrorDetails

    def __post_init__(self) -> None:
        self.node = NodeIdentity.from_value(self.node)
        self.error = ErrorDetails.from_value(self.error)

    @property
    def node_name(self) -> str:
        return self.node.name


__all__ = ["NodeIdentity", "ErrorDetails", "ErrorContext"]
