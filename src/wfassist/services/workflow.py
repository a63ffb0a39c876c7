"""Workflow collaborator used to read and update node parameters."""

from __future__ import annotations

import logging
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Protocol, runtime_checkable

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class WorkflowNode:
    """A node as exposed by the workflow provider."""

    name: str
    type: str = ""
    parameters: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class WorkflowProvider(Protocol):
    """Access to the workflow currently open in the editor."""

    def get_node(self, name: str) -> WorkflowNode | None:
        ...

    def merge_node_parameters(self, name: str, parameters: Mapping[str, Any]) -> None:
        ...


class InMemoryWorkflow:
    """Workflow provider holding nodes in a dict.

    Parameter updates replace top-level keys and leave other keys alone
    (last write wins). There is no version check against concurrent edits.
    """

    def __init__(self, nodes: Iterable[WorkflowNode] = ()) -> None:
        self._nodes: dict[str, WorkflowNode] = {}
        for node in nodes:
            self.add_node(node)

    def add_node(self, node: WorkflowNode) -> None:
        self._nodes[node.name] = node

    def get_node(self, name: str) -> WorkflowNode | None:
        return self._nodes.get(name)

    def merge_node_parameters(self, name: str, parameters: Mapping[str, Any]) -> None:
        node = self._nodes.get(name)
        if node is None:
            raise KeyError(f"Unknown workflow node: {name!r}")
        node.parameters.update(deepcopy(dict(parameters)))
        LOGGER.debug("Merged parameters %s into node %s", sorted(parameters), name)

    def node_names(self) -> list[str]:
        return list(self._nodes)


__all__ = ["WorkflowNode", "WorkflowProvider", "InMemoryWorkflow"]
