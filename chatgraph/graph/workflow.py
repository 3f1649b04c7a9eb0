"""
Workflow - the loaded, read-only node graph.

Loading only builds the id -> node index. Per-kind config is validated by the
handler that runs the node, and routing references are checked lazily by the
resolver: a dangling id degrades to the next routing priority instead of
failing the load.
"""

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, PrivateAttr, ValidationError

from chatgraph.graph.node import ROUTING_FIELDS, NodeKind, NodeSpec
from chatgraph.graph.templates import DictTemplateStore

logger = logging.getLogger(__name__)

KNOWN_KINDS = frozenset(kind.value for kind in NodeKind)


class MalformedGraphError(ValueError):
    """The workflow definition cannot be parsed into nodes."""


class Workflow(BaseModel):
    """
    A declarative processing graph.

    Example:
        workflow = Workflow.load("examples/sales_assistant/workflow.json")
        node = workflow.get_node("intent_router")
    """

    id: str = "workflow"
    name: str = ""
    description: str = ""
    nodes: list[NodeSpec] = Field(default_factory=list)
    templates: dict[str, Any] = Field(default_factory=dict)

    # Designated nodes
    start_node: str = "start"
    end_node: str = "end"
    response_node: str = "response_sender"
    escalation_node: str = "agent_escalation"

    model_config = {"extra": "allow"}

    _index: dict[str, NodeSpec] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context: Any) -> None:
        index: dict[str, NodeSpec] = {}
        for node in self.nodes:
            if node.id in index:
                logger.warning(f"Duplicate node id '{node.id}', keeping the last definition")
            index[node.id] = node
        self._index = index

    @classmethod
    def load(cls, definition: "Mapping[str, Any] | str | Path") -> "Workflow":
        """
        Build a workflow from a mapping, a JSON string or a path to a JSON file.

        Accepts both the bare shape `{"nodes": [...], "templates": {...}}` and
        the `{"workflow": {...}}` envelope.

        Raises:
            MalformedGraphError: if the definition cannot be parsed into nodes.
        """
        raw = _read_definition(definition)
        if isinstance(raw.get("workflow"), Mapping):
            raw = dict(raw["workflow"])
        else:
            raw = dict(raw)

        raw_nodes = raw.get("nodes")
        if not isinstance(raw_nodes, list):
            raise MalformedGraphError("Workflow definition must contain a 'nodes' list")

        nodes: list[NodeSpec] = []
        for position, raw_node in enumerate(raw_nodes):
            if not isinstance(raw_node, Mapping):
                raise MalformedGraphError(f"Node #{position} is not an object")
            try:
                nodes.append(NodeSpec.model_validate(raw_node))
            except ValidationError as e:
                node_id = raw_node.get("id", f"#{position}")
                raise MalformedGraphError(f"Node {node_id} is malformed: {e}") from e

        raw["nodes"] = nodes
        templates = raw.get("templates")
        if templates is not None and not isinstance(templates, Mapping):
            raise MalformedGraphError("'templates' must be an object")

        try:
            return cls.model_validate(raw)
        except ValidationError as e:
            raise MalformedGraphError(f"Workflow definition is malformed: {e}") from e

    def get_node(self, node_id: str | None) -> NodeSpec | None:
        """Get a node by ID."""
        if not node_id:
            return None
        return self._index.get(node_id)

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._index

    @property
    def terminal(self) -> NodeSpec:
        """The designated terminal node, synthesised when the graph does not declare one."""
        node = self._index.get(self.end_node)
        if node is not None:
            return node
        return NodeSpec(id=self.end_node, name="End", kind=NodeKind.END)

    def template_store(self, default_language: str = "english") -> DictTemplateStore:
        return DictTemplateStore(self.templates, default_language=default_language)

    def referenced_ids(self, node: NodeSpec) -> list[str]:
        """Every node id a node's config may route to."""
        refs = [node.config[key] for key in ROUTING_FIELDS if isinstance(node.config.get(key), str)]
        for key in ("classify", "routes"):
            branches = node.config.get(key)
            if isinstance(branches, list):
                refs.extend(
                    branch["next"]
                    for branch in branches
                    if isinstance(branch, Mapping) and isinstance(branch.get("next"), str)
                )
        return refs

    def validate(self) -> list[str]:
        """
        Report configuration problems without raising.

        Dangling references are legal (they fall through at run time), so
        everything returned here is a warning.
        """
        warnings = []
        if self.start_node not in self._index:
            warnings.append(f"Start node '{self.start_node}' not found")
        if self.response_node not in self._index:
            warnings.append(f"Response node '{self.response_node}' not found")

        for node in self.nodes:
            if node.kind not in KNOWN_KINDS:
                warnings.append(f"Node '{node.id}' has unknown kind '{node.kind}'")
            for ref in self.referenced_ids(node):
                if ref not in self._index and ref != self.end_node:
                    warnings.append(f"Node '{node.id}' routes to missing node '{ref}'")
        return warnings


def _read_definition(definition: "Mapping[str, Any] | str | Path") -> Mapping[str, Any]:
    if isinstance(definition, Mapping):
        return definition

    if isinstance(definition, Path) or not str(definition).lstrip().startswith("{"):
        path = Path(definition)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise MalformedGraphError(f"Cannot read workflow file {path}: {e}") from e
    else:
        text = str(definition)

    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedGraphError(f"Workflow definition is not valid JSON: {e}") from e
    if not isinstance(raw, Mapping):
        raise MalformedGraphError("Workflow definition must be a JSON object")
    return raw
