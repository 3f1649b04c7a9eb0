"""
Node handler protocol.

A handler knows how to run one node kind. It receives a NodeContext (the
node, the run's execution context and the services the engine was built
with) and returns exactly one StepResult.

Handlers own failure handling for the capability adapters they call: an
adapter exception becomes a StepResult with `error` set. Anything a handler
raises is treated by the executor as an unexpected node fault.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar

from pydantic import BaseModel

from chatgraph.capabilities.base import Capabilities, TemplateStore
from chatgraph.config import EngineConfig
from chatgraph.graph.context import ExecutionContext
from chatgraph.graph.node import NodeSpec, RoutingConfig, StepResult
from chatgraph.graph.templates import DictTemplateStore


@dataclass
class NodeContext:
    """Everything a handler may read while running one node."""

    node: NodeSpec
    run: ExecutionContext
    capabilities: Capabilities = field(default_factory=Capabilities)
    templates: TemplateStore = field(default_factory=DictTemplateStore)
    settings: EngineConfig = field(default_factory=EngineConfig)
    response_node: str = "response_sender"

    @property
    def message(self) -> str:
        """The message downstream nodes should process (the transcript after speech)."""
        return self.run.effective_message

    @property
    def metadata(self) -> dict[str, Any]:
        return self.run.metadata

    @property
    def last_data(self) -> dict[str, Any]:
        return self.run.last_data

    @property
    def language(self) -> str:
        language = self.run.language or self.last_data.get("language")
        return language if isinstance(language, str) and language else self.settings.default_language

    def template(self, key: str | None) -> str | None:
        if not key:
            return None
        return self.templates.get(key, self.language)


class NodeHandler(ABC):
    """Base class for node kind handlers."""

    kind: ClassVar[str]
    config_model: ClassVar[type[BaseModel]] = RoutingConfig

    def parse_config(self, node: NodeSpec) -> Any:
        """Validate the node's free-form config into this kind's typed config."""
        return self.config_model.model_validate(node.config)

    @abstractmethod
    async def execute(self, ctx: NodeContext) -> StepResult:
        """Run the node."""
