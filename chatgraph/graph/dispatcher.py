"""
Node Dispatcher - maps a node's kind to the handler that runs it.

Unknown kinds are tolerated: they pass the previous step's data through
unchanged and use no tokens.
"""

import logging

from chatgraph.capabilities.base import Capabilities, TemplateStore
from chatgraph.config import EngineConfig
from chatgraph.graph.context import ExecutionContext
from chatgraph.graph.node import NodeSpec, StepResult
from chatgraph.graph.templates import DictTemplateStore
from chatgraph.nodes import NodeContext, NodeHandler, default_handlers

logger = logging.getLogger(__name__)


class NodeDispatcher:
    def __init__(
        self,
        capabilities: Capabilities | None = None,
        templates: TemplateStore | None = None,
        settings: EngineConfig | None = None,
        response_node: str = "response_sender",
        handlers: dict[str, NodeHandler] | None = None,
    ):
        self.capabilities = capabilities or Capabilities()
        self.templates = templates or DictTemplateStore()
        self.settings = settings or EngineConfig()
        self.response_node = response_node
        self.handlers = default_handlers()
        if handlers:
            self.handlers.update(handlers)

    def register_handler(self, kind: str, handler: NodeHandler) -> None:
        """Register (or replace) the handler for a node kind."""
        self.handlers[kind] = handler

    async def dispatch(self, node: NodeSpec, context: ExecutionContext) -> StepResult:
        """
        Run one node.

        Raises whatever the handler raises; turning that into a recorded
        error is the executor's job.
        """
        handler = self.handlers.get(node.kind)
        if handler is None:
            logger.warning(f"   ⚠ Unknown node kind '{node.kind}' for {node.id}, passing through")
            return StepResult(data=dict(context.last_data), tokens_used=0)

        ctx = NodeContext(
            node=node,
            run=context,
            capabilities=self.capabilities,
            templates=self.templates,
            settings=self.settings,
            response_node=self.response_node,
        )
        return await handler.execute(ctx)
