"""Control-flow nodes: trigger, classifier and router. No I/O, no token cost."""

import logging

from pydantic import BaseModel, ConfigDict, Field

from chatgraph.graph.node import NodeKind, RoutingConfig, StepResult
from chatgraph.nodes.base import NodeContext, NodeHandler

logger = logging.getLogger(__name__)


class Branch(BaseModel):
    type: str | None = None
    intent: str | None = None
    next: str | None = None

    model_config = ConfigDict(extra="allow")


class ClassifierConfig(RoutingConfig):
    classify: list[Branch] = Field(default_factory=list)


class RouterConfig(RoutingConfig):
    routes: list[Branch] = Field(default_factory=list)


class TriggerNode(NodeHandler):
    """Projects the inbound message and metadata into the first step's data."""

    kind = NodeKind.TRIGGER

    async def execute(self, ctx: NodeContext) -> StepResult:
        logger.debug(f"   [Trigger] Message: {ctx.run.original_message[:50]!r}")
        return StepResult(
            data={
                "message": ctx.run.original_message,
                "metadata": dict(ctx.metadata),
            },
        )


class ClassifierNode(NodeHandler):
    """Chooses a branch by the inbound `message_type` (text, image, voice, ...)."""

    kind = NodeKind.CLASSIFIER
    config_model = ClassifierConfig

    async def execute(self, ctx: NodeContext) -> StepResult:
        config: ClassifierConfig = self.parse_config(ctx.node)
        message_type = ctx.metadata.get("message_type") or "text"
        branch = next((b for b in config.classify if b.type == message_type), None)

        logger.debug(
            f"   [Classifier] Message type: {message_type}, "
            f"Next: {branch.next if branch else 'N/A'}"
        )
        return StepResult(
            data={
                "message_type": message_type,
                "route": branch.model_dump() if branch else None,
            },
            next=branch.next if branch else None,
        )


class RouterNode(NodeHandler):
    """Maps the most recent intent to a next node through a static table."""

    kind = NodeKind.ROUTER
    config_model = RouterConfig

    async def execute(self, ctx: NodeContext) -> StepResult:
        config: RouterConfig = self.parse_config(ctx.node)
        intent = ctx.last_data.get("intent") or ctx.run.latest("intent")
        route = next((r for r in config.routes if r.intent == intent), None)
        target = (route.next if route else None) or config.fallback

        logger.debug(
            f"   [Router] Intent: {intent}, Route found: {route is not None}, Next: {target}"
        )
        return StepResult(
            data={"intent": intent, "route": route.model_dump() if route else None},
            next=target,
        )
