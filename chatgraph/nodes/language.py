"""NLP node: intent and entity extraction through the language-understanding adapter."""

import logging

from chatgraph.graph.node import NodeKind, RoutingConfig, StepResult
from chatgraph.nodes.base import NodeContext, NodeHandler

logger = logging.getLogger(__name__)

DEGRADED_INTENT = "general_question"
DEGRADED_CONFIDENCE = 0.3


class NLPConfig(RoutingConfig):
    system_prompt: str | None = None


def degraded(error: str) -> StepResult:
    """A valid, low-confidence result so routing can continue after an NLP failure."""
    return StepResult(
        data={
            "intent": DEGRADED_INTENT,
            "entities": {},
            "confidence": DEGRADED_CONFIDENCE,
            "requires_product_search": False,
            "requires_agent_escalation": False,
        },
        confidence=DEGRADED_CONFIDENCE,
        error=error,
    )


class NLPNode(NodeHandler):
    kind = NodeKind.NLP
    config_model = NLPConfig

    async def execute(self, ctx: NodeContext) -> StepResult:
        config: NLPConfig = self.parse_config(ctx.node)
        message = ctx.message or ctx.last_data.get("message")

        if not message:
            logger.error("[NLP] No message found in context")
            return degraded("No message to process")

        adapter = ctx.capabilities.language
        if adapter is None:
            return degraded("No language understanding provider configured")

        window = ctx.settings.history_window
        try:
            analysis = await adapter.extract(
                message,
                history=ctx.run.history[-window:] if window > 0 else [],
                instructions=config.system_prompt,
            )
        except Exception as e:
            logger.error(f"❌ NLP processing error: {e}")
            return degraded(str(e) or type(e).__name__)

        intent = analysis.intent or DEGRADED_INTENT
        logger.debug(f"   [NLP] Intent: {intent}, Confidence: {analysis.confidence}")
        return StepResult(
            data={
                "intent": intent,
                "entities": dict(analysis.entities),
                "confidence": analysis.confidence,
                "requires_product_search": analysis.requires_product_search,
                "requires_agent_escalation": analysis.requires_agent_escalation,
            },
            confidence=analysis.confidence,
            tokens_used=analysis.tokens_used,
        )
