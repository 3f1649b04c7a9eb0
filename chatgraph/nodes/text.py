"""
Text nodes: everything that produces user-visible text.

formatter  - localized template with the product list substituted in
optimizer  - whitespace cleanup and truncation to a token budget
handler    - static localized template (greetings, clarifications, ...)
escalation - hand-off to a human agent
action     - terminal content selection, guaranteed non-empty

All of them write their text to StepResult.response.
"""

import logging
import math
import re
from typing import Any

from chatgraph.graph.extractor import APOLOGY
from chatgraph.graph.node import NodeKind, RoutingConfig, StepResult
from chatgraph.nodes.base import NodeContext, NodeHandler

logger = logging.getLogger(__name__)

AGENT_TRANSFER = "I'm connecting you with a human agent..."
QUESTIONS_PLACEHOLDER = "{questions}"
BLANK_LINES = re.compile(r"\n{3,}")


class TemplateConfig(RoutingConfig):
    template: str | None = None
    include_context: bool = False


class FormatterConfig(TemplateConfig):
    placeholder: str = "{products}"
    currency: str = "MYR"


class OptimizerConfig(RoutingConfig):
    max_tokens: int = 500


def _format_price(price: Any) -> str:
    if isinstance(price, float) and price.is_integer():
        price = int(price)
    if isinstance(price, int | float):
        return f"{price:,}"
    return str(price) if price is not None else "N/A"


def render_products(products: list[dict[str, Any]], currency: str = "MYR") -> str:
    """Render a numbered product list for a chat message."""
    blocks = []
    for position, product in enumerate(products, start=1):
        features = product.get("features") or {}
        model = features.get("model") or ""
        title = f"{product.get('name', 'Unnamed product')}"
        if model and model not in title:
            title = f"{title} {model}"

        locations = features.get("locations") or []
        where = f" ({', '.join(map(str, locations))})" if locations else ""
        lines = [
            f"{position}. *{title}*",
            f"   {product.get('description') or 'No description'}",
            f"   Price: {product.get('currency') or currency} "
            f"{_format_price(product.get('price'))}{where}",
        ]
        kind = features.get("type") or product.get("subcategory")
        if kind:
            lines.append(f"   Type: {kind}")
        in_stock = product.get("in_stock", product.get("inStock"))
        lines.append("   ✅ In Stock" if in_stock else "   ❌ Out of Stock")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def _fill_questions(text: str, data: dict[str, Any]) -> str:
    questions = data.get("questions") or ""
    if isinstance(questions, list):
        questions = "\n".join(map(str, questions))
    return text.replace(QUESTIONS_PLACEHOLDER, str(questions)).strip()


class FormatterNode(NodeHandler):
    kind = NodeKind.FORMATTER
    config_model = FormatterConfig

    async def execute(self, ctx: NodeContext) -> StepResult:
        config: FormatterConfig = self.parse_config(ctx.node)
        products = ctx.last_data.get("products") or []
        formatted = ctx.template(config.template) or ""

        if products:
            formatted = formatted.replace(
                config.placeholder, render_products(products, config.currency)
            )
        if config.include_context:
            formatted = _fill_questions(formatted, ctx.last_data)

        return StepResult(
            data={"formatted": formatted, "products": products},
            response=formatted or None,
        )


class OptimizerNode(NodeHandler):
    kind = NodeKind.OPTIMIZER
    config_model = OptimizerConfig

    async def execute(self, ctx: NodeContext) -> StepResult:
        config: OptimizerConfig = self.parse_config(ctx.node)
        last = ctx.run.last_result
        text = ctx.last_data.get("formatted") or (last.response if last else None) or ""

        text = BLANK_LINES.sub("\n\n", text).strip()
        ratio = ctx.settings.chars_per_token
        estimated = math.ceil(len(text) / ratio)
        if estimated > config.max_tokens:
            text = text[: config.max_tokens * ratio] + "..."

        return StepResult(
            data={"optimized": text, "estimated_tokens": estimated},
            response=text or None,
        )


class TemplateHandlerNode(NodeHandler):
    kind = NodeKind.HANDLER
    config_model = TemplateConfig

    async def execute(self, ctx: NodeContext) -> StepResult:
        config: TemplateConfig = self.parse_config(ctx.node)
        response = ctx.template(config.template) or ""
        if config.include_context:
            response = _fill_questions(response, ctx.last_data)

        logger.debug(
            f"   [Handler] Template: {config.template}, Language: {ctx.language}, "
            f"Response length: {len(response)}"
        )
        return StepResult(
            data={"template": config.template, "formatted": response},
            response=response or None,
        )


class EscalationNode(NodeHandler):
    """
    Hands the conversation to a human.

    Always routes explicitly to the response node; that override is what keeps
    a failing run from bouncing back into escalation.
    """

    kind = NodeKind.ESCALATION

    async def execute(self, ctx: NodeContext) -> StepResult:
        config: RoutingConfig = self.parse_config(ctx.node)
        response = ctx.template("agent_transfer") or AGENT_TRANSFER
        error = None

        notifier = ctx.capabilities.escalation
        if notifier is not None:
            try:
                await notifier.notify(
                    {
                        "message": ctx.run.original_message,
                        "metadata": dict(ctx.metadata),
                        "history": list(ctx.run.history),
                        "errors": list(ctx.run.errors),
                    }
                )
            except Exception as e:
                logger.error(f"Escalation notification failed: {e}")
                error = str(e) or type(e).__name__

        logger.info("   Escalating to human agent")
        return StepResult(
            data={"escalated": True},
            response=response,
            next=config.next or ctx.response_node,
            error=error,
        )


class ActionNode(NodeHandler):
    """
    Selects the final reply.

    Order: the last step's response, then earlier steps newest first, then an
    intent + language template, then the greeting template, then a fixed
    apology. Never returns empty text.
    """

    kind = NodeKind.ACTION

    async def execute(self, ctx: NodeContext) -> StepResult:
        response, source = self._select(ctx)
        logger.debug(f"   [Action] Final response ({source}): {response[:100]!r}")
        return StepResult(
            data={"final_response": response, "source": source},
            response=response,
        )

    def _select(self, ctx: NodeContext) -> tuple[str, str]:
        results = ctx.run.results
        for offset, result in enumerate(reversed(results)):
            if result.has_response():
                return result.response, "last_result" if offset == 0 else "history"

        intent = ctx.last_data.get("intent") or ctx.run.latest("intent") or "greeting"
        key = "greeting" if intent == "greeting" else f"{intent}_response"
        template = ctx.template(key) or ctx.template("greeting")
        if template:
            return template, f"template:{key}"
        return APOLOGY, "apology"
