"""
ML node: ranks the candidates found by the previous step.

The ranking adapter is usually an LLM call whose output shape is not
guaranteed. Any failure (exception, unparseable output, rankings that point
at nothing) falls back to a deterministic popularity ordering with
confidence 0.5.
"""

import logging
from typing import Literal

from chatgraph.capabilities.base import CapabilityError, MalformedOutputError
from chatgraph.capabilities.ranking import (
    FALLBACK_CONFIDENCE,
    FALLBACK_REASONING,
    apply_rankings,
    by_popularity,
)
from chatgraph.graph.node import NodeKind, RoutingConfig, StepResult
from chatgraph.nodes.base import NodeContext, NodeHandler

logger = logging.getLogger(__name__)


class MLConfig(RoutingConfig):
    strategy: Literal["rank", "recommend"] = "rank"
    top_n: int = 5
    system_prompt: str | None = None


class MLNode(NodeHandler):
    kind = NodeKind.ML
    config_model = MLConfig

    async def execute(self, ctx: NodeContext) -> StepResult:
        config: MLConfig = self.parse_config(ctx.node)
        if config.strategy == "recommend":
            return await self._recommend(ctx)
        return await self._rank(ctx, config)

    async def _rank(self, ctx: NodeContext, config: MLConfig) -> StepResult:
        candidates = ctx.last_data.get("products") or []
        if not candidates:
            return StepResult(
                data={"products": [], "reasoning": "No products found"},
                confidence=0,
            )

        entities = ctx.run.latest("entities", {}) or {}
        result = None
        try:
            if ctx.capabilities.ranking is None:
                raise CapabilityError("No ranking provider configured")
            result = await ctx.capabilities.ranking.rank(
                ctx.message,
                candidates,
                entities,
                instructions=config.system_prompt,
            )
            if not result.ranked:
                raise MalformedOutputError("Ranking returned no products")
            ranked = apply_rankings(candidates, result.ranked, limit=config.top_n)
        except Exception as e:
            logger.warning(f"Product ranking failed, using popularity fallback: {e}")
            return StepResult(
                data={
                    "products": by_popularity(candidates, limit=config.top_n),
                    "reasoning": FALLBACK_REASONING,
                    "fallback": True,
                },
                confidence=FALLBACK_CONFIDENCE,
                # The ranking call may have succeeded before its output was rejected
                tokens_used=result.tokens_used if result is not None else 0,
            )

        return StepResult(
            data={"products": ranked, "reasoning": result.reasoning},
            confidence=result.confidence,
            tokens_used=result.tokens_used,
        )

    async def _recommend(self, ctx: NodeContext) -> StepResult:
        recommender = ctx.capabilities.recommender
        if recommender is None:
            return StepResult(
                data={"products": [], "reasoning": "No results"},
                confidence=0,
                error="No recommender configured",
            )

        preferences = ctx.metadata.get("preferences") or ctx.run.latest("entities", {})
        try:
            recommendation = await recommender.recommend(ctx.message, preferences=preferences)
        except Exception as e:
            logger.error(f"Recommendation error: {e}")
            return StepResult(
                data={"products": [], "reasoning": "No results"},
                confidence=0,
                error=str(e) or type(e).__name__,
            )

        return StepResult(
            data={
                "products": recommendation.products,
                "reasoning": recommendation.reasoning,
                "fallback_products": recommendation.fallback_products,
            },
            confidence=recommendation.confidence,
            found=bool(recommendation.products),
            tokens_used=recommendation.tokens_used,
        )
