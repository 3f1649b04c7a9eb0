"""Database node: product, price and order lookups plus conversation logging."""

import logging
from typing import Any

from chatgraph.capabilities.base import CapabilityError, DataStore
from chatgraph.graph.node import NodeKind, RoutingConfig, StepResult
from chatgraph.nodes.base import NodeContext, NodeHandler

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 15
DEFAULT_VISUAL_SEARCH_LIMIT = 10


class DatabaseConfig(RoutingConfig):
    operation: str | None = None
    category: str | None = None
    limit: int | None = None


def _parse_budget(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return float(value)
    digits = "".join(ch for ch in str(value) if ch.isdigit() or ch == ".")
    try:
        return float(digits) if digits else None
    except ValueError:
        return None


def filter_by_area(products: list[dict[str, Any]], area: str) -> list[dict[str, Any]]:
    """
    Keep products available in `area` (or with no location list at all).

    Falls back to the unfiltered list when the filter would remove everything,
    e.g. a town the catalog has never heard of.
    """
    needle = area.lower()
    kept = []
    for product in products:
        locations = (product.get("features") or {}).get("locations") or []
        if not locations or any(needle in str(loc).lower() for loc in locations):
            kept.append(product)
    return kept or products


class DatabaseNode(NodeHandler):
    kind = NodeKind.DATABASE
    config_model = DatabaseConfig

    async def execute(self, ctx: NodeContext) -> StepResult:
        config: DatabaseConfig = self.parse_config(ctx.node)
        operations = {
            "semantic_search": self._semantic_search,
            "get_price": self._get_price,
            "get_order_status": self._get_order_status,
            "log": self._log,
            "visual_search": self._visual_search,
        }
        operation = operations.get(config.operation or "")
        if operation is None:
            logger.warning(f"   Unknown database operation: {config.operation!r}")
            return StepResult(data={}, found=False)

        try:
            return await operation(ctx, config)
        except Exception as e:
            logger.error(f"Database operation error ({config.operation}): {e}")
            return StepResult(
                data={},
                found=False,
                error=str(e) or type(e).__name__,
                response=self._carried_response(ctx) if config.operation == "log" else None,
            )

    def _store(self, ctx: NodeContext) -> DataStore:
        store = ctx.capabilities.data_store
        if store is None:
            raise CapabilityError("No data store configured")
        return store

    def _carried_response(self, ctx: NodeContext) -> str | None:
        last = ctx.run.last_result
        return last.response if last is not None else None

    async def _semantic_search(self, ctx: NodeContext, config: DatabaseConfig) -> StepResult:
        entities = ctx.run.latest("entities", {}) or {}
        query = ctx.message or ""
        filters: dict[str, Any] = {
            "category": config.category or entities.get("category"),
            "brand": entities.get("brand"),
            "type": entities.get("type"),
            "budget": _parse_budget(entities.get("budget")),
            "limit": config.limit or DEFAULT_SEARCH_LIMIT,
        }
        filters = {k: v for k, v in filters.items() if v is not None}

        products = await self._store(ctx).search(query, filters)
        area = entities.get("area")
        if area and products:
            products = filter_by_area(products, str(area))

        return StepResult(
            data={"products": products, "query": query, "filters": filters},
            found=len(products) > 0,
        )

    async def _get_price(self, ctx: NodeContext, config: DatabaseConfig) -> StepResult:
        entities = ctx.run.latest("entities", {}) or {}
        product_name = entities.get("product_name") or ctx.message
        product = await self._store(ctx).find_one({"name": product_name})
        return StepResult(
            data={
                "product": product,
                "price": product.get("price") if product else None,
                "products": [product] if product else [],
            },
            found=product is not None,
        )

    async def _get_order_status(self, ctx: NodeContext, config: DatabaseConfig) -> StepResult:
        entities = ctx.run.latest("entities", {}) or {}
        reference = entities.get("order_id") or entities.get("order_number")
        if not reference:
            return StepResult(data={"status": "unknown"}, found=False)

        order = await self._store(ctx).find_one({"order_id": str(reference)})
        return StepResult(
            data={"order": order, "status": order.get("status") if order else "unknown"},
            found=order is not None,
        )

    async def _log(self, ctx: NodeContext, config: DatabaseConfig) -> StepResult:
        previous = self._carried_response(ctx)
        record = {
            "message": ctx.run.original_message,
            "effective_message": ctx.message,
            "metadata": dict(ctx.metadata),
            "intent": ctx.run.latest("intent"),
            "response": previous,
            "tokens_used": ctx.run.tokens_used,
            "path": ctx.run.path,
        }
        acknowledged = await self._store(ctx).log(record)
        return StepResult(data={"logged": bool(acknowledged)}, response=previous)

    async def _visual_search(self, ctx: NodeContext, config: DatabaseConfig) -> StepResult:
        analysis = ctx.last_data.get("analysis") or ctx.run.latest("analysis")
        if not isinstance(analysis, dict):
            return StepResult(data={"products": []}, found=False)

        terms = " ".join(
            str(analysis[key])
            for key in ("product_name", "category", "brand")
            if analysis.get(key)
        )
        if not terms:
            return StepResult(data={"products": [], "analysis": analysis}, found=False)

        products = await self._store(ctx).search(
            terms, {"limit": config.limit or DEFAULT_VISUAL_SEARCH_LIMIT}
        )
        return StepResult(
            data={"products": products, "analysis": analysis, "query": terms},
            found=len(products) > 0,
        )
