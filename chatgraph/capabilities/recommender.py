"""
Product recommender: search, rank, keep only what is relevant.

When ranking works but nothing clears `min_relevance`, no products are
recommended; the best few are returned as `fallback_products` with a reply
that invites the user to refine the search.
"""

import logging
from typing import Any

from chatgraph.capabilities.base import (
    DataStore,
    MalformedOutputError,
    Ranking,
    Recommendation,
    Recommender,
)
from chatgraph.capabilities.ranking import (
    FALLBACK_CONFIDENCE,
    FALLBACK_REASONING,
    apply_rankings,
    by_popularity,
)
from chatgraph.config import RecommenderConfig

logger = logging.getLogger(__name__)

NO_PRODUCTS = "No products found matching your query."
NOT_RELEVANT = (
    "I found products, but none are highly relevant to your query. "
    "Would you like to see them anyway, or refine your search?"
)


class ProductRecommender(Recommender):
    def __init__(
        self,
        data_store: DataStore,
        ranking: Ranking | None = None,
        config: RecommenderConfig | None = None,
    ):
        self.data_store = data_store
        self.ranking = ranking
        self.config = config or RecommenderConfig()

    async def recommend(
        self, query: str, preferences: dict[str, Any] | None = None
    ) -> Recommendation:
        products = await self.data_store.search(query, {"limit": self.config.search_limit})
        if not products:
            return Recommendation(products=[], confidence=0, reasoning=NO_PRODUCTS)

        result = None
        try:
            if self.ranking is None:
                raise MalformedOutputError("No ranking provider configured")
            result = await self.ranking.rank(query, products, preferences or {})
            if not result.ranked:
                raise MalformedOutputError("Ranking returned no products")
            ranked = apply_rankings(products, result.ranked)
        except Exception as e:
            logger.warning(f"Recommendation ranking failed, using popularity: {e}")
            return Recommendation(
                products=by_popularity(products, limit=self.config.top_n),
                confidence=FALLBACK_CONFIDENCE,
                reasoning=FALLBACK_REASONING,
                tokens_used=result.tokens_used if result is not None else 0,
            )

        relevant = [p for p in ranked if p["relevance_score"] >= self.config.min_relevance]
        if not relevant:
            return Recommendation(
                products=[],
                confidence=result.confidence,
                reasoning=NOT_RELEVANT,
                fallback_products=ranked[: self.config.fallback_count],
                tokens_used=result.tokens_used,
            )

        return Recommendation(
            products=relevant[: self.config.top_n],
            confidence=result.confidence,
            reasoning=result.reasoning or "Products ranked by relevance",
            tokens_used=result.tokens_used,
        )
