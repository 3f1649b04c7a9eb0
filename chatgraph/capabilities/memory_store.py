"""In-memory product catalog implementing the DataStore contract."""

import copy
import json
import re
from pathlib import Path
from typing import Any

from chatgraph.capabilities.base import DataStore
from chatgraph.capabilities.ranking import popularity

TEXT_FIELDS = ("name", "description", "brand", "category", "subcategory")
WORD = re.compile(r"[a-z0-9]+")


def _lower(value: Any) -> str:
    return str(value).lower() if value is not None else ""


def _in_stock(product: dict[str, Any]) -> bool:
    return bool(product.get("in_stock", product.get("inStock", True)))


class InMemoryProductStore(DataStore):
    """
    A product catalog held in memory, for demos, the CLI and tests.

    Search rules:
    - only active, in-stock products
    - a product matches when any of these hold (case-insensitive):
      the whole query is contained in a text field, a query word (3+ chars)
      matches a tag or a word of a text field, the brand contains the `brand`
      filter, the category or subcategory contains `category`, or the
      subcategory or feature type contains `type`
    - `budget` is a hard price ceiling
    - most popular first, then `limit`

    Example:
        store = InMemoryProductStore.from_file("examples/sales_assistant/catalog.json")
        products = await store.search("honda scooter", {"budget": 6000, "limit": 5})
    """

    def __init__(
        self,
        products: list[dict[str, Any]] | None = None,
        orders: list[dict[str, Any]] | None = None,
    ):
        self.products = list(products or [])
        self.orders = list(orders or [])
        self.logs: list[dict[str, Any]] = []

    @classmethod
    def from_file(cls, path: str | Path) -> "InMemoryProductStore":
        """Load a catalog: either a product list or {"products": [...], "orders": [...]}."""
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, list):
            return cls(products=data)
        return cls(products=data.get("products", []), orders=data.get("orders", []))

    def _matches_query(self, product: dict[str, Any], query: str) -> bool:
        needle = query.strip().lower()
        if not needle:
            return True
        fields = [_lower(product.get(key)) for key in TEXT_FIELDS]
        if any(needle in text for text in fields):
            return True

        terms = {term for term in WORD.findall(needle) if len(term) > 2}
        tags = {_lower(tag) for tag in product.get("tags") or []}
        words = {word for text in fields for word in WORD.findall(text)}
        return bool(terms & (tags | words))

    def _matches_entities(self, product: dict[str, Any], filters: dict[str, Any]) -> bool:
        features = product.get("features") or {}
        fields_by_entity = {
            "brand": (product.get("brand"),),
            "category": (product.get("category"), product.get("subcategory")),
            "type": (product.get("subcategory"), features.get("type")),
        }
        for entity, fields in fields_by_entity.items():
            wanted = _lower(filters.get(entity)).strip()
            if wanted and any(wanted in _lower(value) for value in fields):
                return True
        return False

    def _within_budget(self, product: dict[str, Any], filters: dict[str, Any]) -> bool:
        budget = filters.get("budget")
        if budget is None:
            return True
        price = product.get("price")
        return isinstance(price, int | float) and price <= budget

    async def search(self, query: str, filters: dict[str, Any]) -> list[dict[str, Any]]:
        found = [
            product
            for product in self.products
            if product.get("active", True)
            and _in_stock(product)
            and (self._matches_query(product, query) or self._matches_entities(product, filters))
            and self._within_budget(product, filters)
        ]
        found.sort(key=popularity, reverse=True)
        limit = filters.get("limit")
        if limit:
            found = found[:limit]
        return [copy.deepcopy(product) for product in found]

    async def find_one(self, filters: dict[str, Any]) -> dict[str, Any] | None:
        if "order_id" in filters:
            reference = _lower(filters["order_id"])
            for order in self.orders:
                if reference in (_lower(order.get("order_id")), _lower(order.get("id"))):
                    return copy.deepcopy(order)
            return None

        if "id" in filters:
            for product in self.products:
                if product.get("id") == filters["id"]:
                    return copy.deepcopy(product)
            return None

        name = _lower(filters.get("name")).strip()
        if not name:
            return None
        # Exact name first, then a product named inside a longer message
        for product in self.products:
            if _lower(product.get("name")) == name:
                return copy.deepcopy(product)
        for product in sorted(self.products, key=popularity, reverse=True):
            product_name = _lower(product.get("name"))
            if product_name and (product_name in name or name in product_name):
                return copy.deepcopy(product)
        return None

    async def log(self, record: dict[str, Any]) -> bool:
        self.logs.append(copy.deepcopy(record))
        return True
