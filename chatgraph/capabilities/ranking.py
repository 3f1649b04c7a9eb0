"""Helpers shared by everything that ranks product candidates."""

from typing import Any

from chatgraph.capabilities.base import MalformedOutputError, RankedCandidate

FALLBACK_REASONING = "Fallback ranking by popularity"
FALLBACK_CONFIDENCE = 0.5


def popularity(product: dict[str, Any]) -> float:
    try:
        return float(product.get("popularity") or 0)
    except (TypeError, ValueError):
        return 0.0


def by_popularity(products: list[dict[str, Any]], limit: int | None = None) -> list[dict[str, Any]]:
    """Deterministic re-ranking: most popular first, ties keep their original order."""
    ordered = sorted(products, key=popularity, reverse=True)
    ranked = [
        {**product, "relevance_score": FALLBACK_CONFIDENCE, "reasoning": FALLBACK_REASONING}
        for product in ordered
    ]
    return ranked[:limit] if limit is not None else ranked


def _display_name(product: dict[str, Any]) -> str:
    model = (product.get("features") or {}).get("model") or ""
    return f"{product.get('brand') or ''} {model}".strip()


def _match(candidates: list[dict[str, Any]], verdict: RankedCandidate) -> int | None:
    for position, product in enumerate(candidates):
        if verdict.id is not None and product.get("id") == verdict.id:
            return position
    if verdict.name:
        for position, product in enumerate(candidates):
            if verdict.name in (product.get("name"), _display_name(product)):
                return position
    if verdict.index is not None and 1 <= verdict.index <= len(candidates):
        return verdict.index - 1
    return None


def apply_rankings(
    candidates: list[dict[str, Any]],
    verdicts: list[RankedCandidate],
    limit: int | None = None,
) -> list[dict[str, Any]]:
    """
    Map ranking verdicts back onto candidate records, highest relevance first.

    Raises:
        MalformedOutputError: when none of the verdicts refer to a known candidate.
    """
    seen: set[int] = set()
    ranked = []
    for verdict in verdicts:
        position = _match(candidates, verdict)
        if position is None or position in seen:
            continue
        seen.add(position)
        ranked.append(
            {
                **candidates[position],
                "relevance_score": verdict.relevance_score,
                "reasoning": verdict.reasoning,
            }
        )

    if verdicts and not ranked:
        raise MalformedOutputError("Ranking did not reference any known candidate")

    ranked.sort(key=lambda p: p["relevance_score"], reverse=True)
    return ranked[:limit] if limit is not None else ranked
