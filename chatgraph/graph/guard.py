"""
Safety Guard - forces termination of runaway runs.

Two independent checks run before every dispatch:
1. A hard iteration ceiling for the whole run
2. A per-node visit budget, counted from the run's step trace

Routing is data-driven, so a workflow can contain accidental cycles (an
error handler routing back to itself, two routers pointing at each other).
Either check tripping ends the run; the executor never dispatches past a trip.
"""

from dataclasses import dataclass
from enum import StrEnum

from chatgraph.graph.context import ExecutionContext
from chatgraph.graph.node import NodeSpec


class TripReason(StrEnum):
    MAX_ITERATIONS = "max_iterations"
    REPEATED_VISIT = "repeated_visit"


@dataclass(frozen=True)
class GuardTrip:
    reason: TripReason
    node_id: str
    message: str


class SafetyGuard:
    """
    Example:
        guard = SafetyGuard(max_iterations=100, max_node_visits=3)
        trip = guard.check(node, context)
        if trip:
            context.add_error(trip.message)
    """

    def __init__(self, max_iterations: int = 100, max_node_visits: int = 3):
        self.max_iterations = max_iterations
        self.max_node_visits = max_node_visits

    def check(self, node: NodeSpec, context: ExecutionContext) -> GuardTrip | None:
        """Advance the iteration counter and decide whether `node` may be dispatched."""
        context.iteration += 1
        ceiling = min(self.max_iterations, context.max_iterations)
        if context.iteration > ceiling:
            return GuardTrip(
                reason=TripReason.MAX_ITERATIONS,
                node_id=node.id,
                message=f"Workflow loop detected after {context.iteration} iterations",
            )

        # The visit about to happen would exceed the budget
        visits = context.visit_count(node.id)
        if self.max_node_visits > 0 and visits >= self.max_node_visits:
            return GuardTrip(
                reason=TripReason.REPEATED_VISIT,
                node_id=node.id,
                message=(
                    f"Infinite loop detected at node {node.id} "
                    f"(already visited {visits} times)"
                ),
            )
        return None
