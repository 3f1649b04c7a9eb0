"""
Graph structures and the pieces of the run loop.

The executor and dispatcher depend on the node handlers, which in turn
depend on these modules, so they are imported from their own modules:

    from chatgraph.graph.executor import WorkflowExecutor
"""

from chatgraph.graph.context import ExecutionContext
from chatgraph.graph.extractor import APOLOGY, ResponseExtractor
from chatgraph.graph.guard import GuardTrip, SafetyGuard, TripReason
from chatgraph.graph.node import NodeKind, NodeSpec, RoutingConfig, StepResult, StepTrace
from chatgraph.graph.resolver import NextNodeResolver
from chatgraph.graph.templates import DictTemplateStore
from chatgraph.graph.workflow import MalformedGraphError, Workflow

__all__ = [
    "APOLOGY",
    "DictTemplateStore",
    "ExecutionContext",
    "GuardTrip",
    "MalformedGraphError",
    "NextNodeResolver",
    "NodeKind",
    "NodeSpec",
    "ResponseExtractor",
    "RoutingConfig",
    "SafetyGuard",
    "StepResult",
    "StepTrace",
    "TripReason",
    "Workflow",
]
