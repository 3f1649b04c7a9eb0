"""Node kind handlers."""

from chatgraph.nodes.base import NodeContext, NodeHandler
from chatgraph.nodes.data import DatabaseNode
from chatgraph.nodes.flow import ClassifierNode, RouterNode, TriggerNode
from chatgraph.nodes.language import NLPNode
from chatgraph.nodes.media import SpeechNode, VisionNode
from chatgraph.nodes.ranking import MLNode
from chatgraph.nodes.text import (
    ActionNode,
    EscalationNode,
    FormatterNode,
    OptimizerNode,
    TemplateHandlerNode,
)

BUILTIN_HANDLERS: tuple[type[NodeHandler], ...] = (
    TriggerNode,
    ClassifierNode,
    NLPNode,
    RouterNode,
    DatabaseNode,
    MLNode,
    FormatterNode,
    OptimizerNode,
    TemplateHandlerNode,
    EscalationNode,
    ActionNode,
    VisionNode,
    SpeechNode,
)


def default_handlers() -> dict[str, NodeHandler]:
    """A fresh kind -> handler table with every built-in node kind."""
    return {handler.kind: handler() for handler in BUILTIN_HANDLERS}


__all__ = [
    "NodeContext",
    "NodeHandler",
    "BUILTIN_HANDLERS",
    "default_handlers",
    "TriggerNode",
    "ClassifierNode",
    "NLPNode",
    "RouterNode",
    "DatabaseNode",
    "MLNode",
    "FormatterNode",
    "OptimizerNode",
    "TemplateHandlerNode",
    "EscalationNode",
    "ActionNode",
    "VisionNode",
    "SpeechNode",
]
