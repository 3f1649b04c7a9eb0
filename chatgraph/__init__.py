"""
chatgraph - a declarative workflow engine for conversational sales assistants.

A workflow is a JSON graph of typed nodes (classify, understand, search,
rank, format, respond). The engine walks it once per inbound message and
returns exactly one reply.

Example:
    from chatgraph import Workflow, WorkflowExecutor

    executor = WorkflowExecutor(Workflow.load("examples/sales_assistant/workflow.json"))
    result = await executor.execute("hello", metadata={"message_type": "text"})
"""

from chatgraph.capabilities import Capabilities
from chatgraph.config import EngineConfig, LLMConfig, RecommenderConfig
from chatgraph.graph import (
    MalformedGraphError,
    NodeKind,
    NodeSpec,
    StepResult,
    Workflow,
)
from chatgraph.graph.executor import ExecutionResult, RunStatus, WorkflowExecutor

__version__ = "0.1.0"

__all__ = [
    "Capabilities",
    "EngineConfig",
    "ExecutionResult",
    "LLMConfig",
    "MalformedGraphError",
    "NodeKind",
    "NodeSpec",
    "RecommenderConfig",
    "RunStatus",
    "StepResult",
    "Workflow",
    "WorkflowExecutor",
]
