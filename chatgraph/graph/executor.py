"""
Workflow Executor - runs one inbound message through a workflow graph.

The executor:
1. Creates a fresh ExecutionContext for the run
2. Checks the safety guard before every dispatch
3. Dispatches the current node and records its StepResult
4. Resolves the next node from the result and the node's routing config
5. Extracts the final reply once the run ends

A handler that raises is recorded as an errored step and the run is diverted
to the escalation node (once), then the response node, then the terminal
node. Callers always get an ExecutionResult back.

The executor holds only the read-only workflow, adapters and settings, so a
single instance can serve any number of concurrent runs.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from chatgraph.capabilities.base import Capabilities, TemplateStore
from chatgraph.config import EngineConfig
from chatgraph.graph.context import ExecutionContext
from chatgraph.graph.dispatcher import NodeDispatcher
from chatgraph.graph.extractor import ResponseExtractor
from chatgraph.graph.guard import SafetyGuard
from chatgraph.graph.node import NodeSpec, StepResult, StepTrace
from chatgraph.graph.resolver import NextNodeResolver
from chatgraph.graph.workflow import Workflow
from chatgraph.nodes import NodeHandler
from chatgraph.observability import clear_trace_context, get_trace_context, set_trace_context

logger = logging.getLogger(__name__)


class RunStatus(StrEnum):
    RUNNING = "running"
    COMPLETED = "completed"
    GUARD_TRIPPED = "guard_tripped"
    MALFORMED_START = "malformed_start"


@dataclass
class ExecutionResult:
    """Result of running one message through a workflow."""

    final_response: str
    tokens_used: int = 0
    response_time_ms: int = 0
    trace: list[StepTrace] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    status: RunStatus = RunStatus.COMPLETED
    path: list[str] = field(default_factory=list)  # Node IDs dispatched
    history: list[dict[str, str]] = field(default_factory=list)
    run_id: str = ""

    @property
    def completed(self) -> bool:
        """True when the run reached the terminal node."""
        return self.status == RunStatus.COMPLETED

    @property
    def is_clean(self) -> bool:
        """True only if the run completed without recording any error."""
        return self.completed and not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "final_response": self.final_response,
            "tokens_used": self.tokens_used,
            "response_time_ms": self.response_time_ms,
            "status": str(self.status),
            "path": list(self.path),
            "errors": list(self.errors),
            "trace": [step.model_dump() for step in self.trace],
            "history": list(self.history),
        }


class WorkflowExecutor:
    """
    Executes chat workflows.

    Example:
        executor = WorkflowExecutor(
            workflow=Workflow.load("examples/sales_assistant/workflow.json"),
            capabilities=Capabilities(language=my_nlp, data_store=my_store),
        )

        result = await executor.execute(
            "Do you have any Honda scooters under RM6000?",
            metadata={"message_type": "text", "language": "english"},
        )
        print(result.final_response)
    """

    def __init__(
        self,
        workflow: Workflow,
        capabilities: Capabilities | None = None,
        templates: TemplateStore | None = None,
        settings: EngineConfig | None = None,
        handlers: dict[str, NodeHandler] | None = None,
    ):
        """
        Args:
            workflow: The loaded workflow graph
            capabilities: Adapters available to node handlers; any may be absent
            templates: Template store, defaults to the workflow's own templates
            settings: Execution limits and routing policy
            handlers: Extra or replacement handlers by node kind
        """
        self.workflow = workflow
        self.settings = settings or EngineConfig()
        self.capabilities = capabilities or Capabilities()
        self.templates = templates or workflow.template_store(self.settings.default_language)

        self.dispatcher = NodeDispatcher(
            capabilities=self.capabilities,
            templates=self.templates,
            settings=self.settings,
            response_node=workflow.response_node,
            handlers=handlers,
        )
        self.resolver = NextNodeResolver(
            workflow, high_confidence_threshold=self.settings.high_confidence_threshold
        )
        self.guard = SafetyGuard(
            max_iterations=self.settings.max_iterations,
            max_node_visits=self.settings.max_node_visits,
        )
        self.extractor = ResponseExtractor()

    def register_handler(self, kind: str, handler: NodeHandler) -> None:
        """Register a custom handler for a node kind."""
        self.dispatcher.register_handler(kind, handler)

    async def execute(
        self,
        message: str,
        metadata: dict[str, Any] | None = None,
        history: list[dict[str, str]] | None = None,
    ) -> ExecutionResult:
        """
        Run one inbound message to completion.

        Args:
            message: The user's message text (may be empty for media messages)
            metadata: Channel metadata (message_type, language, media urls, ...)
            history: Prior conversation turns as {"role", "content"} dicts

        Returns:
            ExecutionResult with the final reply, trace and updated history
        """
        started = time.perf_counter()
        run_id = uuid.uuid4().hex
        outer_context = get_trace_context()
        set_trace_context(run_id=run_id, workflow_id=self.workflow.id)

        context = ExecutionContext(
            original_message=message or "",
            metadata=dict(metadata or {}),
            history=list(history or []),
            max_iterations=self.settings.max_iterations,
        )

        try:
            status = await self._run(context)
        finally:
            clear_trace_context()
            if outer_context:
                set_trace_context(**outer_context)

        final_response = self.extractor.extract(context)
        elapsed_ms = int((time.perf_counter() - started) * 1000)

        logger.info(f"✓ Run finished: {status}")
        logger.info(f"   Path: {' → '.join(context.path)}")
        logger.info(f"   Total tokens: {context.tokens_used}")
        logger.info(f"   Response time: {elapsed_ms}ms")

        return ExecutionResult(
            final_response=final_response,
            tokens_used=context.tokens_used,
            response_time_ms=elapsed_ms,
            trace=list(context.trace),
            errors=list(context.errors),
            status=status,
            path=context.path,
            history=[
                *context.history,
                {"role": "user", "content": context.original_message},
                {"role": "assistant", "content": final_response},
            ],
            run_id=run_id,
        )

    async def _run(self, context: ExecutionContext) -> RunStatus:
        workflow = self.workflow
        logger.info(f"🚀 Starting run: {workflow.name or workflow.id}")

        current = workflow.get_node(workflow.start_node)
        if current is None:
            message = f"Start node '{workflow.start_node}' not found"
            logger.error(f"❌ {message}")
            context.add_error(message)
            return RunStatus.MALFORMED_START

        while not current.is_terminal:
            trip = self.guard.check(current, context)
            if trip is not None:
                logger.error(f"   ✗ {trip.message}")
                context.add_error(trip.message)
                return RunStatus.GUARD_TRIPPED

            set_trace_context(node_id=current.id)
            logger.info(f"▶ Step {context.iteration}: {current.label} ({current.kind})")

            try:
                result = await self.dispatcher.dispatch(current, context)
            except Exception as e:
                logger.exception(f"   ✗ Node {current.id} raised")
                context.record(current, StepResult(error=str(e) or type(e).__name__))
                current = self._recovery_target(current, context)
                logger.info(f"   → Recovering at: {current.id}")
                continue

            context.record(current, result)
            if result.error:
                logger.warning(f"   ⚠ {current.id}: {result.error}")
            if result.tokens_used:
                logger.debug(f"   Tokens: {result.tokens_used}")

            current = self.resolver.resolve(current, result, context)
            logger.info(f"   → Next: {current.id}")

        logger.info(f"✓ Reached terminal node: {current.label}")
        return RunStatus.COMPLETED

    def _recovery_target(self, failed: NodeSpec, context: ExecutionContext) -> NodeSpec:
        """
        Where a run goes after a handler raised.

        Escalation is tried at most once per run; a failing response node
        (or a failure while escalating and no response node) ends the run.
        """
        workflow = self.workflow
        escalation = workflow.get_node(workflow.escalation_node)
        response = workflow.get_node(workflow.response_node)

        if failed.id != workflow.response_node:
            if (
                escalation is not None
                and escalation.id != failed.id
                and escalation.id not in context.escalated
            ):
                context.escalated.add(escalation.id)
                return escalation
            if response is not None:
                return response

        return workflow.terminal
