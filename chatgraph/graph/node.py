"""
Node Protocol - The building blocks of a workflow graph.

A node is pure data:
1. An identity (id, name)
2. A kind that selects the handler that runs it
3. A free-form config mapping, validated by that handler at dispatch time

Every dispatch produces exactly one StepResult. Results are immutable and are
appended (never mutated) to the run's execution context.
"""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class NodeKind(StrEnum):
    """Known node kinds. Unknown kinds are tolerated and dispatched as no-ops."""

    TRIGGER = "trigger"
    CLASSIFIER = "classifier"
    NLP = "nlp"
    ROUTER = "router"
    DATABASE = "database"
    ML = "ml"
    FORMATTER = "formatter"
    OPTIMIZER = "optimizer"
    HANDLER = "handler"
    ESCALATION = "escalation"
    ACTION = "action"
    VISION = "vision"
    SPEECH = "speech"
    END = "end"  # Terminal kind, never dispatched


ROUTING_FIELDS = (
    "next",
    "next_high_confidence",
    "next_low_confidence",
    "next_found",
    "next_not_found",
    "fallback",
)


class RoutingConfig(BaseModel):
    """
    Named next-node references attached to a node's config.

    Routing is data: references are only checked against the workflow when
    the resolver evaluates them.
    """

    next: str | None = None
    next_high_confidence: str | None = None
    next_low_confidence: str | None = None
    next_found: str | None = None
    next_not_found: str | None = None
    fallback: str | None = None

    model_config = ConfigDict(extra="allow", frozen=True)

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "RoutingConfig":
        """Read routing fields leniently, ignoring anything that is not a string id."""
        return cls(
            **{
                key: config[key]
                for key in ROUTING_FIELDS
                if isinstance(config.get(key), str) and config[key]
            }
        )


class NodeSpec(BaseModel):
    """
    Specification for a single node in a workflow.

    Example:
        NodeSpec(
            id="intent_router",
            name="Intent Router",
            kind="router",
            config={
                "routes": [{"intent": "greeting", "next": "greeting_handler"}],
                "fallback": "clarification_handler",
            },
        )
    """

    id: str = Field(min_length=1)
    name: str = ""
    kind: str = Field(alias="type", min_length=1)
    description: str = ""
    config: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="allow", frozen=True, populate_by_name=True)

    @field_validator("config", mode="before")
    @classmethod
    def _none_config_is_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    @property
    def label(self) -> str:
        return self.name or self.id

    @property
    def is_terminal(self) -> bool:
        return self.kind == NodeKind.END

    @property
    def routing(self) -> RoutingConfig:
        return RoutingConfig.from_config(self.config)


class StepResult(BaseModel):
    """
    Uniform output of one node dispatch.

    `response` is the single response channel: every handler that produces
    user-visible text writes it here, and nothing else is read when the final
    reply is extracted.

    `effective_message` and `language` are declared side effects. When set,
    the execution context adopts them as the message/language seen by every
    later node (used by speech transcription).
    """

    data: dict[str, Any] = Field(default_factory=dict)
    next: str | None = None
    confidence: float | None = None
    found: bool | None = None
    tokens_used: int = Field(default=0, ge=0)
    error: str | None = None
    response: str | None = None
    effective_message: str | None = None
    language: str | None = None

    model_config = ConfigDict(frozen=True)

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: Any) -> Any:
        if value is None:
            return None
        try:
            return min(1.0, max(0.0, float(value)))
        except (TypeError, ValueError):
            return None

    @field_validator("tokens_used", mode="before")
    @classmethod
    def _coerce_tokens(cls, value: Any) -> Any:
        if value is None:
            return 0
        try:
            return max(0, int(value))
        except (TypeError, ValueError):
            return 0

    @property
    def success(self) -> bool:
        return self.error is None

    def has_response(self) -> bool:
        return bool(self.response and self.response.strip())


class StepTrace(BaseModel):
    """Lightweight per-dispatch diagnostic record. Carries no payload."""

    node_id: str
    node_name: str = ""
    kind: str = ""
    has_data: bool = False
    has_error: bool = False
    has_response: bool = False
    confidence: float | None = None
    found: bool | None = None
    tokens_used: int = 0
    next: str | None = None

    @classmethod
    def from_result(cls, node: NodeSpec, result: StepResult) -> "StepTrace":
        return cls(
            node_id=node.id,
            node_name=node.name,
            kind=node.kind,
            has_data=bool(result.data),
            has_error=result.error is not None,
            has_response=result.has_response(),
            confidence=result.confidence,
            found=result.found,
            tokens_used=result.tokens_used,
            next=result.next,
        )
