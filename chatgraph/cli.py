"""
Command-line interface for chatgraph.

Usage:
    chatgraph run examples/sales_assistant/workflow.json --message "Any scooters under 6000?"
    chatgraph run workflow.json --message "" --metadata '{"message_type": "voice", "voice_url": "..."}'
    chatgraph validate examples/sales_assistant/workflow.json
    chatgraph chat examples/sales_assistant/workflow.json --catalog examples/sales_assistant/catalog.json
"""

import argparse
import asyncio
import json
import sys
from typing import Any

from chatgraph.capabilities import (
    Capabilities,
    InMemoryProductStore,
    LLMLanguageUnderstanding,
    LLMRanking,
    LLMTranscription,
    LLMVisionAnalysis,
    ProductRecommender,
)
from chatgraph.config import EngineConfig, LLMConfig, RecommenderConfig
from chatgraph.graph.executor import ExecutionResult, WorkflowExecutor
from chatgraph.graph.workflow import MalformedGraphError, Workflow
from chatgraph.llm import LiteLLMProvider
from chatgraph.observability import configure_logging

EXIT_COMMANDS = {"exit", "quit", "/exit", "/quit"}


def build_capabilities(catalog: str | None, offline: bool = False) -> Capabilities:
    """Wire the adapters the CLI can offer: a JSON catalog and, unless offline, LiteLLM."""
    capabilities = Capabilities()
    if catalog:
        capabilities.data_store = InMemoryProductStore.from_file(catalog)

    if offline:
        return capabilities

    llm_config = LLMConfig.from_file()
    llm = LiteLLMProvider.from_config(llm_config)
    capabilities.language = LLMLanguageUnderstanding(
        llm, temperature=llm_config.temperature, max_tokens=llm_config.max_tokens
    )
    capabilities.ranking = LLMRanking(llm)
    capabilities.vision = LLMVisionAnalysis(llm, model=llm_config.vision_model)
    capabilities.transcription = LLMTranscription(llm, model=llm_config.transcription_model)
    if capabilities.data_store is not None:
        capabilities.recommender = ProductRecommender(
            capabilities.data_store, capabilities.ranking, RecommenderConfig()
        )
    return capabilities


def _load_executor(args: argparse.Namespace) -> WorkflowExecutor:
    workflow = Workflow.load(args.workflow)
    return WorkflowExecutor(
        workflow,
        capabilities=build_capabilities(args.catalog, offline=args.offline),
        settings=EngineConfig.from_file(),
    )


def _parse_metadata(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    metadata = json.loads(raw)
    if not isinstance(metadata, dict):
        raise ValueError("--metadata must be a JSON object")
    return metadata


def _print_summary(result: ExecutionResult) -> None:
    print(f"\n🤖 {result.final_response}\n")
    print(f"   Status: {result.status}")
    print(f"   Path: {' → '.join(result.path)}")
    print(f"   Tokens: {result.tokens_used}  Time: {result.response_time_ms}ms")
    for error in result.errors:
        print(f"   ⚠ {error}")


def cmd_run(args: argparse.Namespace) -> int:
    try:
        executor = _load_executor(args)
        metadata = _parse_metadata(args.metadata)
    except (MalformedGraphError, ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    metadata.setdefault("message_type", "text")
    if args.language:
        metadata.setdefault("language", args.language)

    result = asyncio.run(executor.execute(args.message, metadata=metadata))
    if args.json:
        print(json.dumps(result.to_dict(), indent=2, default=str))
    else:
        _print_summary(result)
    return 0 if result.completed else 2


def cmd_validate(args: argparse.Namespace) -> int:
    try:
        workflow = Workflow.load(args.workflow)
    except MalformedGraphError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1

    warnings = workflow.validate()
    print(f"✓ {workflow.name or workflow.id}: {len(workflow.nodes)} nodes")
    for warning in warnings:
        print(f"   ⚠ {warning}")
    return 0


async def _chat_loop(executor: WorkflowExecutor, language: str | None) -> None:
    history: list[dict[str, str]] = []
    print("💬 Type a message (/reset clears the history, exit quits)\n")
    while True:
        try:
            message = await asyncio.to_thread(input, "You: ")
        except EOFError:
            break
        message = message.strip()
        if message.lower() in EXIT_COMMANDS:
            break
        if message == "/reset":
            history = []
            print("   History cleared\n")
            continue
        if not message:
            continue

        metadata: dict[str, Any] = {"message_type": "text"}
        if language:
            metadata["language"] = language
        result = await executor.execute(message, metadata=metadata, history=history)
        history = result.history
        _print_summary(result)


def cmd_chat(args: argparse.Namespace) -> int:
    try:
        executor = _load_executor(args)
    except (MalformedGraphError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        asyncio.run(_chat_loop(executor, args.language))
    except KeyboardInterrupt:
        pass
    print("\n👋 Bye")
    return 0


def _add_executor_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("workflow", help="Path to a workflow JSON file")
    parser.add_argument("--catalog", help="Product catalog JSON for the in-memory data store")
    parser.add_argument("--language", help="Conversation language (e.g. english, malay)")
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Do not call an LLM; nodes that need one degrade",
    )


def register_commands(subparsers: argparse._SubParsersAction) -> None:
    run_parser = subparsers.add_parser("run", help="Run one message through a workflow")
    _add_executor_options(run_parser)
    run_parser.add_argument("--message", "-m", default="", help="The user message")
    run_parser.add_argument("--metadata", help="Message metadata as a JSON object")
    run_parser.add_argument("--json", action="store_true", help="Print the full result as JSON")
    run_parser.set_defaults(func=cmd_run)

    validate_parser = subparsers.add_parser("validate", help="Load a workflow and report problems")
    validate_parser.add_argument("workflow", help="Path to a workflow JSON file")
    validate_parser.set_defaults(func=cmd_validate)

    chat_parser = subparsers.add_parser("chat", help="Interactive chat against a workflow")
    _add_executor_options(chat_parser)
    chat_parser.set_defaults(func=cmd_chat)


def main():
    parser = argparse.ArgumentParser(
        prog="chatgraph",
        description="chatgraph - run declarative chat workflows",
    )
    parser.add_argument("--log-level", default="WARNING", help="Log level (DEBUG, INFO, ...)")
    parser.add_argument(
        "--log-format", default="auto", choices=["auto", "json", "human"], help="Log format"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    register_commands(subparsers)

    args = parser.parse_args()
    configure_logging(level=args.log_level, format=args.log_format)

    if hasattr(args, "func"):
        sys.exit(args.func(args))


if __name__ == "__main__":
    main()
