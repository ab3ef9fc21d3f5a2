#!/usr/bin/env python3
"""
Seahorse Agent CLI

Command-line tool for running the agent without the HTTP service.
The index lives in memory, so every command initializes a fresh agent
(model, embeddings, provider data) before doing its work.

Usage:
    python -m seahorse.rag.cli ask "When is the team sync?"
    python -m seahorse.rag.cli ask --direct "Tell me a joke"
    python -m seahorse.rag.cli providers
    python -m seahorse.rag.cli ingest-notes notes.txt --query "milk"
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from seahorse.config import settings
from seahorse.exceptions import SeahorseError
from seahorse.models.schemas import ProgressReport
from seahorse.services.agent import Agent
from seahorse.services.registry import create_provider_registry

logging.basicConfig(
    level=logging.WARNING,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def print_progress(report: ProgressReport) -> None:
    line = f"[{report.progress * 100:5.1f}%] {report.message}"
    if report.rag_update is not None:
        rag = report.rag_update
        line += f" (total={rag.total}, completed={rag.completed}, error={rag.error})"
    print(line)


def print_token(token: str) -> None:
    print(token, end="", flush=True)


async def start_agent(quiet: bool = False) -> Agent:
    agent = Agent()
    await agent.initialize(progress_callback=None if quiet else print_progress)
    return agent


async def cmd_ask(args: argparse.Namespace) -> int:
    """Ask the agent a question."""
    question = " ".join(args.question)

    if not question:
        print("Error: Please provide a question")
        return 1

    try:
        agent = await start_agent(args.quiet)

        print(f"\nQuestion: {question}")
        print("-" * 50)

        if args.direct:
            print(await agent.generate_direct_response(question))
            return 0

        agent.set_streaming_callback(print_token)
        await agent.generate_response(question)
        print()

        if args.show_context and agent.last_context:
            print("\n" + "=" * 50)
            print("CONTEXT:")
            print("=" * 50)
            for item in agent.last_context:
                print(f"\n--- [{item.type}] {item.title} (score: {item.score:.3f}) ---")
                print(item.content[:500])

        return 0

    except SeahorseError as e:
        logger.error(f"Ask failed: {e}")
        return 1


async def cmd_providers(args: argparse.Namespace) -> int:
    """List registry providers and their item counts."""
    registry = create_provider_registry(settings)

    try:
        providers = await registry.get_all_providers()
    except SeahorseError as e:
        logger.error(f"Failed to list providers: {e}")
        return 1

    print(f"Providers ({len(providers)})")
    print("-" * 50)

    for provider in providers:
        provider_id = provider.get("id", "?")
        try:
            items = await registry.get_provider_data(provider_id)
            count = str(len(items or []))
        except SeahorseError as e:
            logger.warning(f"Could not fetch data for {provider_id}: {e}")
            count = "error"

        print(
            f"{provider_id}: {provider.get('name', 'Unknown')} "
            f"(value score: {provider.get('valueScore', '?')}, items: {count})"
        )

    return 0


async def cmd_ingest_notes(args: argparse.Namespace) -> int:
    """Embed note files and optionally search them."""
    texts = []
    for file_path in args.files:
        path = Path(file_path)
        if not path.exists():
            print(f"Error: File not found: {file_path}")
            return 1
        texts.append(path.read_text(encoding="utf-8"))

    try:
        agent = await start_agent(args.quiet)

        added = await agent.embed_texts(texts)
        print(f"\nEmbedded {len(texts)} notes into {added} chunks")

        if args.query:
            print(f"\nQuery: {args.query}")
            print("-" * 50)
            for i, (chunk, score) in enumerate(await agent.search_similar(args.query, args.top_k)):
                print(f"\n--- Result {i + 1} (score: {score:.3f}) ---")
                print(f"Source: {chunk.metadata.get('source', 'unknown')}")
                print(chunk.text[:500])

        return 0

    except SeahorseError as e:
        logger.error(f"Note ingestion failed: {e}")
        return 1


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Seahorse Agent CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Ask a grounded question:
    python -m seahorse.rag.cli ask "When is the team sync?"

  Ask without retrieval:
    python -m seahorse.rag.cli ask --direct "Tell me a joke"

  List registry providers:
    python -m seahorse.rag.cli providers

  Add notes and search them:
    python -m seahorse.rag.cli ingest-notes notes.txt --query "milk"
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Ask command
    ask_parser = subparsers.add_parser("ask", help="Ask the agent a question")
    ask_parser.add_argument("question", nargs="+", help="Question text")
    ask_parser.add_argument(
        "--direct", action="store_true",
        help="Bypass retrieval and use the default prompt"
    )
    ask_parser.add_argument(
        "--show-context", action="store_true",
        help="Print the retrieved context after the answer"
    )
    ask_parser.add_argument(
        "--quiet", "-q", action="store_true",
        help="Hide initialization progress"
    )

    # Providers command
    subparsers.add_parser("providers", help="List registry providers")

    # Ingest notes command
    notes_parser = subparsers.add_parser("ingest-notes", help="Embed note files")
    notes_parser.add_argument("files", nargs="+", help="Text files to embed")
    notes_parser.add_argument("--query", type=str, help="Search the index afterwards")
    notes_parser.add_argument(
        "--top-k", "-k", type=int, default=settings.search_top_k,
        help=f"Number of results to show (default: {settings.search_top_k})"
    )
    notes_parser.add_argument(
        "--quiet", "-q", action="store_true",
        help="Hide initialization progress"
    )

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    # Run the appropriate command
    commands = {
        "ask": cmd_ask,
        "providers": cmd_providers,
        "ingest-notes": cmd_ingest_notes,
    }

    if args.command in commands:
        return asyncio.run(commands[args.command](args))
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
