"""
Command-line interface for memory-recall.

Sub-commands
------------
recall   – Run pre-turn recall for a message and print the context block.
settings – Print the resolved recall settings.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import random
import sys
from typing import Any

from .errors import RecallConfigError
from .recall import MemoryRecall
from .settings import load_config, resolve_recall_settings
from .store import chroma_manager_factory


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="memory-recall",
        description="Pre-turn memory recall for conversational agents.",
    )
    parser.add_argument(
        "--config",
        default=None,
        metavar="PATH",
        help="YAML host configuration holding agents.defaults.memoryRecall.",
    )
    parser.add_argument(
        "--db",
        default=None,
        metavar="PATH",
        help="Path to the ChromaDB persistent store (overrides the config).",
    )
    parser.add_argument(
        "--collection",
        default=None,
        metavar="NAME",
        help="ChromaDB collection name; may contain {agent_id} (overrides the config).",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        metavar="LEVEL",
        help="Logging level (default: WARNING).",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    # recall
    p_recall = sub.add_parser("recall", help="Recall memories for a message.")
    p_recall.add_argument("message", nargs="?", help="Incoming message (reads stdin if omitted).")
    p_recall.add_argument("--agent", default="main", help="Agent ID (default: main).")
    p_recall.add_argument(
        "--heartbeat",
        action="store_true",
        help="Treat the message as an automatic heartbeat/cron turn.",
    )
    p_recall.add_argument(
        "--bootstrapped",
        action="append",
        default=[],
        metavar="PATH",
        help="Path already in the agent's context; may be repeated.",
    )
    p_recall.add_argument("--session", default=None, help="Optional session key.")
    p_recall.add_argument(
        "--seed",
        type=int,
        default=None,
        metavar="N",
        help="Seed for the random diversity slot.",
    )

    # settings
    sub.add_parser("settings", help="Print the resolved recall settings.")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    config: dict[str, Any] = {}
    try:
        if args.config:
            config = load_config(args.config)
        settings = resolve_recall_settings(config)
    except RecallConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if args.command == "settings":
        if settings is None:
            print("Memory recall is disabled.")
            return 0
        print(json.dumps(settings.model_dump(), indent=2))

    elif args.command == "recall":
        message = args.message
        if message is None:
            message = sys.stdin.read().strip()
        if not message:
            print("Error: no message provided.", file=sys.stderr)
            return 1

        factory = chroma_manager_factory(db_path=args.db, collection_name=args.collection)
        rng = random.Random(args.seed) if args.seed is not None else None
        block = asyncio.run(
            MemoryRecall(factory, rng=rng).recall(
                config,
                args.agent,
                message,
                is_heartbeat=args.heartbeat,
                bootstrapped_paths=args.bootstrapped,
                session_key=args.session,
            )
        )
        if block is None:
            print("No memories recalled.")
            return 0
        print(block)

    return 0


if __name__ == "__main__":
    sys.exit(main())
