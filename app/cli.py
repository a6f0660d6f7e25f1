"""Interactive console chat.

    $ chatbot-cli
    You: Hi! I'm Bob.
    AI: Hello Bob! How can I help you today?
    You: What's my name?
    AI: Your name is Bob.
"""

from __future__ import annotations

import argparse
import copy
import logging
from typing import Callable, Optional, TextIO
import sys

from chatbot.bot import build_chat_chain, build_chat_model, build_retrieval_chain, run_turn
from chatbot.core.memory import MEMORY_STRATEGIES, SessionStore, check_memory_strategy
from chatbot.retrieval import build_retriever
from config.settings import get_settings


logger = logging.getLogger(__name__)

EXIT_COMMANDS = {"exit", "quit"}


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Chat with the assistant from the terminal.")
    parser.add_argument("--session", default="console", help="Session id used for the chat history.")
    parser.add_argument("--message", help="Send a single message, print the reply and exit.")
    parser.add_argument("--retrieval", action="store_true", help="Answer from the configured documents.")
    parser.add_argument("--documents-dir", default=settings.documents_dir, help="Directory of text documents.")
    parser.add_argument(
        "--memory",
        choices=MEMORY_STRATEGIES,
        default=settings.memory_strategy,
        help="How earlier turns are fed back to the model.",
    )
    parser.add_argument("--log-level", default="WARNING", help="Logging level for console output.")
    return parser.parse_args(argv)


def chat_loop(
    chain,
    store: SessionStore,
    session_id: str,
    *,
    input_fn: Callable[[str], str] = input,
    out: TextIO = sys.stdout,
    **turn_options,
) -> int:
    """Read lines until exit/EOF, printing one reply per line. Returns turns completed."""
    history = store.get_session_history(session_id)
    turns = 0
    while True:
        try:
            line = input_fn("You: ")
        except (EOFError, KeyboardInterrupt):
            print(file=out)
            break
        text = line.strip()
        if not text:
            continue
        if text.lower() in EXIT_COMMANDS:
            break
        result = run_turn(chain, history, text, **turn_options)
        if result["error"]:
            print(f"Error: {result['error']}", file=out)
            continue
        print(f"AI: {result['output']}", file=out)
        turns += 1
    return turns


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.WARNING),
        format="[%(asctime)s] %(levelname)s - %(message)s",
    )

    check_memory_strategy(args.memory)
    settings = copy.copy(get_settings())
    settings.documents_dir = args.documents_dir
    llm = build_chat_model(settings)
    if args.retrieval:
        retriever = build_retriever(settings)
        if retriever is None:
            logger.error("--retrieval needs DOCUMENTS_DIR/DOCUMENT_URLS or --documents-dir")
            return 2
        chain = build_retrieval_chain(llm, retriever)
    else:
        chain = build_chat_chain(llm)

    store = SessionStore()
    turn_options = {
        "memory_strategy": args.memory,
        "max_history_messages": settings.max_history_messages,
        "llm": llm,
    }

    if args.message:
        result = run_turn(chain, store.get_session_history(args.session), args.message, **turn_options)
        if result["error"]:
            print(f"Error: {result['error']}", file=sys.stderr)
            return 1
        print(result["output"])
        return 0

    chat_loop(chain, store, args.session, **turn_options)
    return 0


if __name__ == "__main__":
    sys.exit(main())
