"""Command-line interface for keyed chat sessions.

Each subcommand corresponds to one request action of the chat web endpoint
and prints the same JSON document that endpoint answers with, so the CLI can
be used to script or inspect sessions without running the web layer.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Sequence

from .config import ChatConfig, ConfigurationError, load_chat_config
from .encryption import MessageEncodingError
from .service import SessionService
from .storage import StorageIOError

logger = logging.getLogger(__name__)

COMPACT_JSON_SEPARATORS = (",", ":")


class CLIError(RuntimeError):
    """Raised when CLI arguments are invalid."""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Key-gated encrypted chat sessions")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to a YAML config file (default: ~/.keyed-chat.yaml if present)",
    )
    parser.add_argument(
        "--storage-dir",
        default=None,
        help="Directory holding session logs (overrides config and environment)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("generate", help="create a new chat session and print its key")

    join_parser = subparsers.add_parser("join", help="check whether a session key is valid")
    join_parser.add_argument("key", help="Chat session key")

    send_parser = subparsers.add_parser(
        "send", help="append a message and print the full decrypted history"
    )
    send_parser.add_argument("key", help="Chat session key")
    send_parser.add_argument("message", help="Message text (may be empty)")

    fetch_parser = subparsers.add_parser("fetch", help="print the decrypted history")
    fetch_parser.add_argument("key", help="Chat session key")

    delete_parser = subparsers.add_parser("delete", help="permanently delete a session")
    delete_parser.add_argument("key", help="Chat session key")

    return parser


def _emit(document: dict[str, Any]) -> None:
    print(json.dumps(document, separators=COMPACT_JSON_SEPARATORS))


def _load_config(args: argparse.Namespace) -> ChatConfig:
    overrides = {"storage_dir": args.storage_dir} if args.storage_dir else None
    return load_chat_config(config_path=args.config, overrides=overrides)


def cmd_generate(service: SessionService, args: argparse.Namespace) -> None:
    _emit({"key": service.generate_session()})


def cmd_join(service: SessionService, args: argparse.Namespace) -> None:
    _emit({"success": service.validate_session(args.key)})


def cmd_send(service: SessionService, args: argparse.Namespace) -> None:
    messages = service.send_message(args.key, args.message)
    if messages is None:
        _emit({"messages": False})
        return
    _emit({"messages": [message.to_dict() for message in messages]})


def cmd_fetch(service: SessionService, args: argparse.Namespace) -> None:
    messages = service.fetch_history(args.key)
    _emit({"messages": [message.to_dict() for message in messages]})


def cmd_delete(service: SessionService, args: argparse.Namespace) -> None:
    _emit({"success": service.delete_session(args.key)})


COMMANDS = {
    "generate": cmd_generate,
    "join": cmd_join,
    "send": cmd_send,
    "fetch": cmd_fetch,
    "delete": cmd_delete,
}


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = _load_config(args)
        logging.basicConfig(level=getattr(logging, config.log_level, logging.INFO))
        handler = COMMANDS.get(args.command)
        if handler is None:  # pragma: no cover - argparse enforces choices
            raise CLIError(f"Unknown command: {args.command}")
        service = SessionService.from_config(config)
        try:
            handler(service, args)
        finally:
            service.close()
    except KeyboardInterrupt:  # pragma: no cover - interactive use
        logger.info("Interrupted by user")
    except (CLIError, ConfigurationError, MessageEncodingError, StorageIOError) as exc:
        parser.exit(1, f"error: {exc}\n")


if __name__ == "__main__":
    main(sys.argv[1:])
