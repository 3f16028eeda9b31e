"""
Entry point for the llama-agent command-line interface.

The CLI reads a target file, collects the other relevant source files of
the project as background context, builds a prompt for the requested mode
and pipes it into the local inference program.  The cleaned response is
written to standard output, which is what editor integrations read.

Usage examples::

    # Complete the code after line 42, column 8
    llama-agent complete src/main.cpp 42 8

    # Ask a free-form question about a file
    llama-agent chat src/main.cpp why does parse_args leak memory?

    # Explain a file, focusing on line 120
    llama-agent explain src/parser.rs 120

    # Look for defects, or generate unit tests
    llama-agent fix src/parser.rs
    llama-agent test src/parser.rs

    # Show the effective settings
    llama-agent config

Settings are read from `~/.llama-agent.json` (see `config.py`).  Logs go to
standard error; standard output only ever carries the result.

Exit status is 0 on success and 1 on bad arguments, an unreadable target
file, or a failed or timed-out inference call.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import List, NoReturn, Optional

from . import __version__
from .cleaner import clean_output
from .config import Settings
from .context_builder import ContextBuilder, detect_language
from .errors import ArgumentError, FileReadError, LlamaAgentError
from .ollama_client import OllamaClient, Response
from .prompts import Mode, Request, build_prompt

LOG_FORMAT = "[%(levelname)s] %(asctime)s %(name)s:%(lineno)d - %(message)s"

logger = logging.getLogger("llama_agent.cli")


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises instead of exiting with status 2."""

    def error(self, message: str) -> NoReturn:
        raise ArgumentError(f"{self.prog}: {message}")


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="llama-agent",
        description="Send project-aware prompts to a local language model.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Settings file to load instead of ~/.llama-agent.json.",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging verbosity (default from env LLAMA_AGENT_LOGLEVEL, else INFO when "
             "enable_logging is set, else WARNING).",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the response as a JSON object with content, language, confidence and error.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the prompt instead of sending it to the model.",
    )
    sub = parser.add_subparsers(dest="mode", metavar="MODE")
    sub.required = True

    p = sub.add_parser(Mode.COMPLETE.value, help="Complete the code at the cursor.")
    p.add_argument("file", type=Path)
    p.add_argument("line", type=int, nargs="?", default=None, help="Cursor line (1-based).")
    p.add_argument("col", type=int, nargs="?", default=None, help="Cursor column.")

    p = sub.add_parser(Mode.CHAT.value, help="Ask a question about a file.")
    p.add_argument("file", type=Path)
    p.add_argument("prompt", nargs="+", help="The question.")

    p = sub.add_parser(Mode.EXPLAIN.value, help="Explain a file, optionally around a line.")
    p.add_argument("file", type=Path)
    p.add_argument("line", type=int, nargs="?", default=None)

    p = sub.add_parser(Mode.FIX.value, help="Find defects and suggest fixes.")
    p.add_argument("file", type=Path)

    p = sub.add_parser(Mode.TEST.value, help="Generate unit tests.")
    p.add_argument("file", type=Path)

    sub.add_parser(Mode.CONFIG.value, help="Show the effective settings.")
    return parser


def configure_logging(level_name: Optional[str], settings: Optional[Settings] = None) -> None:
    """Configure root logging on stderr.

    An explicit level wins, then LLAMA_AGENT_LOGLEVEL, then the
    `enable_logging` setting.
    """
    name = level_name or os.environ.get("LLAMA_AGENT_LOGLEVEL", "").upper()
    if not name:
        name = "INFO" if settings is not None and settings.enable_logging else "WARNING"
    level = getattr(logging, name, logging.WARNING)
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)
    logging.getLogger().setLevel(level)


def read_target(path: Path) -> str:
    try:
        with path.open("r", encoding="utf-8", errors="replace") as f:
            return f.read()
    except OSError as exc:
        raise FileReadError(f"cannot read {path}: {exc}") from exc


def display_path(path: Path, root: Path) -> str:
    """Return `path` relative to `root` when it lies inside it."""
    try:
        return path.resolve().relative_to(root.resolve()).as_posix()
    except ValueError:
        return path.as_posix()


def build_request(args: argparse.Namespace, content: str, file_path: str) -> Request:
    mode = Mode(args.mode)
    return Request(
        file_path=file_path,
        content=content,
        mode=mode,
        language=detect_language(args.file),
        line=getattr(args, "line", None),
        column=getattr(args, "col", None),
        question=" ".join(getattr(args, "prompt", None) or []),
    )


def run(args: argparse.Namespace, settings: Settings) -> Response:
    """Execute one non-config command and return its response."""
    root = settings.resolved_root()
    content = read_target(args.file)
    request = build_request(args, content, display_path(args.file, root))
    logger.info(
        "Execution context: cwd=%s | root=%s | file=%s | mode=%s | language=%s",
        Path.cwd(), root, request.file_path, request.mode.value, request.language,
    )

    context = ContextBuilder(root, settings.max_context_files).collect(args.file)
    prompt = build_prompt(request, context, settings.context_lines)
    if args.dry_run:
        return Response(content=prompt, language=request.language)

    client = OllamaClient(settings)
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            "Request: model=%s | temperature=%s | prompt_tokens~%d | max_tokens=%d",
            settings.model, settings.temperature, client.estimate_tokens(prompt), settings.max_tokens,
        )
    raw = client.run(prompt)
    return Response(content=clean_output(raw, request.mode), language=request.language)


def main(argv: Optional[List[str]] = None) -> int:
    """Primary CLI entry point.  Returns an exit code."""
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except ArgumentError as exc:
        parser.print_usage(sys.stderr)
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    configure_logging(args.log_level)
    settings = Settings.load(args.config)
    configure_logging(args.log_level, settings)

    if args.mode == Mode.CONFIG.value:
        print(json.dumps(settings.to_dict(), indent=2))
        return 0

    try:
        response = run(args, settings)
    except KeyboardInterrupt:
        print("\nCancelled.", file=sys.stderr)
        return 1
    except LlamaAgentError as exc:
        logger.debug("%s failed: %s", args.mode, exc, exc_info=True)
        if args.json:
            failed = Response(content="", language=detect_language(args.file), error=str(exc))
            print(json.dumps(failed.to_dict()))
        else:
            print(f"Error: {exc}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(response.to_dict()))
    else:
        print(response.content)
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
