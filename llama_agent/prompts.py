"""
Prompt construction for llama-agent.

A `Request` describes one invocation: the target file, its content, an
optional cursor position, the requested `Mode` and the detected language.
`build_prompt` selects the template for the mode and interpolates the
request together with the collected context blob.

Every template shares the same skeleton:

1) a role statement naming the language,
2) the project context blob,
3) the current file (path and content),
4) mode-specific instructions.

The target's own content only ever appears in the current-file section;
the context blob is collected with the target excluded.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

LINES_BEFORE_CURSOR = 10
LINES_AFTER_CURSOR = 5
DEFAULT_EXCERPT_LINES = 50

CURRENT_FILE_HEADER = "// Current file: "


class Mode(str, Enum):
    COMPLETE = "complete"
    CHAT = "chat"
    EXPLAIN = "explain"
    FIX = "fix"
    TEST = "test"
    CONFIG = "config"


@dataclass(frozen=True)
class Request:
    """Everything the prompt builder needs to know about one invocation.

    `line` is the editor's line number (1-based).  In `complete` mode the
    lines up to and including it form the before-cursor window and the
    lines after it form the after-cursor window; a 1-based `column` splits
    the cursor line between the two.  `question` is only used by `chat`
    mode.
    """

    file_path: str
    content: str
    mode: Mode
    language: str
    line: Optional[int] = None
    column: Optional[int] = None
    question: str = ""


def cursor_windows(
    lines: List[str], line: int, column: Optional[int] = None
) -> Tuple[List[str], List[str]]:
    """Return the (before, after) windows around cursor `line`.

    `line` is clipped to ``[0, len(lines)]`` so neither window reaches
    outside the file.  A cursor at 0 gives an empty before-window; a cursor
    at or past the last line gives an empty after-window.

    When a 1-based `column` is given, the cursor line is split there: the
    text left of the cursor ends the before-window and the text right of it
    starts the after-window.
    """
    cursor = max(0, min(line, len(lines)))
    before = lines[max(0, cursor - LINES_BEFORE_CURSOR):cursor]
    after = lines[cursor:cursor + LINES_AFTER_CURSOR]
    if column is None or not before:
        return before, after
    current = before[-1]
    split = max(0, min(column - 1, len(current)))
    before = before[:-1] + [current[:split]]
    if current[split:]:
        after = [current[split:]] + after[:LINES_AFTER_CURSOR - 1]
    return before, after


def numbered_excerpt(lines: List[str], line: int, size: int) -> str:
    """Return up to `size` numbered lines centred on 1-based `line`."""
    if not lines or size <= 0:
        return ""
    anchor = max(1, min(line, len(lines)))
    start = max(0, anchor - 1 - size // 2)
    end = min(len(lines), start + size)
    start = max(0, end - size)
    width = len(str(end))
    return "\n".join(
        f"{'>' if n + 1 == anchor else ' '}{n + 1:>{width}} | {lines[n]}"
        for n in range(start, end)
    )


def _header(request: Request, context: str, task: str) -> List[str]:
    parts = [f"You are an expert {request.language} developer. {task}"]
    if context.strip():
        parts.append("Project context:\n" + context.rstrip())
    else:
        parts.append("Project context:\n(no other project files)")
    parts.append(f"{CURRENT_FILE_HEADER}{request.file_path}\n{request.content.rstrip()}")
    return parts


def _complete_template(request: Request, context: str, excerpt_lines: int) -> str:
    lines = request.content.splitlines()
    line = request.line if request.line is not None else len(lines)
    before, after = cursor_windows(lines, line, request.column)
    parts = _header(request, context, "Complete the code at the cursor position.")
    cursor = f"Cursor: line {max(0, min(line, len(lines)))}"
    if request.column is not None:
        cursor += f", column {request.column}"
    parts.append(cursor)
    parts.append("Code before cursor:\n" + "\n".join(before))
    parts.append("Code after cursor:\n" + "\n".join(after))
    parts.append(
        "Respond with the code that continues from the cursor only. "
        "Do not repeat existing code and do not add any explanation."
    )
    return "\n\n".join(parts)


def _chat_template(request: Request, context: str, excerpt_lines: int) -> str:
    parts = _header(request, context, "Answer questions about the code below.")
    parts.append(f"Question about this {request.language} code: {request.question.strip()}")
    return "\n\n".join(parts)


def _explain_template(request: Request, context: str, excerpt_lines: int) -> str:
    parts = _header(request, context, "Explain code clearly to a fellow developer.")
    if request.line is not None:
        excerpt = numbered_excerpt(request.content.splitlines(), request.line, excerpt_lines)
        parts.append(f"Focus on the code around line {request.line}:\n{excerpt}")
        parts.append(
            f"Explain what the code around line {request.line} does and how it fits "
            "into the rest of the file. Answer in prose."
        )
    else:
        parts.append(
            "Explain what this file does: its purpose, main components and how they "
            "interact. Answer in prose."
        )
    return "\n\n".join(parts)


def _fix_template(request: Request, context: str, excerpt_lines: int) -> str:
    parts = _header(request, context, "Review code for defects.")
    parts.append(
        "Identify bugs, undefined behaviour and logic errors in the current file. "
        "For each problem, name the location, explain the defect briefly and give "
        "the corrected code."
    )
    return "\n\n".join(parts)


def _test_template(request: Request, context: str, excerpt_lines: int) -> str:
    parts = _header(request, context, "Write thorough unit tests.")
    parts.append(
        f"Generate unit tests for the current file using the idiomatic {request.language} "
        "testing style and framework. Cover normal behaviour and edge cases. "
        "Respond with the test code."
    )
    return "\n\n".join(parts)


Template = Callable[[Request, str, int], str]

_TEMPLATES: Dict[Mode, Template] = {
    Mode.COMPLETE: _complete_template,
    Mode.CHAT: _chat_template,
    Mode.EXPLAIN: _explain_template,
    Mode.FIX: _fix_template,
    Mode.TEST: _test_template,
}


def select_template(mode: Mode | str) -> Template:
    """Return the template for `mode`, falling back to the completion template."""
    try:
        return _TEMPLATES[Mode(mode)]
    except (KeyError, ValueError):
        logger.warning("No prompt template for mode %r; using the completion template", mode)
        return _complete_template


def build_prompt(request: Request, context: str, excerpt_lines: int = DEFAULT_EXCERPT_LINES) -> str:
    """Assemble the final prompt string for `request`."""
    template = select_template(request.mode)
    prompt = template(request, context, excerpt_lines)
    logger.debug("Built %s prompt: %d characters", request.mode, len(prompt))
    return prompt
