"""
Output cleaning for llama-agent.

Local code models tend to wrap their answers in chatty lead-ins
("Here's the completion:") and sign-offs, and to fence code in Markdown.
`clean_output` strips that boilerplate.  In `complete` mode the editor
inserts the result verbatim, so the content of the first fenced code block
is extracted when there is one.
"""

from __future__ import annotations

import re

from .prompts import Mode

BOILERPLATE_PREFIXES = (
    "here's the completion:",
    "here is the completion:",
    "here's the completed code:",
    "here is the completed code:",
    "here's the code:",
    "here is the code:",
    "here's the continuation:",
    "here is the continuation:",
    "completion:",
)

BOILERPLATE_SUFFIXES = (
    "let me know if you have any questions.",
    "let me know if you need anything else.",
    "let me know if you need any further assistance.",
    "i hope this helps!",
    "hope this helps!",
)

# "Sure! Here's ...:" / "Certainly, here is ...:" on the first line
_LEAD_IN = re.compile(r"^(?:sure|certainly|of course)[!,.]?\s+here(?:'s| is)[^\n]*:[ \t]*\n", re.IGNORECASE)
_FENCED_BLOCK = re.compile(r"```[\w+#.-]*[ \t]*\n(.*?)```", re.DOTALL)
_FENCE_LINE = re.compile(r"^[ \t]*```[\w+#.-]*[ \t]*$")


def _strip_prefixes(text: str) -> str:
    text = _LEAD_IN.sub("", text, count=1).lstrip()
    lowered = text.lower()
    for prefix in BOILERPLATE_PREFIXES:
        if lowered.startswith(prefix):
            return text[len(prefix):].lstrip()
    return text


def _strip_suffixes(text: str) -> str:
    lowered = text.lower()
    for suffix in BOILERPLATE_SUFFIXES:
        if lowered.endswith(suffix):
            return text[: -len(suffix)].rstrip()
    return text


def _strip_fence_lines(text: str) -> str:
    lines = text.split("\n")
    if lines and _FENCE_LINE.match(lines[0]):
        lines = lines[1:]
    if lines and _FENCE_LINE.match(lines[-1]):
        lines = lines[:-1]
    return "\n".join(lines).strip("\n")


def extract_code_block(text: str) -> str | None:
    """Return the body of the first fenced code block, or None."""
    match = _FENCED_BLOCK.search(text)
    if match is None:
        return None
    return match.group(1).rstrip("\n")


# Fenced blocks are only unwrapped in complete mode, where the editor inserts
# the text verbatim.  Chat, explain, fix and test answers mix prose and code,
# so their fences are kept to mark where the code starts and ends.
def clean_output(raw: str, mode: Mode | str) -> str:
    """Remove boilerplate from `raw` model output."""
    text = _strip_suffixes(_strip_prefixes(raw.strip()))
    if mode == Mode.COMPLETE:
        block = extract_code_block(text)
        if block is not None:
            return block
        return _strip_fence_lines(text)
    return text
