"""
Context builder for llama-agent.

This module collects the background context sent along with every prompt.
It traverses the project directory, keeps source files whose extension is
in a fixed allow-list, skips vendored and generated directories, and
concatenates the (possibly truncated) contents of at most `max_files`
files into a single text blob.

The collector never fails the surrounding command: a missing root or an
unreadable file simply contributes nothing.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import FrozenSet, List, Optional

logger = logging.getLogger(__name__)

MAX_FILE_CHARS = 2000
TRUNCATION_MARKER = "\n... (truncated)"
DEFAULT_MAX_FILES = 20

SOURCE_EXTENSIONS: FrozenSet[str] = frozenset({
    ".c", ".h", ".cpp", ".cc", ".cxx", ".hpp", ".hh",
    ".py", ".go", ".rs",
    ".js", ".jsx", ".ts", ".tsx",
    ".java", ".kt", ".scala", ".swift",
    ".rb", ".php", ".cs", ".lua",
    ".sh", ".vim", ".m", ".mm", ".zig",
})

# Any path containing one of these segments is skipped regardless of extension.
DENYLISTED_SEGMENTS: FrozenSet[str] = frozenset({
    ".git",
    "build",
    "node_modules",
    ".vscode",
    ".idea",
    "dist",
    "target",
    "__pycache__",
    ".venv",
    "vendor",
})

_LANGUAGES = {
    "c": "c",
    "h": "c",
    "cpp": "cpp",
    "cc": "cpp",
    "cxx": "cpp",
    "hpp": "cpp",
    "hh": "cpp",
    "py": "python",
    "go": "go",
    "rs": "rust",
    "js": "javascript",
    "jsx": "javascript",
    "ts": "typescript",
    "tsx": "typescript",
    "java": "java",
    "kt": "kotlin",
    "scala": "scala",
    "swift": "swift",
    "rb": "ruby",
    "php": "php",
    "cs": "csharp",
    "lua": "lua",
    "sh": "bash",
    "vim": "vim",
    "m": "objectivec",
    "mm": "objectivecpp",
    "zig": "zig",
}


def detect_language(path: str | Path) -> str:
    """Infer a language tag from the file extension; ``"text"`` when unknown."""
    ext = Path(path).suffix.lower().lstrip(".")
    return _LANGUAGES.get(ext, "text")


def is_denylisted(rel_path: str) -> bool:
    """Return True if any segment of the posix relative path is denylisted."""
    return any(part in DENYLISTED_SEGMENTS for part in rel_path.split("/"))


class ContextBuilder:
    """Collects the contents of relevant project files into a context blob."""

    def __init__(self, base_dir: Path, max_files: int = DEFAULT_MAX_FILES) -> None:
        self.base_dir = base_dir
        self.max_files = max_files

    @dataclass
    class FileEntry:
        """Container for included file data."""
        rel_path: str
        content: str
        truncated: bool

        def render(self) -> str:
            return f"// File: {self.rel_path}\n{self.content}\n\n"

    def _is_relevant(self, rel_path: str) -> bool:
        if is_denylisted(rel_path):
            return False
        return Path(rel_path).suffix.lower() in SOURCE_EXTENSIONS

    def list_files(self, target: Optional[Path] = None) -> List[str]:
        """Return the sorted relative paths of relevant files, excluding `target`."""
        if not self.base_dir.is_dir():
            logger.warning("Project root %s is not a directory; context will be empty", self.base_dir)
            return []
        target_abs = target.resolve() if target is not None else None

        def on_error(exc: OSError) -> None:
            logger.debug("Skipping unreadable directory %s: %s", exc.filename, exc)

        files: List[str] = []
        walked = 0
        for root, dirs, filenames in os.walk(self.base_dir, topdown=True, onerror=on_error):
            # Prune denylisted directories so their subtrees are never visited
            dirs[:] = [d for d in dirs if d not in DENYLISTED_SEGMENTS]
            walked += len(filenames)
            for filename in filenames:
                abs_path = Path(root) / filename
                rel_norm = os.path.relpath(abs_path, self.base_dir).replace(os.sep, "/")
                if not self._is_relevant(rel_norm):
                    continue
                if target_abs is not None and abs_path.resolve() == target_abs:
                    continue
                files.append(rel_norm)
        # The whole tree is walked so the cap applies to a stable order
        logger.debug("Walked %d files under %s; %d are context candidates", walked, self.base_dir, len(files))
        files.sort()
        return files

    def read_files(self, files: List[str]) -> List["ContextBuilder.FileEntry"]:
        """Read up to `max_files` of the given files.

        Contents longer than `MAX_FILE_CHARS` are cut and marked with
        `TRUNCATION_MARKER`.  Unreadable files are skipped and do not count
        against the cap.
        """
        included: List[ContextBuilder.FileEntry] = []
        for rel_path in files:
            if len(included) >= self.max_files:
                break
            abs_path = self.base_dir / rel_path
            try:
                with abs_path.open("r", encoding="utf-8", errors="replace") as f:
                    content = f.read()
            except OSError as exc:
                logger.debug("Skipping unreadable file %s: %s", rel_path, exc)
                continue
            truncated = len(content) > MAX_FILE_CHARS
            if truncated:
                content = content[:MAX_FILE_CHARS] + TRUNCATION_MARKER
            included.append(ContextBuilder.FileEntry(rel_path, content, truncated))
        return included

    def collect(self, target: Optional[Path] = None) -> str:
        """Return the context blob for `target`."""
        try:
            files = self.list_files(target)
        except OSError as exc:
            logger.warning("Failed to walk %s: %s", self.base_dir, exc)
            return ""
        entries = self.read_files(files)
        logger.info(
            "Collected %d of %d candidate context files from %s",
            len(entries), len(files), self.base_dir,
        )
        return "".join(entry.render() for entry in entries)
