"""
Inference dispatcher for llama-agent.

This module encapsulates interactions with the local inference program.
The prompt is written to the standard input of ``<command> run <model>``
and the program's standard output is returned verbatim; parsing and
clean-up happen elsewhere.  A hard wall-clock timeout bounds the call,
after which the child process is killed and reaped so that no inference
job is left running.

Token estimation for budgeting lives here as well, since it depends on the
model the request is sent to.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import sys
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

import tiktoken

from .config import Settings
from .errors import DispatchFailure, DispatchTimeout

logger = logging.getLogger(__name__)

FALLBACK_ENCODING = "cl100k_base"
MAX_STDERR_CHARS = 500


@dataclass
class Response:
    """Result of one invocation as presented to the caller."""

    content: str
    language: str
    confidence: Optional[float] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class OllamaClient:
    """Runs the inference program as a subprocess with a timeout."""

    def __init__(self, settings: Settings) -> None:
        self.command = settings.inference_command
        self.model = settings.model
        self.timeout_seconds = settings.timeout_seconds
        self._encoding = None

    def build_command(self) -> List[str]:
        return [self.command, "run", self.model]

    def estimate_tokens(self, text: str) -> int:
        """Estimate the number of tokens `text` will use.

        tiktoken downloads the BPE file on first use and caches it under
        TIKTOKEN_CACHE_DIR; that fetch is not covered by `timeout_seconds`.
        If the encoding cannot be loaded a `len // 4` heuristic is used.
        """
        if self._encoding is None:
            try:
                self._encoding = tiktoken.encoding_for_model(self.model)
            except KeyError:
                # Local model names are unknown to tiktoken
                try:
                    self._encoding = tiktoken.get_encoding(FALLBACK_ENCODING)
                except Exception as exc:
                    logger.debug("Failed to load %s encoding (%s). Falling back to heuristic.", FALLBACK_ENCODING, exc)
                    return max(1, len(text) // 4)
        return len(self._encoding.encode(text, disallowed_special=()))

    def run(self, prompt: str) -> str:
        """Send `prompt` to the inference program and return its raw stdout.

        Raises
        ------
        DispatchTimeout
            The program did not finish within `timeout_seconds`.  The child
            has been killed by the time this is raised.
        DispatchFailure
            The program could not be started or exited with a non-zero
            status.  Standard error is included in the message.

        A KeyboardInterrupt while waiting kills the child before it
        propagates.
        """
        cmd = self.build_command()
        logger.info("Dispatching prompt (%d chars) to %s (timeout=%gs)", len(prompt), " ".join(cmd), self.timeout_seconds)
        try:
            proc = subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                start_new_session=(sys.platform != "win32"),
            )
        except OSError as exc:
            raise DispatchFailure(f"failed to start {self.command!r}: {exc}") from exc

        try:
            stdout, stderr = proc.communicate(prompt, timeout=self.timeout_seconds)
        except subprocess.TimeoutExpired:
            logger.warning("Inference process %s exceeded %gs; killing it", proc.pid, self.timeout_seconds)
            _kill(proc)
            proc.communicate()
            raise DispatchTimeout(self.timeout_seconds) from None
        except KeyboardInterrupt:
            logger.warning("Interrupted; killing inference process %s", proc.pid)
            _kill(proc)
            proc.communicate()
            raise

        if proc.returncode != 0:
            detail = (stderr or "").strip()[:MAX_STDERR_CHARS]
            message = f"{self.command} exited with status {proc.returncode}"
            if detail:
                message += f": {detail}"
            raise DispatchFailure(message, returncode=proc.returncode, stderr=stderr or "")

        logger.debug("Inference process returned %d characters", len(stdout or ""))
        return stdout or ""


def _kill(proc: subprocess.Popen) -> None:
    """Kill `proc` and, on POSIX, every process in its session."""
    if sys.platform == "win32":
        proc.kill()
        return
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
