"""Exceptions raised by llama-agent.

Every error is terminal for the current invocation.  The CLI catches
``LlamaAgentError`` at the top level, reports the message and exits with
status 1.
"""

from __future__ import annotations


class LlamaAgentError(Exception): ...
class ArgumentError(LlamaAgentError): ...
class FileReadError(LlamaAgentError): ...


class DispatchError(LlamaAgentError):
    """Base class for failures of the inference subprocess."""


class DispatchTimeout(DispatchError):
    """The inference process did not finish before the configured timeout."""

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(f"inference timed out after {timeout_seconds:g}s")
        self.timeout_seconds = timeout_seconds


class DispatchFailure(DispatchError):
    """The inference process could not be launched or exited non-zero."""

    def __init__(self, message: str, returncode: int | None = None, stderr: str = "") -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr
