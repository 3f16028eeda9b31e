"""
llama-agent package.

This package provides a command-line assistant that gathers source files
from a project directory, assembles them into a prompt, and pipes that
prompt into a locally running language model (``ollama run <model>`` by
default).  The response is cleaned and written to standard output so that
editor integrations can consume it directly.

Each component handles a single responsibility:

* ``config``: the immutable ``Settings`` record and its JSON overlay.
* ``context_builder``: collection of relevant project files.
* ``prompts``: request model and prompt templates per mode.
* ``ollama_client``: the subprocess dispatcher with a hard timeout.
* ``cleaner``: removal of boilerplate from raw model output.

See `cli.py` for the entry point.
"""

__version__ = "0.2.0"

__all__ = [
    "cli",
]
