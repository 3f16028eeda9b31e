import json
import stat
import sys
from pathlib import Path

import pytest


def write_script(path: Path, body: str) -> Path:
    path.write_text("#!/bin/sh\n" + body, encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def fake_inference(tmp_path: Path):
    """Return a factory for fake inference programs written as shell scripts."""
    if sys.platform == "win32":
        pytest.skip("fake inference programs are shell scripts")

    def _make(body: str, name: str = "fake-ollama") -> Path:
        return write_script(tmp_path / name, body)

    return _make


@pytest.fixture
def cpp_project(tmp_path: Path) -> Path:
    """Three-file C++ project: main.cpp is the target."""
    root = tmp_path / "project"
    (root / "src").mkdir(parents=True)
    (root / "src" / "main.cpp").write_text(
        '#include "util.h"\n\nint main() {\n    int total = add(1, 2);\n    return total;\n}\n',
        encoding="utf-8",
    )
    (root / "src" / "util.cpp").write_text(
        '#include "util.h"\n\nint add(int a, int b) { return a + b; }\n',
        encoding="utf-8",
    )
    (root / "src" / "util.h").write_text(
        "#pragma once\n\nint add(int a, int b);\n",
        encoding="utf-8",
    )
    return root


@pytest.fixture
def settings_file(tmp_path: Path):
    """Return a factory writing a settings JSON file and returning its path."""

    def _write(**values) -> Path:
        path = tmp_path / "llama-agent.json"
        path.write_text(json.dumps(values), encoding="utf-8")
        return path

    return _write
