import logging
import os
import signal
import subprocess
import sys
import time
from dataclasses import replace
from pathlib import Path

import pytest
import tiktoken

from llama_agent.config import Settings
from llama_agent.errors import DispatchError, DispatchFailure, DispatchTimeout
from llama_agent.ollama_client import OllamaClient, Response


def _client(command, timeout=5, model="starcoder2:latest"):
    return OllamaClient(replace(Settings(), inference_command=str(command), timeout_seconds=timeout, model=model))


def test_build_command():
    assert OllamaClient(Settings()).build_command() == ["ollama", "run", "starcoder2:latest"]


def test_run_returns_stdout_verbatim(fake_inference):
    script = fake_inference('printf "args: %s %s\\n" "$1" "$2"\ncat\n')

    output = _client(script, model="codellama:7b").run("int main() {")

    assert output == "args: run codellama:7b\nint main() {"


def test_nonzero_exit_is_a_failure_with_stderr(fake_inference):
    script = fake_inference('cat > /dev/null\necho "model not found" >&2\nexit 3\n')

    with pytest.raises(DispatchFailure) as excinfo:
        _client(script).run("prompt")

    assert excinfo.value.returncode == 3
    assert "model not found" in str(excinfo.value)
    assert not isinstance(excinfo.value, DispatchTimeout)


def test_missing_executable_is_a_failure(tmp_path):
    with pytest.raises(DispatchFailure, match="failed to start"):
        _client(tmp_path / "no-such-program").run("prompt")


def test_timeout_is_reported_distinctly(fake_inference):
    script = fake_inference("sleep 10\n")

    started = time.monotonic()
    with pytest.raises(DispatchTimeout) as excinfo:
        _client(script, timeout=1).run("prompt")
    elapsed = time.monotonic() - started

    assert isinstance(excinfo.value, DispatchError)
    assert not isinstance(excinfo.value, DispatchFailure)
    assert excinfo.value.timeout_seconds == 1
    # The sleeping child is killed, not waited for
    assert elapsed < 8


def test_estimate_tokens_is_positive():
    client = OllamaClient(Settings())
    assert client.estimate_tokens("int main() { return 0; }") > 0


def test_response_to_dict():
    assert Response(content="x", language="c").to_dict() == {
        "content": "x",
        "language": "c",
        "confidence": None,
        "error": None,
    }


def test_fractional_timeout_lets_fast_program_finish(fake_inference):
    script = fake_inference("cat > /dev/null\necho hi\n")

    assert _client(script, timeout=0.5).run("x") == "hi\n"


def test_estimate_tokens_falls_back_quietly(monkeypatch, caplog):
    def unavailable(name):
        raise OSError("no network")

    monkeypatch.setattr(tiktoken, "get_encoding", unavailable)
    client = OllamaClient(Settings())

    with caplog.at_level(logging.DEBUG, logger="llama_agent.ollama_client"):
        assert client.estimate_tokens("x" * 40) == 10

    records = [r for r in caplog.records if "Falling back to heuristic" in r.getMessage()]
    assert records
    assert all(r.levelno == logging.DEBUG for r in records)


def _wait_for(predicate, timeout=10.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.05)
    return False


def _process_gone(pid):
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return True
    return False


def test_interrupt_kills_inference_process(tmp_path, fake_inference, settings_file):
    pid_file = tmp_path / "child.pid"
    script = fake_inference(f'echo $$ > "{pid_file}"\nexec sleep 30\n')
    target = tmp_path / "main.c"
    target.write_text("int main(void) { return 0; }\n", encoding="utf-8")
    config = settings_file(project_root=str(tmp_path), inference_command=str(script), timeout_seconds=60)

    repo_root = Path(__file__).resolve().parents[1]
    env = dict(os.environ, PYTHONPATH=os.pathsep.join(filter(None, [str(repo_root), os.environ.get("PYTHONPATH")])))
    driver = subprocess.Popen(
        [
            sys.executable,
            "-c",
            "import sys; from llama_agent import cli; sys.exit(cli.main(sys.argv[1:]))",
            "--config", str(config), "fix", str(target),
        ],
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        env=env,
    )
    try:
        assert _wait_for(lambda: pid_file.exists() and pid_file.read_text().strip())
        child = int(pid_file.read_text().strip())

        driver.send_signal(signal.SIGINT)
        _, err = driver.communicate(timeout=15)
    finally:
        if driver.poll() is None:
            driver.kill()
            driver.communicate()

    assert driver.returncode == 1
    assert "Cancelled." in err
    assert _wait_for(lambda: _process_gone(child), timeout=5)
