"""Shared test fixtures for unit tests."""

import os
import stat
import time
from pathlib import Path

import pytest

from entity_agents.core.config import (
    EntityConfig,
    FrameworkSettings,
    NotificationConfig,
    clear_config_cache,
)
from entity_agents.utils.subprocess_utils import run_command


@pytest.fixture(autouse=True)
def _fresh_config_cache():
    clear_config_cache()
    yield
    clear_config_cache()


@pytest.fixture
def make_script(tmp_path):
    """Write an executable /bin/sh script into tmp_path/bin and return its path."""
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir(exist_ok=True)

    def _make(name: str, body: str) -> Path:
        path = bin_dir / name
        path.write_text("#!/bin/sh\n" + body + "\n")
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return path

    return _make


@pytest.fixture
def git_repo(tmp_path):
    """A git repository with one commit and a clean working tree."""
    repo = tmp_path / "repo"
    repo.mkdir()
    run_command(["git", "init", "-q"], cwd=repo)
    run_command(["git", "config", "user.email", "test@example.com"], cwd=repo)
    run_command(["git", "config", "user.name", "Test User"], cwd=repo)
    run_command(["git", "config", "commit.gpgsign", "false"], cwd=repo)
    (repo / "README.md").write_text("# test\n")
    run_command(["git", "add", "README.md"], cwd=repo)
    run_command(["git", "commit", "-q", "-m", "initial"], cwd=repo)
    return repo


@pytest.fixture
def entity_config(tmp_path, git_repo):
    """Config for an entity working in git_repo with only the file channel enabled."""
    return EntityConfig(
        name="Quinn",
        role="Network Engineer",
        system_prompt="You are Quinn.",
        project_root=git_repo,
        output_dir=tmp_path / "out",
        owned_paths=["infra/"],
        github_labels=["infrastructure"],
        notifications=NotificationConfig(desktop_enabled=False),
    )


@pytest.fixture
def echo_engine(make_script):
    """Engine stub that prints its second argument (the prompt)."""
    return make_script("engine", 'echo "$2"')


@pytest.fixture
def settings(echo_engine):
    return FrameworkSettings(
        engine_executable=str(echo_engine),
        engine_args=["{preamble}", "{prompt}"],
        default_timeout_ms=5000,
    )


def process_running(pid: int) -> bool:
    """True while pid exists and is not a zombie waiting to be reaped."""
    try:
        with open(f"/proc/{pid}/stat") as f:
            state = f.read().rsplit(")", 1)[1].split()[0]
    except FileNotFoundError:
        return False
    except OSError:
        # No procfs; fall back to signal 0
        try:
            os.kill(pid, 0)
        except ProcessLookupError:
            return False
        return True
    return state not in ("Z", "X")


@pytest.fixture
def wait_until_gone():
    """Poll until a pid has exited (zombies count as gone). Returns False on timeout."""

    def _wait(pid: int, timeout: float = 5.0) -> bool:
        deadline = time.time() + timeout
        while process_running(pid):
            if time.time() > deadline:
                return False
            time.sleep(0.05)
        return True

    return _wait
