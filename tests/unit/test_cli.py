"""Tests for the entity-agents CLI."""

import asyncio
from unittest.mock import MagicMock

import pytest
import yaml
from click.testing import CliRunner

from entity_agents.cli.main import cli
from entity_agents.core.config import EntityConfig, NotificationConfig
from entity_agents.core.models import TrackedIssue
from entity_agents.core.prompts import PromptTemplate
from entity_agents.core.registry import EntityRegistry
from entity_agents.integrations.github import GitHubClient


# ── fixtures ──────────────────────────────────────────────────────────────────


@pytest.fixture
def github():
    client = MagicMock(spec=GitHubClient)
    client.list_issues.return_value = [
        TrackedIssue(number=7, title="VPN drops", labels=["bug", "infrastructure"]),
        TrackedIssue(number=8, title="Typo", labels=["bug"]),
    ]
    return client


@pytest.fixture
def quinn_config(tmp_path, git_repo):
    return EntityConfig(
        name="Quinn",
        role="Network Engineer",
        system_prompt="You are Quinn.",
        project_root=git_repo,
        output_dir=tmp_path / "out",
        owned_paths=["infra/"],
        github_labels=["infrastructure"],
        notifications=NotificationConfig(desktop_enabled=False),
        operations={
            "troubleshoot": PromptTemplate(template="Troubleshoot: {issue}", required=["issue"]),
        },
    )


@pytest.fixture
def registry(quinn_config, settings, github):
    return EntityRegistry.from_definitions([quinn_config], settings, github=github, use_console=False)


@pytest.fixture
def invoke(registry):
    runner = CliRunner()

    def _invoke(*args):
        return runner.invoke(cli, list(args), obj={"registry": registry})

    return _invoke


# ── tests ─────────────────────────────────────────────────────────────────────


def test_list(invoke):
    result = invoke("list")

    assert result.exit_code == 0
    assert "Quinn" in result.output
    assert "troubleshoot" in result.output


def test_status(invoke):
    result = invoke("status", "quinn")

    assert result.exit_code == 0
    assert "Tasks completed" in result.output
    assert "Pending approvals" in result.output


def test_unknown_entity(invoke):
    result = invoke("status", "nobody")

    assert result.exit_code == 1
    assert "Unknown entity: nobody. Available: Quinn" in result.output


def test_work(invoke):
    result = invoke("work", "Quinn", "ping the gateway")

    assert result.exit_code == 0
    assert "ping the gateway" in result.output
    assert "Task completed" in result.output


def test_work_failure_exits_nonzero(quinn_config, settings, github, make_script):
    failing = str(make_script("bad-engine", "echo 'engine crashed' >&2; exit 1"))
    failing_settings = settings.model_copy(update={"engine_executable": failing})
    registry = EntityRegistry.from_definitions([quinn_config], failing_settings, github=github, use_console=False)

    result = CliRunner().invoke(cli, ["work", "Quinn", "anything"], obj={"registry": registry})

    assert result.exit_code == 1
    assert "engine crashed" in result.output


def test_run_operation(invoke):
    result = invoke("run", "Quinn", "troubleshoot", "-p", "issue=DNS fails")

    assert result.exit_code == 0
    assert "Troubleshoot: DNS fails" in result.output


def test_run_unknown_operation(invoke):
    result = invoke("run", "Quinn", "launch")

    assert result.exit_code == 1
    assert "no operation 'launch'" in result.output


def test_run_missing_param(invoke):
    result = invoke("run", "Quinn", "troubleshoot")

    assert result.exit_code == 1
    assert "Missing parameters: issue" in result.output


def test_run_malformed_param(invoke):
    result = invoke("run", "Quinn", "troubleshoot", "-p", "issue")

    assert result.exit_code == 2
    assert "key=value" in result.output


def test_issues(invoke, github):
    result = invoke("issues", "Quinn")

    assert result.exit_code == 0
    assert "VPN drops" in result.output
    assert "Typo" not in result.output
    github.list_issues.assert_called_with(["bug"], "open")


def test_issues_with_bracketed_title(invoke, github):
    github.list_issues.return_value = [
        TrackedIssue(number=9, title="Crash on [/] in path", labels=["bug", "infrastructure"]),
    ]

    result = invoke("issues", "Quinn")

    assert result.exit_code == 0
    assert "Crash on [/] in path" in result.output


def test_fix_missing_issue(invoke, github):
    github.get_issue.return_value = None

    result = invoke("fix", "Quinn", "99")

    assert result.exit_code == 1
    assert "Issue #99 not found" in result.output


def test_approvals_and_resolve(invoke, registry):
    entity = registry.create("Quinn")
    request = asyncio.run(entity.request_approval("Deploy prod", "confirm", ["Deploy", "Cancel"]))
    entity.close()

    listed = invoke("approvals", "Quinn")
    assert listed.exit_code == 0
    assert request.id in listed.output

    rejected = invoke("resolve", "Quinn", request.id, "Maybe")
    assert rejected.exit_code == 1
    assert "not one of" in rejected.output

    resolved = invoke("resolve", "Quinn", request.id, "Deploy")
    assert resolved.exit_code == 0

    empty = invoke("approvals", "Quinn")
    assert "No pending approvals" in empty.output


def test_approvals_with_bracketed_description(invoke, registry):
    entity = registry.create("Quinn")
    request = asyncio.run(entity.request_approval("Deploy [/]", "[bold]", ["Deploy", "Cancel"]))
    entity.close()

    result = invoke("approvals", "Quinn")

    assert result.exit_code == 0
    assert request.id in result.output
    assert "Deploy [/]" in result.output
    assert "[bold]" in result.output


def test_resolve_unknown_id(invoke):
    result = invoke("resolve", "Quinn", "approval_0", "Approve")

    assert result.exit_code == 1
    assert "No pending approval" in result.output


def test_config_dir_loading(tmp_path):
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "entities.yaml").write_text(yaml.safe_dump({
        "defaults": {"output_dir": str(tmp_path / "out")},
        "entities": [{"name": "Amber", "role": "Systems Architect", "system_prompt": "p"}],
    }))

    result = CliRunner().invoke(cli, ["--config-dir", str(config_dir), "list"])

    assert result.exit_code == 0
    assert "Amber" in result.output


def test_missing_config_dir(tmp_path):
    result = CliRunner().invoke(cli, ["--config-dir", str(tmp_path / "nope"), "list"])

    assert result.exit_code == 1
    assert "Entities config not found" in result.output
